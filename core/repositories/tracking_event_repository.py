"""Server-side record of the latest webhook event per appointment."""

from datetime import datetime

from clients.postgres_client import PostgresClient
from core.models import TrackingEvent, TriggerName


class TrackingEventRepository:
    """
    Latest known webhook event per appointment.

    Events can arrive out of order; an older event never overwrites a newer one.
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def record(
        self,
        appointment_id: int,
        trigger_name: TriggerName,
        event_time: datetime,
        task_short_id: str | None,
    ) -> None:
        self.postgres.execute(
            """
            INSERT INTO tracking_events (appointment_id, trigger_name, event_time, task_short_id)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (appointment_id) DO UPDATE
            SET trigger_name = EXCLUDED.trigger_name,
                event_time = EXCLUDED.event_time,
                task_short_id = EXCLUDED.task_short_id
            WHERE tracking_events.event_time <= EXCLUDED.event_time
            """,
            (appointment_id, trigger_name.value, event_time, task_short_id)
        )

    def get_latest(self, appointment_id: int) -> TrackingEvent | None:
        row = self.postgres.execute_single(
            """
            SELECT appointment_id, trigger_name, event_time, task_short_id
            FROM tracking_events
            WHERE appointment_id = %s
            """,
            (appointment_id,)
        )
        if row is None:
            return None
        return TrackingEvent.model_validate(row)

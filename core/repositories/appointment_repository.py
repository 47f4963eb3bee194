"""Appointment persistence."""

import logging
from datetime import datetime

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, ACTOR_SYSTEM, compute_changes
from core.models import Appointment, AppointmentEdit
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class AppointmentRepository:
    """Reads and writes appointments."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def get_by_id(self, appointment_id: int) -> Appointment | None:
        row = self.postgres.execute_single(
            "SELECT * FROM appointments WHERE id = %s",
            (appointment_id,)
        )
        if row is None:
            return None
        return Appointment.model_validate(row)

    def apply_edit(self, current: Appointment, edit: AppointmentEdit, actor: str = ACTOR_SYSTEM) -> Appointment:
        """
        Persist the plan-shape fields of an edit.

        Fields left as None keep their current value.
        """
        row = self.postgres.execute_returning(
            """
            UPDATE appointments
            SET plan_type = COALESCE(%s, plan_type),
                unit_count = COALESCE(%s, unit_count),
                moving_partner_id = COALESCE(%s, moving_partner_id),
                scheduled_at = COALESCE(%s, scheduled_at),
                updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                edit.plan_type.value if edit.plan_type else None,
                edit.unit_count,
                edit.moving_partner_id,
                edit.scheduled_at,
                now_utc(),
                current.id,
            )
        )[0]
        updated = Appointment.model_validate(row)

        self.audit.log_change(
            entity_type="appointment",
            entity_id=updated.id,
            action=AuditAction.UPDATE,
            changes=compute_changes(current.model_dump(mode="json"), updated.model_dump(mode="json")),
            actor=actor,
        )
        return updated

    def set_service_start(self, appointment_id: int, started_at: datetime, actor: str) -> None:
        """Record when on-site work began. Only the first arrival counts."""
        rows = self.postgres.execute_returning(
            """
            UPDATE appointments
            SET service_start_at = %s, updated_at = %s
            WHERE id = %s AND service_start_at IS NULL
            RETURNING id
            """,
            (started_at, now_utc(), appointment_id)
        )
        if rows:
            self.audit.log_change(
                entity_type="appointment",
                entity_id=appointment_id,
                action=AuditAction.UPDATE,
                changes={"service_start_at": {"old": None, "new": started_at.isoformat()}},
                actor=actor,
            )

    def set_service_end(self, appointment_id: int, ended_at: datetime, actor: str) -> None:
        """Record when on-site work ended."""
        self.postgres.execute(
            "UPDATE appointments SET service_end_at = %s, updated_at = %s WHERE id = %s",
            (ended_at, now_utc(), appointment_id)
        )
        self.audit.log_change(
            entity_type="appointment",
            entity_id=appointment_id,
            action=AuditAction.UPDATE,
            changes={"service_end_at": {"old": None, "new": ended_at.isoformat()}},
            actor=actor,
        )

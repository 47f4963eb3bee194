"""Dispatch task persistence."""

import logging
from datetime import datetime

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, ACTOR_SYSTEM
from core.models import (
    DispatchTask,
    DispatchTaskCreate,
    DriverCommitment,
    TaskState,
    TaskWithDriver,
)
from core.time_windows import TimeWindow
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class TaskRepository:
    """
    Reads and writes dispatch tasks.

    Tasks are never deleted. Creating a task for an (appointment, unit, step)
    that already has a live task cancels the old one first, so at most one
    live task exists per triple.
    """

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def list_for_appointment(self, appointment_id: int) -> list[DispatchTask]:
        """Live tasks ordered by unit then step."""
        rows = self.postgres.execute(
            """
            SELECT * FROM dispatch_tasks
            WHERE appointment_id = %s AND cancelled_at IS NULL
            ORDER BY unit_number ASC, step_number ASC
            """,
            (appointment_id,)
        )
        return [DispatchTask.model_validate(row) for row in rows]

    def list_with_drivers(self, appointment_id: int) -> list[TaskWithDriver]:
        """Live tasks joined with driver identity, ordered by unit then step."""
        rows = self.postgres.execute(
            """
            SELECT t.task_id, t.unit_number, t.step_number, t.driver_id,
                   CASE WHEN d.id IS NULL THEN NULL
                        ELSE d.first_name || ' ' || d.last_name END AS driver_name,
                   d.phone_number AS driver_phone
            FROM dispatch_tasks t
            LEFT JOIN drivers d ON d.id = t.driver_id
            WHERE t.appointment_id = %s AND t.cancelled_at IS NULL
            ORDER BY t.unit_number ASC, t.step_number ASC
            """,
            (appointment_id,)
        )
        return [TaskWithDriver.model_validate(row) for row in rows]

    def get_by_task_id(self, task_id: str) -> DispatchTask | None:
        row = self.postgres.execute_single(
            "SELECT * FROM dispatch_tasks WHERE task_id = %s AND cancelled_at IS NULL",
            (task_id,)
        )
        if row is None:
            return None
        return DispatchTask.model_validate(row)

    def create(self, data: DispatchTaskCreate, actor: str = ACTOR_SYSTEM) -> DispatchTask:
        """Record a provider task, superseding any live task for the same triple."""
        now = now_utc()

        superseded = self.postgres.execute_returning(
            """
            UPDATE dispatch_tasks
            SET cancelled_at = %s, updated_at = %s
            WHERE appointment_id = %s AND unit_number = %s AND step_number = %s
              AND cancelled_at IS NULL
            RETURNING id, task_id
            """,
            (now, now, data.appointment_id, data.unit_number, int(data.step_number))
        )
        for old in superseded:
            logger.info(f"Superseded task {old['task_id']} for appointment {data.appointment_id}")
            self.audit.log_change(
                entity_type="dispatch_task",
                entity_id=old["id"],
                action=AuditAction.CANCEL,
                changes={"cancelled": {"superseded_by": data.task_id}},
                actor=actor,
            )

        row = self.postgres.execute_returning(
            """
            INSERT INTO dispatch_tasks (
                appointment_id, unit_number, step_number, task_id, short_id,
                driver_id, worker_type, state, complete_after, complete_before,
                destination_address, destination_latitude, destination_longitude,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                data.appointment_id, data.unit_number, int(data.step_number), data.task_id, data.short_id,
                data.driver_id, data.worker_type.value if data.worker_type else None,
                int(TaskState.UNASSIGNED), data.complete_after, data.complete_before,
                data.destination_address, data.destination_latitude, data.destination_longitude,
                now, now,
            )
        )[0]
        task = DispatchTask.model_validate(row)

        self.audit.log_change(
            entity_type="dispatch_task",
            entity_id=task.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
            actor=actor,
        )
        return task

    def set_unit_driver(
        self,
        appointment_id: int,
        unit_number: int,
        driver_id: int | None,
        actor: str = ACTOR_SYSTEM,
    ) -> list[DispatchTask]:
        """Assign (or clear, with None) the driver on every live task of a unit."""
        rows = self.postgres.execute_returning(
            """
            UPDATE dispatch_tasks
            SET driver_id = %s, updated_at = %s
            WHERE appointment_id = %s AND unit_number = %s AND cancelled_at IS NULL
            RETURNING *
            """,
            (driver_id, now_utc(), appointment_id, unit_number)
        )
        tasks = [DispatchTask.model_validate(row) for row in rows]
        for task in tasks:
            self.audit.log_change(
                entity_type="dispatch_task",
                entity_id=task.id,
                action=AuditAction.UPDATE,
                changes={"driver_id": {"old": None, "new": driver_id}},
                actor=actor,
            )
        return tasks

    def clear_driver(self, appointment_id: int, driver_id: int, actor: str = ACTOR_SYSTEM) -> list[DispatchTask]:
        """Take a driver off every live task of an appointment."""
        rows = self.postgres.execute_returning(
            """
            UPDATE dispatch_tasks
            SET driver_id = NULL, updated_at = %s
            WHERE appointment_id = %s AND driver_id = %s AND cancelled_at IS NULL
            RETURNING *
            """,
            (now_utc(), appointment_id, driver_id)
        )
        tasks = [DispatchTask.model_validate(row) for row in rows]
        for task in tasks:
            self.audit.log_change(
                entity_type="dispatch_task",
                entity_id=task.id,
                action=AuditAction.UPDATE,
                changes={"driver_id": {"old": driver_id, "new": None}},
                actor=actor,
            )
        return tasks

    def cancel_units_above(self, appointment_id: int, unit_count: int, actor: str = ACTOR_SYSTEM) -> list[DispatchTask]:
        """Cancel the live tasks of units that no longer exist after a unit-count reduction."""
        rows = self.postgres.execute_returning(
            """
            UPDATE dispatch_tasks
            SET cancelled_at = %s, updated_at = %s
            WHERE appointment_id = %s AND unit_number > %s AND cancelled_at IS NULL
            RETURNING *
            """,
            (now_utc(), now_utc(), appointment_id, unit_count)
        )
        tasks = [DispatchTask.model_validate(row) for row in rows]
        for task in tasks:
            self.audit.log_change(
                entity_type="dispatch_task",
                entity_id=task.id,
                action=AuditAction.CANCEL,
                changes={"cancelled": {"unit_number": task.unit_number, "reason": "unit removed"}},
                actor=actor,
            )
        return tasks

    def update_window(self, task_id: str, window: TimeWindow) -> None:
        self.postgres.execute(
            """
            UPDATE dispatch_tasks
            SET complete_after = %s, complete_before = %s, updated_at = %s
            WHERE task_id = %s
            """,
            (window.complete_after, window.complete_before, now_utc(), task_id)
        )

    def record_started(self, task_id: str, started_at: datetime, actor: str) -> None:
        """Mark the task active and remember when the provider said it started."""
        self.postgres.execute(
            """
            UPDATE dispatch_tasks
            SET webhook_time = %s, state = %s, updated_at = %s
            WHERE task_id = %s
            """,
            (started_at, int(TaskState.ACTIVE), now_utc(), task_id)
        )
        logger.debug(f"Task {task_id} started at {started_at.isoformat()} ({actor})")

    def record_completed(
        self,
        task_id: str,
        completed_at: datetime,
        photo_url: str | None,
        actor: str,
    ) -> DispatchTask | None:
        """Mark the task completed, keeping an existing photo if none was sent."""
        row = self.postgres.execute_single(
            """
            UPDATE dispatch_tasks
            SET state = %s, completed_at = %s,
                completion_photo_url = COALESCE(%s, completion_photo_url),
                updated_at = %s
            WHERE task_id = %s
            RETURNING *
            """,
            (int(TaskState.COMPLETED), completed_at, photo_url, now_utc(), task_id)
        )
        if row is None:
            return None

        task = DispatchTask.model_validate(row)
        self.audit.log_change(
            entity_type="dispatch_task",
            entity_id=task.id,
            action=AuditAction.UPDATE,
            changes={
                "state": {"old": None, "new": int(TaskState.COMPLETED)},
                "completion_photo_url": {"old": None, "new": photo_url},
            },
            actor=actor,
        )
        return task

    def list_commitments(self, driver_id: int) -> list[DriverCommitment]:
        """(appointment, unit) pairs the driver holds a live, unfinished task on."""
        rows = self.postgres.execute(
            """
            SELECT DISTINCT t.appointment_id, t.unit_number, a.scheduled_at
            FROM dispatch_tasks t
            JOIN appointments a ON a.id = t.appointment_id
            WHERE t.driver_id = %s
              AND t.cancelled_at IS NULL
              AND t.state <> %s
              AND a.status NOT IN ('Canceled', 'Completed')
            ORDER BY a.scheduled_at ASC, t.unit_number ASC
            """,
            (driver_id, int(TaskState.COMPLETED))
        )
        return [DriverCommitment.model_validate(row) for row in rows]

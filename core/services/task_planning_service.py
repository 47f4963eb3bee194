"""
Delivery-provider task planning.

Creates the linked pickup -> customer -> return task sequence for each
storage unit of an appointment, and moves existing task windows when the
appointment time changes. Each unit's windows are planned from that unit's
staggered start time.
"""

import logging

from clients.onfleet_client import OnfleetClient
from core.audit import ACTOR_SYSTEM
from core.config import DispatchConfig
from core.models import (
    Appointment,
    DispatchTask,
    DispatchTaskCreate,
    JobType,
    PlanType,
    TaskStep,
    WorkerType,
)
from core.repositories import MovingPartnerRepository, TaskRepository
from core.time_windows import plan_time_window, unit_start_time, window_for_task

logger = logging.getLogger(__name__)

# Steps that exist as provider tasks; the administrative step does not
PROVIDER_STEPS = (TaskStep.PICKUP, TaskStep.CUSTOMER, TaskStep.RETURN)

STEP_NOTES = {
    TaskStep.PICKUP: "Pick up unit {unit} at the warehouse",
    TaskStep.CUSTOMER: "{appointment_type}: unit {unit} at customer address",
    TaskStep.RETURN: "Return unit {unit} to the warehouse",
}


def _metadata(name: str, value, kind: str = "number") -> dict:
    return {"name": name, "type": kind, "value": value, "visibility": ["api"]}


class TaskPlanningService:
    """Creates and re-plans provider tasks for storage-unit appointments."""

    def __init__(
        self,
        onfleet: OnfleetClient,
        tasks: TaskRepository,
        partners: MovingPartnerRepository,
        config: DispatchConfig,
    ):
        self.onfleet = onfleet
        self.tasks = tasks
        self.partners = partners
        self.config = config

    def _team_for_unit(self, appointment: Appointment, unit_number: int) -> tuple[str, WorkerType]:
        """Provider team and worker type that should serve a unit."""
        if (
            unit_number == 1
            and appointment.plan_type == PlanType.FULL_SERVICE
            and appointment.moving_partner_id is not None
        ):
            partner = self.partners.get_by_id(appointment.moving_partner_id)
            if partner is not None and partner.onfleet_team_id:
                return partner.onfleet_team_id, WorkerType.MOVING_PARTNER
            logger.warning(
                f"Moving partner {appointment.moving_partner_id} has no provider team; "
                f"unit 1 of appointment {appointment.id} goes to the fleet team"
            )
        return self.config.fleet_team_id, WorkerType.FLEET_DRIVER

    def build_task_payload(
        self,
        appointment: Appointment,
        unit_number: int,
        step: TaskStep,
        depends_on: str | None = None,
    ) -> dict:
        """Provider create-task body for one step of one unit."""
        start = unit_start_time(appointment.scheduled_at, unit_number, self.config.stagger_minutes)
        window = plan_time_window(start, int(step))
        team_id, _ = self._team_for_unit(appointment, unit_number)

        if step == TaskStep.CUSTOMER:
            destination = {"address": {"unparsed": appointment.address}}
            if appointment.latitude is not None and appointment.longitude is not None:
                destination["location"] = [appointment.longitude, appointment.latitude]
        else:
            destination = {"address": {"unparsed": self.config.warehouse_address}}

        payload = {
            "destination": destination,
            "recipients": [],
            "notes": STEP_NOTES[step].format(
                unit=unit_number,
                appointment_type=appointment.appointment_type.value,
            ),
            "container": {"type": "TEAM", "team": team_id},
            "metadata": [
                _metadata("step", int(step)),
                _metadata("job_type", JobType.STORAGE_UNIT.value, kind="string"),
                _metadata("appointment_id", appointment.id),
                _metadata("unit_number", unit_number),
            ],
            **window.as_provider_payload(),
        }
        if depends_on:
            payload["dependencies"] = [depends_on]
        return payload

    def create_unit_tasks(
        self,
        appointment: Appointment,
        unit_number: int,
        actor: str = ACTOR_SYSTEM,
    ) -> list[DispatchTask]:
        """
        Create and record the three linked provider tasks of one unit.

        Raises:
            IntegrationFailure: the provider rejected a task
        """
        created: list[DispatchTask] = []
        previous_task_id = None
        _, worker_type = self._team_for_unit(appointment, unit_number)

        start = unit_start_time(appointment.scheduled_at, unit_number, self.config.stagger_minutes)

        for step in PROVIDER_STEPS:
            window = plan_time_window(start, int(step))
            payload = self.build_task_payload(appointment, unit_number, step, depends_on=previous_task_id)
            provider_task = self.onfleet.create_task(payload)

            destination = payload["destination"]
            location = destination.get("location")
            task = self.tasks.create(
                DispatchTaskCreate(
                    appointment_id=appointment.id,
                    unit_number=unit_number,
                    step_number=step,
                    task_id=provider_task["id"],
                    short_id=provider_task.get("shortId", ""),
                    worker_type=worker_type,
                    complete_after=window.complete_after,
                    complete_before=window.complete_before,
                    destination_address=destination["address"]["unparsed"],
                    destination_latitude=location[1] if location else None,
                    destination_longitude=location[0] if location else None,
                ),
                actor=actor,
            )
            created.append(task)
            previous_task_id = provider_task["id"]

        logger.info(
            f"Created {len(created)} provider tasks for appointment {appointment.id} unit {unit_number}"
        )
        return created

    def replan_windows(self, appointment: Appointment) -> int:
        """
        Move every live task's window to match the appointment's current time.

        Returns:
            Number of tasks updated
        """
        updated = 0
        for task in self.tasks.list_for_appointment(appointment.id):
            if not task.is_live:
                continue
            start = unit_start_time(appointment.scheduled_at, task.unit_number, self.config.stagger_minutes)
            window = window_for_task(start, int(task.step_number))
            if window is None:
                continue
            self.onfleet.update_task(task.task_id, window.as_provider_payload())
            self.tasks.update_window(task.task_id, window)
            updated += 1

        logger.info(f"Re-planned {updated} task windows for appointment {appointment.id}")
        return updated

    def sync_units(
        self,
        previous: Appointment,
        current: Appointment,
        actor: str = ACTOR_SYSTEM,
    ) -> list[DispatchTask]:
        """
        Bring provider tasks in line with an edited appointment.

        Units added by the edit get new task sequences, units removed by it
        have their tasks cancelled, and a moved appointment time re-plans
        the remaining windows.

        Returns:
            Newly created tasks
        """
        if current.unit_count < previous.unit_count:
            cancelled = self.tasks.cancel_units_above(current.id, current.unit_count, actor)
            logger.info(f"Cancelled {len(cancelled)} tasks above unit {current.unit_count} for appointment {current.id}")

        if current.scheduled_at != previous.scheduled_at:
            self.replan_windows(current)

        created: list[DispatchTask] = []
        for unit_number in range(previous.unit_count + 1, current.unit_count + 1):
            created.extend(self.create_unit_tasks(current, unit_number, actor))
        return created

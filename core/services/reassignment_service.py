"""
Appointment edits that reshape driver assignments.

ReassignmentService ties the pure ReassignmentEngine to persistence: it
loads the current assignments, computes the plan, persists the edit and the
plan under the appointment's advisory lock, brings provider tasks in line,
and publishes DriversReassigned for the notification handler.
"""

import logging

from clients.postgres_client import PostgresClient
from core.audit import ACTOR_SYSTEM
from core.availability import AvailabilityChecker
from core.event_bus import EventBus
from core.events import DriversReassigned
from core.exceptions import NotFoundError, StateConflictError, ValidationError
from core.models import (
    Appointment,
    AppointmentEdit,
    ReassignmentPlan,
    ReassignmentRequest,
)
from core.reassignment import ReassignmentEngine
from core.repositories import AppointmentRepository, MovingPartnerRepository, TaskRepository
from core.services.task_planning_service import TaskPlanningService

logger = logging.getLogger(__name__)


class ReassignmentService:
    """Applies appointment edits and the driver reassignments they imply."""

    def __init__(
        self,
        postgres: PostgresClient,
        appointments: AppointmentRepository,
        tasks: TaskRepository,
        partners: MovingPartnerRepository,
        engine: ReassignmentEngine,
        availability: AvailabilityChecker,
        planner: TaskPlanningService,
        event_bus: EventBus,
    ):
        self.postgres = postgres
        self.appointments = appointments
        self.tasks = tasks
        self.partners = partners
        self.engine = engine
        self.availability = availability
        self.planner = planner
        self.event_bus = event_bus

    def _load(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.get_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    def _build_request(self, current: Appointment, edit: AppointmentEdit) -> ReassignmentRequest:
        return ReassignmentRequest(
            current_tasks=self.tasks.list_with_drivers(current.id),
            old_plan_type=current.plan_type,
            new_plan_type=edit.plan_type or current.plan_type,
            old_unit_count=current.unit_count,
            new_unit_count=edit.unit_count or current.unit_count,
            appointment_time=edit.scheduled_at or current.scheduled_at,
            moving_partner_id=(
                edit.moving_partner_id if edit.moving_partner_id is not None else current.moving_partner_id
            ),
        )

    def preview(self, appointment_id: int, edit: AppointmentEdit) -> ReassignmentPlan:
        """Compute the plan an edit would produce without persisting anything."""
        current = self._load(appointment_id)
        return self.engine.analyze(self._build_request(current, edit))

    def apply_edit(
        self,
        appointment_id: int,
        edit: AppointmentEdit,
        actor: str = ACTOR_SYSTEM,
    ) -> tuple[Appointment, ReassignmentPlan]:
        """
        Persist an appointment edit and reconcile drivers with it.

        Raises:
            NotFoundError: appointment does not exist
            StateConflictError: appointment is completed or cancelled, or a
                driver cannot be classified
            ValidationError: the edit changes nothing
        """
        if edit.model_dump(exclude_none=True) == {}:
            raise ValidationError("Edit contains no changes")

        with self.postgres.advisory_lock(appointment_id):
            current = self._load(appointment_id)
            if current.is_terminal:
                raise StateConflictError(
                    f"Appointment {appointment_id} is {current.status.value} and cannot be edited"
                )

            plan = self.engine.analyze(self._build_request(current, edit))
            updated = self.appointments.apply_edit(current, edit, actor)
            self.planner.sync_units(current, updated, actor)
            self._apply_plan(updated, plan, actor)

        logger.info(
            f"Appointment {appointment_id} edited by {actor}: "
            f"{len(plan.drivers_to_remove)} removed, "
            f"{sum(1 for s in plan.drivers_to_keep if s.is_move)} shifted, "
            f"{len(plan.units_needing_new_driver)} units open"
        )

        if plan.has_changes:
            self.event_bus.publish(DriversReassigned.create(appointment=updated, plan=plan))

        return updated, plan

    def _apply_plan(self, appointment: Appointment, plan: ReassignmentPlan, actor: str) -> None:
        """
        Write the plan's assignments.

        Runs after the unit tasks are synced, so a driver shifted to a newly
        added unit lands on that unit's tasks. Moving drivers are cleared
        from their old unit before any unit is filled, so a driver never
        holds two units at once.
        """
        for removal in plan.drivers_to_remove:
            self.tasks.clear_driver(appointment.id, removal.driver_id, actor)

        moves = [shift for shift in plan.drivers_to_keep if shift.is_move]
        for shift in moves:
            self.tasks.clear_driver(appointment.id, shift.driver_id, actor)

        for slot in plan.units_needing_new_driver:
            self.tasks.set_unit_driver(appointment.id, slot.unit_number, None, actor)

        for shift in moves:
            self.tasks.set_unit_driver(appointment.id, shift.new_unit, shift.driver_id, actor)

    def partner_candidates(self, appointment_id: int) -> list[int]:
        """
        Drivers of the appointment's moving partner who are free at its time.

        Raises:
            NotFoundError: appointment does not exist
            ValidationError: appointment has no moving partner
        """
        appointment = self._load(appointment_id)
        if appointment.moving_partner_id is None:
            raise ValidationError(f"Appointment {appointment_id} has no moving partner")

        roster = self.partners.list_active_driver_ids(appointment.moving_partner_id)
        available = self.availability.filter_available(
            roster,
            appointment.scheduled_at,
            exclude_appointment_id=appointment.id,
        )
        logger.debug(
            f"Partner {appointment.moving_partner_id}: {len(available)}/{len(roster)} drivers "
            f"free for appointment {appointment_id}"
        )
        return available

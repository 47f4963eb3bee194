"""Driver reassignment domain models. Computed per edit, never persisted."""

from datetime import datetime

from pydantic import BaseModel, Field

from core.models.appointment import PlanType
from core.models.driver import DriverType
from core.models.task import TaskWithDriver


# Removal reasons. The unit-removed reason is formatted with the unit number.
REASON_UNIT_REMOVED = "Unit {unit} no longer exists"
REASON_NO_SHIFT_TARGET = "No available unit to shift to"
REASON_TYPE_MISMATCH = "Driver type mismatch"


class ReassignmentRequest(BaseModel):
    """Current assignments plus the requested new plan shape."""

    current_tasks: list[TaskWithDriver]
    old_plan_type: PlanType
    new_plan_type: PlanType
    old_unit_count: int = Field(..., ge=1)
    new_unit_count: int = Field(..., ge=1)
    appointment_time: datetime
    moving_partner_id: int | None = None


class DriverShift(BaseModel):
    """A driver kept on the appointment, possibly moved to another unit."""

    driver_id: int
    current_unit: int
    new_unit: int
    new_arrival_time: datetime | None = None

    @property
    def is_move(self) -> bool:
        return self.current_unit != self.new_unit


class DriverRemoval(BaseModel):
    """A driver taken off the appointment, with the reason they are told."""

    driver_id: int
    unit_number: int
    reason: str


class UnitSlot(BaseModel):
    """A unit with no driver after reconciliation and the type it needs."""

    unit_number: int
    driver_type: DriverType


class ReassignmentPlan(BaseModel):
    """Diff of driver-to-unit assignments after an appointment edit."""

    drivers_to_keep: list[DriverShift] = Field(default_factory=list)
    drivers_to_remove: list[DriverRemoval] = Field(default_factory=list)
    units_needing_new_driver: list[UnitSlot] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Whether applying the plan would touch any assignment."""
        return (
            any(shift.is_move for shift in self.drivers_to_keep)
            or bool(self.drivers_to_remove)
            or bool(self.units_needing_new_driver)
        )

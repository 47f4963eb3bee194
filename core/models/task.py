"""Dispatch task domain models."""

from datetime import datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, Field


class TaskStep(IntEnum):
    """The four dispatch task kinds per storage unit."""

    PICKUP = 1
    CUSTOMER = 2
    RETURN = 3
    ADMIN = 4


class TaskState(IntEnum):
    """Delivery-provider task state ordinal."""

    UNASSIGNED = 0
    ASSIGNED = 1
    ACTIVE = 2
    COMPLETED = 3


class WorkerType(str, Enum):
    """Who performs the task."""

    FLEET_DRIVER = "boombox_driver"
    MOVING_PARTNER = "moving_partner"


class DispatchTaskCreate(BaseModel):
    """Data required to record a provider task against an appointment unit."""

    appointment_id: int
    unit_number: int = Field(..., ge=1)
    step_number: TaskStep
    task_id: str
    short_id: str
    driver_id: int | None = None
    worker_type: WorkerType | None = None
    complete_after: datetime | None = None
    complete_before: datetime | None = None
    destination_address: str | None = None
    destination_latitude: float | None = None
    destination_longitude: float | None = None


class DispatchTask(BaseModel):
    """Full task entity as stored."""

    id: int
    appointment_id: int
    unit_number: int
    step_number: TaskStep
    task_id: str
    short_id: str
    driver_id: int | None = None
    worker_type: WorkerType | None = None
    state: TaskState = TaskState.UNASSIGNED
    complete_after: datetime | None = None
    complete_before: datetime | None = None
    destination_address: str | None = None
    destination_latitude: float | None = None
    destination_longitude: float | None = None
    webhook_time: datetime | None = None
    completed_at: datetime | None = None
    completion_photo_url: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_live(self) -> bool:
        """Not cancelled and not completed."""
        return self.cancelled_at is None and self.state != TaskState.COMPLETED


class DriverCommitment(BaseModel):
    """One (appointment, unit) a driver is booked on, for availability checks."""

    appointment_id: int
    unit_number: int
    scheduled_at: datetime

    model_config = {"from_attributes": True}


class TaskWithDriver(BaseModel):
    """A task row joined with its assigned driver's identity, as fed to reassignment."""

    task_id: str
    unit_number: int
    step_number: TaskStep
    driver_id: int | None = None
    driver_name: str | None = None
    driver_phone: str | None = None

    model_config = {"from_attributes": True}

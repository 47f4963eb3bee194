"""Customer-facing tracking models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from core.models.appointment import AppointmentType
from core.models.task import TaskState
from core.models.webhook import TriggerName


class StepStatus(str, Enum):
    """Progress of one tracking step or one unit."""

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    COMPLETE = "complete"


class TrackingEvent(BaseModel):
    """Latest known webhook event for an appointment."""

    appointment_id: int
    trigger_name: TriggerName | None = None
    event_time: datetime | None = None
    task_short_id: str | None = None

    model_config = {"from_attributes": True}


class TaskSnapshot(BaseModel):
    """
    A task as seen at tracking time.

    state comes from the delivery provider (polled); webhook_time from the
    persisted task; completed_at from the provider's completion details.
    """

    short_id: str
    state: TaskState = TaskState.UNASSIGNED
    webhook_time: datetime | None = None
    completed_at: datetime | None = None
    tracking_url: str | None = None


class UnitTrackingInput(BaseModel):
    """Everything the tracking derivation needs for one unit."""

    unit_number: int = Field(..., ge=1)
    appointment_type: AppointmentType
    provider_name: str
    pickup: TaskSnapshot | None = None
    customer: TaskSnapshot | None = None
    dropoff: TaskSnapshot | None = None
    admin: TaskSnapshot | None = None
    service_start_at: datetime | None = None
    service_end_at: datetime | None = None
    client_event: TrackingEvent | None = None
    server_event: TrackingEvent | None = None
    invoice_url: str | None = None
    feedback_url: str | None = None

    @property
    def is_primary(self) -> bool:
        return self.unit_number == 1


class StepAction(BaseModel):
    """Button or widget attached to a tracking step."""

    label: str
    url: str | None = None
    tracking_url: str | None = None
    timer_start: datetime | None = None
    timer_end: datetime | None = None
    icon_name: str | None = None


class StepDescriptor(BaseModel):
    status: StepStatus
    title: str
    timestamp: str = ""
    action: StepAction | None = None
    secondary_action: StepAction | None = None


class UnitTracking(BaseModel):
    """One delivery unit as rendered on the tracking page."""

    id: str
    status: StepStatus
    unit_number: int
    total_units: int
    provider: str
    steps: list[StepDescriptor]


class TrackingView(BaseModel):
    """Full tracking response for one appointment."""

    appointment_id: int
    appointment_date: datetime
    appointment_type: AppointmentType
    delivery_units: list[UnitTracking]
    latitude: float | None = None
    longitude: float | None = None

"""Appointment domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """Labor plan chosen by the customer."""

    DIY = "Do It Yourself Plan"
    FULL_SERVICE = "Full Service Plan"
    THIRD_PARTY_LOADING_HELP = "Third Party Loading Help"


class AppointmentType(str, Enum):
    """Kind of storage appointment. Governs tracking titles and the final step."""

    INITIAL_PICKUP = "Initial Pickup"
    ADDITIONAL_STORAGE = "Additional Storage"
    STORAGE_UNIT_ACCESS = "Storage Unit Access"
    END_STORAGE_TERM = "End Storage Term"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    AWAITING_ADMIN_CHECK_IN = "Awaiting Admin Check In"
    COMPLETED = "Completed"
    CANCELED = "Canceled"


class Appointment(BaseModel):
    """Full appointment entity as stored."""

    id: int
    appointment_type: AppointmentType
    plan_type: PlanType
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    scheduled_at: datetime
    unit_count: int = Field(..., ge=1)
    moving_partner_id: int | None = None
    customer_phone: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    invoice_url: str | None = None
    service_start_at: datetime | None = None
    service_end_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_terminal(self) -> bool:
        """Whether the appointment is completed or cancelled."""
        return self.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED)


class AppointmentEdit(BaseModel):
    """
    Requested change to an appointment's plan shape.

    Only fields that can trigger driver reassignment are carried here.
    None means "unchanged".
    """

    plan_type: PlanType | None = None
    unit_count: int | None = Field(None, ge=1)
    moving_partner_id: int | None = None
    scheduled_at: datetime | None = None

"""Core domain models."""

from core.models.appointment import Appointment, AppointmentEdit, AppointmentStatus, AppointmentType, PlanType
from core.models.task import DispatchTask, DispatchTaskCreate, DriverCommitment, TaskState, TaskStep, TaskWithDriver, WorkerType
from core.models.driver import Driver, DriverType, MovingPartner, MovingPartnerDriver
from core.models.order import OrderStatus, PackingSupplyOrder
from core.models.reassignment import (
    DriverRemoval,
    DriverShift,
    ReassignmentPlan,
    ReassignmentRequest,
    UnitSlot,
    REASON_NO_SHIFT_TARGET,
    REASON_TYPE_MISMATCH,
    REASON_UNIT_REMOVED,
)
from core.models.webhook import JobType, MetadataEntry, TriggerName, WebhookPayload
from core.models.tracking import (
    StepAction,
    StepDescriptor,
    StepStatus,
    TaskSnapshot,
    TrackingEvent,
    TrackingView,
    UnitTracking,
    UnitTrackingInput,
)

__all__ = [
    # Appointment
    "Appointment", "AppointmentEdit", "AppointmentStatus", "AppointmentType", "PlanType",
    # Task
    "DispatchTask", "DispatchTaskCreate", "DriverCommitment", "TaskState", "TaskStep",
    "TaskWithDriver", "WorkerType",
    # Driver
    "Driver", "DriverType", "MovingPartner", "MovingPartnerDriver",
    # Order
    "OrderStatus", "PackingSupplyOrder",
    # Reassignment
    "DriverRemoval", "DriverShift", "ReassignmentPlan", "ReassignmentRequest", "UnitSlot",
    "REASON_NO_SHIFT_TARGET", "REASON_TYPE_MISMATCH", "REASON_UNIT_REMOVED",
    # Webhook
    "JobType", "MetadataEntry", "TriggerName", "WebhookPayload",
    # Tracking
    "StepAction", "StepDescriptor", "StepStatus", "TaskSnapshot", "TrackingEvent",
    "TrackingView", "UnitTracking", "UnitTrackingInput",
]

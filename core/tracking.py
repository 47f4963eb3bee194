"""
Customer-facing tracking derivation.

Turns one unit's task snapshots, service times and latest webhook events into
the step list shown on the tracking page. Pure: no I/O, no clock reads.

Steps per unit (by index):
    0  pickup at the warehouse
    1  on the way to the customer
    2  arrived, service time running
    3  service finished
    4  dropped off at the warehouse (omitted for End Storage Term on non-primary units)
"""

from datetime import datetime

from core.models import (
    AppointmentType,
    StepAction,
    StepDescriptor,
    StepStatus,
    TaskSnapshot,
    TaskState,
    TrackingEvent,
    TriggerName,
    UnitTracking,
    UnitTrackingInput,
)
from utils.timezone import format_clock_time

_ORDINALS = ["second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth"]

TIMER_ICON = "ClockIcon"


def ordinal(unit_index: int) -> str:
    """Ordinal word for a zero-based unit index >= 1 ("second", "third", ...)."""
    if 1 <= unit_index <= len(_ORDINALS):
        return _ORDINALS[unit_index - 1]
    return f"{unit_index + 1}th"


def _state(task: TaskSnapshot | None) -> TaskState | None:
    return task.state if task else None


def _progress(task: TaskSnapshot | None) -> StepStatus:
    state = _state(task)
    if state == TaskState.COMPLETED:
        return StepStatus.COMPLETE
    if state == TaskState.ACTIVE:
        return StepStatus.IN_TRANSIT
    return StepStatus.PENDING


def _arrival_seen(*events: TrackingEvent | None) -> bool:
    return any(event is not None and event.trigger_name == TriggerName.TASK_ARRIVAL for event in events)


def _clock(dt: datetime | None, tz_name: str) -> str:
    return format_clock_time(dt, tz_name) if dt else ""


def elapsed_label(start: datetime | None, end: datetime | None) -> str:
    """Service duration as HH:MM, "00:00" when either end is unknown."""
    if start is None or end is None or end < start:
        return "00:00"
    minutes = int((end - start).total_seconds()) // 60
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def step_title(
    step_index: int,
    unit_index: int,
    appointment_type: AppointmentType,
    provider_name: str,
    brand_name: str = "Boombox",
) -> str:
    """
    Title of one tracking step.

    unit_index is zero-based; unit 0 is the primary unit and is addressed by
    the provider's name, later units by the fleet label and an ordinal.
    Returns "" for a step that is not shown.
    """
    primary = unit_index == 0
    fleet_label = f"{brand_name} Driver"
    who = (provider_name or fleet_label) if primary else fleet_label
    nth = "" if primary else ordinal(unit_index)

    if step_index == 0:
        return f"{who} is picking up your {brand_name}"

    if step_index == 1:
        return f"{who} is on their way!"

    if step_index == 2:
        if appointment_type == AppointmentType.END_STORAGE_TERM:
            return (f"{who} has arrived and is ready to begin unloading your {brand_name}" if primary
                    else f"{fleet_label} has arrived to unload your {nth} {brand_name}")
        if appointment_type == AppointmentType.STORAGE_UNIT_ACCESS:
            return (f"{who} has arrived and will begin your storage access appointment" if primary
                    else f"{fleet_label} has arrived for your {nth} {brand_name} access")
        if appointment_type == AppointmentType.ADDITIONAL_STORAGE:
            return (f"{who} has arrived and will begin loading your additional {brand_name}" if primary
                    else f"{fleet_label} has arrived with your {nth} additional {brand_name}")
        return (f"{who} has arrived and their service time has started" if primary
                else f"{fleet_label} has arrived with your {nth} {brand_name}")

    if step_index == 3:
        if appointment_type == AppointmentType.END_STORAGE_TERM:
            return (f"{who} has finished unloading your {brand_name}" if primary
                    else f"Your {nth} {brand_name} has finished being unloaded")
        if appointment_type == AppointmentType.STORAGE_UNIT_ACCESS:
            return (f"{who} has finished with your storage access appointment" if primary
                    else f"Your {nth} {brand_name} storage access is complete")
        if appointment_type == AppointmentType.ADDITIONAL_STORAGE:
            return (f"{who} has finished loading your additional {brand_name}" if primary
                    else f"Your {nth} additional {brand_name} has finished being loaded")
        return (f"{who} has finished loading your {brand_name}" if primary
                else f"Your {nth} {brand_name} has finished being loaded")

    if step_index == 4:
        if appointment_type == AppointmentType.END_STORAGE_TERM:
            return f"Thanks for using {brand_name}! Your storage term has ended" if primary else ""
        if appointment_type == AppointmentType.STORAGE_UNIT_ACCESS:
            return f"{who} has returned your {brand_name} to our storage facility"
        if appointment_type == AppointmentType.ADDITIONAL_STORAGE:
            return f"{who} has dropped off your additional {brand_name} at our storage facility"
        return f"{who} has dropped off your {brand_name} at our storage facility"

    return ""


def shows_dropoff_step(appointment_type: AppointmentType, unit_number: int) -> bool:
    return not (appointment_type == AppointmentType.END_STORAGE_TERM and unit_number != 1)


def derive_unit_steps(
    unit: UnitTrackingInput,
    tz_name: str = "America/Los_Angeles",
    brand_name: str = "Boombox",
) -> list[StepDescriptor]:
    """
    Step descriptors for one unit.

    Either the client event (from the tracking token) or the server event
    (persisted) reporting taskArrival is enough to mark the crew as arrived.
    """
    pickup, customer, dropoff = unit.pickup, unit.customer, unit.dropoff
    arrived = _arrival_seen(unit.client_event, unit.server_event)
    customer_done = _state(customer) == TaskState.COMPLETED
    unit_index = unit.unit_number - 1

    def title(step_index: int) -> str:
        return step_title(step_index, unit_index, unit.appointment_type, unit.provider_name, brand_name)

    # Pickup
    steps = [StepDescriptor(
        status=_progress(pickup),
        title=title(0),
        timestamp=_clock(pickup.webhook_time if pickup else None, tz_name),
    )]

    # On the way
    steps.append(StepDescriptor(
        status=StepStatus.COMPLETE if arrived else _progress(customer),
        title=title(1),
        timestamp=_clock(customer.webhook_time if customer else None, tz_name),
        action=StepAction(
            label="Track location",
            tracking_url=customer.tracking_url if customer else None,
        ),
    ))

    # Arrived
    if customer_done:
        arrived_status = StepStatus.COMPLETE
    elif arrived and unit.service_end_at is None:
        arrived_status = StepStatus.IN_TRANSIT
    else:
        arrived_status = StepStatus.PENDING

    timer = None
    service_start = None
    if unit.is_primary and unit.service_start_at is not None:
        service_start = unit.service_start_at
        timer = StepAction(
            label=elapsed_label(unit.service_start_at, unit.service_end_at) if customer_done else "00:00",
            timer_start=unit.service_start_at,
            timer_end=unit.service_end_at,
            icon_name=TIMER_ICON,
        )
    steps.append(StepDescriptor(
        status=arrived_status,
        title=title(2),
        timestamp=_clock(service_start, tz_name),
        action=timer,
    ))

    # Completion
    if _state(dropoff) == TaskState.COMPLETED:
        completion_status = StepStatus.COMPLETE
    elif customer_done:
        completion_status = StepStatus.IN_TRANSIT
    else:
        completion_status = StepStatus.PENDING
    steps.append(StepDescriptor(
        status=completion_status,
        title=title(3),
        timestamp=_clock(customer.completed_at if customer_done else None, tz_name),
        action=StepAction(label="View receipt", url=unit.invoice_url),
        secondary_action=StepAction(label="Share feedback", url=unit.feedback_url) if unit.feedback_url else None,
    ))

    # Dropoff
    if shows_dropoff_step(unit.appointment_type, unit.unit_number):
        steps.append(StepDescriptor(
            status=_progress(dropoff),
            title=title(4),
            timestamp=_clock(dropoff.completed_at if dropoff else None, tz_name),
        ))

    return steps


def unit_status(unit: UnitTrackingInput) -> StepStatus:
    """Summary status: dropoff done, else picked up or underway, else pending."""
    if _state(unit.dropoff) == TaskState.COMPLETED:
        return StepStatus.COMPLETE
    if _state(unit.pickup) in (TaskState.ACTIVE, TaskState.COMPLETED):
        return StepStatus.IN_TRANSIT
    return StepStatus.PENDING


def build_unit_tracking(
    unit: UnitTrackingInput,
    total_units: int,
    tz_name: str = "America/Los_Angeles",
    brand_name: str = "Boombox",
) -> UnitTracking:
    """Full tracking entry for one unit, identified by its customer task's short id."""
    return UnitTracking(
        id=unit.customer.short_id if unit.customer else "",
        status=unit_status(unit),
        unit_number=unit.unit_number,
        total_units=total_units,
        provider=unit.provider_name,
        steps=derive_unit_steps(unit, tz_name, brand_name),
    )

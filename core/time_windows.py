"""
Per-step scheduling windows for dispatch tasks.

Pure functions over an appointment time. Recomputing with the same inputs
always yields the same window, so windows are safe to re-derive on every
task regeneration.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from core.exceptions import InvalidStepError
from core.models.task import TaskStep
from utils.timezone import to_epoch_ms, to_utc

# Offsets from the (unit-specific) appointment time: (complete_after, complete_before)
_STEP_OFFSETS: dict[TaskStep, tuple[timedelta, timedelta]] = {
    TaskStep.PICKUP: (timedelta(hours=-1), timedelta(minutes=-30)),
    TaskStep.CUSTOMER: (timedelta(0), timedelta(hours=1)),
    TaskStep.RETURN: (timedelta(hours=1), timedelta(hours=2)),
}


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive [complete_after, complete_before] window in UTC."""

    complete_after: datetime
    complete_before: datetime

    def as_provider_payload(self) -> dict[str, int]:
        """Epoch-millisecond fields as the delivery provider expects them."""
        return {
            "completeAfter": to_epoch_ms(self.complete_after),
            "completeBefore": to_epoch_ms(self.complete_before),
        }


def _coerce_step(step: int) -> TaskStep:
    try:
        return TaskStep(step)
    except ValueError:
        raise InvalidStepError(step)


def plan_time_window(appointment_time: datetime, step: int) -> TimeWindow:
    """
    Window for a travel step.

    Step 1 (pickup):   [T - 1h, T - 30m]
    Step 2 (customer): [T, T + 1h]
    Step 3 (return):   [T + 1h, T + 2h]

    Raises:
        InvalidStepError: step is not 1, 2 or 3. The administrative step has
            no travel and therefore no window.
    """
    task_step = _coerce_step(step)
    if task_step not in _STEP_OFFSETS:
        raise InvalidStepError(step)

    base = to_utc(appointment_time)
    after, before = _STEP_OFFSETS[task_step]
    return TimeWindow(complete_after=base + after, complete_before=base + before)


def window_for_task(appointment_time: datetime, step: int) -> TimeWindow | None:
    """Like plan_time_window, but the administrative step yields None."""
    if _coerce_step(step) == TaskStep.ADMIN:
        return None
    return plan_time_window(appointment_time, step)


def unit_start_time(appointment_time: datetime, unit_number: int, stagger_minutes: int = 45) -> datetime:
    """
    Staggered start for a unit of a multi-unit appointment.

    Unit 1 starts at the appointment time; each following unit starts
    stagger_minutes after the previous one.
    """
    base = to_utc(appointment_time)
    if unit_number <= 1:
        return base
    return base + timedelta(minutes=(unit_number - 1) * stagger_minutes)

"""
Driver availability conflict checks.

Every job blocks the driver from one hour before its start until two hours
after it (travel buffer, on-site service, return buffer). Two jobs conflict
when their blocked windows overlap; touching windows do not.
"""

import logging
from datetime import datetime, timedelta

from core.repositories import TaskRepository
from core.time_windows import unit_start_time
from utils.timezone import to_utc

logger = logging.getLogger(__name__)

BUFFER_BEFORE = timedelta(hours=1)
SERVICE_DURATION = timedelta(hours=1)
BUFFER_AFTER = timedelta(hours=1)


def blocked_window(start: datetime) -> tuple[datetime, datetime]:
    """[start - 1h, start + 2h] in UTC."""
    start = to_utc(start)
    return start - BUFFER_BEFORE, start + SERVICE_DURATION + BUFFER_AFTER


def windows_overlap(a: tuple[datetime, datetime], b: tuple[datetime, datetime]) -> bool:
    """Strict interval overlap."""
    return a[0] < b[1] and b[0] < a[1]


class AvailabilityChecker:
    """Checks a driver's existing commitments against a candidate time."""

    def __init__(self, tasks: TaskRepository, stagger_minutes: int = 45):
        self.tasks = tasks
        self.stagger_minutes = stagger_minutes

    def has_conflict(
        self,
        driver_id: int,
        candidate_time: datetime,
        exclude_appointment_id: int | None = None,
    ) -> bool:
        """
        Whether any live, unfinished commitment of the driver overlaps the
        candidate's blocked window.

        Each commitment is placed at its unit-specific start time.
        exclude_appointment_id ignores the appointment being (re)assigned.
        """
        candidate = blocked_window(candidate_time)

        for commitment in self.tasks.list_commitments(driver_id):
            if commitment.appointment_id == exclude_appointment_id:
                continue
            start = unit_start_time(commitment.scheduled_at, commitment.unit_number, self.stagger_minutes)
            if windows_overlap(candidate, blocked_window(start)):
                logger.debug(
                    f"Driver {driver_id} busy: appointment {commitment.appointment_id} "
                    f"unit {commitment.unit_number} at {start.isoformat()}"
                )
                return True

        return False

    def filter_available(
        self,
        driver_ids: list[int],
        candidate_time: datetime,
        exclude_appointment_id: int | None = None,
    ) -> list[int]:
        """Drivers with no conflict at candidate_time, order preserved."""
        return [
            driver_id
            for driver_id in driver_ids
            if not self.has_conflict(driver_id, candidate_time, exclude_appointment_id)
        ]

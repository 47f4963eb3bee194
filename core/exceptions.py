"""
Typed exceptions for dispatch failures.

Each class maps to one HTTP outcome in api/errors.py. None of them are
retried automatically; retry is manual (operator dashboard) or the next
scheduled cron run.
"""


class DispatchError(Exception):
    """Base class for dispatch-core errors."""


class ValidationError(DispatchError):
    """Malformed input: non-numeric ids, missing required fields, bad enums."""


class InvalidStepError(ValidationError):
    """Step number outside the range a time window can be planned for."""

    def __init__(self, step: int):
        self.step = step
        super().__init__(f"Invalid step number {step}: expected 1, 2 or 3")


class NotFoundError(DispatchError):
    """Appointment, order, task or driver does not exist."""


class IntegrationFailure(DispatchError):
    """
    A delivery-provider, messaging or payment-provider call failed.

    Logged and surfaced to operators; the triggering request still gets a
    structured failure.
    """


class StateConflictError(DispatchError):
    """Persisted state cannot be reconciled and must be reported, never dropped."""


class DriverClassificationError(StateConflictError):
    """Driver is neither an active partner driver nor a fleet-team member."""

    def __init__(self, driver_id: int):
        self.driver_id = driver_id
        super().__init__(
            f"Driver {driver_id} is neither a partner driver nor a fleet driver"
        )

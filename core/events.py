"""
Domain events for dispatch.

Immutable event objects that represent state changes in the dispatch domain.
A service publishes what happened, and handlers react without the publisher
knowing who's listening.

Event Categories:
- AssignmentEvent: driver-to-unit assignment changes
- DeliveryEvent: delivery-provider task outcomes

Events carry the data handlers need so they don't re-fetch state that may
still be in flight.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class DispatchEvent:
    """Base class for all dispatch domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# ASSIGNMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class AssignmentEvent(DispatchEvent):
    """Events related to driver assignment."""
    pass


@dataclass(frozen=True)
class DriversReassigned(AssignmentEvent):
    """A reassignment plan was applied to an appointment."""
    appointment: Any = None  # Appointment
    plan: Any = None  # ReassignmentPlan

    @classmethod
    def create(cls, appointment: Any, plan: Any) -> "DriversReassigned":
        return cls(appointment=appointment, plan=plan)


# =============================================================================
# DELIVERY EVENTS
# =============================================================================


@dataclass(frozen=True)
class DeliveryEvent(DispatchEvent):
    """Events related to delivery-provider task outcomes."""
    pass


@dataclass(frozen=True)
class PackingSupplyDelivered(DeliveryEvent):
    """A packing-supply order was delivered."""
    order: Any = None  # PackingSupplyOrder
    task_id: str = ""

    @classmethod
    def create(cls, order: Any, task_id: str) -> "PackingSupplyDelivered":
        return cls(order=order, task_id=task_id)


@dataclass(frozen=True)
class StorageTaskCompleted(DeliveryEvent):
    """A storage-unit dispatch task was completed."""
    task: Any = None  # DispatchTask

    @classmethod
    def create(cls, task: Any) -> "StorageTaskCompleted":
        return cls(task=task)

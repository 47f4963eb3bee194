"""Persistence for the dispatch core. One repository per entity family."""

from core.repositories.appointment_repository import AppointmentRepository
from core.repositories.task_repository import TaskRepository
from core.repositories.driver_repository import DriverRepository
from core.repositories.moving_partner_repository import MovingPartnerRepository
from core.repositories.order_repository import OrderRepository
from core.repositories.tracking_event_repository import TrackingEventRepository

__all__ = [
    "AppointmentRepository",
    "TaskRepository",
    "DriverRepository",
    "MovingPartnerRepository",
    "OrderRepository",
    "TrackingEventRepository",
]

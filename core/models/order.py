"""Packing-supply order domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class OrderStatus(str, Enum):
    """Packing-supply order delivery status."""

    PENDING = "Pending"
    IN_TRANSIT = "In Transit"
    DRIVER_ARRIVED = "Driver Arrived"
    DELIVERED = "Delivered"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class PackingSupplyOrder(BaseModel):
    """Full order entity as stored."""

    id: int
    status: OrderStatus
    contact_name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    delivery_address: str | None = None
    assigned_driver_id: int | None = None
    route_id: str | None = None
    onfleet_task_short_id: str | None = None
    delivery_photo_url: str | None = None
    actual_delivery_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

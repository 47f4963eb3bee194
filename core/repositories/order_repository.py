"""Packing-supply order persistence."""

import logging
from datetime import datetime

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, ACTOR_SYSTEM
from core.models import OrderStatus, PackingSupplyOrder
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class OrderRepository:
    """Reads and writes packing-supply orders."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def get_by_id(self, order_id: int) -> PackingSupplyOrder | None:
        row = self.postgres.execute_single(
            "SELECT * FROM packing_supply_orders WHERE id = %s",
            (order_id,)
        )
        if row is None:
            return None
        return PackingSupplyOrder.model_validate(row)

    def update_status(
        self,
        current: PackingSupplyOrder,
        status: OrderStatus,
        actor: str = ACTOR_SYSTEM,
        task_short_id: str | None = None,
        delivery_photo_url: str | None = None,
        delivered_at: datetime | None = None,
    ) -> PackingSupplyOrder:
        """Move the order to a new status, filling any delivery details supplied."""
        row = self.postgres.execute_returning(
            """
            UPDATE packing_supply_orders
            SET status = %s,
                onfleet_task_short_id = COALESCE(%s, onfleet_task_short_id),
                delivery_photo_url = COALESCE(%s, delivery_photo_url),
                actual_delivery_at = COALESCE(%s, actual_delivery_at),
                updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (status.value, task_short_id, delivery_photo_url, delivered_at, now_utc(), current.id)
        )[0]
        updated = PackingSupplyOrder.model_validate(row)

        self.audit.log_change(
            entity_type="packing_supply_order",
            entity_id=updated.id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": current.status.value, "new": updated.status.value}},
            actor=actor,
        )
        logger.info(f"Order {updated.id}: {current.status.value} -> {updated.status.value}")
        return updated

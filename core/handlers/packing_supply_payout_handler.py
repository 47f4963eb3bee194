"""
Handler for PackingSupplyDelivered events.

Runs driver payout for the delivered order. A payout failure never fails the
webhook that delivered the order; operators are emailed instead.
"""

import logging
from typing import Callable, Protocol

from core.events import PackingSupplyDelivered
from core.messaging import MessageDispatcher, MessageTemplate

logger = logging.getLogger(__name__)


class PayoutProcessor(Protocol):
    def process_order_payout(self, order_id: int) -> None:
        """Pay the driver for a delivered order."""


def handle_packing_supply_delivered(
    payouts: PayoutProcessor,
    dispatcher: MessageDispatcher,
) -> Callable:
    """
    Factory that returns a PackingSupplyDelivered handler.

    Args:
        payouts: PayoutProcessor that pays the delivering driver
        dispatcher: MessageDispatcher for the operator alert

    Returns:
        Handler callable that runs the payout
    """

    def handler(event: PackingSupplyDelivered):
        order = event.order
        try:
            payouts.process_order_payout(order.id)
        except Exception as e:
            logger.exception(f"Payout for packing supply order {order.id} failed: {e}")
            dispatcher.alert_operators(
                MessageTemplate.PAYOUT_FAILED,
                {"order_id": order.id, "task_id": event.task_id, "error": str(e)},
            )
            return

        logger.info(f"Payout processed for packing supply order {order.id}")

    return handler

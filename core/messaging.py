"""
Template-keyed customer, driver and operator notifications.

Callers name a template and pass a variable map; MessageDispatcher renders
it and hands it to the messaging gateway. Sends are fire-and-forget: a
gateway failure never propagates, it is logged and returned as a failed
MessageResult.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from clients.messaging_client import MessagingGatewayClient, MessagingGatewayError

logger = logging.getLogger(__name__)


class MessageTemplate(str, Enum):
    """Every message the dispatch core can send."""

    # Customer SMS
    PACKING_SUPPLY_STARTED = "packing_supply_started"
    PACKING_SUPPLY_ARRIVED = "packing_supply_arrived"
    PACKING_SUPPLY_DELIVERED = "packing_supply_delivered"
    PACKING_SUPPLY_FAILED = "packing_supply_failed"
    STORAGE_CREW_EN_ROUTE = "storage_crew_en_route"
    STORAGE_CREW_ARRIVED = "storage_crew_arrived"
    STORAGE_LOADING_COMPLETED = "storage_loading_completed"
    STORAGE_TERM_ENDED = "storage_term_ended"
    STORAGE_ACCESS_COMPLETED = "storage_access_completed"

    # Driver SMS
    DRIVER_REMOVED = "driver_removed"
    DRIVER_SHIFTED = "driver_shifted"

    # Operator email
    PAYOUT_FAILED = "payout_failed"
    ROUTE_ASSIGNMENT_FAILED = "route_assignment_failed"
    ROUTE_ASSIGNMENT_SUMMARY = "route_assignment_summary"


class Channel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


SMS_TEMPLATES: dict[MessageTemplate, str] = {
    MessageTemplate.PACKING_SUPPLY_STARTED: (
        "{brand_name}: {driver_name} is on the way with your packing supplies. "
        "Track your delivery: {tracking_url}"
    ),
    MessageTemplate.PACKING_SUPPLY_ARRIVED: (
        "{brand_name}: {driver_name} has arrived with your packing supplies."
    ),
    MessageTemplate.PACKING_SUPPLY_DELIVERED: (
        "{brand_name}: Your packing supplies have been delivered. "
        "Tell us how it went: {feedback_url}"
    ),
    MessageTemplate.PACKING_SUPPLY_FAILED: (
        "{brand_name}: We could not complete your packing supply delivery today. "
        "Our team will reach out to reschedule."
    ),
    MessageTemplate.STORAGE_CREW_EN_ROUTE: (
        "{brand_name}: {crew_name} is on the way to you. Follow along: {tracking_url}"
    ),
    MessageTemplate.STORAGE_CREW_ARRIVED: (
        "{brand_name}: {crew_name} has arrived. Follow along: {tracking_url}"
    ),
    MessageTemplate.STORAGE_LOADING_COMPLETED: (
        "{brand_name}: {crew_name} finished loading your storage unit. "
        "Tell us how it went: {feedback_url}"
    ),
    MessageTemplate.STORAGE_TERM_ENDED: (
        "{brand_name}: {crew_name} delivered your items and your storage term has ended. "
        "Tell us how it went: {feedback_url}"
    ),
    MessageTemplate.STORAGE_ACCESS_COMPLETED: (
        "{brand_name}: Your storage unit access with {crew_name} is complete. "
        "Tell us how it went: {feedback_url}"
    ),
    MessageTemplate.DRIVER_REMOVED: (
        "{brand_name}: You have been removed from appointment #{appointment_id} "
        "on {appointment_date}. Reason: {reason}"
    ),
    MessageTemplate.DRIVER_SHIFTED: (
        "{brand_name}: Appointment #{appointment_id} changed. You are now on unit "
        "{new_unit}, arriving at {arrival_time}."
    ),
}

EMAIL_TEMPLATES: dict[MessageTemplate, tuple[str, str]] = {
    MessageTemplate.PAYOUT_FAILED: (
        "Payout failed for packing supply order #{order_id}",
        "Order #{order_id} was delivered (task {task_id}) but driver payout "
        "processing failed:\n\n{error}\n\nRetry the payout manually.",
    ),
    MessageTemplate.ROUTE_ASSIGNMENT_FAILED: (
        "Packing supply route assignment failed",
        "The route assignment run for {target_date} failed:\n\n{error}",
    ),
    MessageTemplate.ROUTE_ASSIGNMENT_SUMMARY: (
        "Packing supply route assignment for {target_date}",
        "Routes optimized: {routes}\nOffers sent: {offers_sent}\n"
        "Offers failed: {offers_failed}\nOrders routed: {orders}",
    ),
}


@dataclass(frozen=True)
class MessageResult:
    """Outcome of one send, kept for logging only."""

    template: MessageTemplate
    channel: Channel
    recipient: str
    success: bool
    error: str | None = None


class MessageDispatcher:
    """Renders templates and sends them through the messaging gateway."""

    def __init__(
        self,
        gateway: MessagingGatewayClient,
        operator_email: str,
        brand_name: str = "Boombox",
    ):
        self.gateway = gateway
        self.operator_email = operator_email
        self.brand_name = brand_name

    def _render(self, text: str, variables: dict[str, Any]) -> str:
        return text.format(brand_name=self.brand_name, **variables)

    def send_sms(self, template: MessageTemplate, to: str | None, variables: dict[str, Any]) -> MessageResult:
        """Send a templated SMS. Never raises."""
        recipient = to or ""
        try:
            body = self._render(SMS_TEMPLATES[template], variables)
            self.gateway.send_sms(recipient, body)
        except (MessagingGatewayError, ValueError, KeyError) as e:
            logger.error(f"SMS {template.value} to {recipient or '<none>'} failed: {e}")
            return MessageResult(template, Channel.SMS, recipient, success=False, error=str(e))

        return MessageResult(template, Channel.SMS, recipient, success=True)

    def send_email(
        self,
        template: MessageTemplate,
        to: str,
        variables: dict[str, Any],
        sender: str = "dispatch",
    ) -> MessageResult:
        """Send a templated email. Never raises."""
        try:
            subject, body = EMAIL_TEMPLATES[template]
            self.gateway.send_email(
                to=to,
                subject=self._render(subject, variables),
                body=self._render(body, variables),
                sender=sender,
            )
        except (MessagingGatewayError, ValueError, KeyError) as e:
            logger.error(f"Email {template.value} to {to} failed: {e}")
            return MessageResult(template, Channel.EMAIL, to, success=False, error=str(e))

        return MessageResult(template, Channel.EMAIL, to, success=True)

    def alert_operators(self, template: MessageTemplate, variables: dict[str, Any]) -> MessageResult:
        """Email the operator alert inbox from the alerts sender."""
        result = self.send_email(template, self.operator_email, variables, sender="alerts")
        if result.success:
            logger.warning(f"Operator alert sent: {template.value}")
        return result

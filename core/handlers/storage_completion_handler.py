"""
Handler for StorageTaskCompleted events.

When the primary unit's customer visit completes, texts the customer a
completion message for the appointment type with a feedback link carrying a
freshly signed tracking token.
"""

import logging
from typing import Callable

from auth.tracking_token import TrackingTokenService
from core.config import DispatchConfig
from core.events import StorageTaskCompleted
from core.messaging import MessageDispatcher, MessageTemplate
from core.models import AppointmentStatus, AppointmentType, TaskStep, TriggerName
from core.repositories import AppointmentRepository, DriverRepository, MovingPartnerRepository

logger = logging.getLogger(__name__)

COMPLETION_TEMPLATES = {
    AppointmentType.INITIAL_PICKUP: MessageTemplate.STORAGE_LOADING_COMPLETED,
    AppointmentType.ADDITIONAL_STORAGE: MessageTemplate.STORAGE_LOADING_COMPLETED,
    AppointmentType.END_STORAGE_TERM: MessageTemplate.STORAGE_TERM_ENDED,
    AppointmentType.STORAGE_UNIT_ACCESS: MessageTemplate.STORAGE_ACCESS_COMPLETED,
}


def handle_storage_task_completed(
    appointments: AppointmentRepository,
    partners: MovingPartnerRepository,
    drivers: DriverRepository,
    tokens: TrackingTokenService,
    dispatcher: MessageDispatcher,
    config: DispatchConfig,
) -> Callable:
    """
    Factory that returns a StorageTaskCompleted handler.

    Args:
        appointments: AppointmentRepository for the customer's phone and type
        partners: MovingPartnerRepository for the crew name
        drivers: DriverRepository for the crew name without a partner
        tokens: TrackingTokenService for the feedback link
        dispatcher: MessageDispatcher for the SMS send
        config: DispatchConfig for the app URL and brand

    Returns:
        Handler callable that sends the completion SMS
    """

    def crew_name(appointment, task) -> str:
        if appointment.moving_partner_id is not None:
            partner = partners.get_by_id(appointment.moving_partner_id)
            if partner is not None:
                return partner.name
        if task.driver_id is not None:
            driver = drivers.get_by_id(task.driver_id)
            if driver is not None:
                return driver.full_name
        return f"Your {config.brand_name} driver"

    def handler(event: StorageTaskCompleted):
        task = event.task
        if task.step_number != TaskStep.CUSTOMER or task.unit_number != 1:
            return

        appointment = appointments.get_by_id(task.appointment_id)
        if appointment is None or appointment.status == AppointmentStatus.CANCELED:
            logger.info(f"No completion message for appointment {task.appointment_id}: missing or canceled")
            return

        token = tokens.issue(
            appointment.id,
            task_id=task.short_id,
            webhook_time=task.completed_at,
            trigger_name=TriggerName.TASK_COMPLETED,
        )
        dispatcher.send_sms(
            COMPLETION_TEMPLATES[appointment.appointment_type],
            appointment.customer_phone,
            {
                "crew_name": crew_name(appointment, task),
                "feedback_url": f"{config.app_base_url}/feedback/{token}",
            },
        )
        logger.info(f"Completion message sent for appointment {appointment.id}")

    return handler

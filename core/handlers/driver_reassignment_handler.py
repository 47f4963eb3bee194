"""
Handler for DriversReassigned events.

Texts every driver the plan removed (with the reason) and every driver it
moved to another unit (with the new unit and its arrival time).
"""

import logging
from typing import Callable

from core.config import DispatchConfig
from core.events import DriversReassigned
from core.messaging import MessageDispatcher, MessageTemplate
from core.repositories import DriverRepository
from utils.timezone import format_clock_time, to_local

logger = logging.getLogger(__name__)


def handle_drivers_reassigned(
    drivers: DriverRepository,
    dispatcher: MessageDispatcher,
    config: DispatchConfig,
) -> Callable:
    """
    Factory that returns a DriversReassigned handler.

    Args:
        drivers: DriverRepository for phone numbers
        dispatcher: MessageDispatcher for the SMS sends
        config: DispatchConfig for the display timezone

    Returns:
        Handler callable that notifies removed and shifted drivers
    """

    def handler(event: DriversReassigned):
        appointment = event.appointment
        plan = event.plan
        moves = [shift for shift in plan.drivers_to_keep if shift.is_move]
        if not plan.drivers_to_remove and not moves:
            return

        driver_ids = [r.driver_id for r in plan.drivers_to_remove] + [s.driver_id for s in moves]
        known = drivers.get_many(driver_ids)

        local = to_local(appointment.scheduled_at, config.display_timezone)
        appointment_date = f"{local:%A, %B} {local.day}"

        for removal in plan.drivers_to_remove:
            driver = known.get(removal.driver_id)
            if driver is None or not driver.phone_number:
                logger.warning(f"No phone number for removed driver {removal.driver_id}")
                continue
            dispatcher.send_sms(
                MessageTemplate.DRIVER_REMOVED,
                driver.phone_number,
                {
                    "appointment_id": appointment.id,
                    "appointment_date": appointment_date,
                    "reason": removal.reason,
                },
            )

        for shift in moves:
            driver = known.get(shift.driver_id)
            if driver is None or not driver.phone_number:
                logger.warning(f"No phone number for shifted driver {shift.driver_id}")
                continue
            arrival = shift.new_arrival_time or appointment.scheduled_at
            dispatcher.send_sms(
                MessageTemplate.DRIVER_SHIFTED,
                driver.phone_number,
                {
                    "appointment_id": appointment.id,
                    "new_unit": shift.new_unit,
                    "arrival_time": format_clock_time(arrival, config.display_timezone),
                },
            )

        logger.info(
            f"Notified drivers of appointment {appointment.id}: "
            f"{len(plan.drivers_to_remove)} removed, {len(moves)} shifted"
        )

    return handler

"""
Delivery-provider webhook processing.

Every webhook is routed by its job type, then by its trigger name, through
DISPATCH_TABLE. Both are closed enums and the table must name every trigger
for every job type (a handler method or None for "ignored"); this is checked
when the module is imported, so a new trigger cannot silently fall through.

Exact redeliveries are dropped by WebhookDeduplicator. Writes for one
appointment (or one packing-supply order) are serialized through a Postgres
advisory lock.

The primary unit's customer visit (unit 1, step 2) is the one the customer
sees: its arrival and completion feed the tracking page, and its start and
arrival text the customer a freshly signed tracking link.
"""

import logging

from pydantic import BaseModel

from auth.tracking_token import TrackingTokenService
from clients.postgres_client import ORDER_LOCK_NAMESPACE, PostgresClient
from clients.valkey_client import ValkeyClient
from core.audit import ACTOR_WEBHOOK
from core.config import DispatchConfig
from core.event_bus import EventBus
from core.events import PackingSupplyDelivered, StorageTaskCompleted
from core.exceptions import NotFoundError, ValidationError
from core.messaging import MessageDispatcher, MessageTemplate
from core.models import (
    Appointment,
    AppointmentStatus,
    DispatchTask,
    JobType,
    OrderStatus,
    PackingSupplyOrder,
    TaskStep,
    TriggerName,
    WebhookPayload,
)
from core.repositories import (
    AppointmentRepository,
    DriverRepository,
    MovingPartnerRepository,
    OrderRepository,
    TaskRepository,
    TrackingEventRepository,
)
from utils.timezone import from_epoch_ms

logger = logging.getLogger(__name__)

STORAGE_STEPS = {int(step) for step in TaskStep}

# Triggers that move the customer tracking page
TRACKED_TRIGGERS = frozenset({TriggerName.TASK_ARRIVAL, TriggerName.TASK_COMPLETED})


class WebhookResult(BaseModel):
    """What processing a webhook did, returned to the provider and logged."""

    task_id: str
    job_type: JobType
    trigger_name: TriggerName
    handled: bool
    duplicate: bool = False
    detail: str = ""


class WebhookDeduplicator:
    """Remembers delivered webhooks in Valkey so exact redeliveries are dropped."""

    def __init__(self, valkey: ValkeyClient, ttl_seconds: int):
        self._valkey = valkey
        self._ttl_seconds = ttl_seconds

    def claim(self, payload: WebhookPayload) -> bool:
        """True the first time a (task, trigger, time) is seen, False after."""
        return self._valkey.claim(payload.dedup_key, expire_seconds=self._ttl_seconds)

    def release(self, payload: WebhookPayload) -> None:
        """Forget a delivery whose processing failed so a redelivery is retried."""
        self._valkey.release(payload.dedup_key)


class WebhookEventProcessor:
    """Applies delivery-provider webhooks to orders, tasks and appointments."""

    def __init__(
        self,
        postgres: PostgresClient,
        appointments: AppointmentRepository,
        tasks: TaskRepository,
        drivers: DriverRepository,
        partners: MovingPartnerRepository,
        orders: OrderRepository,
        tracking_events: TrackingEventRepository,
        tokens: TrackingTokenService,
        dispatcher: MessageDispatcher,
        event_bus: EventBus,
        deduplicator: WebhookDeduplicator,
        config: DispatchConfig,
    ):
        self.postgres = postgres
        self.appointments = appointments
        self.tasks = tasks
        self.drivers = drivers
        self.partners = partners
        self.orders = orders
        self.tracking_events = tracking_events
        self.tokens = tokens
        self.dispatcher = dispatcher
        self.event_bus = event_bus
        self.deduplicator = deduplicator
        self.config = config

    def process(self, payload: WebhookPayload) -> WebhookResult:
        """
        Route one webhook to its handler.

        Raises:
            ValidationError: required metadata missing or malformed
            NotFoundError: referenced order does not exist
        """
        job_type = payload.job_type
        trigger = payload.trigger_name

        if not self.deduplicator.claim(payload):
            logger.info(f"Duplicate webhook dropped: {payload.dedup_key}")
            return WebhookResult(
                task_id=payload.task_id,
                job_type=job_type,
                trigger_name=trigger,
                handled=False,
                duplicate=True,
                detail="duplicate delivery",
            )

        try:
            if job_type == JobType.PACKING_SUPPLY_DELIVERY:
                detail = self._process_packing_supply(payload)
            else:
                detail = self._process_storage(payload)
        except Exception:
            self.deduplicator.release(payload)
            raise

        logger.info(f"Webhook {trigger.value} for task {payload.task_id} ({job_type.value}): {detail}")
        return WebhookResult(
            task_id=payload.task_id,
            job_type=job_type,
            trigger_name=trigger,
            handled=detail != "ignored",
            detail=detail,
        )

    # =========================================================================
    # PACKING SUPPLY DELIVERY
    # =========================================================================

    def _process_packing_supply(self, payload: WebhookPayload) -> str:
        order_id = payload.order_id
        if order_id is None:
            raise ValidationError(f"Packing supply task {payload.task_id} has no order_id metadata")

        handler_name = DISPATCH_TABLE[JobType.PACKING_SUPPLY_DELIVERY][payload.trigger_name]
        if handler_name is None:
            return "ignored"

        with self.postgres.advisory_lock(order_id, namespace=ORDER_LOCK_NAMESPACE):
            order = self.orders.get_by_id(order_id)
            if order is None:
                raise NotFoundError(f"Packing supply order {order_id} not found")
            return getattr(self, handler_name)(payload, order)

    def _driver_name(self, payload: WebhookPayload, order: PackingSupplyOrder) -> str:
        worker = payload.data.worker or {}
        if worker.get("name"):
            return worker["name"]
        if order.assigned_driver_id is not None:
            driver = self.drivers.get_by_id(order.assigned_driver_id)
            if driver is not None:
                return driver.full_name
        return "Your driver"

    def _packing_started(self, payload: WebhookPayload, order: PackingSupplyOrder) -> str:
        self.orders.update_status(order, OrderStatus.IN_TRANSIT, ACTOR_WEBHOOK, task_short_id=payload.short_id)

        tracking_url = (
            payload.data.task.tracking_url if payload.data.task and payload.data.task.tracking_url
            else f"{self.config.app_base_url}/packing-supplies/tracking/{order.id}"
        )
        self.dispatcher.send_sms(
            MessageTemplate.PACKING_SUPPLY_STARTED,
            order.contact_phone,
            {"driver_name": self._driver_name(payload, order), "tracking_url": tracking_url},
        )
        return "order in transit"

    def _packing_arrival(self, payload: WebhookPayload, order: PackingSupplyOrder) -> str:
        self.orders.update_status(order, OrderStatus.DRIVER_ARRIVED, ACTOR_WEBHOOK)
        self.dispatcher.send_sms(
            MessageTemplate.PACKING_SUPPLY_ARRIVED,
            order.contact_phone,
            {"driver_name": self._driver_name(payload, order)},
        )
        return "driver arrived"

    def _packing_completed(self, payload: WebhookPayload, order: PackingSupplyOrder) -> str:
        delivered = self.orders.update_status(
            order,
            OrderStatus.DELIVERED,
            ACTOR_WEBHOOK,
            task_short_id=payload.short_id,
            delivery_photo_url=payload.completion_photo_url,
            delivered_at=from_epoch_ms(payload.time),
        )
        self.dispatcher.send_sms(
            MessageTemplate.PACKING_SUPPLY_DELIVERED,
            order.contact_phone,
            {
                "driver_name": self._driver_name(payload, order),
                "feedback_url": f"{self.config.app_base_url}/feedback/packing-supply/{order.id}",
            },
        )
        self.event_bus.publish(PackingSupplyDelivered.create(order=delivered, task_id=payload.task_id))
        return "order delivered"

    def _packing_failed(self, payload: WebhookPayload, order: PackingSupplyOrder) -> str:
        self.orders.update_status(order, OrderStatus.FAILED, ACTOR_WEBHOOK)
        self.dispatcher.send_sms(
            MessageTemplate.PACKING_SUPPLY_FAILED,
            order.contact_phone,
            {"driver_name": self._driver_name(payload, order)},
        )
        return "order failed"

    # =========================================================================
    # STORAGE UNIT
    # =========================================================================

    def _process_storage(self, payload: WebhookPayload) -> str:
        task = self.tasks.get_by_task_id(payload.task_id)
        appointment_id = payload.appointment_id or (task.appointment_id if task else None)
        if appointment_id is None:
            logger.warning(f"Storage webhook for unknown task {payload.task_id} with no appointment_id")
            return "ignored"

        step = payload.step or (int(task.step_number) if task else None)
        if step is not None and step not in STORAGE_STEPS:
            raise ValidationError(f"Invalid step metadata {step} on task {payload.task_id}")
        unit_number = task.unit_number if task else payload.unit_number

        handler_name = DISPATCH_TABLE[JobType.STORAGE_UNIT][payload.trigger_name]

        with self.postgres.advisory_lock(appointment_id):
            # Only the primary unit's customer visit drives the tracking page
            if is_primary_customer_task(step, unit_number) and payload.trigger_name in TRACKED_TRIGGERS:
                self.tracking_events.record(
                    appointment_id,
                    payload.trigger_name,
                    from_epoch_ms(payload.time),
                    payload.short_id,
                )
            if handler_name is None:
                return "ignored"
            if task is None:
                logger.warning(f"Storage webhook {payload.trigger_name.value} for unrecorded task {payload.task_id}")
                return "task not recorded"
            return getattr(self, handler_name)(payload, task, step)

    def _crew_name(self, payload: WebhookPayload, appointment: Appointment) -> str:
        """The moving partner's name when there is one, else the provider worker's."""
        if appointment.moving_partner_id is not None:
            partner = self.partners.get_by_id(appointment.moving_partner_id)
            if partner is not None:
                return partner.name
        worker = payload.data.worker or {}
        return worker.get("name") or f"Your {self.config.brand_name} driver"

    def _notify_customer(self, payload: WebhookPayload, task: DispatchTask, template: MessageTemplate) -> None:
        """Text the customer a fresh tracking link for the primary unit's visit."""
        appointment = self.appointments.get_by_id(task.appointment_id)
        if appointment is None or appointment.status == AppointmentStatus.CANCELED:
            logger.info(f"Skipping {template.value} for appointment {task.appointment_id}: missing or canceled")
            return

        trigger = payload.trigger_name if payload.trigger_name in TRACKED_TRIGGERS else None
        token = self.tokens.issue(
            appointment.id,
            task_id=payload.short_id,
            webhook_time=from_epoch_ms(payload.time),
            trigger_name=trigger,
        )
        self.dispatcher.send_sms(
            template,
            appointment.customer_phone,
            {
                "crew_name": self._crew_name(payload, appointment),
                "tracking_url": f"{self.config.app_base_url}/tracking/{token}",
            },
        )

    def _storage_started(self, payload: WebhookPayload, task: DispatchTask, step: int | None) -> str:
        self.tasks.record_started(task.task_id, from_epoch_ms(payload.time), ACTOR_WEBHOOK)
        if is_primary_customer_task(step, task.unit_number):
            self._notify_customer(payload, task, MessageTemplate.STORAGE_CREW_EN_ROUTE)
            return "crew en route"
        return f"step {step} started"

    def _storage_arrival(self, payload: WebhookPayload, task: DispatchTask, step: int | None) -> str:
        if is_primary_customer_task(step, task.unit_number):
            self.appointments.set_service_start(task.appointment_id, from_epoch_ms(payload.time), ACTOR_WEBHOOK)
            self._notify_customer(payload, task, MessageTemplate.STORAGE_CREW_ARRIVED)
            return "service started"
        return f"step {step} arrival"

    def _storage_completed(self, payload: WebhookPayload, task: DispatchTask, step: int | None) -> str:
        completed_at = from_epoch_ms(payload.time)
        completed = self.tasks.record_completed(
            task.task_id,
            completed_at,
            payload.completion_photo_url,
            ACTOR_WEBHOOK,
        )

        if is_primary_customer_task(step, task.unit_number):
            self.appointments.set_service_end(task.appointment_id, completed_at, ACTOR_WEBHOOK)

        if completed is not None:
            self.event_bus.publish(StorageTaskCompleted.create(task=completed))
        return f"step {step} completed"


def is_primary_customer_task(step: int | None, unit_number: int | None) -> bool:
    return step == TaskStep.CUSTOMER and unit_number == 1


# Trigger routing per job type: method name, or None when the trigger is ignored
DISPATCH_TABLE: dict[JobType, dict[TriggerName, str | None]] = {
    JobType.PACKING_SUPPLY_DELIVERY: {
        TriggerName.TASK_STARTED: "_packing_started",
        TriggerName.TASK_ARRIVAL: "_packing_arrival",
        TriggerName.TASK_COMPLETED: "_packing_completed",
        TriggerName.TASK_FAILED: "_packing_failed",
        TriggerName.TASK_ETA: None,
        TriggerName.TASK_CREATED: None,
        TriggerName.TASK_UPDATED: None,
        TriggerName.TASK_DELETED: None,
        TriggerName.TASK_ASSIGNED: None,
        TriggerName.TASK_UNASSIGNED: None,
        TriggerName.TASK_DELAYED: None,
        TriggerName.TASK_CLONED: None,
        TriggerName.WORKER_DUTY: None,
    },
    JobType.STORAGE_UNIT: {
        TriggerName.TASK_STARTED: "_storage_started",
        TriggerName.TASK_ARRIVAL: "_storage_arrival",
        TriggerName.TASK_COMPLETED: "_storage_completed",
        TriggerName.TASK_FAILED: None,
        TriggerName.TASK_ETA: None,
        TriggerName.TASK_CREATED: None,
        TriggerName.TASK_UPDATED: None,
        TriggerName.TASK_DELETED: None,
        TriggerName.TASK_ASSIGNED: None,
        TriggerName.TASK_UNASSIGNED: None,
        TriggerName.TASK_DELAYED: None,
        TriggerName.TASK_CLONED: None,
        TriggerName.WORKER_DUTY: None,
    },
}


def verify_dispatch_table(table: dict[JobType, dict[TriggerName, str | None]]) -> None:
    """
    Every job type routes every trigger to an existing handler or to None.

    Raises:
        RuntimeError: a job type or trigger is unrouted, or a handler is missing
    """
    for job_type in JobType:
        routes = table.get(job_type)
        if routes is None:
            raise RuntimeError(f"No webhook routes for job type {job_type.value}")

        missing = set(TriggerName) - set(routes)
        if missing:
            names = ", ".join(sorted(t.value for t in missing))
            raise RuntimeError(f"Job type {job_type.value} does not route: {names}")

        for trigger, handler_name in routes.items():
            if handler_name is not None and not callable(getattr(WebhookEventProcessor, handler_name, None)):
                raise RuntimeError(f"Handler {handler_name} for {job_type.value}/{trigger.value} does not exist")


verify_dispatch_table(DISPATCH_TABLE)

"""
FastAPI application factory and service wiring.

create_app() assembles an app from an already-built services dict, so tests
can hand in mocks. build_services() builds the real graph from Vault
secrets and configuration.
"""

import logging

from fastapi import FastAPI

from api.appointments import create_appointments_router
from api.base import success_response
from api.errors import register_error_handlers
from api.internal import create_internal_router
from api.middleware import RequestIDMiddleware
from api.tracking import create_tracking_router
from api.webhooks import create_webhooks_router
from auth.config import AuthConfig
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import InternalAuthMiddleware
from auth.tracking_token import TrackingTokenService
from auth.webhook_signature import WebhookSignatureVerifier
from clients.messaging_client import MessagingGatewayClient
from clients.onfleet_client import OnfleetClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_database_url,
    get_messaging_config,
    get_onfleet_config,
    get_tracking_config,
    get_valkey_url,
)
from core.audit import AuditLogger
from core.availability import AvailabilityChecker
from core.config import DispatchConfig
from core.driver_types import DriverTypeResolver
from core.event_bus import EventBus
from core.handlers.driver_reassignment_handler import handle_drivers_reassigned
from core.handlers.packing_supply_payout_handler import (
    PayoutProcessor,
    handle_packing_supply_delivered,
)
from core.handlers.storage_completion_handler import handle_storage_task_completed
from core.messaging import MessageDispatcher
from core.reassignment import ReassignmentEngine
from core.repositories import (
    AppointmentRepository,
    DriverRepository,
    MovingPartnerRepository,
    OrderRepository,
    TaskRepository,
    TrackingEventRepository,
)
from core.services.reassignment_service import ReassignmentService
from core.services.route_assignment_service import (
    DriverOfferSender,
    RouteAssignmentService,
    RouteOptimizer,
)
from core.services.task_planning_service import TaskPlanningService
from core.services.tracking_service import TrackingService
from core.services.webhook_service import WebhookDeduplicator, WebhookEventProcessor

logger = logging.getLogger(__name__)


def build_services(
    config: DispatchConfig,
    auth_config: AuthConfig,
    payouts: PayoutProcessor,
    optimizer: RouteOptimizer,
    offers: DriverOfferSender,
) -> dict:
    """
    Build the production service graph.

    Payout processing, route optimization and driver offers live outside the
    dispatch core and are passed in.
    """
    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    onfleet_config = get_onfleet_config()
    onfleet = OnfleetClient(onfleet_config["api_key"])
    gateway = MessagingGatewayClient(**get_messaging_config())
    tracking_secrets = get_tracking_config()

    audit = AuditLogger(postgres)
    security_logger = SecurityLogger(postgres)
    event_bus = EventBus()
    dispatcher = MessageDispatcher(gateway, config.operator_alert_email, config.brand_name)

    appointments = AppointmentRepository(postgres, audit)
    tasks = TaskRepository(postgres, audit)
    drivers = DriverRepository(postgres)
    partners = MovingPartnerRepository(postgres)
    orders = OrderRepository(postgres, audit)
    tracking_events = TrackingEventRepository(postgres)

    resolver = DriverTypeResolver(drivers, partners, config.fleet_team_id)
    availability = AvailabilityChecker(tasks, config.stagger_minutes)
    planner = TaskPlanningService(onfleet, tasks, partners, config)
    tokens = TrackingTokenService(
        tracking_secrets["jwt_secret"],
        previous_secret=tracking_secrets["previous_jwt_secret"],
        expiry_hours=auth_config.tracking_token_expiry_hours,
    )

    event_bus.subscribe("DriversReassigned", handle_drivers_reassigned(drivers, dispatcher, config))
    event_bus.subscribe("PackingSupplyDelivered", handle_packing_supply_delivered(payouts, dispatcher))
    event_bus.subscribe(
        "StorageTaskCompleted",
        handle_storage_task_completed(appointments, partners, drivers, tokens, dispatcher, config),
    )

    return {
        "security_logger": security_logger,
        "webhook_verifier": WebhookSignatureVerifier(
            onfleet_config["webhook_secret"],
            strict=auth_config.strict_webhook_verification,
            security_logger=security_logger,
        ),
        "webhook_processor": WebhookEventProcessor(
            postgres,
            appointments,
            tasks,
            drivers,
            partners,
            orders,
            tracking_events,
            tokens,
            dispatcher,
            event_bus,
            WebhookDeduplicator(valkey, config.webhook_dedup_ttl_seconds),
            config,
        ),
        "tracking": TrackingService(
            tokens,
            RateLimiter(valkey, auth_config),
            security_logger,
            appointments,
            tasks,
            partners,
            tracking_events,
            onfleet,
            config,
        ),
        "reassignment": ReassignmentService(
            postgres,
            appointments,
            tasks,
            partners,
            ReassignmentEngine(resolver, config.stagger_minutes),
            availability,
            planner,
            event_bus,
        ),
        "route_assignment": RouteAssignmentService(optimizer, offers, dispatcher, config),
    }


def create_app(
    services: dict,
    internal_api_secret: str,
    auth_config: AuthConfig | None = None,
) -> FastAPI:
    """FastAPI app with request ids, internal auth, error handlers and all routes."""
    auth_config = auth_config or AuthConfig()

    app = FastAPI(title="Storage Dispatch")
    app.add_middleware(
        InternalAuthMiddleware,
        api_secret=internal_api_secret,
        path_prefixes=auth_config.internal_path_prefixes,
        security_logger=services.get("security_logger"),
    )
    # Outermost, so internal auth failures are tagged with the request id
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_webhooks_router(services))
    app.include_router(create_tracking_router(services))
    app.include_router(create_appointments_router(services))
    app.include_router(create_internal_router(services))

    @app.get("/health")
    def health():
        return success_response({"status": "ok"}).model_dump(mode="json")

    logger.info("Dispatch API initialized")
    return app

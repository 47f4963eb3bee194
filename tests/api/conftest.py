"""API test fixtures: TestClient over the full app with mocked services."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from auth.security_logger import SecurityLogger
from auth.webhook_signature import WebhookSignatureVerifier
from core.services.reassignment_service import ReassignmentService
from core.services.route_assignment_service import RouteAssignmentService
from core.services.tracking_service import TrackingService
from core.services.webhook_service import WebhookEventProcessor

INTERNAL_SECRET = "internal-test-secret"
WEBHOOK_SECRET_HEX = "ab" * 32


# =============================================================================
# SERVICE MOCKS
# =============================================================================


@pytest.fixture
def security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def webhook_verifier(security_logger):
    """Real verifier: signature checks are exercised end to end."""
    return WebhookSignatureVerifier(WEBHOOK_SECRET_HEX, strict=True, security_logger=security_logger)


@pytest.fixture
def webhook_processor():
    return Mock(spec=WebhookEventProcessor)


@pytest.fixture
def tracking_service():
    return Mock(spec=TrackingService)


@pytest.fixture
def reassignment_service():
    return Mock(spec=ReassignmentService)


@pytest.fixture
def route_assignment_service():
    return Mock(spec=RouteAssignmentService)


@pytest.fixture
def services(
    security_logger,
    webhook_verifier,
    webhook_processor,
    tracking_service,
    reassignment_service,
    route_assignment_service,
):
    return {
        "security_logger": security_logger,
        "webhook_verifier": webhook_verifier,
        "webhook_processor": webhook_processor,
        "tracking": tracking_service,
        "reassignment": reassignment_service,
        "route_assignment": route_assignment_service,
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    return create_app(services, internal_api_secret=INTERNAL_SECRET)


@pytest.fixture
def client(app):
    """Client without credentials, as a customer or the provider would call."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def internal_client(app):
    """Client carrying the internal bearer secret."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers["Authorization"] = f"Bearer {INTERNAL_SECRET}"
    return c

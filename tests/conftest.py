"""Shared test fixtures for the dispatch test suite."""

import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger
from core.config import DispatchConfig
from core.models import (
    Appointment,
    AppointmentType,
    DispatchTask,
    Driver,
    MovingPartner,
    OrderStatus,
    PackingSupplyOrder,
    PlanType,
    TaskState,
    TaskStep,
)


# =============================================================================
# CONSTANTS
# =============================================================================

FLEET_TEAM_ID = "team-boombox-fleet"

# 2024-06-10 18:00 UTC (11:00 America/Los_Angeles)
APPOINTMENT_TIME = datetime(2024, 6, 10, 18, 0, tzinfo=timezone.utc)


# =============================================================================
# CONFIG FIXTURES
# =============================================================================


@pytest.fixture
def dispatch_config() -> DispatchConfig:
    return DispatchConfig(
        fleet_team_id=FLEET_TEAM_ID,
        display_timezone="America/Los_Angeles",
        app_base_url="https://app.example.com",
        operator_alert_email="ops@example.com",
    )


# =============================================================================
# MODEL FACTORIES - lightweight in-memory objects, no DB needed
# =============================================================================


@pytest.fixture
def make_appointment():
    def _make(**overrides) -> Appointment:
        data = dict(
            id=100,
            appointment_type=AppointmentType.INITIAL_PICKUP,
            plan_type=PlanType.DIY,
            scheduled_at=APPOINTMENT_TIME,
            unit_count=1,
            moving_partner_id=None,
            customer_phone="+15550000100",
            address="123 Market St, San Francisco, CA",
            invoice_url="https://pay.example.com/inv/100",
        )
        data.update(overrides)
        return Appointment(**data)
    return _make


@pytest.fixture
def make_task():
    def _make(unit_number: int = 1, step_number: int = 1, **overrides) -> DispatchTask:
        data = dict(
            id=unit_number * 10 + step_number,
            appointment_id=100,
            unit_number=unit_number,
            step_number=TaskStep(step_number),
            task_id=f"task-{unit_number}-{step_number}",
            short_id=f"s{unit_number}{step_number}",
            state=TaskState.UNASSIGNED,
        )
        data.update(overrides)
        return DispatchTask(**data)
    return _make


@pytest.fixture
def make_driver():
    def _make(driver_id: int = 16, **overrides) -> Driver:
        data = dict(
            id=driver_id,
            first_name="Tim",
            last_name="Driver",
            phone_number="+15550000016",
            team_ids=[FLEET_TEAM_ID],
        )
        data.update(overrides)
        return Driver(**data)
    return _make


@pytest.fixture
def make_partner():
    def _make(partner_id: int = 10, **overrides) -> MovingPartner:
        data = dict(
            id=partner_id,
            name="Golden Gate Movers",
            phone_number="+15550000010",
            email="dispatch@ggmovers.example.com",
        )
        data.update(overrides)
        return MovingPartner(**data)
    return _make


@pytest.fixture
def make_order():
    def _make(order_id: int = 500, **overrides) -> PackingSupplyOrder:
        data = dict(
            id=order_id,
            status=OrderStatus.PENDING,
            contact_name="Pat Customer",
            contact_phone="+15550000500",
            contact_email="pat@example.com",
            delivery_address="55 Pine St, San Francisco, CA",
            assigned_driver_id=16,
        )
        data.update(overrides)
        return PackingSupplyOrder(**data)
    return _make


# =============================================================================
# COLLABORATOR MOCKS
# =============================================================================


@pytest.fixture
def mock_db():
    """PostgresClient stand-in; advisory_lock works as a no-op context manager."""
    db = Mock(spec=PostgresClient)
    db.advisory_lock.return_value = MagicMock()
    return db


@pytest.fixture
def mock_audit():
    return Mock(spec=AuditLogger)


# =============================================================================
# DATABASE FIXTURES (integration tests only)
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient. Skips when no test database is configured."""
    database_url = os.getenv("TEST_DATABASE_URL")
    if not database_url:
        pytest.skip("TEST_DATABASE_URL not set")

    client = PostgresClient(database_url)
    yield client
    client.close()


# =============================================================================
# VALKEY FIXTURES (integration tests only)
# =============================================================================


@pytest.fixture(scope="session")
def valkey():
    """Session-scoped ValkeyClient. Skips when no test Valkey is configured."""
    from clients.valkey_client import ValkeyClient

    valkey_url = os.getenv("TEST_VALKEY_URL")
    if not valkey_url:
        pytest.skip("TEST_VALKEY_URL not set")

    client = ValkeyClient(valkey_url)
    yield client
    client.close()

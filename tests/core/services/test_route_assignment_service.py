"""Tests for RouteAssignmentService - optimize, offer, summarize."""

from datetime import date
from unittest.mock import Mock

import pytest

from core.exceptions import IntegrationFailure
from core.messaging import MessageDispatcher, MessageTemplate
from core.services.route_assignment_service import OptimizationResult, RouteAssignmentService

TARGET = date(2024, 6, 10)


@pytest.fixture
def optimizer():
    mock = Mock()
    mock.optimize.return_value = OptimizationResult(route_ids=["r1", "r2"], orders_processed=7)
    return mock


@pytest.fixture
def offers():
    mock = Mock()
    mock.send_offer.return_value = "Tim Driver"
    return mock


@pytest.fixture
def dispatcher():
    return Mock(spec=MessageDispatcher)


@pytest.fixture
def service(optimizer, offers, dispatcher, dispatch_config):
    return RouteAssignmentService(optimizer, offers, dispatcher, dispatch_config)


class TestRun:

    def test_offers_every_route(self, service, offers):
        summary = service.run(TARGET)

        assert [c[0] for c in offers.send_offer.call_args_list] == [("r1", TARGET), ("r2", TARGET)]
        assert summary.routes_created == 2
        assert summary.orders_processed == 7
        assert summary.driver_offers_successful == 2
        assert summary.driver_offers[0].driver_name == "Tim Driver"

    def test_failed_offer_does_not_stop_run(self, service, offers):
        offers.send_offer.side_effect = [IntegrationFailure("no drivers"), "Sam Driver"]

        summary = service.run(TARGET)

        assert summary.driver_offers_failed == 1
        assert summary.driver_offers_successful == 1
        assert summary.driver_offers[0].error == "no drivers"

    def test_summary_emailed(self, service, dispatcher):
        service.run(TARGET)

        dispatcher.alert_operators.assert_called_once_with(
            MessageTemplate.ROUTE_ASSIGNMENT_SUMMARY,
            {"target_date": "2024-06-10", "routes": 2, "offers_sent": 2, "offers_failed": 0, "orders": 7},
        )

    def test_passes_flags_to_optimizer(self, service, optimizer):
        service.run(TARGET, force_optimization=True)
        optimizer.optimize.assert_called_once_with(TARGET, False, True)

    def test_defaults_to_today(self, service, optimizer):
        summary = service.run()
        assert summary.target_date == service.default_target_date()


class TestDryRun:

    def test_no_offers_or_email(self, service, offers, dispatcher, optimizer):
        summary = service.run(TARGET, dry_run=True)

        optimizer.optimize.assert_called_once_with(TARGET, True, False)
        offers.send_offer.assert_not_called()
        dispatcher.alert_operators.assert_not_called()
        assert summary.dry_run is True
        assert summary.routes_created == 2
        assert summary.driver_offers == []


class TestOptimizerFailure:

    def test_alerts_and_raises(self, service, optimizer, dispatcher):
        optimizer.optimize.side_effect = IntegrationFailure("optimizer timeout")

        with pytest.raises(IntegrationFailure):
            service.run(TARGET)

        dispatcher.alert_operators.assert_called_once_with(
            MessageTemplate.ROUTE_ASSIGNMENT_FAILED,
            {"target_date": "2024-06-10", "error": "optimizer timeout"},
        )

    def test_dry_run_failure_not_emailed(self, service, optimizer, dispatcher):
        optimizer.optimize.side_effect = IntegrationFailure("optimizer timeout")

        with pytest.raises(IntegrationFailure):
            service.run(TARGET, dry_run=True)

        dispatcher.alert_operators.assert_not_called()

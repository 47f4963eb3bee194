"""
Daily packing-supply route assignment.

Runs the route optimizer for a delivery date, then offers each resulting
route to a driver, one at a time. Operators get a summary email after a
real run and a failure email if the optimizer fails. Dry runs optimize
without persisting, skip the offers, and send nothing.
"""

import logging
from datetime import date
from typing import Protocol

from pydantic import BaseModel, Field

from core.config import DispatchConfig
from core.exceptions import DispatchError
from core.messaging import MessageDispatcher, MessageTemplate
from utils.timezone import now_utc, to_local

logger = logging.getLogger(__name__)


class OptimizationResult(BaseModel):
    """What the optimizer produced for one delivery date."""

    route_ids: list[str] = Field(default_factory=list)
    orders_processed: int = 0


class DriverOfferResult(BaseModel):
    route_id: str
    success: bool
    driver_name: str | None = None
    error: str | None = None


class RouteAssignmentSummary(BaseModel):
    """Outcome of one route assignment run."""

    target_date: date
    dry_run: bool
    orders_processed: int
    routes_created: int
    driver_offers_successful: int
    driver_offers_failed: int
    driver_offers: list[DriverOfferResult] = Field(default_factory=list)


class RouteOptimizer(Protocol):
    def optimize(self, target_date: date, dry_run: bool, force: bool) -> OptimizationResult:
        """Group the date's orders into routes. Raises DispatchError on failure."""


class DriverOfferSender(Protocol):
    def send_offer(self, route_id: str, target_date: date) -> str | None:
        """Offer a route to the next eligible driver. Returns the driver's name."""


class RouteAssignmentService:
    """Orchestrates optimization and driver offers for packing-supply routes."""

    def __init__(
        self,
        optimizer: RouteOptimizer,
        offers: DriverOfferSender,
        dispatcher: MessageDispatcher,
        config: DispatchConfig,
    ):
        self.optimizer = optimizer
        self.offers = offers
        self.dispatcher = dispatcher
        self.config = config

    def default_target_date(self) -> date:
        """Today in the operating timezone."""
        return to_local(now_utc(), self.config.display_timezone).date()

    def run(
        self,
        target_date: date | None = None,
        dry_run: bool = False,
        force_optimization: bool = False,
    ) -> RouteAssignmentSummary:
        """
        Optimize and offer the routes for one date.

        Raises:
            DispatchError: the optimizer failed (operators are emailed first
                unless this is a dry run)
        """
        target = target_date or self.default_target_date()
        logger.info(f"Route assignment for {target.isoformat()} (dry_run={dry_run})")

        try:
            result = self.optimizer.optimize(target, dry_run, force_optimization)
        except DispatchError as e:
            logger.error(f"Route optimization for {target.isoformat()} failed: {e}")
            if not dry_run:
                self.dispatcher.alert_operators(
                    MessageTemplate.ROUTE_ASSIGNMENT_FAILED,
                    {"target_date": target.isoformat(), "error": str(e)},
                )
            raise

        offers: list[DriverOfferResult] = []
        if dry_run:
            logger.info("Dry run: skipping driver offers")
        else:
            for route_id in result.route_ids:
                offers.append(self._offer(route_id, target))

        summary = RouteAssignmentSummary(
            target_date=target,
            dry_run=dry_run,
            orders_processed=result.orders_processed,
            routes_created=len(result.route_ids),
            driver_offers_successful=sum(1 for o in offers if o.success),
            driver_offers_failed=sum(1 for o in offers if not o.success),
            driver_offers=offers,
        )

        if not dry_run:
            self.dispatcher.alert_operators(
                MessageTemplate.ROUTE_ASSIGNMENT_SUMMARY,
                {
                    "target_date": target.isoformat(),
                    "routes": summary.routes_created,
                    "offers_sent": summary.driver_offers_successful,
                    "offers_failed": summary.driver_offers_failed,
                    "orders": summary.orders_processed,
                },
            )

        logger.info(
            f"Route assignment for {target.isoformat()} done: {summary.routes_created} routes, "
            f"{summary.driver_offers_successful} offers sent, {summary.driver_offers_failed} failed"
        )
        return summary

    def _offer(self, route_id: str, target: date) -> DriverOfferResult:
        """One driver offer. A failed offer is recorded and the run moves on."""
        try:
            driver_name = self.offers.send_offer(route_id, target)
        except DispatchError as e:
            logger.error(f"Driver offer for route {route_id} failed: {e}")
            return DriverOfferResult(route_id=route_id, success=False, error=str(e))

        logger.info(f"Driver offer for route {route_id} sent to {driver_name or 'next driver'}")
        return DriverOfferResult(route_id=route_id, success=True, driver_name=driver_name)

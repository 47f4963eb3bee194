"""Internal batch endpoints, called by the scheduler with the internal bearer secret."""

from datetime import date

from fastapi import APIRouter, Query

from api.base import success_response


def create_internal_router(services: dict) -> APIRouter:
    router = APIRouter()

    route_assignment = services["route_assignment"]

    @router.post("/internal/cron/packing-supply-route-assignment")
    def packing_supply_route_assignment(
        target_date: date | None = Query(None, alias="targetDate"),
        dry_run: bool = Query(False, alias="dryRun"),
        force_optimization: bool = Query(False, alias="forceOptimization"),
    ):
        summary = route_assignment.run(
            target_date=target_date,
            dry_run=dry_run,
            force_optimization=force_optimization,
        )
        return success_response(summary.model_dump(mode="json")).model_dump(mode="json")

    return router

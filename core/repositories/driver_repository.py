"""Driver persistence."""

from clients.postgres_client import PostgresClient
from core.models import Driver


class DriverRepository:
    """Read-only access to drivers and their fleet-team membership."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get_by_id(self, driver_id: int) -> Driver | None:
        row = self.postgres.execute_single(
            "SELECT * FROM drivers WHERE id = %s",
            (driver_id,)
        )
        if row is None:
            return None
        return Driver.model_validate(row)

    def get_many(self, driver_ids: list[int]) -> dict[int, Driver]:
        """Drivers keyed by id. Missing ids are simply absent."""
        if not driver_ids:
            return {}
        rows = self.postgres.execute(
            "SELECT * FROM drivers WHERE id = ANY(%s)",
            (list(driver_ids),)
        )
        drivers = [Driver.model_validate(row) for row in rows]
        return {driver.id: driver for driver in drivers}

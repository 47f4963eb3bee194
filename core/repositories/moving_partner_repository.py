"""Moving partner and partner-driver roster persistence."""

from clients.postgres_client import PostgresClient
from core.models import MovingPartner


class MovingPartnerRepository:
    """Read-only access to moving partners and their driver rosters."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get_by_id(self, partner_id: int) -> MovingPartner | None:
        row = self.postgres.execute_single(
            "SELECT * FROM moving_partners WHERE id = %s",
            (partner_id,)
        )
        if row is None:
            return None
        return MovingPartner.model_validate(row)

    def has_active_link(self, driver_id: int, partner_id: int | None = None) -> bool:
        """
        Whether an active join record links the driver to a moving partner.

        With partner_id, only that partner's roster counts.
        """
        if partner_id is None:
            count = self.postgres.execute_scalar(
                """
                SELECT count(*) FROM moving_partner_drivers
                WHERE driver_id = %s AND is_active
                """,
                (driver_id,)
            )
        else:
            count = self.postgres.execute_scalar(
                """
                SELECT count(*) FROM moving_partner_drivers
                WHERE driver_id = %s AND moving_partner_id = %s AND is_active
                """,
                (driver_id, partner_id)
            )
        return bool(count)

    def list_active_driver_ids(self, partner_id: int) -> list[int]:
        """Active roster of an active partner, ordered by driver id."""
        rows = self.postgres.execute(
            """
            SELECT mpd.driver_id
            FROM moving_partner_drivers mpd
            JOIN moving_partners mp ON mp.id = mpd.moving_partner_id
            WHERE mpd.moving_partner_id = %s AND mpd.is_active AND mp.is_active
            ORDER BY mpd.driver_id ASC
            """,
            (partner_id,)
        )
        return [row["driver_id"] for row in rows]

"""
Driver classification: operator fleet vs. moving-partner driver.

A driver is a partner driver when an active join record links them to a
moving partner. Otherwise they are fleet when their team list contains the
configured fleet team. Anything else is a data-integrity problem and is
raised, never defaulted.
"""

import logging

from core.exceptions import DriverClassificationError, NotFoundError
from core.models import DriverType
from core.repositories import DriverRepository, MovingPartnerRepository

logger = logging.getLogger(__name__)


class DriverTypeResolver:
    """Classifies drivers within one appointment context."""

    def __init__(
        self,
        drivers: DriverRepository,
        partners: MovingPartnerRepository,
        fleet_team_id: str,
    ):
        self.drivers = drivers
        self.partners = partners
        self.fleet_team_id = fleet_team_id

    def classify(self, driver_id: int, moving_partner_id: int | None = None) -> DriverType:
        """
        Effective type of a driver.

        Args:
            driver_id: Driver to classify
            moving_partner_id: When given, only this partner's roster makes
                the driver a partner driver

        Raises:
            NotFoundError: Driver does not exist
            DriverClassificationError: Driver is neither partner nor fleet
        """
        if self.partners.has_active_link(driver_id, moving_partner_id):
            return DriverType.PARTNER

        driver = self.drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")

        if self.fleet_team_id in driver.team_ids:
            return DriverType.FLEET

        logger.error(
            f"Driver {driver_id} has no active partner link and is not on fleet team "
            f"{self.fleet_team_id} (teams: {driver.team_ids})"
        )
        raise DriverClassificationError(driver_id)

    def is_partner_of(self, driver_id: int, moving_partner_id: int | None) -> bool:
        """Whether the driver is on the active roster of this specific partner."""
        if moving_partner_id is None:
            return False
        return self.partners.has_active_link(driver_id, moving_partner_id)

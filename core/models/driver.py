"""Driver and moving-partner domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class DriverType(str, Enum):
    """Effective driver type within one appointment context."""

    FLEET = "fleet"
    PARTNER = "partner"


class Driver(BaseModel):
    """Full driver entity as stored."""

    id: int
    first_name: str
    last_name: str
    phone_number: str | None = None
    email: str | None = None
    onfleet_worker_id: str | None = None
    team_ids: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class MovingPartner(BaseModel):
    """Third-party moving company."""

    id: int
    name: str
    phone_number: str | None = None
    email: str | None = None
    onfleet_team_id: str | None = None
    is_active: bool = True

    model_config = {"from_attributes": True}


class MovingPartnerDriver(BaseModel):
    """Join record linking a driver to a moving partner's roster."""

    driver_id: int
    moving_partner_id: int
    is_active: bool = True

    model_config = {"from_attributes": True}

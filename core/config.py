"""Dispatch configuration."""

from pydantic import BaseModel, Field


class DispatchConfig(BaseModel):
    """
    Dispatch behavior configuration.

    Secrets (API keys, signing secrets) are not here; they come from Vault.
    """

    # Driver classification
    fleet_team_id: str = Field(
        ...,
        description="Delivery-provider team id whose members are operator fleet drivers",
        min_length=1,
    )

    # Scheduling
    stagger_minutes: int = Field(
        default=45,
        description="Start-time offset between consecutive units of one appointment",
        ge=0,
        le=240,
    )
    warehouse_address: str = Field(
        default="105 Associated Rd, South San Francisco, CA 94080",
        description="Pickup and return destination for storage units",
    )

    # Customer-facing display
    display_timezone: str = Field(
        default="America/Los_Angeles",
        description="IANA timezone for tracking timestamps and SMS times",
    )
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL for tracking and feedback links",
    )
    brand_name: str = Field(
        default="Boombox",
        description="Product name used in customer-facing titles and messages",
    )

    # Operations
    operator_alert_email: str = Field(
        default="ops@localhost",
        description="Recipient of payout failure alerts and cron reports",
    )

    # Concurrency
    tracking_fetch_workers: int = Field(
        default=4,
        description="Max concurrent unit fetch groups per tracking request",
        ge=1,
        le=16,
    )

    # Webhooks
    webhook_dedup_ttl_seconds: int = Field(
        default=86400,
        description="How long a delivered webhook is remembered for deduplication",
        ge=60,
    )

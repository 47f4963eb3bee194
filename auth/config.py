"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short durations,
    hours for longer ones) to make configuration intuitive.
    """

    # Tracking tokens
    tracking_token_expiry_hours: int = Field(
        default=72,
        description="How long a customer tracking link remains valid",
        ge=1,
        le=720,
    )

    # Webhook signatures
    strict_webhook_verification: bool = Field(
        default=True,
        description=(
            "Reject webhooks whose signature does not match. When False, a "
            "mismatch is logged and recorded as a security event but accepted"
        ),
    )

    # Internal endpoints
    internal_path_prefixes: list[str] = Field(
        default_factory=lambda: ["/internal/", "/appointments/"],
        description="Paths under these prefixes require the internal bearer secret",
    )

    # Rate limiting
    tracking_verify_rate_limit_attempts: int = Field(
        default=30,
        description="Max tracking verifications per client IP per window",
        ge=1,
        le=1000,
    )
    tracking_verify_rate_limit_window_minutes: int = Field(
        default=5,
        description="Rate limit window duration",
        ge=1,
        le=60,
    )

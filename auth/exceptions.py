"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidTokenError(AuthError):
    """
    Tracking token is malformed, expired, or signed with an unknown secret.

    Callers see a single "invalid or expired" message regardless of cause.
    """


class WebhookSignatureError(AuthError):
    """Delivery-provider webhook signature is missing or does not match."""


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")

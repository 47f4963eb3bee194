"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    RateLimitedError,
    WebhookSignatureError,
)
from auth.config import AuthConfig
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.tracking_token import TrackingClaims, TrackingTokenService
from auth.webhook_signature import SIGNATURE_HEADER, WebhookSignatureVerifier
from auth.security_middleware import InternalAuthMiddleware

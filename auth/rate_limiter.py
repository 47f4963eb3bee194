"""Rate limiting for tracking-link verification.

Uses Valkey with sliding window TTL - each attempt resets the expiry.
Clients hammering the verify endpoint with guessed tokens hit an
ever-extending lockout.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Per-client-IP rate limiting for tracking verification using Valkey."""

    KEY_PREFIX = "ratelimit:tracking_verify:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config
        self._window_seconds = config.tracking_verify_rate_limit_window_minutes * 60

    def _key(self, client_ip: str) -> str:
        return f"{self.KEY_PREFIX}{client_ip}"

    def check_rate_limit(self, client_ip: str) -> None:
        """Check rate limit and increment counter.

        Sliding window: TTL resets on every attempt. Hammering extends lockout.

        Raises:
            RateLimitedError: If rate limit exceeded.
        """
        key = self._key(client_ip)

        count, ttl = self._valkey.count_attempt(key, self._window_seconds)

        if count > self._config.tracking_verify_rate_limit_attempts:
            retry_after = max(ttl, 1)  # At least 1 second
            raise RateLimitedError(retry_after_seconds=retry_after)

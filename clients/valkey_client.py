"""
Valkey (Redis-compatible) client for the two short-lived things dispatch
keeps outside PostgreSQL: webhook delivery claims and tracking-verify attempt
counters.

Connection URL from Vault. Fail-fast: raises on connection failure, never
returns fallback values, so a Valkey outage fails the webhook and the
provider redelivers it.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Valkey operations used by webhook deduplication and rate limiting.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        first = client.claim("webhook:task-1-2:taskStarted:1718042400000", expire_seconds=86400)
        count, ttl = client.count_attempt("ratelimit:tracking_verify:203.0.113.5", window_seconds=900)
    """

    def __init__(self, url: str):
        """
        Raises:
            redis.ConnectionError: Valkey is unreachable
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        self._client.ping()
        return True

    def claim(self, key: str, expire_seconds: int) -> bool:
        """
        First-writer-wins marker (SET NX EX).

        Returns True for the caller that created the key, False for everyone
        after it until the key expires or is released.
        """
        return bool(self._client.set(key, "1", nx=True, ex=expire_seconds))

    def release(self, key: str) -> bool:
        """Drop a claim so the next delivery can take it. True if it existed."""
        return self._client.delete(key) > 0

    def count_attempt(self, key: str, window_seconds: int) -> tuple[int, int]:
        """
        Count one attempt and re-arm the window in a single MULTI/EXEC.

        Every attempt pushes the expiry out again, so a client that keeps
        trying keeps itself locked out.

        Returns:
            (attempts in the current window, seconds until the window expires)
        """
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        pipe.ttl(key)
        count, _, ttl = pipe.execute()
        return count, ttl

    def ttl(self, key: str) -> int:
        """Remaining seconds, -1 without expiry, -2 when the key is missing."""
        return self._client.ttl(key)

    def close(self) -> None:
        self._client.close()
        logger.info("ValkeyClient closed")

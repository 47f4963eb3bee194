"""Security event logging for the dispatch audit trail.

Append-only log to the security_events table. Records rejected tracking
tokens, webhook signature mismatches (accepted or not), internal endpoint
auth failures and rate limiting.
"""

import logging
from enum import Enum
from typing import Any

import psycopg2.extras

from clients.postgres_client import PostgresClient
from utils.request_context import current_request_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Security event types."""

    TRACKING_TOKEN_ISSUED = "tracking_token_issued"
    TRACKING_TOKEN_REJECTED = "tracking_token_rejected"
    WEBHOOK_SIGNATURE_MISMATCH = "webhook_signature_mismatch"
    WEBHOOK_SIGNATURE_MISSING = "webhook_signature_missing"
    INTERNAL_AUTH_FAILED = "internal_auth_failed"
    RATE_LIMITED = "rate_limited"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        ip_address: str | None = None,
        user_agent: str | None = None,
        appointment_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database, tagged with the current request id when there is one."""
        request_id = current_request_id()
        if request_id:
            details = {**(details or {}), "request_id": request_id}
        logger.info(
            f"Security event {event.value} (ip={ip_address}, appointment={appointment_id}, request_id={request_id})"
        )
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, ip_address, user_agent, appointment_id, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                ip_address,
                user_agent,
                appointment_id,
                psycopg2.extras.Json(details) if details else None,
                now_utc(),
            ),
        )

    def get_recent_events(
        self,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events, newest first."""
        if event_type:
            return self._db.execute(
                """SELECT id, event_type, ip_address, user_agent, appointment_id, details, created_at
                   FROM security_events
                   WHERE event_type = %s
                   ORDER BY created_at DESC
                   LIMIT %s""",
                (event_type.value, limit),
            )

        return self._db.execute(
            """SELECT id, event_type, ip_address, user_agent, appointment_id, details, created_at
               FROM security_events
               ORDER BY created_at DESC
               LIMIT %s""",
            (limit,),
        )

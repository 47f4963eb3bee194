"""Signed customer tracking links.

A tracking token names the appointment (and the task that triggered the
link) and optionally carries the webhook event that caused it to be sent,
so the tracking page can show that event even before the provider's own
task state catches up.

Tokens are HS256 JWTs. During a secret rotation the previous secret is still
accepted for verification; new tokens are always signed with the current one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

import jwt

from auth.exceptions import InvalidTokenError
from core.models import TrackingEvent, TriggerName
from utils.timezone import from_epoch_ms, now_utc, to_epoch_ms

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
INVALID_TOKEN_MESSAGE = "Invalid or expired tracking link"


@dataclass(frozen=True)
class TrackingClaims:
    """Verified contents of a tracking token."""

    appointment_id: int
    task_id: str | None
    expires_at: datetime
    webhook_time: datetime | None = None
    trigger_name: TriggerName | None = None
    eta: str | None = None

    def to_event(self) -> TrackingEvent | None:
        """The webhook event the link was sent for, if it carried one."""
        if self.trigger_name is None and self.webhook_time is None:
            return None
        return TrackingEvent(
            appointment_id=self.appointment_id,
            trigger_name=self.trigger_name,
            event_time=self.webhook_time,
        )


class TrackingTokenService:
    """Issues and verifies tracking-link tokens."""

    def __init__(
        self,
        secret: str,
        previous_secret: str | None = None,
        expiry_hours: int = 72,
    ):
        if not secret:
            raise ValueError("Tracking token secret is required")
        self._secrets = [secret] + ([previous_secret] if previous_secret else [])
        self._expiry = timedelta(hours=expiry_hours)

    def issue(
        self,
        appointment_id: int,
        task_id: str | None = None,
        webhook_time: datetime | None = None,
        trigger_name: TriggerName | None = None,
        eta: str | None = None,
    ) -> str:
        """Sign a new tracking token with the current secret."""
        issued_at = now_utc()
        payload = {
            "appointmentId": appointment_id,
            "iat": issued_at,
            "exp": issued_at + self._expiry,
        }
        if task_id:
            payload["taskId"] = task_id
        if webhook_time is not None:
            payload["webhookTime"] = to_epoch_ms(webhook_time)
        if trigger_name is not None:
            payload["triggerName"] = trigger_name.value
        if eta:
            payload["eta"] = eta

        return jwt.encode(payload, self._secrets[0], algorithm=ALGORITHM)

    def _decode(self, token: str) -> dict:
        last_error: Exception | None = None
        for secret in self._secrets:
            try:
                return jwt.decode(
                    token,
                    secret,
                    algorithms=[ALGORITHM],
                    options={"require": ["exp", "appointmentId"]},
                )
            except jwt.ExpiredSignatureError as e:
                # Signature matched this secret; another secret will not help
                logger.info(f"Tracking token expired: {e}")
                raise InvalidTokenError(INVALID_TOKEN_MESSAGE) from e
            except jwt.InvalidTokenError as e:
                last_error = e
                continue

        logger.info(f"Tracking token rejected: {last_error}")
        raise InvalidTokenError(INVALID_TOKEN_MESSAGE) from last_error

    def verify(self, token: str) -> TrackingClaims:
        """
        Verify a tracking token.

        Raises:
            InvalidTokenError: malformed, expired, wrong signature or
                missing the appointment id. The message never says which.
        """
        if not token:
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE)

        payload = self._decode(token)

        try:
            appointment_id = int(payload["appointmentId"])
            webhook_time = payload.get("webhookTime")
            trigger_name = payload.get("triggerName")
            return TrackingClaims(
                appointment_id=appointment_id,
                task_id=payload.get("taskId"),
                expires_at=from_epoch_ms(int(payload["exp"]) * 1000),
                webhook_time=from_epoch_ms(int(webhook_time)) if webhook_time is not None else None,
                trigger_name=TriggerName(trigger_name) if trigger_name else None,
                eta=payload.get("eta"),
            )
        except (TypeError, ValueError) as e:
            logger.info(f"Tracking token has malformed claims: {e}")
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE) from e

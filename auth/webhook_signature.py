"""Delivery-provider webhook signature verification.

The provider signs each webhook with HMAC-SHA512 over the raw request body,
keyed by the hex-decoded webhook secret, and sends the hex digest in the
X-Onfleet-Signature header.
"""

import hashlib
import hmac
import logging

from auth.exceptions import WebhookSignatureError
from auth.security_logger import SecurityEvent, SecurityLogger

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Onfleet-Signature"


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


class WebhookSignatureVerifier:
    """
    Checks webhook signatures.

    In strict mode a missing or mismatched signature raises
    WebhookSignatureError. Otherwise the failure is logged and recorded as a
    security event, and the webhook is accepted.
    """

    def __init__(
        self,
        secret_hex: str,
        strict: bool = True,
        security_logger: SecurityLogger | None = None,
    ):
        try:
            self._key = bytes.fromhex(secret_hex)
        except (TypeError, ValueError):
            raise ValueError("Webhook secret must be a hex string")
        if not self._key:
            raise ValueError("Webhook secret is required")
        self.strict = strict
        self._security_logger = security_logger

    def compute(self, body: bytes) -> str:
        """Hex HMAC-SHA512 of a raw body."""
        return hmac.new(self._key, body, hashlib.sha512).hexdigest()

    def verify(
        self,
        body: bytes,
        signature: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        """
        Check a webhook body against its signature header.

        Returns:
            True if the signature matched, False if it did not but the
            webhook is accepted anyway (non-strict mode).

        Raises:
            WebhookSignatureError: strict mode and missing/mismatched signature
        """
        if not signature:
            return self._reject(
                SecurityEvent.WEBHOOK_SIGNATURE_MISSING,
                "Missing webhook signature",
                ip_address,
                user_agent,
            )

        if constant_time_compare(self.compute(body), signature.strip().lower()):
            return True

        return self._reject(
            SecurityEvent.WEBHOOK_SIGNATURE_MISMATCH,
            "Webhook signature mismatch",
            ip_address,
            user_agent,
        )

    def _reject(
        self,
        event: SecurityEvent,
        message: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> bool:
        if self._security_logger is not None:
            self._security_logger.log(
                event,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"strict": self.strict},
            )

        if self.strict:
            logger.warning(f"{message} from {ip_address}; rejected")
            raise WebhookSignatureError(message)

        logger.warning(f"{message} from {ip_address}; accepted (non-strict verification)")
        return False

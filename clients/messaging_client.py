"""
Messaging gateway client for sending SMS and email via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication. Message text is
rendered by the caller; the gateway only delivers.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)


class MessagingGatewayError(Exception):
    """Raised when messaging gateway request fails."""


class MessagingGatewayClient:
    """Send SMS and email via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the messaging gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Raises:
            MessagingGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        signature = hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": signature,
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=10,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Messaging gateway connection failed: {e}")
            raise MessagingGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except json.JSONDecodeError:
            logger.error(f"Messaging gateway returned invalid JSON: {response.text}")
            raise MessagingGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Messaging gateway error: {error_msg}")
            raise MessagingGatewayError(f"Gateway error: {error_msg}")

    def send_sms(self, to: str, body: str) -> None:
        """
        Send an SMS via gateway.

        Args:
            to: Recipient phone number
            body: Rendered message text

        Raises:
            ValueError: If recipient or body is empty
            MessagingGatewayError: On gateway failure
        """
        if not to:
            raise ValueError("SMS recipient is required")
        if not body:
            raise ValueError("SMS body is required")

        payload = {
            "type": "sms",
            "to": to,
            "body": body,
        }
        self._sign_and_send(payload)
        logger.info(f"SMS sent to {to}")

    def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        sender: str = "dispatch",
    ) -> None:
        """
        Send an email via gateway.

        Args:
            to: Recipient email address
            subject: Email subject line
            body: Plain text email body
            sender: Sender identity - "dispatch" or "alerts" (default: "dispatch")

        Raises:
            ValueError: If sender is invalid
            MessagingGatewayError: On gateway failure
        """
        if sender not in ("dispatch", "alerts"):
            raise ValueError(f"sender must be 'dispatch' or 'alerts', got '{sender}'")

        payload = {
            "type": "email",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": sender,
        }
        self._sign_and_send(payload)
        logger.info(f"Email sent to {to}: {subject}")

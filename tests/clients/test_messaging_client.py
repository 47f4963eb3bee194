"""
Tests for MessagingGatewayClient.

Tests verify the client's contract with calling code.
Focus on observable behavior, not implementation details.
"""

import hashlib
import hmac
import json

import pytest
import responses

from clients.messaging_client import MessagingGatewayClient, MessagingGatewayError


GATEWAY_URL = "https://gateway.example.com/send"


@pytest.fixture
def client():
    """Create client with test credentials."""
    return MessagingGatewayClient(
        gateway_url=GATEWAY_URL,
        api_key="test-api-key",
        hmac_secret="test-hmac-secret",
    )


class TestMessagingGatewayClientInit:
    """Test client initialization - fail-fast on invalid config."""

    def test_init_with_valid_credentials(self, client):
        """Client initializes with all required credentials."""
        assert client.gateway_url == GATEWAY_URL

    @pytest.mark.parametrize("field", ["gateway_url", "api_key", "hmac_secret"])
    def test_init_rejects_empty_credential(self, field):
        """Any empty credential raises ValueError naming it."""
        kwargs = {
            "gateway_url": GATEWAY_URL,
            "api_key": "test-api-key",
            "hmac_secret": "test-hmac-secret",
        }
        kwargs[field] = ""
        with pytest.raises(ValueError, match=field):
            MessagingGatewayClient(**kwargs)


class TestSendSms:
    """Test send_sms - uses responses library for HTTP mocking."""

    @responses.activate
    def test_successful_send_returns_none(self, client):
        """Successful gateway response completes without exception."""
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        assert client.send_sms(to="+15551234567", body="Your driver is on the way") is None

    @responses.activate
    def test_request_is_signed(self, client):
        """X-Signature is HMAC-SHA256 of the exact body sent."""
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        client.send_sms(to="+15551234567", body="hello")

        request = responses.calls[0].request
        body = request.body if isinstance(request.body, bytes) else request.body.encode("utf-8")
        expected = hmac.new(b"test-hmac-secret", body, hashlib.sha256).hexdigest()
        assert request.headers["X-Signature"] == expected
        assert request.headers["X-API-Key"] == "test-api-key"
        assert json.loads(body) == {"type": "sms", "to": "+15551234567", "body": "hello"}

    def test_empty_recipient_raises_value_error(self, client):
        """Missing phone number is rejected before any HTTP call."""
        with pytest.raises(ValueError, match="recipient"):
            client.send_sms(to="", body="hello")

    @responses.activate
    def test_gateway_500_raises_error(self, client):
        """Server error from gateway raises MessagingGatewayError."""
        responses.add(
            responses.POST,
            GATEWAY_URL,
            json={"success": False, "message": "Internal error"},
            status=500,
        )

        with pytest.raises(MessagingGatewayError):
            client.send_sms(to="+15551234567", body="hello")

    @responses.activate
    def test_gateway_success_false_raises_error(self, client):
        """Gateway returns 200 but success=false raises MessagingGatewayError."""
        responses.add(
            responses.POST,
            GATEWAY_URL,
            json={"success": False, "message": "Invalid number"},
            status=200,
        )

        with pytest.raises(MessagingGatewayError, match="Invalid number"):
            client.send_sms(to="+1", body="hello")

    @responses.activate
    def test_connection_failure_raises_error(self, client):
        """Network failure raises MessagingGatewayError."""
        responses.add(
            responses.POST,
            GATEWAY_URL,
            body=ConnectionError("Network unreachable"),
        )

        with pytest.raises(MessagingGatewayError):
            client.send_sms(to="+15551234567", body="hello")

    @responses.activate
    def test_invalid_json_response_raises_error(self, client):
        """Non-JSON response raises MessagingGatewayError."""
        responses.add(responses.POST, GATEWAY_URL, body="not json", status=200)

        with pytest.raises(MessagingGatewayError):
            client.send_sms(to="+15551234567", body="hello")


class TestSendEmail:
    """Test send_email method."""

    @responses.activate
    def test_successful_send(self, client):
        """Successful send completes without exception."""
        responses.add(responses.POST, GATEWAY_URL, json={"success": True}, status=200)

        result = client.send_email(
            to="ops@example.com",
            subject="Route assignment summary",
            body="3 routes offered",
            sender="alerts",
        )
        assert result is None

    def test_invalid_sender_raises_value_error(self, client):
        """Invalid sender value raises ValueError before any HTTP call."""
        with pytest.raises(ValueError, match="sender must be"):
            client.send_email(
                to="ops@example.com",
                subject="Test",
                body="Body",
                sender="invalid",
            )

    @responses.activate
    def test_gateway_error_raises_exception(self, client):
        """Gateway error raises MessagingGatewayError."""
        responses.add(responses.POST, GATEWAY_URL, json={"success": False}, status=500)

        with pytest.raises(MessagingGatewayError):
            client.send_email(to="ops@example.com", subject="Test", body="Body")

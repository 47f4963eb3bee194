"""Tests for the delivery-provider webhook endpoint."""

import asyncio
import hashlib
import hmac
import json
import logging

from auth.webhook_signature import SIGNATURE_HEADER
from core.exceptions import IntegrationFailure
from core.models import JobType, TriggerName
from core.services.webhook_service import WebhookResult
from utils.request_context import current_request_id

WEBHOOK_SECRET_HEX = "ab" * 32


def sign(body: bytes) -> str:
    return hmac.new(bytes.fromhex(WEBHOOK_SECRET_HEX), body, hashlib.sha512).hexdigest()


def webhook_body(**overrides) -> bytes:
    data = {
        "taskId": "task-1-2",
        "time": 1718042400000,
        "triggerName": "taskStarted",
        "data": {"task": {"shortId": "s12", "metadata": []}},
    }
    data.update(overrides)
    return json.dumps(data).encode()


def post_signed(client, body: bytes, signature: str | None = None):
    return client.post(
        "/webhooks/onfleet",
        content=body,
        headers={SIGNATURE_HEADER: signature if signature is not None else sign(body)},
    )


class TestValidationEcho:

    def test_echoes_check_value(self, client):
        response = client.get("/webhooks/onfleet", params={"check": "abc123"})

        assert response.status_code == 200
        assert response.text == "abc123"

    def test_missing_check_is_400(self, client):
        assert client.get("/webhooks/onfleet").status_code == 400


class TestSignature:

    def test_valid_signature_processed(self, client, webhook_processor):
        webhook_processor.process.return_value = WebhookResult(
            task_id="task-1-2",
            job_type=JobType.STORAGE_UNIT,
            trigger_name=TriggerName.TASK_STARTED,
            handled=True,
        )

        response = post_signed(client, webhook_body())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["handled"] is True
        payload = webhook_processor.process.call_args[0][0]
        assert payload.task_id == "task-1-2"
        assert payload.trigger_name == TriggerName.TASK_STARTED

    def test_wrong_signature_rejected(self, client, webhook_processor, security_logger):
        response = post_signed(client, webhook_body(), signature="00" * 64)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
        webhook_processor.process.assert_not_called()
        security_logger.log.assert_called_once()

    def test_missing_signature_rejected(self, client, webhook_processor):
        response = client.post("/webhooks/onfleet", content=webhook_body())

        assert response.status_code == 401
        webhook_processor.process.assert_not_called()

    def test_signature_covers_exact_bytes(self, client, webhook_processor):
        """Re-serialized JSON with different spacing does not verify."""
        body = webhook_body()
        signature = sign(body)
        reformatted = json.dumps(json.loads(body), indent=2).encode()

        response = post_signed(client, reformatted, signature=signature)

        assert response.status_code == 401


class TestBody:

    def test_non_json_is_400(self, client, webhook_processor):
        response = post_signed(client, b"not json")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        webhook_processor.process.assert_not_called()

    def test_json_array_is_400(self, client):
        assert post_signed(client, b"[1, 2]").status_code == 400

    def test_unknown_trigger_is_400(self, client, webhook_processor):
        response = post_signed(client, webhook_body(triggerName="taskExploded"))

        assert response.status_code == 400
        webhook_processor.process.assert_not_called()

    def test_missing_task_id_is_400(self, client):
        body = json.dumps({"time": 1, "triggerName": "taskStarted"}).encode()
        assert post_signed(client, body).status_code == 400

    def test_provider_failure_is_502(self, client, webhook_processor):
        webhook_processor.process.side_effect = IntegrationFailure("messaging gateway down")

        response = post_signed(client, webhook_body())

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "INTEGRATION_FAILURE"


def started_result():
    return WebhookResult(
        task_id="task-1-2",
        job_type=JobType.STORAGE_UNIT,
        trigger_name=TriggerName.TASK_STARTED,
        handled=True,
        detail="crew en route",
    )


class TestProcessing:

    def test_processed_off_the_event_loop(self, client, webhook_processor):
        """Database and provider calls never block the event loop."""
        loops = []

        def process(payload):
            try:
                loops.append(asyncio.get_running_loop())
            except RuntimeError:
                loops.append(None)
            return started_result()

        webhook_processor.process.side_effect = process

        assert post_signed(client, webhook_body()).status_code == 200
        assert loops == [None]

    def test_logs_carry_request_id(self, client, webhook_processor, caplog):
        webhook_processor.process.return_value = started_result()

        with caplog.at_level(logging.INFO, logger="api.webhooks"):
            response = client.post(
                "/webhooks/onfleet",
                content=webhook_body(),
                headers={SIGNATURE_HEADER: sign(webhook_body()), "X-Request-ID": "delivery-99"},
            )

        assert response.json()["meta"]["request_id"] == "delivery-99"
        messages = [r.getMessage() for r in caplog.records if r.name == "api.webhooks"]
        assert len(messages) == 2
        assert all(m.endswith("[request_id=delivery-99]") for m in messages)
        assert "detail='crew en route'" in messages[1]

    def test_signature_event_tagged_with_request_id(self, client, security_logger):
        seen = []
        security_logger.log.side_effect = lambda *args, **kwargs: seen.append(current_request_id())

        response = client.post(
            "/webhooks/onfleet",
            content=webhook_body(),
            headers={SIGNATURE_HEADER: "00" * 64, "X-Request-ID": "delivery-100"},
        )

        assert response.status_code == 401
        assert seen == ["delivery-100"]

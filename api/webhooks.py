"""Delivery-provider webhook endpoint."""

import json
import logging

from fastapi import APIRouter, Query, Request
from starlette.concurrency import run_in_threadpool
from starlette.responses import PlainTextResponse

from api.base import success_response
from auth.webhook_signature import SIGNATURE_HEADER
from core.exceptions import ValidationError
from core.models import WebhookPayload

logger = logging.getLogger(__name__)


def create_webhooks_router(services: dict) -> APIRouter:
    router = APIRouter()

    processor = services["webhook_processor"]
    verifier = services["webhook_verifier"]

    def handle_delivery(body: bytes, signature: str | None, ip_address: str | None,
                        user_agent: str | None, request_id: str) -> dict:
        verifier.verify(body, signature, ip_address=ip_address, user_agent=user_agent)

        try:
            raw = json.loads(body)
        except ValueError:
            raise ValidationError("Webhook body is not valid JSON")
        if not isinstance(raw, dict):
            raise ValidationError("Webhook body must be a JSON object")

        payload = WebhookPayload.parse(raw)
        logger.info(
            f"Webhook {payload.trigger_name.value} for task {payload.task_id} [request_id={request_id}]"
        )
        result = processor.process(payload)
        logger.info(
            f"Webhook {payload.trigger_name.value} for task {payload.task_id}: "
            f"handled={result.handled} duplicate={result.duplicate} detail={result.detail!r} "
            f"[request_id={request_id}]"
        )
        return success_response(result.model_dump(mode="json")).model_dump(mode="json")

    @router.get("/webhooks/onfleet")
    def validate_webhook(check: str = Query(...)):
        # The provider registers a webhook URL by asking it to echo this value
        return PlainTextResponse(check)

    @router.post("/webhooks/onfleet")
    async def receive_webhook(request: Request):
        # The raw body is needed for the signature, so only the read stays on the event loop
        body = await request.body()
        return await run_in_threadpool(
            handle_delivery,
            body,
            request.headers.get(SIGNATURE_HEADER),
            request.client.host if request.client else None,
            request.headers.get("user-agent"),
            request.state.request_id,
        )

    return router

"""Request id tagging and access logging for dispatch API requests."""

import logging
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from utils.request_context import reset_request_id, set_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Inbound ids are echoed into logs and headers, so only short plain tokens are kept
_INBOUND_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id carried into logs, the response envelope
    and any security event the request raises.

    A well-formed X-Request-ID from the caller (the provider's webhook
    delivery or the cron runner) is kept so both sides' logs line up.
    Anything else gets a fresh UUID.
    """

    async def dispatch(self, request: Request, call_next):
        inbound = request.headers.get(REQUEST_ID_HEADER)
        request_id = inbound if inbound and _INBOUND_REQUEST_ID.match(inbound) else str(uuid4())
        request.state.request_id = request_id

        token = set_request_id(request_id)
        started = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed_ms}ms [request_id={request_id}]"
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

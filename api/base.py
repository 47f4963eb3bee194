"""Response envelope shared by every dispatch API route."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from utils.request_context import current_request_id
from utils.timezone import now_utc


class APIError(BaseModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class APIMeta(BaseModel):
    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Id of the request, as in the X-Request-ID header and logs")


class APIResponse(BaseModel):
    """
    Envelope for dispatch API responses.

    The provider only looks at the status code of a webhook response; the
    envelope is for the customer tracking page and internal callers.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta() -> APIMeta:
    # Outside a request (e.g. building a response in a unit test) a fresh id is used
    return APIMeta(timestamp=now_utc(), request_id=current_request_id() or str(uuid4()))


def success_response(data: Any) -> APIResponse:
    return APIResponse(success=True, data=data, meta=_meta())


def error_response(code: str, message: str) -> APIResponse:
    return APIResponse(
        success=False,
        error=APIError(code=code, message=message),
        meta=_meta(),
    )


class ErrorCodes:
    """
    Error codes returned to callers.

    Each dispatch or auth exception maps to exactly one code in api/errors.py.
    """

    # Tracking tokens, webhook signatures, internal auth
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    RATE_LIMITED = "RATE_LIMITED"

    # Appointments, orders, tasks
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    STATE_CONFLICT = "STATE_CONFLICT"

    # Delivery provider, messaging gateway, database
    INTEGRATION_FAILURE = "INTEGRATION_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"

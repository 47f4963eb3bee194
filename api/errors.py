"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import InvalidTokenError, RateLimitedError, WebhookSignatureError
from core.exceptions import (
    IntegrationFailure,
    NotFoundError,
    StateConflictError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _json_error(status_code: int, code: str, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message).model_dump(mode="json"),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _json_error(400, ErrorCodes.VALIDATION_ERROR, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        return _json_error(400, ErrorCodes.VALIDATION_ERROR, f"Invalid request: {fields}")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _json_error(404, ErrorCodes.NOT_FOUND, str(exc))

    @app.exception_handler(InvalidTokenError)
    async def invalid_token_handler(request: Request, exc: InvalidTokenError):
        return _json_error(401, ErrorCodes.INVALID_TOKEN, str(exc))

    @app.exception_handler(WebhookSignatureError)
    async def signature_error_handler(request: Request, exc: WebhookSignatureError):
        return _json_error(401, ErrorCodes.INVALID_SIGNATURE, str(exc))

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError):
        return _json_error(
            429,
            ErrorCodes.RATE_LIMITED,
            str(exc),
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(StateConflictError)
    async def state_conflict_handler(request: Request, exc: StateConflictError):
        logger.error(f"State conflict on {request.url.path}: {exc}")
        return _json_error(409, ErrorCodes.STATE_CONFLICT, str(exc))

    @app.exception_handler(IntegrationFailure)
    async def integration_failure_handler(request: Request, exc: IntegrationFailure):
        logger.error(f"Integration failure on {request.url.path}: {exc}")
        return _json_error(502, ErrorCodes.INTEGRATION_FAILURE, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")

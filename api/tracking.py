"""Customer tracking-link verification endpoint."""

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from api.base import success_response


class TrackingVerifyRequest(BaseModel):
    token: str = Field(..., min_length=1)


def _client_ip(request: Request) -> str | None:
    """First hop of X-Forwarded-For when behind a proxy, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def create_tracking_router(services: dict) -> APIRouter:
    router = APIRouter()

    tracking = services["tracking"]

    @router.post("/tracking/verify")
    def verify_tracking(request: Request, body: TrackingVerifyRequest):
        view = tracking.verify(
            body.token,
            client_ip=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        return success_response(view.model_dump(mode="json")).model_dump(mode="json")

    return router

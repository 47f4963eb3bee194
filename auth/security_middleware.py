"""Security middleware for FastAPI - shared-secret guard on internal endpoints."""

import hmac
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.security_logger import SecurityEvent, SecurityLogger

logger = logging.getLogger(__name__)


class InternalAuthMiddleware(BaseHTTPMiddleware):
    """Middleware that requires the internal bearer secret on internal paths.

    Internal endpoints are called by the scheduler and the operator
    dashboard, never by customers:
    1. Paths outside the internal prefixes pass through untouched
    2. Internal paths must carry 'Authorization: Bearer <secret>'
    3. A missing or wrong secret is recorded as a security event and
       answered with 401
    """

    def __init__(
        self,
        app,
        api_secret: str,
        path_prefixes: list[str] | None = None,
        security_logger: SecurityLogger | None = None,
    ):
        super().__init__(app)
        if not api_secret:
            raise ValueError("Internal API secret is required")
        self._api_secret = api_secret
        self._path_prefixes = tuple(path_prefixes or ["/internal/"])
        self._security_logger = security_logger

    def _is_internal_path(self, path: str) -> bool:
        return path.startswith(self._path_prefixes)

    def _bearer_token(self, request: Request) -> str | None:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return token.strip()

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        if not self._is_internal_path(path):
            return await call_next(request)

        token = self._bearer_token(request)
        if token and hmac.compare_digest(token.encode(), self._api_secret.encode()):
            return await call_next(request)

        client_ip = request.client.host if request.client else None
        logger.warning(f"Internal auth failed for {path} from {client_ip}")
        if self._security_logger is not None:
            self._security_logger.log(
                SecurityEvent.INTERNAL_AUTH_FAILED,
                ip_address=client_ip,
                user_agent=request.headers.get("user-agent"),
                details={"path": path, "token_present": token is not None},
            )

        return JSONResponse(
            status_code=401,
            content=error_response(
                ErrorCodes.NOT_AUTHENTICATED,
                "Authentication required",
            ).model_dump(mode="json"),
        )

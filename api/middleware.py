"""Request-scoped middleware: request IDs and the edge guard."""

import logging
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from api.base import error_json, ErrorCodes
from api.cors import get_cors_headers
from auth.rate_limiter import UNKNOWN_CLIENT, RateLimiter, client_identifier
from auth.security_logger import SecurityEvent, SecurityLogger
from utils.timezone import epoch_ms_to_seconds_ceil

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(self)",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
}

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline' 'unsafe-eval' https://vercel.live",
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
    "font-src 'self' https://fonts.gstatic.com",
    "img-src 'self' data: blob: https:",
    "connect-src 'self' https: wss:",
    "frame-ancestors 'none'",
])

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."
RETRY_AFTER_SECONDS = "60"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class EdgeGuardMiddleware(BaseHTTPMiddleware):
    """Outermost guard applied before routing.

    For every request:
    1. Answers CORS preflights (OPTIONS on /api/ paths) directly, uncounted
    2. Counts /api/ requests against the rate limiter; over budget -> 429
    3. Adds X-RateLimit-* and, when an Origin is present, CORS headers to API responses
    4. Adds security headers everywhere, plus a CSP on non-API paths
    """

    def __init__(
        self,
        app,
        rate_limiter: RateLimiter,
        allowed_origins: list[str],
        security_logger: SecurityLogger | None = None,
    ):
        super().__init__(app)
        self._rate_limiter = rate_limiter
        self._allowed_origins = allowed_origins
        self._security_logger = security_logger

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        is_api = path.startswith(API_PREFIX)
        origin = request.headers.get("origin")

        if is_api and request.method == "OPTIONS":
            response = Response(status_code=200, headers=get_cors_headers(origin, self._allowed_origins))
            return self._secure(response, is_api)

        decision = None
        if is_api:
            client_id = client_identifier(request.headers)
            decision = self._rate_limiter.check(client_id, path)

            if not decision.allowed:
                self._record_rejection(request, client_id)
                response = error_json(
                    429,
                    ErrorCodes.RATE_LIMIT_EXCEEDED,
                    RATE_LIMIT_MESSAGE,
                    request,
                    headers={"Retry-After": RETRY_AFTER_SECONDS},
                )
                if origin:
                    response.headers.update(get_cors_headers(origin, self._allowed_origins))
                return self._secure(response, is_api)

        response = await call_next(request)

        if decision is not None:
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
            response.headers["X-RateLimit-Reset"] = str(epoch_ms_to_seconds_ceil(decision.reset_at_ms))

        if is_api and origin:
            response.headers.update(get_cors_headers(origin, self._allowed_origins))

        return self._secure(response, is_api)

    def _secure(self, response: Response, is_api: bool) -> Response:
        response.headers.update(SECURITY_HEADERS)
        if not is_api:
            response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
        return response

    def _record_rejection(self, request: Request, client_id: str) -> None:
        if self._security_logger is None:
            return
        try:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                ip_address=None if client_id == UNKNOWN_CLIENT else client_id,
                user_agent=request.headers.get("user-agent"),
                details={"path": request.url.path},
            )
        except Exception as e:
            # Audit write failures leave the 429 as is
            logger.error(f"Failed to record rate limit event: {e}")

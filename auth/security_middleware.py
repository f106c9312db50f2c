"""Security middleware for FastAPI - session resolution and user context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from auth.service import AuthService
from utils.user_context import set_current_user_id, clear_current_user_id

SESSION_COOKIE = "session_token"


def session_token_from(request: Request) -> str | None:
    """Session token from the 'session_token' cookie, else an Authorization Bearer header."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves the caller's identity and sets user context.

    Authentication is optional at this layer:
    1. Extracts the session token (cookie or Bearer header)
    2. Resolves it to an AuthIdentity via AuthService
    3. Sets request.state.identity (None when absent or invalid) and,
       for a valid session, the user context used for RLS
    4. Clears context after request completes

    Handlers that need a caller answer 401 themselves when identity is None.
    """

    def __init__(self, app, auth_service: AuthService):
        super().__init__(app)
        self._auth_service = auth_service

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        request.state.identity = None
        request.state.session_token = None

        token = session_token_from(request)
        if token:
            identity = self._auth_service.resolve_identity(token)
            if identity is not None:
                request.state.identity = identity
                request.state.session_token = token

        if request.state.identity is None:
            return await call_next(request)

        set_current_user_id(request.state.identity.id)
        try:
            return await call_next(request)
        finally:
            # Always clear context
            clear_current_user_id()


def current_identity(request: Request):
    """The AuthIdentity resolved by AuthMiddleware, or None for guests."""
    return getattr(request.state, "identity", None)

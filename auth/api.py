"""HTTP routes for authentication."""

import ipaddress
import logging

import psycopg2
from fastapi import APIRouter, Request, Response

from auth.service import AuthService
from auth.security_middleware import SESSION_COOKIE, current_identity
from auth.types import AnonymousSignInRequest, AuthenticatedUser, LoginRequest, UpgradeRequest
from auth.exceptions import (
    AccountAlreadyUpgradedError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    PasswordTooShortError,
)
from api.base import success_response, error_json, request_id_of, ErrorCodes
from core.services.customer_service import CustomerService

logger = logging.getLogger(__name__)


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _session_payload(authenticated: AuthenticatedUser) -> dict:
    user = authenticated.user
    return {
        "user": {
            "id": str(user.id),
            "email": user.email,
            "is_anonymous": user.is_anonymous,
            "user_metadata": user.user_metadata,
        },
        "session": {
            "access_token": authenticated.session.token,
            "expires_at": authenticated.session.expires_at.isoformat(),
        },
    }


def create_auth_router(
    auth_service: AuthService,
    customer_service: CustomerService,
    cookie_secure: bool = True,
) -> APIRouter:
    """Create auth router with injected services (mounted at /api/auth)."""
    router = APIRouter(tags=["auth"])

    def set_session_cookie(response: Response, authenticated: AuthenticatedUser) -> None:
        session = authenticated.session
        response.set_cookie(
            key=SESSION_COOKIE,
            value=session.token,
            httponly=True,
            secure=cookie_secure,
            samesite="lax",
            max_age=int((session.expires_at - session.created_at).total_seconds()),
        )

    @router.post("/anonymous")
    async def sign_in_anonymously(
        request: Request,
        response: Response,
        body: AnonymousSignInRequest | None = None,
    ):
        """Start an anonymous (temp account) session for a guest.

        Sets session_token cookie; the token is also returned for Bearer use.
        """
        body = body or AnonymousSignInRequest()
        authenticated = auth_service.sign_in_anonymously(
            name=body.name,
            phone=body.phone,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        set_session_cookie(response, authenticated)
        return success_response(_session_payload(authenticated), "Signed in anonymously", request_id_of(request))

    @router.post("/login")
    async def login(request: Request, response: Response, body: LoginRequest):
        """E-mail/password sign-in for upgraded accounts."""
        try:
            authenticated = auth_service.login(
                email=body.email,
                password=body.password,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except InvalidCredentialsError:
            return error_json(401, ErrorCodes.INVALID_CREDENTIALS, "Invalid email or password", request)

        set_session_cookie(response, authenticated)
        return success_response(_session_payload(authenticated), "Signed in", request_id_of(request))

    @router.post("/logout")
    async def logout(request: Request, response: Response):
        """Logout - revoke session and clear cookie."""
        session_token = getattr(request.state, "session_token", None)

        if session_token:
            auth_service.logout(
                session_token=session_token,
                ip_address=_get_client_ip(request),
            )

        response.delete_cookie(key=SESSION_COOKIE)

        return success_response(message="Logged out successfully", request_id=request_id_of(request))

    @router.post("/upgrade")
    async def upgrade(request: Request, body: UpgradeRequest):
        """Convert the anonymous caller into a permanent account.

        Checks, in order: e-mail and password present (400), password
        length (400), session (401), caller still anonymous (409), e-mail
        free (409).
        """
        if not body.email or not body.password:
            return error_json(400, ErrorCodes.VALIDATION_FAILED, "Email & password required", request)

        try:
            auth_service.check_password(body.password)
        except PasswordTooShortError:
            return error_json(400, ErrorCodes.VALIDATION_FAILED, "Password too short", request)

        identity = current_identity(request)
        if identity is None:
            return error_json(401, ErrorCodes.UNAUTHORIZED, "Not authenticated", request)

        try:
            user = auth_service.upgrade(
                identity,
                email=body.email,
                password=body.password,
                name=body.name,
                phone=body.phone,
            )
        except AccountAlreadyUpgradedError:
            return error_json(409, ErrorCodes.ACCOUNT_EXISTS, "Account already upgraded", request)
        except EmailAlreadyRegisteredError:
            return error_json(409, ErrorCodes.ACCOUNT_EXISTS, "Email already in use", request)

        try:
            customer_service.sync_email_for_user(user.id, user.email)
        except psycopg2.Error as e:
            # The account upgrade itself has already committed
            logger.warning(f"Could not sync customer email for user {user.id}: {e}")

        return success_response(
            {
                "user": {
                    "id": str(user.id),
                    "email": user.email,
                    "is_anonymous": user.is_anonymous,
                    "user_metadata": user.user_metadata,
                }
            },
            "Account upgraded",
            request_id_of(request),
        )

    @router.post("/stamp-role")
    async def stamp_role(request: Request):
        """Add the customer role to the caller's app metadata. Idempotent."""
        identity = current_identity(request)
        if identity is None:
            return error_json(401, ErrorCodes.UNAUTHORIZED, "Auth required", request)

        result = auth_service.stamp_role(identity)
        return success_response(
            {"updated": result.updated, "roles": result.roles, "role": result.role},
            "Role stamped" if result.updated else "Role already present",
            request_id_of(request),
        )

    return router

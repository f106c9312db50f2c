"""Authentication, sessions and the edge-guard rate limiter."""

from auth.exceptions import (
    AuthError,
    InvalidCredentialsError,
    SessionExpiredError,
    PasswordTooShortError,
    AccountAlreadyUpgradedError,
    EmailAlreadyRegisteredError,
)
from auth.types import (
    User,
    AuthIdentity,
    Session,
    AnonymousSignInRequest,
    LoginRequest,
    UpgradeRequest,
    AuthenticatedUser,
)
from auth.config import AuthConfig, RateLimitConfig, RateLimitPolicy
from auth.database import AuthDatabase
from auth.rate_limiter import RateLimiter, RateLimitDecision, create_rate_limiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.service import AuthService, StampRoleResult
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router

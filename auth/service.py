"""Authentication service - sessions, anonymous accounts and their upgrade."""

import logging
from dataclasses import dataclass, field

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.exceptions import (
    AccountAlreadyUpgradedError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    PasswordTooShortError,
    SessionExpiredError,
)
from auth.passwords import hash_password, verify_password
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionManager
from auth.types import AuthenticatedUser, AuthIdentity, User

logger = logging.getLogger(__name__)

OWNER_ROLE = "owner"


@dataclass
class StampRoleResult:
    """Result of a role stamp request."""

    updated: bool
    roles: list[str] = field(default_factory=list)
    role: str | None = None


class AuthService:
    """Orchestrates the session-backed identity flows.

    Handles:
    - Anonymous sign-in for guests (temp accounts)
    - E-mail/password login and logout
    - Upgrading an anonymous account to a permanent one
    - Stamping roles onto app metadata
    - Resolving a session token to an AuthIdentity
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        session_manager: SessionManager,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._auth_db = auth_db
        self._session_manager = session_manager
        self._security_logger = security_logger

    def sign_in_anonymously(
        self,
        name: str | None,
        phone: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthenticatedUser:
        """Create an anonymous user and a session for it."""
        user = self._auth_db.create_anonymous_user({
            "anonymous": True,
            "temp_account": True,
            "name": name,
            "phone": phone,
        })
        session = self._session_manager.create_session(user.id)

        self._security_logger.log(
            SecurityEvent.ANONYMOUS_SIGN_IN,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return AuthenticatedUser(user=user, session=session)

    def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthenticatedUser:
        """Verify e-mail/password and create a session.

        Raises:
            InvalidCredentialsError: unknown e-mail or wrong password.
        """
        email = email.lower().strip()
        stored = self._auth_db.get_password_hash(email)

        if stored is None or not verify_password(password, stored[1]):
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidCredentialsError("Invalid email or password")

        user_id, _ = stored
        session = self._session_manager.create_session(user_id)
        self._auth_db.update_last_login(user_id)
        user = self._auth_db.get_user_by_id(user_id)

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=email,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return AuthenticatedUser(user=user, session=session)

    def logout(self, session_token: str, ip_address: str | None = None) -> None:
        """Revoke session. Safe to call with an unknown token."""
        identity = self.resolve_identity(session_token)
        self._session_manager.revoke_session(session_token)

        self._security_logger.log(
            SecurityEvent.SESSION_REVOKED,
            email=identity.email if identity else None,
            user_id=identity.id if identity else None,
            ip_address=ip_address,
        )

    def resolve_identity(self, session_token: str) -> AuthIdentity | None:
        """Principal behind a session token, or None if the session is not usable."""
        try:
            session = self._session_manager.validate_session(session_token)
        except SessionExpiredError:
            return None

        user = self._auth_db.get_user_by_id(session.user_id)
        if user is None:
            logger.warning(f"Session references missing user {session.user_id}")
            self._session_manager.revoke_session(session_token)
            return None

        return AuthIdentity.from_user(user)

    def check_password(self, password: str) -> None:
        """Raises PasswordTooShortError below the configured minimum."""
        if len(password) < self._config.password_min_length:
            raise PasswordTooShortError(self._config.password_min_length)

    def upgrade(
        self,
        identity: AuthIdentity,
        email: str,
        password: str,
        name: str | None = None,
        phone: str | None = None,
    ) -> User:
        """Turn an anonymous account into a permanent e-mail/password account.

        Raises:
            PasswordTooShortError: password below the configured minimum.
            AccountAlreadyUpgradedError: caller is not anonymous.
            EmailAlreadyRegisteredError: e-mail belongs to another user.
        """
        self.check_password(password)

        if not identity.is_anonymous:
            raise AccountAlreadyUpgradedError("Account already upgraded")

        metadata = {
            **identity.user_metadata,
            "anonymous": False,
            "temp_account": False,
            "name": name or identity.name or "Customer",
            "phone": phone or identity.phone or None,
        }

        try:
            user = self._auth_db.upgrade_user(
                user_id=identity.id,
                email=email,
                password_hash=hash_password(password),
                user_metadata=metadata,
            )
        except EmailAlreadyRegisteredError:
            self._security_logger.log(
                SecurityEvent.UPGRADE_REJECTED,
                email=email,
                user_id=identity.id,
                details={"reason": "email_registered"},
            )
            raise

        self._security_logger.log(
            SecurityEvent.ACCOUNT_UPGRADED,
            email=user.email,
            user_id=user.id,
        )
        return user

    def stamp_role(self, identity: AuthIdentity, role: str | None = None) -> StampRoleResult:
        """
        Add ``role`` to the caller's app metadata roles. Idempotent.

        Existing roles are preserved. The primary ``role`` field is "owner"
        when the caller holds it, otherwise the stamped role.
        """
        role = role or self._config.default_role
        current = identity.roles

        if role in current:
            return StampRoleResult(updated=False, roles=current, role=identity.app_metadata.get("role"))

        roles = list(dict.fromkeys([*current, role]))
        primary = OWNER_ROLE if OWNER_ROLE in roles else role

        self._auth_db.update_app_metadata(
            identity.id,
            {**identity.app_metadata, "role": primary, "roles": roles},
        )
        self._security_logger.log(
            SecurityEvent.ROLE_STAMPED,
            email=identity.email,
            user_id=identity.id,
            details={"roles": roles},
        )
        return StampRoleResult(updated=True, roles=roles, role=primary)

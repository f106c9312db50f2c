"""Pydantic models for auth domain."""

from datetime import datetime
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, field_validator

from core.identity import PLACEHOLDER_EMAIL_DOMAIN, is_placeholder_email


class User(BaseModel):
    """A row in the user store. Anonymous users have no e-mail yet."""

    id: UUID
    email: str | None = None
    is_anonymous: bool = False
    user_metadata: dict = Field(default_factory=dict)
    app_metadata: dict = Field(default_factory=dict)
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuthIdentity(BaseModel):
    """
    The authenticated principal behind a request.

    Built server-side from the session; request bodies never supply it.
    """

    id: UUID
    email: str | None = None
    is_anonymous: bool = False
    temp_account: bool = False
    phone: str | None = None
    name: str | None = None
    user_metadata: dict = Field(default_factory=dict)
    app_metadata: dict = Field(default_factory=dict)

    @property
    def roles(self) -> list[str]:
        return list(self.app_metadata.get("roles") or [])

    @classmethod
    def from_user(cls, user: User) -> "AuthIdentity":
        metadata = user.user_metadata or {}
        return cls(
            id=user.id,
            email=user.email,
            is_anonymous=user.is_anonymous or bool(metadata.get("anonymous")),
            temp_account=bool(metadata.get("temp_account") or metadata.get("tempAccount")),
            phone=metadata.get("phone"),
            name=metadata.get("name"),
            user_metadata=metadata,
            app_metadata=user.app_metadata or {},
        )


class Session(BaseModel):
    """An active user session."""

    token: str = Field(..., description="Session token (opaque string)")
    user_id: UUID
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime


class AnonymousSignInRequest(BaseModel):
    """Optional details captured when a guest starts an anonymous session."""

    name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)


def check_account_email(value: str) -> str:
    """Validate an account e-mail, letting phone-only placeholders through.

    Placeholder addresses sit under a reserved domain that strict e-mail
    validation rejects.
    """
    value = value.strip()
    if is_placeholder_email(value):
        local = value[: -len(PLACEHOLDER_EMAIL_DOMAIN) - 1]
        if local and "@" not in local and not any(c.isspace() for c in local):
            return value.lower()
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(str(e)) from e


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return check_account_email(value)


class UpgradeRequest(BaseModel):
    """Convert the anonymous caller into a permanent e-mail/password account.

    E-mail and password are optional here so the router can answer a
    missing one with its own message; length rules are enforced by
    AuthService so the configured minimum applies.
    """

    email: str | None = Field(None, max_length=320)
    password: str | None = Field(None, max_length=256)
    name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return check_account_email(value)


class AuthenticatedUser(BaseModel):
    """User info returned after successful authentication."""

    user: User
    session: Session

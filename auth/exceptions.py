"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidCredentialsError(AuthError):
    """
    E-mail/password pair did not match.

    Deliberately doesn't say which half was wrong.
    """


class SessionExpiredError(AuthError):
    """Session has expired and user must re-authenticate."""


class PasswordTooShortError(AuthError):
    """Password shorter than the configured minimum."""

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(f"Password must be at least {min_length} characters")


class AccountAlreadyUpgradedError(AuthError):
    """Upgrade requested for a session that is not anonymous."""


class EmailAlreadyRegisteredError(AuthError):
    """Another user already owns this e-mail address."""

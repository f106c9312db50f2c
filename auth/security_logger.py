"""Security event logging for the identity audit trail.

Append-only log to security_events table (no RLS), written through the
elevated client.
"""

from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc


class SecurityEvent(Enum):
    """Security event types."""

    ANONYMOUS_SIGN_IN = "anonymous_sign_in"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"
    ACCOUNT_UPGRADED = "account_upgraded"
    UPGRADE_REJECTED = "upgrade_rejected"
    ROLE_STAMPED = "role_stamped"
    CUSTOMER_CLAIMED = "customer_claimed"
    CLAIM_REJECTED = "claim_rejected"
    RATE_LIMITED = "rate_limited"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database."""
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                ip_address,
                user_agent,
                Json(details) if details else None,
                now_utc(),
            ),
        )

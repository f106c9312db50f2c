"""Database operations for the user store.

Uses non-RLS tables: users. These are accessed through the elevated client
because identity is being established or changed while they are read.
"""

from uuid import UUID

import psycopg2.errors
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from auth.exceptions import EmailAlreadyRegisteredError
from auth.types import User
from utils.timezone import now_utc

_USER_COLUMNS = "id, email, is_anonymous, user_metadata, app_metadata, created_at, last_login_at"


def _to_user(row: dict) -> User:
    return User(
        id=UUID(row["id"]) if isinstance(row["id"], str) else row["id"],
        email=row["email"],
        is_anonymous=row["is_anonymous"],
        user_metadata=row["user_metadata"] or {},
        app_metadata=row["app_metadata"] or {},
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
    )


class AuthDatabase:
    """Database operations for authentication."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (str(user_id),),
        )
        return _to_user(row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email,),
        )
        return _to_user(row) if row else None

    def get_password_hash(self, email: str) -> tuple[UUID, str | None] | None:
        """Return (user_id, password_hash) for an e-mail, or None."""
        row = self._db.execute_single(
            "SELECT id, password_hash FROM users WHERE email = lower(%s)",
            (email,),
        )
        if row is None:
            return None
        user_id = UUID(row["id"]) if isinstance(row["id"], str) else row["id"]
        return user_id, row["password_hash"]

    def create_anonymous_user(self, user_metadata: dict) -> User:
        """Create a user with no credentials, flagged anonymous."""
        rows = self._db.execute_returning(
            f"""INSERT INTO users (is_anonymous, user_metadata, app_metadata, created_at)
               VALUES (true, %s, %s, %s)
               RETURNING {_USER_COLUMNS}""",
            (Json(user_metadata), Json({}), now_utc()),
        )
        return _to_user(rows[0])

    def upgrade_user(
        self,
        user_id: UUID,
        email: str,
        password_hash: str,
        user_metadata: dict,
    ) -> User:
        """
        Attach credentials to an anonymous user.

        Raises:
            EmailAlreadyRegisteredError: e-mail belongs to another user.
        """
        try:
            rows = self._db.execute_returning(
                f"""UPDATE users
                   SET email = lower(%s), password_hash = %s, is_anonymous = false,
                       user_metadata = %s
                   WHERE id = %s
                   RETURNING {_USER_COLUMNS}""",
                (email, password_hash, Json(user_metadata), str(user_id)),
            )
        except psycopg2.errors.UniqueViolation:
            raise EmailAlreadyRegisteredError(f"Email already registered: {email}")
        return _to_user(rows[0])

    def update_app_metadata(self, user_id: UUID, app_metadata: dict) -> User:
        """Replace app_metadata (server-controlled: roles)."""
        rows = self._db.execute_returning(
            f"""UPDATE users SET app_metadata = %s WHERE id = %s
               RETURNING {_USER_COLUMNS}""",
            (Json(app_metadata), str(user_id)),
        )
        return _to_user(rows[0])

    def update_last_login(self, user_id: UUID) -> None:
        """Update last_login_at to current time."""
        self._db.execute_returning(
            "UPDATE users SET last_login_at = %s WHERE id = %s RETURNING id",
            (now_utc(), str(user_id)),
        )

"""
PostgreSQL client with connection pooling and RLS caller isolation.

Uses psycopg2 with ThreadedConnectionPool. Two privilege tiers are deployed as
two instances with different URLs:

- restricted: application role, Row Level Security enforced. The caller's
  user id is read from a contextvar and set as app.current_user_id on each
  checkout, so guests see only public rows.
- elevated: service role with BYPASSRLS. Used by the claim engine, the user
  store and the security log, which must see guest-created rows.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

from utils.user_context import _current_user_id

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False


def _convert_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, list):
        return [_convert_value(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_convert_value(v) for v in value)
    if isinstance(value, dict):
        return {k: _convert_value(v) for k, v in value.items()}
    return value


def convert_params(params: Tuple | Dict | None) -> Tuple | Dict | None:
    """Convert UUID objects (also nested in lists/tuples/dicts) to strings."""
    if params is None:
        return None
    return _convert_value(params)


class PostgresClient:
    """
    PostgreSQL client with automatic RLS context from contextvar.

    Usage:
        db = PostgresClient(database_url)
        rows = db.execute("SELECT * FROM customers WHERE email = %s", (email,))

        with db.transaction() as cur:
            cur.execute("SELECT ... FOR UPDATE", (...))
            cur.execute("UPDATE ...", (...))
        # committed here, rolled back if the block raised
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, label: str = "restricted"):
        self._database_url = database_url
        self._label = label
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info(f"Connection pool created ({self._label})")

    @contextmanager
    def get_connection(self):
        """Get connection with RLS context from contextvar."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")

            user_id = _current_user_id.get()

            with conn.cursor() as cur:
                if user_id is not None:
                    cur.execute("SET app.current_user_id = %s", (str(user_id),))
                else:
                    # Empty string fails the ::uuid cast in policies = no private rows
                    cur.execute("SET app.current_user_id = ''")

            yield conn

        finally:
            if conn:
                pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator["TransactionCursor"]:
        """
        Run several statements as one commit/rollback unit.

        Commits when the block exits normally. Any exception rolls back every
        statement issued through the cursor and is re-raised.
        """
        with self.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    yield TransactionCursor(cur)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        params = convert_params(params)
        with self.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = [dict(row) for row in cur.fetchall()] if cur.description else []
                conn.commit()
                return rows
            except Exception:
                conn.rollback()
                raise

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return results."""
        params = convert_params(params)
        with self.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = [dict(row) for row in cur.fetchall()]
                conn.commit()
                return rows
            except Exception:
                conn.rollback()
                raise

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()


class TransactionCursor:
    """Thin row-dict helpers over a cursor that lives inside one transaction."""

    def __init__(self, cursor):
        self._cursor = cursor

    def fetch_all(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        self._cursor.execute(query, convert_params(params))
        if not self._cursor.description:
            return []
        return [dict(row) for row in self._cursor.fetchall()]

    def fetch_one(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def execute(self, query: str, params: Tuple | Dict | None = None) -> int:
        """Execute a statement and return the affected row count."""
        self._cursor.execute(query, convert_params(params))
        return self._cursor.rowcount

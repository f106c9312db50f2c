"""Request-scoped caller identity, carried through the call stack with contextvars.

The auth middleware sets the caller's user id once per request. The Postgres
client reads it on every connection checkout to populate
``app.current_user_id`` for row level security on the restricted pool.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import UUID

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)


def get_current_user_id() -> UUID:
    """
    Return the caller's user id.

    Raises RuntimeError when no caller is bound. Guest code
    paths must use peek_current_user_id() instead.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No user context set. Caller-scoped code was reached "
            "outside of an authenticated request."
        )
    return user_id


def peek_current_user_id() -> UUID | None:
    """Return the caller's user id, or None for guest requests."""
    return _current_user_id.get()


def set_current_user_id(user_id: UUID) -> None:
    """Bind the caller for the rest of this context (auth middleware)."""
    _current_user_id.set(user_id)


def clear_current_user_id() -> None:
    """Unbind the caller. Always call from a finally block."""
    _current_user_id.set(None)


@contextmanager
def user_context(user_id: UUID):
    """
    Temporarily act as ``user_id``; restores the previous caller on exit.

    Used by tests and by maintenance scripts that touch RLS-protected rows.
    """
    previous = _current_user_id.get()
    set_current_user_id(user_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_user_id()
        else:
            set_current_user_id(previous)

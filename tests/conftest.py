"""Shared test fixtures for the identity service test suite."""

import os
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.security_logger import SecurityLogger
from auth.types import AuthIdentity
from fakes import InMemoryCustomerRepository, InMemoryValkey
from utils.user_context import user_context, clear_current_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test user - the claiming caller in most tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "testuser@test.local"

# Secondary test user - a competing caller
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "testuser-b@test.local"


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID."""
    return TEST_USER_B_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Context manager that sets primary test user context."""
    with user_context(test_user_id):
        yield test_user_id


@pytest.fixture
def identity() -> AuthIdentity:
    """A signed-in, already upgraded caller."""
    return AuthIdentity(id=TEST_USER_ID, email=TEST_USER_EMAIL)


@pytest.fixture
def identity_b() -> AuthIdentity:
    """A second signed-in caller."""
    return AuthIdentity(id=TEST_USER_B_ID, email=TEST_USER_B_EMAIL)


@pytest.fixture
def anonymous_identity() -> AuthIdentity:
    """A guest that started an anonymous session with a phone number."""
    return AuthIdentity(
        id=TEST_USER_ID,
        email=None,
        is_anonymous=True,
        temp_account=True,
        phone="98765 43210",
        name="Asha",
        user_metadata={"anonymous": True, "temp_account": True, "phone": "98765 43210", "name": "Asha"},
    )


# =============================================================================
# IN-MEMORY STORES
# =============================================================================


@pytest.fixture
def store() -> InMemoryCustomerRepository:
    """Transactional in-memory customer/booking store."""
    return InMemoryCustomerRepository()


@pytest.fixture
def fake_valkey() -> InMemoryValkey:
    """In-memory Valkey with a movable clock."""
    return InMemoryValkey()


@pytest.fixture
def security_logger():
    """Security logger that records calls instead of writing rows."""
    return Mock(spec=SecurityLogger)


# =============================================================================
# DATABASE / VALKEY FIXTURES (integration tests only)
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """
    Session-scoped PostgresClient for a disposable database.

    TEST_DATABASE_URL must point at a role that bypasses RLS (the elevated
    tier). Skips when it is not set.
    """
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")

    from clients.postgres_client import PostgresClient

    client = PostgresClient(url, label="test")
    schema = (Path(__file__).parent.parent / "db" / "schema.sql").read_text()
    if not client.execute("SELECT 1 AS ok FROM pg_tables WHERE tablename = 'customers'"):
        client.execute(schema)
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty the identity tables and seed the two test users."""
    db.execute("TRUNCATE bookings, customers, security_events, users CASCADE")
    db.execute(
        """INSERT INTO users (id, email, is_anonymous, created_at)
           VALUES (%s, %s, false, now()), (%s, %s, false, now())""",
        (TEST_USER_ID, TEST_USER_EMAIL, TEST_USER_B_ID, TEST_USER_B_EMAIL),
    )
    yield db


@pytest.fixture(scope="session")
def valkey():
    """Session-scoped ValkeyClient. Skips unless TEST_VALKEY_URL is set."""
    url = os.getenv("TEST_VALKEY_URL")
    if not url:
        pytest.skip("TEST_VALKEY_URL not set")

    from clients.valkey_client import ValkeyClient

    client = ValkeyClient(url)
    yield client
    client.close()

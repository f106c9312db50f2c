"""Tests for AuthDatabase - the user store (PostgreSQL)."""

import pytest

from auth.database import AuthDatabase
from auth.exceptions import EmailAlreadyRegisteredError
from auth.passwords import hash_password


@pytest.fixture
def auth_db(clean_db):
    """AuthDatabase on freshly truncated tables."""
    return AuthDatabase(clean_db)


@pytest.fixture
def anonymous_user(auth_db):
    return auth_db.create_anonymous_user({"anonymous": True, "temp_account": True, "phone": "9876543210"})


class TestLookups:
    """Test user lookup by id and email."""

    def test_get_by_id(self, auth_db, test_user_id):
        user = auth_db.get_user_by_id(test_user_id)
        assert user.id == test_user_id
        assert user.is_anonymous is False

    def test_get_by_email_case_insensitive(self, auth_db, test_user_id):
        user = auth_db.get_user_by_email("TestUser@Test.Local")
        assert user.id == test_user_id

    def test_missing_user(self, auth_db):
        assert auth_db.get_user_by_email("nobody@example.com") is None

    def test_password_hash_absent_for_seeded_user(self, auth_db, test_user_id):
        assert auth_db.get_password_hash("testuser@test.local") == (test_user_id, None)

    def test_password_hash_unknown_email(self, auth_db):
        assert auth_db.get_password_hash("nobody@example.com") is None


class TestAnonymousUsers:
    def test_create(self, anonymous_user):
        assert anonymous_user.is_anonymous is True
        assert anonymous_user.email is None
        assert anonymous_user.user_metadata["phone"] == "9876543210"
        assert anonymous_user.app_metadata == {}


class TestUpgradeUser:
    def test_attaches_credentials(self, auth_db, anonymous_user):
        user = auth_db.upgrade_user(
            user_id=anonymous_user.id,
            email="Asha@Example.com",
            password_hash=hash_password("secret1"),
            user_metadata={"anonymous": False, "temp_account": False, "phone": "9876543210"},
        )

        assert user.email == "asha@example.com"
        assert user.is_anonymous is False
        assert user.user_metadata["anonymous"] is False
        user_id, stored_hash = auth_db.get_password_hash("asha@example.com")
        assert user_id == anonymous_user.id
        assert stored_hash is not None

    def test_taken_email(self, auth_db, anonymous_user):
        with pytest.raises(EmailAlreadyRegisteredError):
            auth_db.upgrade_user(
                user_id=anonymous_user.id,
                email="testuser@test.local",
                password_hash=hash_password("secret1"),
                user_metadata={},
            )

        assert auth_db.get_user_by_id(anonymous_user.id).is_anonymous is True


class TestMetadataUpdates:
    def test_update_app_metadata(self, auth_db, test_user_id):
        user = auth_db.update_app_metadata(test_user_id, {"role": "customer", "roles": ["customer"]})
        assert user.app_metadata == {"role": "customer", "roles": ["customer"]}

    def test_update_last_login(self, auth_db, test_user_id):
        auth_db.update_last_login(test_user_id)
        assert auth_db.get_user_by_id(test_user_id).last_login_at is not None

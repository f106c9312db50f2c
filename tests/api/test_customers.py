"""Tests for customer profile and claim routes."""

from unittest.mock import Mock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.customers import CLAIM_CUSTOMER_MESSAGES, CUSTOMERS_CLAIM_MESSAGES, create_customers_router
from api.errors import register_error_handlers
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from core.services.claim_service import ClaimService
from core.services.customer_lookup import CustomerLookup
from core.services.customer_service import CustomerService

PHONE = "98765 43210"
PHONE_NORMALIZED = "+919876543210"

CLAIM_ROUTES = [
    ("/api/claim-customer", CLAIM_CUSTOMER_MESSAGES),
    ("/api/customers/claim", CUSTOMERS_CLAIM_MESSAGES),
]


@pytest.fixture
def tokens(identity, identity_b, anonymous_identity):
    return {"token-a": identity, "token-b": identity_b, "token-guest": anonymous_identity}


@pytest.fixture
def client(store, security_logger, tokens):
    auth_service = Mock(spec=AuthService)
    auth_service.resolve_identity.side_effect = tokens.get

    customer_service = CustomerService(store, CustomerLookup(store))
    claim_service = ClaimService(store, security_logger)

    app = FastAPI()
    register_error_handlers(app)
    app.include_router(create_customers_router(claim_service, customer_service), prefix="/api")
    app.add_middleware(AuthMiddleware, auth_service=auth_service)
    return TestClient(app)


@pytest.fixture
def guest(store):
    return store.add_customer(name="Asha", phone=PHONE, phone_normalized=PHONE_NORMALIZED)


def _as(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestClaimRoutes:
    """Both claim endpoints share the protocol and differ only in wording."""

    @pytest.mark.parametrize("path,messages", CLAIM_ROUTES)
    def test_success(self, client, store, guest, identity, path, messages):
        store.add_booking(customer_id=guest.id)

        response = client.post(path, json={"customer_id": str(guest.id)}, headers=_as("token-a"))

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == messages.success
        assert body["data"] == {"claimed_customer_id": str(guest.id), "bookings_updated": 1}
        assert store.get_by_id(guest.id).user_id == identity.id

    @pytest.mark.parametrize("path,messages", CLAIM_ROUTES)
    def test_unauthenticated_is_401(self, client, guest, path, messages):
        response = client.post(path, json={"customer_id": str(guest.id)})

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"
        assert response.json()["error"] == messages.unauthorized

    @pytest.mark.parametrize("path,messages", CLAIM_ROUTES)
    def test_unauthenticated_checked_before_empty_body(self, client, path, messages):
        response = client.post(path, json={})

        assert response.status_code == 401

    @pytest.mark.parametrize("path,messages", CLAIM_ROUTES)
    def test_empty_target_is_400(self, client, path, messages):
        response = client.post(path, json={"name": "Asha"}, headers=_as("token-a"))

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    @pytest.mark.parametrize("path,messages", CLAIM_ROUTES)
    def test_not_found_is_404(self, client, path, messages):
        response = client.post(path, json={"customer_id": str(uuid4())}, headers=_as("token-a"))

        assert response.status_code == 404
        assert response.json()["code"] == "CLAIM_NOT_FOUND"
        assert response.json()["error"] == messages.not_found

    @pytest.mark.parametrize("path,messages", CLAIM_ROUTES)
    def test_claimed_by_other_is_409(self, client, guest, path, messages):
        client.post(path, json={"customer_id": str(guest.id)}, headers=_as("token-b"))

        response = client.post(path, json={"customer_id": str(guest.id)}, headers=_as("token-a"))

        assert response.status_code == 409
        assert response.json()["code"] == "ACCOUNT_EXISTS"
        assert response.json()["error"] == messages.account_exists

    @pytest.mark.parametrize("path,messages", CLAIM_ROUTES)
    def test_conflict_is_409(self, client, store, identity_b, path, messages):
        store.add_customer(phone=PHONE, phone_normalized=PHONE_NORMALIZED, user_id=identity_b.id)
        duplicate = store.add_customer(phone=PHONE, phone_normalized=PHONE_NORMALIZED)

        response = client.post(path, json={"customer_id": str(duplicate.id)}, headers=_as("token-a"))

        assert response.status_code == 409
        assert response.json()["code"] == "CLAIM_CONFLICT"
        assert response.json()["error"] == messages.conflict

    def test_malformed_customer_id_is_400(self, client):
        response = client.post("/api/claim-customer", json={"customer_id": "not-a-uuid"}, headers=_as("token-a"))

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    def test_claim_by_phone(self, client, guest):
        response = client.post("/api/customers/claim", json={"phone": "+91 98765-43210"}, headers=_as("token-a"))

        assert response.status_code == 200
        assert response.json()["data"]["claimed_customer_id"] == str(guest.id)

    def test_owner_in_body_is_ignored(self, client, store, guest, identity, identity_b):
        response = client.post(
            "/api/claim-customer",
            json={"customer_id": str(guest.id), "user_id": str(identity_b.id)},
            headers=_as("token-a"),
        )

        assert response.status_code == 200
        assert store.get_by_id(guest.id).user_id == identity.id


class TestGetMyProfile:
    """GET /api/customers/me"""

    def test_requires_session(self, client):
        response = client.get("/api/customers/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Not authenticated"

    def test_linked_record(self, client, store, identity):
        mine = store.add_customer(name="Asha", user_id=identity.id)

        data = client.get("/api/customers/me", headers=_as("token-a")).json()["data"]

        assert data["customer"]["id"] == str(mine.id)
        assert data["linked"] is True
        assert data["flags"]["can_claim_profile"] is False

    def test_guest_fallback_by_phone(self, client, guest, anonymous_identity):
        data = client.get("/api/customers/me", headers=_as("token-guest")).json()["data"]

        assert data["auth_user_id"] == str(anonymous_identity.id)
        assert data["customer"]["id"] == str(guest.id)
        assert data["linked"] is False
        assert data["flags"] == {"temp_account": True, "can_claim_profile": True}

    def test_nothing_found(self, client):
        data = client.get("/api/customers/me", headers=_as("token-a")).json()["data"]

        assert data["customer"] is None
        assert data["flags"]["can_claim_profile"] is True


class TestEnsureMyCustomer:
    """POST /api/customers"""

    def test_requires_session(self, client):
        assert client.post("/api/customers").status_code == 401

    def test_creates_then_returns_existing(self, client, identity):
        first = client.post("/api/customers", json={"name": "Asha", "phone": PHONE}, headers=_as("token-a"))
        second = client.post("/api/customers", headers=_as("token-a"))

        assert first.json()["message"] == "Customer created"
        assert first.json()["data"]["created"] is True
        assert first.json()["data"]["customer"]["user_id"] == str(identity.id)
        assert first.json()["data"]["customer"]["phone_normalized"] == PHONE_NORMALIZED
        assert second.json()["message"] == "Customer exists"
        assert second.json()["data"]["customer"]["id"] == first.json()["data"]["customer"]["id"]

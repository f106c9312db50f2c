"""Tests for core domain models."""

from datetime import time, timedelta
from uuid import uuid4

import pytest
from pydantic import ValidationError

from core.models import (
    BookingCreate,
    ClaimFailure,
    ClaimOutcome,
    ClaimRequest,
    ClaimResult,
    Customer,
    CustomerCreate,
)
from utils.timezone import now_utc


class TestCustomerCreate:
    """Contact requirements for new records."""

    def test_phone_only_is_valid(self):
        assert CustomerCreate(phone="9876543210").phone == "9876543210"

    def test_email_only_is_valid(self):
        assert CustomerCreate(email="asha@example.com").email == "asha@example.com"

    def test_requires_email_or_phone(self):
        with pytest.raises(ValidationError, match="email or phone"):
            CustomerCreate(name="Asha")


class TestCustomer:
    def test_is_claimed_follows_user_id(self):
        guest = Customer(id=uuid4(), created_at=now_utc())
        owned = guest.model_copy(update={"user_id": uuid4()})

        assert guest.is_claimed is False
        assert owned.is_claimed is True

    def test_builds_from_row_dict(self):
        """Rows come back from RealDictCursor with string ids."""
        customer_id = uuid4()
        customer = Customer.model_validate({
            "id": str(customer_id),
            "user_id": None,
            "name": "Asha",
            "email": None,
            "phone_normalized": "+919876543210",
            "phone": "98765 43210",
            "created_at": now_utc(),
        })
        assert customer.id == customer_id


class TestClaimRequest:
    def test_has_target(self):
        assert ClaimRequest(customer_id=uuid4()).has_target
        assert ClaimRequest(phone="9876543210").has_target
        assert ClaimRequest(email="asha@example.com").has_target
        assert not ClaimRequest(name="Asha").has_target

    def test_rejects_malformed_customer_id(self):
        with pytest.raises(ValidationError):
            ClaimRequest(customer_id="not-a-uuid")


class TestClaimOutcome:
    def test_success_carries_result(self):
        customer_id = uuid4()
        outcome = ClaimOutcome.succeeded(customer_id, 2)

        assert outcome.ok
        assert outcome.failure is None
        assert outcome.result == ClaimResult(claimed_customer_id=customer_id, bookings_updated=2)

    def test_rejection_carries_failure(self):
        outcome = ClaimOutcome.rejected(ClaimFailure.CLAIM_CONFLICT)

        assert not outcome.ok
        assert outcome.result is None
        assert outcome.failure.value == "CLAIM_CONFLICT"

    def test_bookings_updated_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            ClaimResult(claimed_customer_id=uuid4(), bookings_updated=-1)


class TestBookingCreate:
    """Public booking form validation."""

    def _form(self, **overrides):
        fields = {
            "shop_id": 1,
            "service_id": 2,
            "customer_name": "  Asha  ",
            "customer_phone": "+91 (98765) 43210",
            "booking_date": now_utc().date() + timedelta(days=1),
            "booking_time": time(9, 0),
        }
        fields.update(overrides)
        return BookingCreate(**fields)

    def test_valid_form_is_trimmed(self):
        form = self._form()
        assert form.customer_name == "Asha"
        assert form.customer_phone == "+91 (98765) 43210"
        assert form.customer_email is None

    def test_blank_email_is_absent(self):
        assert self._form(customer_email=" ").customer_email is None

    def test_email_domain_normalized(self):
        assert self._form(customer_email="asha@Example.COM").customer_email == "asha@example.com"

    @pytest.mark.parametrize("phone", ["98765", "9876543210123456", "98765-43210 ext"])
    def test_rejects_bad_phone(self, phone):
        with pytest.raises(ValidationError, match="phone"):
            self._form(customer_phone=phone)

    def test_rejects_past_date(self):
        with pytest.raises(ValidationError, match="past"):
            self._form(booking_date=now_utc().date() - timedelta(days=1))

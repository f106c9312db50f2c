"""
Customer service for the caller-facing profile operations.

Covers both ways a customer record comes to exist: guest booking flows
create unclaimed records, and first-time authenticated users get one created
on demand. Claiming lives in ClaimService.
"""

import logging
from uuid import UUID

from auth.types import AuthIdentity
from core.identity import (
    DEFAULT_COUNTRY_CODE,
    is_placeholder_email,
    normalize_email,
    normalize_phone,
)
from core.models import Customer, CustomerCreate, CustomerProfile, ProfileFlags
from core.repositories import CustomerRepository
from core.services.customer_lookup import CustomerLookup

logger = logging.getLogger(__name__)


class CustomerService:
    """Service for customer profile operations."""

    def __init__(
        self,
        repository: CustomerRepository,
        lookup: CustomerLookup,
        country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.repository = repository
        self.lookup = lookup
        self.country_code = country_code

    def resolve_profile(self, identity: AuthIdentity) -> CustomerProfile:
        """
        Resolve the caller's customer record.

        The record linked by user_id wins. Without one, fall back to a
        contact lookup using the phone from the identity metadata and the
        auth e-mail (synthetic phone-only addresses are ignored).

        can_claim_profile is true when nothing is linked and either the
        fallback found an unclaimed record or the caller has contact details
        a guest record could match later.
        """
        linked = self.lookup.find_by_user_id(identity.id)
        if linked is not None:
            return self._profile(identity, linked, linked=True, can_claim=False)

        email = None if is_placeholder_email(identity.email) else identity.email
        fallback = self.lookup.find_existing(email=email, phone=identity.phone)

        if fallback is None:
            can_claim = bool(identity.phone or email)
        else:
            can_claim = not fallback.is_claimed

        return self._profile(identity, fallback, linked=False, can_claim=can_claim)

    def _profile(
        self,
        identity: AuthIdentity,
        customer: Customer | None,
        linked: bool,
        can_claim: bool,
    ) -> CustomerProfile:
        return CustomerProfile(
            auth_user_id=identity.id,
            auth_email=identity.email,
            auth_metadata=identity.user_metadata,
            customer=customer,
            linked=linked,
            flags=ProfileFlags(temp_account=identity.temp_account, can_claim_profile=can_claim),
        )

    def ensure_customer(
        self,
        identity: AuthIdentity,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> tuple[Customer, bool]:
        """
        Get the caller's linked record, creating one if needed.

        Missing fields default from the identity; the name falls back to the
        e-mail local part and then to "Customer".

        Returns:
            Tuple of (customer, was_created)
        """
        existing = self.repository.get_by_user_id(identity.id)
        if existing is not None:
            return existing, False

        email = normalize_email(email or identity.email)
        if is_placeholder_email(email):
            email = None
        phone = phone or identity.phone
        if not name:
            name = identity.name or (email.split("@")[0] if email else None) or "Customer"

        customer = self.repository.create(
            name=name,
            email=email,
            phone=phone,
            phone_normalized=normalize_phone(phone, self.country_code),
            user_id=identity.id,
        )
        logger.info(f"Created customer {customer.id} for user {identity.id}")
        return customer, True

    def create_guest(self, data: CustomerCreate) -> Customer:
        """Create an unclaimed record for a guest booking."""
        customer = self.repository.create(
            name=data.name,
            email=normalize_email(data.email),
            phone=data.phone,
            phone_normalized=normalize_phone(data.phone, self.country_code),
            user_id=None,
        )
        logger.info(f"Created guest customer {customer.id}")
        return customer

    def sync_email_for_user(self, user_id: UUID, email: str | None) -> int:
        """
        Mirror a new account e-mail onto the caller's customer record.

        Synthetic phone-only addresses clear the e-mail instead.
        """
        real_email = None if is_placeholder_email(email) else normalize_email(email)
        return self.repository.update_email_for_user(user_id, real_email)

"""
Customer lookup by contact fingerprint.

Backs public guest flows, so it never raises for store problems: an RLS
rejection or a transient database error reads as "not found".
"""

import logging
from uuid import UUID

import psycopg2

from core.identity import (
    DEFAULT_COUNTRY_CODE,
    legacy_phone_candidates,
    normalize_email,
    normalize_phone,
)
from core.models import Customer
from core.repositories import CustomerRepository

logger = logging.getLogger(__name__)


class CustomerLookup:
    """Resolve an existing customer record from contact fields."""

    def __init__(self, repository: CustomerRepository, country_code: str = DEFAULT_COUNTRY_CODE):
        self.repository = repository
        self.country_code = country_code

    def find_existing(self, email: str | None = None, phone: str | None = None) -> Customer | None:
        """
        First match wins, in priority order:

        1. exact e-mail (e-mail is treated as the unique key)
        2. normalized phone
        3. legacy raw phone, for records created before normalization

        Multiple candidates are not compared or merged.
        """
        email = normalize_email(email)
        normalized_phone = normalize_phone(phone, self.country_code)

        try:
            if email:
                customer = self.repository.find_by_email(email)
                if customer:
                    return customer

            if normalized_phone:
                customer = self.repository.find_by_phone_normalized(normalized_phone)
                if customer:
                    return customer

                return self.repository.find_by_legacy_phone(
                    legacy_phone_candidates(phone, self.country_code)
                )
        except psycopg2.Error as e:
            logger.warning(f"Customer lookup failed, treating as not found: {e}")

        return None

    def find_by_user_id(self, user_id: UUID) -> Customer | None:
        """The record linked to an auth identity, or None (also on store errors)."""
        try:
            return self.repository.get_by_user_id(user_id)
        except psycopg2.Error as e:
            logger.warning(f"Linked customer lookup failed for user {user_id}: {e}")
            return None

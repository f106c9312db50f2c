"""
Claim protocol: link an authenticated identity to a guest-created customer.

The whole decision runs inside one repository transaction. Lookups take row
locks, so two callers racing for the same unclaimed record serialize: the
first commits its ownership change and the second then sees the record as
owned by someone else (ACCOUNT_EXISTS). If anything fails after the ownership
change (for example the booking backfill), the transaction rolls back and the
record stays unclaimed.

Refusals are returned as ClaimOutcome values. Exceptions only escape for
infrastructure failures.
"""

import logging

from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import AuthIdentity
from core.identity import (
    DEFAULT_COUNTRY_CODE,
    legacy_phone_candidates,
    normalize_email,
    normalize_phone,
)
from core.models import ClaimFailure, ClaimOutcome, ClaimRequest, Customer
from core.repositories import ClaimTransaction, CustomerRepository

logger = logging.getLogger(__name__)


class ClaimService:
    """Service for claiming guest customer records."""

    def __init__(
        self,
        repository: CustomerRepository,
        security_logger: SecurityLogger,
        country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.repository = repository
        self.security_logger = security_logger
        self.country_code = country_code

    def claim(self, request: ClaimRequest, identity: AuthIdentity | None) -> ClaimOutcome:
        """
        Claim the record identified by ``request`` for ``identity``.

        Checks, first failure wins:
            UNAUTHORIZED     no authenticated caller
            CLAIM_NOT_FOUND  nothing to look up, or no record resolves
            CLAIM_CONFLICT   phone and e-mail resolve to different records
            ACCOUNT_EXISTS   the record is owned by a different identity
            CLAIM_CONFLICT   another claimed record shares the phone or e-mail

        A record already owned by the caller is an idempotent success with
        bookings_updated == 0.

        Raises:
            Whatever the store raises; the transaction is rolled back first.
        """
        if identity is None:
            return ClaimOutcome.rejected(ClaimFailure.UNAUTHORIZED)

        phone = normalize_phone(request.phone, self.country_code)
        email = normalize_email(request.email)

        if request.customer_id is None and phone is None and email is None:
            outcome = ClaimOutcome.rejected(ClaimFailure.CLAIM_NOT_FOUND)
        else:
            with self.repository.claim_transaction() as tx:
                outcome = self._claim_locked(tx, request, identity, phone, email)

        self._record(outcome, request, identity)
        return outcome

    def _claim_locked(
        self,
        tx: ClaimTransaction,
        request: ClaimRequest,
        identity: AuthIdentity,
        phone: str | None,
        email: str | None,
    ) -> ClaimOutcome:
        if request.customer_id is not None:
            target = tx.lock_by_id(request.customer_id)
        else:
            by_phone = None
            if phone:
                by_phone = tx.lock_by_phone(
                    phone,
                    legacy_phone_candidates(request.phone, self.country_code),
                    identity.id,
                )
            by_email = tx.lock_by_email(email, identity.id) if email else None

            # Two different people (or one person twice) - refuse to guess
            if by_phone and by_email and by_phone.id != by_email.id:
                logger.info(
                    f"Claim by {identity.id}: phone matches {by_phone.id}, "
                    f"email matches {by_email.id}"
                )
                return ClaimOutcome.rejected(ClaimFailure.CLAIM_CONFLICT)
            target = by_phone or by_email

        if target is None:
            return ClaimOutcome.rejected(ClaimFailure.CLAIM_NOT_FOUND)

        if target.user_id is not None:
            if target.user_id == identity.id:
                return ClaimOutcome.succeeded(target.id, 0)
            return ClaimOutcome.rejected(ClaimFailure.ACCOUNT_EXISTS)

        target_email = normalize_email(target.email)
        fingerprint_phone = phone or target.phone_normalized
        fingerprint_email = email or target_email
        tx.lock_fingerprint(fingerprint_phone, fingerprint_email)
        conflict = tx.find_claimed_conflict(
            exclude_id=target.id,
            phone=fingerprint_phone,
            email=fingerprint_email,
        )
        if conflict is not None:
            logger.info(f"Claim of {target.id} by {identity.id} collides with claimed {conflict.id}")
            return ClaimOutcome.rejected(ClaimFailure.CLAIM_CONFLICT)

        claimed = tx.assign_owner(
            customer_id=target.id,
            user_id=identity.id,
            name=request.name or None,
            email=email if email and email != target_email else None,
        )
        bookings_updated = tx.reassign_bookings(target, identity.id, self._fingerprint_phones(target))

        return ClaimOutcome.succeeded(claimed.id, bookings_updated)

    def _fingerprint_phones(self, customer: Customer) -> list[str]:
        """Phone strings legacy bookings may carry for ``customer``."""
        phones = []
        if customer.phone_normalized:
            phones.append(customer.phone_normalized)
        for candidate in legacy_phone_candidates(customer.phone, self.country_code):
            if candidate not in phones:
                phones.append(candidate)
        return phones

    def _record(self, outcome: ClaimOutcome, request: ClaimRequest, identity: AuthIdentity | None) -> None:
        if outcome.ok:
            logger.info(
                f"Customer {outcome.result.claimed_customer_id} claimed by {identity.id} "
                f"({outcome.result.bookings_updated} bookings updated)"
            )
            self.security_logger.log(
                SecurityEvent.CUSTOMER_CLAIMED,
                email=identity.email,
                user_id=identity.id,
                details={
                    "customer_id": str(outcome.result.claimed_customer_id),
                    "bookings_updated": outcome.result.bookings_updated,
                },
            )
            return

        logger.info(f"Claim rejected: {outcome.failure.value}")
        self.security_logger.log(
            SecurityEvent.CLAIM_REJECTED,
            email=identity.email if identity else None,
            user_id=identity.id if identity else None,
            details={
                "reason": outcome.failure.value,
                "customer_id": str(request.customer_id) if request.customer_id else None,
            },
        )

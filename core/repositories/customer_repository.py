"""
Customer record storage.

Plain reads go through whichever PostgresClient the repository was built
with (restricted for public lookups, elevated for the claim engine). The
claim engine's reads and writes go through ClaimTransaction, which holds one
transaction and row locks for its whole lifetime.
"""

import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, TransactionCursor
from core.models import Customer
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_COLUMNS = "id, user_id, name, email, phone_normalized, phone, created_at"

# Caller-owned first, then unclaimed, then oldest
_CLAIM_PREFERENCE = """
    ORDER BY CASE WHEN user_id = %s THEN 0 WHEN user_id IS NULL THEN 1 ELSE 2 END,
             created_at ASC
"""


class CustomerRepository:
    """Queries over the customers table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get_by_user_id(self, user_id: UUID) -> Customer | None:
        row = self.postgres.execute_single(
            f"SELECT {_COLUMNS} FROM customers WHERE user_id = %s ORDER BY created_at ASC LIMIT 1",
            (user_id,)
        )
        return Customer.model_validate(row) if row else None

    def find_by_email(self, email: str) -> Customer | None:
        """Exact match on the normalized (lowercase) e-mail."""
        row = self.postgres.execute_single(
            f"SELECT {_COLUMNS} FROM customers WHERE lower(email) = %s ORDER BY created_at ASC LIMIT 1",
            (email,)
        )
        return Customer.model_validate(row) if row else None

    def find_by_phone_normalized(self, phone: str) -> Customer | None:
        row = self.postgres.execute_single(
            f"SELECT {_COLUMNS} FROM customers WHERE phone_normalized = %s ORDER BY created_at ASC LIMIT 1",
            (phone,)
        )
        return Customer.model_validate(row) if row else None

    def find_by_legacy_phone(self, candidates: list[str]) -> Customer | None:
        """Match records created before phone normalization existed."""
        if not candidates:
            return None
        row = self.postgres.execute_single(
            f"""
            SELECT {_COLUMNS} FROM customers
            WHERE phone_normalized IS NULL AND phone = ANY(%s)
            ORDER BY created_at ASC
            LIMIT 1
            """,
            (list(candidates),)
        )
        return Customer.model_validate(row) if row else None

    def create(
        self,
        name: str | None,
        email: str | None,
        phone: str | None,
        phone_normalized: str | None,
        user_id: UUID | None = None,
    ) -> Customer:
        row = self.postgres.execute_returning(
            f"""
            INSERT INTO customers (id, user_id, name, email, phone, phone_normalized, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {_COLUMNS}
            """,
            (uuid4(), user_id, name, email, phone, phone_normalized, now_utc())
        )[0]
        return Customer.model_validate(row)

    def update_email_for_user(self, user_id: UUID, email: str | None) -> int:
        """Set the e-mail on every record owned by ``user_id``. Returns rows touched."""
        rows = self.postgres.execute_returning(
            "UPDATE customers SET email = %s WHERE user_id = %s RETURNING id",
            (email, user_id)
        )
        return len(rows)

    @contextmanager
    def claim_transaction(self) -> Iterator["ClaimTransaction"]:
        """One atomic unit for the claim protocol. Rolls back on any exception."""
        with self.postgres.transaction() as cur:
            yield ClaimTransaction(cur)


class ClaimTransaction:
    """Locking reads and writes used by the claim protocol.

    Every lookup takes FOR UPDATE row locks, so a concurrent claim on the
    same record blocks until this transaction ends and then sees its result.
    """

    def __init__(self, cur: TransactionCursor):
        self._cur = cur

    def _one(self, query: str, params: tuple) -> Customer | None:
        row = self._cur.fetch_one(query, params)
        return Customer.model_validate(row) if row else None

    def lock_by_id(self, customer_id: UUID) -> Customer | None:
        return self._one(
            f"SELECT {_COLUMNS} FROM customers WHERE id = %s FOR UPDATE",
            (customer_id,)
        )

    def lock_by_phone(self, phone: str, legacy_candidates: list[str], caller_id: UUID) -> Customer | None:
        return self._one(
            f"""
            SELECT {_COLUMNS} FROM customers
            WHERE phone_normalized = %s
               OR (phone_normalized IS NULL AND phone = ANY(%s))
            {_CLAIM_PREFERENCE}
            LIMIT 1
            FOR UPDATE
            """,
            (phone, list(legacy_candidates), caller_id)
        )

    def lock_by_email(self, email: str, caller_id: UUID) -> Customer | None:
        return self._one(
            f"""
            SELECT {_COLUMNS} FROM customers
            WHERE lower(email) = %s
            {_CLAIM_PREFERENCE}
            LIMIT 1
            FOR UPDATE
            """,
            (email, caller_id)
        )

    def lock_fingerprint(self, phone: str | None, email: str | None) -> None:
        """
        Serialize claims that share a normalized phone or e-mail.

        Row locks cover only the target record. Claims on two different
        records with the same contact queue on these advisory locks, so the
        later conflict check sees the earlier claim once it commits. Held
        until the transaction ends; taken in sorted order.
        """
        keys = []
        if phone:
            keys.append(f"phone:{phone}")
        if email:
            keys.append(f"email:{email}")
        for key in sorted(keys):
            self._cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (key,))

    def find_claimed_conflict(
        self,
        exclude_id: UUID,
        phone: str | None,
        email: str | None,
    ) -> Customer | None:
        """Another already-claimed record sharing the phone or e-mail."""
        conditions = []
        params: list = [exclude_id]
        if phone:
            conditions.append("phone_normalized = %s")
            params.append(phone)
        if email:
            conditions.append("lower(email) = %s")
            params.append(email)
        if not conditions:
            return None

        return self._one(
            f"""
            SELECT {_COLUMNS} FROM customers
            WHERE id <> %s
              AND user_id IS NOT NULL
              AND ({' OR '.join(conditions)})
            LIMIT 1
            """,
            tuple(params)
        )

    def assign_owner(
        self,
        customer_id: UUID,
        user_id: UUID,
        name: str | None,
        email: str | None,
    ) -> Customer:
        """Set the owner; name only fills a blank, e-mail replaces when given."""
        customer = self._one(
            f"""
            UPDATE customers
            SET user_id = %s,
                name = COALESCE(NULLIF(name, ''), %s),
                email = COALESCE(%s, email)
            WHERE id = %s AND user_id IS NULL
            RETURNING {_COLUMNS}
            """,
            (user_id, name, email, customer_id)
        )
        if customer is None:
            raise RuntimeError(f"Customer {customer_id} changed owner inside its claim transaction")
        return customer

    def reassign_bookings(self, customer: Customer, user_id: UUID, phones: list[str]) -> int:
        """
        Point the customer's bookings at the claimed record and its owner.

        Covers bookings linked by customer_id and unlinked legacy bookings
        whose stored phone or e-mail matches the pre-claim fingerprint.
        """
        count = self._cur.execute(
            """
            UPDATE bookings
            SET customer_id = %s, user_id = %s
            WHERE customer_id = %s
               OR (customer_id IS NULL
                   AND (customer_phone = ANY(%s) OR lower(customer_email) = %s))
            """,
            (customer.id, user_id, customer.id, list(phones), customer.email.lower() if customer.email else None)
        )
        logger.debug(f"Reassigned {count} bookings to customer {customer.id}")
        return count

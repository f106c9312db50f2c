"""
Booking storage.

Bookings keep the contact details exactly as the guest typed them; the
claim protocol matches on those later, so they are never rewritten here.
"""

import logging
from datetime import date, time
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.models import Booking
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_COLUMNS = """id, customer_id, user_id, shop_id, service_id, customer_name, customer_phone,
    customer_email, booking_date, booking_time, customer_notes, status, created_at"""


class BookingRepository:
    """Queries over the bookings table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def create(
        self,
        customer_id: UUID | None,
        user_id: UUID | None,
        shop_id: int,
        service_id: int,
        customer_name: str,
        customer_phone: str,
        customer_email: str | None,
        booking_date: date,
        booking_time: time,
        customer_notes: str | None = None,
    ) -> Booking:
        row = self.postgres.execute_returning(
            f"""
            INSERT INTO bookings (id, customer_id, user_id, shop_id, service_id, customer_name,
                                  customer_phone, customer_email, booking_date, booking_time,
                                  customer_notes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_COLUMNS}
            """,
            (
                uuid4(), customer_id, user_id, shop_id, service_id, customer_name,
                customer_phone, customer_email, booking_date, booking_time,
                customer_notes, now_utc(),
            )
        )[0]
        return Booking.model_validate(row)

    def list_for_user(self, user_id: UUID) -> list[Booking]:
        """Bookings made by ``user_id`` or hanging off a customer record they own. Newest first."""
        rows = self.postgres.execute(
            f"""
            SELECT {_COLUMNS} FROM bookings
            WHERE user_id = %s
               OR customer_id IN (SELECT id FROM customers WHERE user_id = %s)
            ORDER BY booking_date DESC NULLS LAST, booking_time DESC NULLS LAST, created_at DESC
            """,
            (user_id, user_id)
        )
        return [Booking.model_validate(row) for row in rows]

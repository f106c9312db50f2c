"""
Booking intake and the caller's booking history.

Every booking hangs off a customer record. Signed-in (upgraded) callers
book against their own record, created on first use. Guests and anonymous
sessions book against the record their contact details already match, or a
new unclaimed one; the claim protocol links those to an account later.
"""

import logging

from auth.types import AuthIdentity
from core.models import Booking, BookingCreate, Customer, CustomerCreate
from core.repositories import BookingRepository
from core.services.customer_service import CustomerService
from utils.user_context import get_current_user_id

logger = logging.getLogger(__name__)


class BookingService:
    """Service for creating and listing bookings."""

    def __init__(self, bookings: BookingRepository, customer_service: CustomerService):
        self.bookings = bookings
        self.customer_service = customer_service

    def create_booking(self, data: BookingCreate, identity: AuthIdentity | None = None) -> Booking:
        if identity is not None and not identity.is_anonymous:
            customer, _ = self.customer_service.ensure_customer(
                identity,
                name=data.customer_name,
                email=data.customer_email,
                phone=data.customer_phone,
            )
            user_id = identity.id
        else:
            customer = self._guest_customer(data)
            user_id = None

        booking = self.bookings.create(
            customer_id=customer.id,
            user_id=user_id,
            shop_id=data.shop_id,
            service_id=data.service_id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            customer_email=data.customer_email,
            booking_date=data.booking_date,
            booking_time=data.booking_time,
            customer_notes=data.customer_notes,
        )
        logger.info(f"Booking {booking.id} created for customer {customer.id}")
        return booking

    def _guest_customer(self, data: BookingCreate) -> Customer:
        existing = self.customer_service.lookup.find_existing(
            email=data.customer_email,
            phone=data.customer_phone,
        )
        if existing is not None:
            return existing
        return self.customer_service.create_guest(
            CustomerCreate(
                name=data.customer_name,
                email=data.customer_email,
                phone=data.customer_phone,
            )
        )

    def list_for_caller(self) -> list[Booking]:
        """Bookings of the authenticated caller. Raises RuntimeError outside a signed-in request."""
        return self.bookings.list_for_user(get_current_user_id())

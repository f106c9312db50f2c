"""Persistence for customer records and their bookings."""

from core.repositories.customer_repository import CustomerRepository, ClaimTransaction
from core.repositories.booking_repository import BookingRepository

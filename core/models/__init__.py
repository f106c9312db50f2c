"""Core domain models."""

from core.models.customer import Customer, CustomerCreate, CustomerProfile, ProfileFlags
from core.models.claim import ClaimRequest, ClaimResult, ClaimFailure, ClaimOutcome
from core.models.booking import Booking, BookingCreate

__all__ = [
    # Customer
    "Customer", "CustomerCreate", "CustomerProfile", "ProfileFlags",
    # Claim
    "ClaimRequest", "ClaimResult", "ClaimFailure", "ClaimOutcome",
    # Booking
    "Booking", "BookingCreate",
]

"""Booking domain models.

Only the fields the identity flows read are modelled here: who booked, with
which contact details, and which customer record the booking hangs off.
Slot availability lives with the shop catalogue.
"""

import re
from datetime import date, datetime, time
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, field_validator

from utils.timezone import now_utc

_PHONE_CHARS = re.compile(r"^\+?[\d\s\-()]+$")


class BookingCreate(BaseModel):
    """Public booking form. Guests and signed-in callers send the same body."""

    shop_id: int = Field(..., gt=0)
    service_id: int = Field(..., gt=0)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: str = Field(..., max_length=50)
    customer_email: str | None = Field(None, max_length=255)
    booking_date: date
    booking_time: time
    customer_notes: str | None = Field(None, max_length=500)

    @field_validator("customer_name")
    @classmethod
    def _name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Customer name is required")
        return value

    @field_validator("customer_phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        value = value.strip()
        digits = sum(c.isdigit() for c in value)
        if not _PHONE_CHARS.match(value) or not 10 <= digits <= 15:
            raise ValueError("Invalid phone number format")
        return value

    @field_validator("customer_email")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            return validate_email(value.strip(), check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise ValueError(str(e)) from e

    @field_validator("booking_date")
    @classmethod
    def _not_in_past(cls, value: date) -> date:
        if value < now_utc().date():
            raise ValueError("Booking date cannot be in the past")
        return value


class Booking(BaseModel):
    """A booking row as stored."""

    id: UUID
    customer_id: UUID | None = None
    user_id: UUID | None = None
    shop_id: int | None = None
    service_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    booking_date: date | None = None
    booking_time: time | None = None
    customer_notes: str | None = None
    status: str = "pending"
    created_at: datetime

    model_config = {"from_attributes": True}

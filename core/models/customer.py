"""Customer (account record) domain models.

A customer represents a person independently of authentication. Guest
booking flows create records with no ``user_id``; claiming links exactly one
such record to an authenticated identity.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class CustomerCreate(BaseModel):
    """Contact details for a new customer record."""

    name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=50)

    @model_validator(mode="after")
    def require_contact(self) -> "CustomerCreate":
        """Ensure at least one contact field is provided."""
        if not (self.email or self.phone):
            raise ValueError("At least one of email or phone is required")
        return self


class Customer(BaseModel):
    """Full customer entity as stored."""

    id: UUID
    user_id: UUID | None = None
    name: str | None = None
    email: str | None = None
    phone_normalized: str | None = None
    phone: str | None = None  # raw value as entered; legacy rows only have this
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_claimed(self) -> bool:
        return self.user_id is not None


class ProfileFlags(BaseModel):
    temp_account: bool = False
    can_claim_profile: bool = False


class CustomerProfile(BaseModel):
    """The caller's auth identity alongside the customer record it maps to."""

    auth_user_id: UUID
    auth_email: str | None = None
    auth_metadata: dict = Field(default_factory=dict)
    customer: Customer | None = None
    linked: bool = False
    flags: ProfileFlags

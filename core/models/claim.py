"""Claim protocol request/result types.

Failures are a closed set of tagged values rather than exceptions so the
HTTP layer maps them to status codes without inspecting messages.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class ClaimRequest(BaseModel):
    """Claim target, by record id or by contact fingerprint.

    The caller's identity is never part of the body; it is resolved from the
    session.
    """

    customer_id: UUID | None = None
    phone: str | None = Field(None, max_length=50)
    email: str | None = Field(None, max_length=320)
    name: str | None = Field(None, max_length=255)

    @property
    def has_target(self) -> bool:
        return bool(self.customer_id or self.phone or self.email)


class ClaimResult(BaseModel):
    claimed_customer_id: UUID
    bookings_updated: int = Field(..., ge=0)


class ClaimFailure(Enum):
    """Why a claim was refused."""

    UNAUTHORIZED = "UNAUTHORIZED"
    CLAIM_NOT_FOUND = "CLAIM_NOT_FOUND"
    ACCOUNT_EXISTS = "ACCOUNT_EXISTS"
    CLAIM_CONFLICT = "CLAIM_CONFLICT"


@dataclass(frozen=True)
class ClaimOutcome:
    """Either a result or a failure, never both."""

    result: ClaimResult | None = None
    failure: ClaimFailure | None = None

    @classmethod
    def succeeded(cls, customer_id: UUID, bookings_updated: int) -> "ClaimOutcome":
        return cls(result=ClaimResult(claimed_customer_id=customer_id, bookings_updated=bookings_updated))

    @classmethod
    def rejected(cls, failure: ClaimFailure) -> "ClaimOutcome":
        return cls(failure=failure)

    @property
    def ok(self) -> bool:
        return self.failure is None

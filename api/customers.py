"""HTTP routes for customer profiles and the claim protocol."""

import logging
from dataclasses import dataclass

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from api.base import success_response, error_json, request_id_of, ErrorCodes, STATUS_BY_CODE
from auth.security_middleware import current_identity
from core.models import ClaimFailure, ClaimRequest
from core.services.claim_service import ClaimService
from core.services.customer_service import CustomerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimMessages:
    """User-facing wording for one claim endpoint."""

    success: str
    not_found: str
    account_exists: str
    conflict: str
    unauthorized: str = "Authentication required"


CLAIM_CUSTOMER_MESSAGES = ClaimMessages(
    success="Customer claimed successfully",
    not_found="Guest customer not found",
    account_exists="Account already claimed by another user",
    conflict="Claim conflict: existing claimed account shares phone/email",
)

CUSTOMERS_CLAIM_MESSAGES = ClaimMessages(
    success="Profile claimed successfully",
    not_found="Guest profile not found",
    account_exists="Account already claimed",
    conflict="Another account has claimed this profile",
)


class EnsureCustomerRequest(BaseModel):
    """Optional details for the caller's own customer record."""

    name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=50)


def _failure_message(failure: ClaimFailure, messages: ClaimMessages) -> str:
    return {
        ClaimFailure.UNAUTHORIZED: messages.unauthorized,
        ClaimFailure.CLAIM_NOT_FOUND: messages.not_found,
        ClaimFailure.ACCOUNT_EXISTS: messages.account_exists,
        ClaimFailure.CLAIM_CONFLICT: messages.conflict,
    }[failure]


def create_customers_router(
    claim_service: ClaimService,
    customer_service: CustomerService,
) -> APIRouter:
    """Create customer router with injected services (mounted at /api)."""
    router = APIRouter(tags=["customers"])

    def handle_claim(request: Request, body: ClaimRequest, messages: ClaimMessages):
        identity = current_identity(request)
        if identity is None:
            return error_json(401, ErrorCodes.UNAUTHORIZED, messages.unauthorized, request)

        if not body.has_target:
            return error_json(
                400,
                ErrorCodes.VALIDATION_FAILED,
                "customer_id or phone/email is required",
                request,
            )

        outcome = claim_service.claim(body, identity)

        if not outcome.ok:
            code = outcome.failure.value
            return error_json(
                STATUS_BY_CODE[code],
                code,
                _failure_message(outcome.failure, messages),
                request,
            )

        return success_response(outcome.result.model_dump(mode="json"), messages.success, request_id_of(request))

    @router.post("/claim-customer")
    async def claim_customer(request: Request, body: ClaimRequest):
        """Claim a guest customer by customer_id, or by phone/email."""
        return handle_claim(request, body, CLAIM_CUSTOMER_MESSAGES)

    @router.post("/customers/claim")
    async def claim_profile(request: Request, body: ClaimRequest):
        """Same protocol as /claim-customer, worded for the profile page."""
        return handle_claim(request, body, CUSTOMERS_CLAIM_MESSAGES)

    @router.get("/customers/me")
    async def get_my_profile(request: Request):
        """Resolve the caller's customer record, with contact-based fallback."""
        identity = current_identity(request)
        if identity is None:
            return error_json(401, ErrorCodes.UNAUTHORIZED, "Not authenticated", request)

        profile = customer_service.resolve_profile(identity)
        return success_response(profile.model_dump(mode="json"), "Profile resolved", request_id_of(request))

    @router.post("/customers")
    async def ensure_my_customer(request: Request, body: EnsureCustomerRequest | None = None):
        """Return the caller's linked record, creating it on first use."""
        identity = current_identity(request)
        if identity is None:
            return error_json(401, ErrorCodes.UNAUTHORIZED, "Not authenticated", request)

        body = body or EnsureCustomerRequest()
        customer, created = customer_service.ensure_customer(
            identity,
            name=body.name,
            email=body.email,
            phone=body.phone,
        )
        return success_response(
            {"customer": customer.model_dump(mode="json"), "created": created},
            "Customer created" if created else "Customer exists",
            request_id_of(request),
        )

    return router

"""HTTP routes for booking intake and the caller's booking history."""

import logging

from fastapi import APIRouter, Request

from api.base import success_response, error_json, request_id_of, ErrorCodes
from auth.security_middleware import current_identity
from core.models import BookingCreate
from core.services.booking_service import BookingService

logger = logging.getLogger(__name__)


def create_bookings_router(booking_service: BookingService) -> APIRouter:
    """Create bookings router with injected services (mounted at /api)."""
    router = APIRouter(tags=["bookings"])

    @router.post("/bookings", status_code=201)
    async def create_booking(request: Request, body: BookingCreate):
        """Public booking endpoint; a session is optional."""
        booking = booking_service.create_booking(body, current_identity(request))
        return success_response(
            booking.model_dump(mode="json"),
            "Booking created successfully",
            request_id_of(request),
        )

    @router.get("/bookings")
    async def list_my_bookings(request: Request):
        """The signed-in caller's bookings, newest first."""
        if current_identity(request) is None:
            return error_json(401, ErrorCodes.UNAUTHORIZED, "Authentication required", request)

        bookings = booking_service.list_for_caller()
        return success_response(
            {"bookings": [b.model_dump(mode="json") for b in bookings]},
            "Bookings retrieved",
            request_id_of(request),
        )

    return router

"""Unified API response envelope and error codes."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from utils.timezone import now_utc


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Unique request identifier for tracing")


class APIResponse(BaseModel):
    """
    Response envelope shared by every endpoint.

    ``error`` is a human-readable message and ``code`` the machine-readable
    ErrorCodes value; both are None on success.
    """

    success: bool
    message: str | None = None
    data: Any | None = None
    error: str | None = None
    code: str | None = None
    meta: APIMeta


def request_id_of(request) -> str | None:
    """The ID RequestIDMiddleware stamped on this request, if any."""
    if request is None:
        return None
    return getattr(request.state, "request_id", None)


def _meta(request_id: str | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id or str(uuid4()))


def success_response(data: Any = None, message: str | None = None, request_id: str | None = None) -> APIResponse:
    """Create a success response."""
    return APIResponse(success=True, message=message, data=data, meta=_meta(request_id))


def error_response(code: str, message: str, request_id: str | None = None) -> APIResponse:
    """Create an error response."""
    return APIResponse(success=False, error=message, code=code, meta=_meta(request_id))


def error_json(status_code: int, code: str, message: str, request=None, headers: dict | None = None) -> JSONResponse:
    """Error envelope as a ready JSONResponse, tagged with the request's ID when known."""
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
        headers=headers,
    )


class ErrorCodes:
    """Machine-readable codes returned in the ``code`` field."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    # Claim protocol
    CLAIM_NOT_FOUND = "CLAIM_NOT_FOUND"
    ACCOUNT_EXISTS = "ACCOUNT_EXISTS"
    CLAIM_CONFLICT = "CLAIM_CONFLICT"

    # Edge guard
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_BY_CODE = {
    ErrorCodes.VALIDATION_FAILED: 400,
    ErrorCodes.UNAUTHORIZED: 401,
    ErrorCodes.INVALID_CREDENTIALS: 401,
    ErrorCodes.CLAIM_NOT_FOUND: 404,
    ErrorCodes.ACCOUNT_EXISTS: 409,
    ErrorCodes.CLAIM_CONFLICT: 409,
    ErrorCodes.RATE_LIMIT_EXCEEDED: 429,
    ErrorCodes.INTERNAL_ERROR: 500,
}

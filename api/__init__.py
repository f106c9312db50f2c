"""API modules for HTTP interface."""

from api.base import (
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    error_json,
    request_id_of,
    ErrorCodes,
    STATUS_BY_CODE,
)

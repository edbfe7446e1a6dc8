"""
Shared response envelope for API errors.
"""

from __future__ import annotations

from typing import Any

from rest_framework import status
from rest_framework.response import Response

from apps.promotions.errors import ReasonCode


def error_response(code: str, message: str, http_status: int, details: Any = None) -> Response:
    payload: dict[str, Any] = {"success": False, "error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return Response(payload, status=http_status)


def rate_limited_response() -> Response:
    return error_response(
        "RATE_LIMITED",
        "Too many attempts. Please wait a minute and try again.",
        status.HTTP_429_TOO_MANY_REQUESTS,
    )


def upstream_error_response() -> Response:
    return error_response(
        ReasonCode.UPSTREAM_ERROR.value,
        ReasonCode.UPSTREAM_ERROR.message,
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )


def invalid_input_response(errors: Any) -> Response:
    return error_response(
        ReasonCode.VALIDATION_ERROR.value,
        ReasonCode.VALIDATION_ERROR.message,
        status.HTTP_400_BAD_REQUEST,
        details=errors,
    )

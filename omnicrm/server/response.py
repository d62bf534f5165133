"""
API Response Envelope.

Every endpoint under ``/api/v1`` answers with one of two shapes:

- success: ``{"ok": true, "data": ..., "timestamp": ..., "request_id": ...}``
- failure: ``{"ok": false, "error": {"code", "message", "request_id", "timestamp", "details"?}}``

Services raise :class:`APIError`; the exception handlers render it.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTEGRATION_ERROR = "INTEGRATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_STATUS_CODES: Dict[ApiErrorCode, int] = {
    ApiErrorCode.VALIDATION_ERROR: 400,
    ApiErrorCode.UNAUTHORIZED: 401,
    ApiErrorCode.FORBIDDEN: 403,
    ApiErrorCode.NOT_FOUND: 404,
    ApiErrorCode.CONFLICT: 409,
    ApiErrorCode.RATE_LIMITED: 429,
    ApiErrorCode.DATABASE_ERROR: 500,
    ApiErrorCode.INTEGRATION_ERROR: 502,
    ApiErrorCode.INTERNAL_ERROR: 500,
}


class APIError(Exception):
    """Error carrying an API error code, rendered as the failure envelope."""

    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code or ERROR_STATUS_CODES[code]
        self.details = details

    @classmethod
    def not_found(cls, resource: str) -> "APIError":
        return cls(ApiErrorCode.NOT_FOUND, f"{resource} not found")

    @classmethod
    def validation(cls, message: str, details: Optional[Any] = None) -> "APIError":
        return cls(ApiErrorCode.VALIDATION_ERROR, message, details=details)


def code_for_status(status_code: int) -> ApiErrorCode:
    """Error code used when only an HTTP status is known."""
    if status_code >= 500:
        return ApiErrorCode.INTEGRATION_ERROR if status_code == 502 else ApiErrorCode.INTERNAL_ERROR
    for code, mapped in ERROR_STATUS_CODES.items():
        if mapped == status_code:
            return code
    return ApiErrorCode.VALIDATION_ERROR


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope, used as ``response_model`` for documentation."""

    ok: bool = Field(default=True, description="Always true for successful responses")
    data: T
    timestamp: str = Field(description="ISO-8601 UTC time the response was produced")
    request_id: str = Field(description="Request correlation id, also sent as x-request-id")


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def ok(request: Request, data: Any) -> Dict[str, Any]:
    """Build the success envelope for ``data``."""
    return {
        "ok": True,
        "data": jsonable_encoder(data),
        "timestamp": timestamp(),
        "request_id": get_request_id(request),
    }


def error_body(
    code: ApiErrorCode, message: str, request_id: str, details: Optional[Any] = None
) -> Dict[str, Any]:
    error: Dict[str, Any] = {
        "code": code.value,
        "message": message,
        "request_id": request_id,
        "timestamp": timestamp(),
    }
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return {"ok": False, "error": error}

"""
Exception Handlers for the FastAPI Application.

Every error leaves the API as the failure envelope. Unhandled exceptions are
logged with an error id, the request context and the full traceback, and the
client only sees a generic message.
"""

import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from omnicrm.core.logging_config import get_logger
from omnicrm.core.monitoring import log_error
from omnicrm.server.response import APIError, ApiErrorCode, code_for_status, error_body, get_request_id

logger = get_logger(__name__)


def _envelope_response(request: Request, status_code: int, code: ApiErrorCode, message: str, details=None):
    request_id = get_request_id(request)
    return JSONResponse(
        status_code=status_code,
        content=error_body(code, message, request_id, details),
        headers={"x-request-id": request_id},
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Render errors raised deliberately by services and dependencies."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code.value} in {request.method} {request.url.path}: {exc.message}")
        log_error(exc.code.value, exc.message, {"path": request.url.path})
    else:
        logger.debug(f"{exc.code.value} in {request.method} {request.url.path}: {exc.message}")
    return _envelope_response(request, exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown routes, wrong methods) as the failure envelope."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _envelope_response(request, exc.status_code, code_for_status(exc.status_code), message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Render request validation failures.

    A body that is not valid JSON gets its own message; otherwise the
    individual issues are returned under ``details.issues``.
    """
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        return _envelope_response(request, 400, ApiErrorCode.VALIDATION_ERROR, "Invalid JSON in request body")

    issues = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in errors
    ]
    return _envelope_response(
        request, 400, ApiErrorCode.VALIDATION_ERROR, "Validation failed", {"issues": issues}
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to log detailed error information.

    This handler is called for any unhandled exception in the application.
    It logs the full error context and returns the failure envelope with an
    error id that clients can use to reference the error when reporting issues.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with the INTERNAL_ERROR envelope
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )
    log_error(type(exc).__name__, str(exc), {"error_id": error_id, "path": request.url.path})

    return _envelope_response(
        request,
        500,
        ApiErrorCode.INTERNAL_ERROR,
        "Internal server error",
        {"error_id": error_id},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")

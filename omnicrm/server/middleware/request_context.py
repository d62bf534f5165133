"""
Request context middleware.

Assigns every request a correlation id, taken from ``x-correlation-id`` or
``x-request-id`` when the caller supplies one, and echoes it back in the
``x-request-id`` response header.
"""

import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"


def resolve_request_id(request: Request) -> str:
    return (
        request.headers.get(CORRELATION_ID_HEADER)
        or request.headers.get(REQUEST_ID_HEADER)
        or str(uuid.uuid4())
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Store the request id on ``request.state`` and return it to the caller."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request)
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

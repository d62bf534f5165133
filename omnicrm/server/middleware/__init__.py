"""
Middleware modules for the OmniCRM server.

This package contains custom middleware for request tracing and request
correlation ids.
"""

from .logfire_middleware import LogfireMiddleware
from .request_context import RequestContextMiddleware

__all__ = ["LogfireMiddleware", "RequestContextMiddleware"]

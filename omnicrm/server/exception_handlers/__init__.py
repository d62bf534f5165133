"""
Exception handlers for the OmniCRM server.

This package contains the handlers rendering every error as the failure
envelope and a setup function to register them with the FastAPI application.
"""

from .global_handler import setup_exception_handlers

__all__ = ["setup_exception_handlers"]

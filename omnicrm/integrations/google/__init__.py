"""Google OAuth and REST clients for Gmail and Calendar."""

from .client import GoogleApiClient, GoogleApiError
from .oauth import GoogleOAuthClient, GoogleOAuthError, TokenGrant, create_state, state_cookie_name, verify_state

__all__ = [
    "GoogleApiClient",
    "GoogleApiError",
    "GoogleOAuthClient",
    "GoogleOAuthError",
    "TokenGrant",
    "create_state",
    "state_cookie_name",
    "verify_state",
]

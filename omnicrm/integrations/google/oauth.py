"""
Google OAuth 2.0 authorization-code flow.

Builds consent URLs, signs the ``state`` round trip and exchanges or refreshes
tokens against Google's token endpoint with httpx.

The state parameter is the JSON ``{"n": nonce, "s": service}``. Its HMAC
signature travels in an HTTP-only cookie as ``"<signature>.<nonce>"`` so the
callback can verify that the redirect belongs to a flow this server started.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx

from omnicrm.core.crypto import hmac_sign, hmac_verify, random_nonce
from omnicrm.core.database.base import utc_now
from omnicrm.core.database.entities.integrations import GoogleService
from omnicrm.core.logging_config import get_logger
from omnicrm.server.core.config import GoogleOAuthConfig

logger = get_logger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPES: Dict[str, str] = {
    GoogleService.GMAIL.value: "https://www.googleapis.com/auth/gmail.readonly",
    GoogleService.CALENDAR.value: "https://www.googleapis.com/auth/calendar.readonly",
}

STATE_COOKIE_MAX_AGE = 300
NONCE_MIN_LENGTH = 18
NONCE_MAX_LENGTH = 50


class GoogleOAuthError(Exception):
    """Raised when Google rejects a token request or the client is not configured.

    ``reason`` carries Google's ``error`` code (e.g. ``invalid_grant``) when available.
    """

    def __init__(self, message: str, reason: str = "oauth_error", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


@dataclass
class TokenGrant:
    access_token: str
    refresh_token: Optional[str]
    expiry_date: Optional[datetime]
    scope: Optional[str]

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "TokenGrant":
        expires_in = payload.get("expires_in")
        expiry = utc_now() + timedelta(seconds=int(expires_in)) if expires_in else None
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expiry_date=expiry,
            scope=payload.get("scope"),
        )


def state_cookie_name(service: str) -> str:
    return f"{service}_auth"


def _state_payload(nonce: str, service: str) -> str:
    return json.dumps({"n": nonce, "s": service}, separators=(",", ":"))


def create_state(service: str) -> Tuple[str, str]:
    """
    Create the OAuth state for ``service``.

    Returns:
        ``(state, cookie_value)``: the state query parameter and the signed
        value stored in the ``{service}_auth`` cookie
    """
    nonce = random_nonce()
    state = _state_payload(nonce, service)
    return state, f"{hmac_sign(state)}.{nonce}"


def verify_state(service: str, state: Optional[str], cookie_value: Optional[str]) -> bool:
    """Check that the callback state matches the signed cookie of ``service``."""
    if not state or not cookie_value:
        return False
    try:
        parsed = json.loads(state)
    except ValueError:
        return False
    if not isinstance(parsed, dict):
        return False

    nonce = parsed.get("n")
    if not isinstance(nonce, str) or not NONCE_MIN_LENGTH <= len(nonce) <= NONCE_MAX_LENGTH:
        return False
    if parsed.get("s") != service:
        return False

    signature, _, cookie_nonce = cookie_value.partition(".")
    if not signature or cookie_nonce != nonce:
        return False
    return hmac_verify(_state_payload(nonce, service), signature)


class GoogleOAuthClient:
    """Talks to Google's OAuth endpoints for the Gmail and Calendar services."""

    def __init__(self, config: Optional[GoogleOAuthConfig] = None, http_client: Optional[httpx.AsyncClient] = None):
        if config is None:
            from omnicrm.server.core.config import settings

            config = settings.google
        self.config = config
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.config.client_id and self.config.client_secret)

    def redirect_uri(self, service: str) -> str:
        if service == GoogleService.GMAIL.value:
            return self.config.gmail_redirect_uri
        return self.config.calendar_redirect_uri

    def build_authorization_url(self, service: str, state: str) -> str:
        if not self.is_configured:
            raise GoogleOAuthError("Google OAuth is not configured", reason="not_configured")
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.redirect_uri(service),
            "response_type": "code",
            "scope": SCOPES[service],
            "access_type": "offline",
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, service: str, code: str) -> TokenGrant:
        return await self._token_request(
            {
                "code": code,
                "redirect_uri": self.redirect_uri(service),
                "grant_type": "authorization_code",
            }
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        return await self._token_request({"refresh_token": refresh_token, "grant_type": "refresh_token"})

    async def _token_request(self, data: Dict[str, str]) -> TokenGrant:
        if not self.is_configured:
            raise GoogleOAuthError("Google OAuth is not configured", reason="not_configured")
        form = {"client_id": self.config.client_id, "client_secret": self.config.client_secret, **data}

        client = self._http_client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(TOKEN_URL, data=form)
        except httpx.HTTPError as e:
            raise GoogleOAuthError(f"Token request failed: {e}", reason="network_error") from e
        finally:
            if self._http_client is None:
                await client.aclose()

        if response.status_code != 200:
            try:
                reason = response.json().get("error", "token_request_failed")
            except ValueError:
                reason = "token_request_failed"
            logger.warning(f"Google token request ({data['grant_type']}) failed: {response.status_code} {reason}")
            raise GoogleOAuthError(f"Token request failed: {reason}", reason=reason, status_code=response.status_code)

        return TokenGrant.from_response(response.json())

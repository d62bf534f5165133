"""
Authenticated Gmail and Calendar REST client.

Loads the stored (encrypted) credentials of one user and service, refreshes the
access token shortly before it expires or when Google answers 401, and writes
refreshed tokens back through the integrations repository.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import httpx

from omnicrm.core.crypto import decrypt_string, encrypt_string
from omnicrm.core.database.base import utc_now
from omnicrm.core.database.entities.integrations import UserIntegration
from omnicrm.core.database.repositories.integrations import UserIntegrationRepository
from omnicrm.core.logging_config import get_logger, mask_identifier

from .oauth import GoogleOAuthClient, GoogleOAuthError

logger = get_logger(__name__)

GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"
CALENDAR_API = "https://www.googleapis.com/calendar/v3"

EXPIRY_SKEW = timedelta(seconds=60)
METADATA_HEADERS = ("From", "To", "Subject", "Date")
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded", "rate_limit_exceeded"}


class GoogleApiError(Exception):
    """Non-2xx answer from a Google API, or a credential that can no longer be used."""

    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason

    @property
    def is_invalid_grant(self) -> bool:
        return self.reason == "invalid_grant"

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429 or self.reason in RATE_LIMIT_REASONS

    @classmethod
    def from_response(cls, response: httpx.Response) -> "GoogleApiError":
        reason: Optional[str] = None
        message = response.text[:200]
        try:
            error = response.json().get("error")
        except ValueError:
            error = None
        if isinstance(error, dict):
            message = error.get("message") or message
            details = error.get("errors") or []
            reason = details[0].get("reason") if details else error.get("status")
        elif isinstance(error, str):
            reason = error
        return cls(f"Google API error {response.status_code}: {message}", response.status_code, reason)


def _as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None) - (value.utcoffset() or timedelta(0))


class GoogleApiClient:
    """REST client bound to one user's Gmail or Calendar credentials.

    Use :meth:`for_user` to build one; it returns None when the service is not connected.
    """

    def __init__(
        self,
        repository: UserIntegrationRepository,
        integration: UserIntegration,
        oauth: Optional[GoogleOAuthClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.repository = repository
        self.user_id = integration.user_id
        self.service = integration.service
        # plain copies; a rollback on the shared session expires the entity
        self._stored_access_token = integration.access_token
        self._stored_refresh_token = integration.refresh_token
        self._expiry_date = integration.expiry_date
        self._oauth = oauth or GoogleOAuthClient(http_client=http_client)
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=30.0)
        self._access_token: Optional[str] = None
        self._refresh_lock = asyncio.Lock()

    @classmethod
    async def for_user(
        cls,
        repository: UserIntegrationRepository,
        user_id: str,
        service: str,
        oauth: Optional[GoogleOAuthClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> Optional["GoogleApiClient"]:
        integration = await repository.get_for_service(user_id, service)
        if integration is None:
            return None
        return cls(repository, integration, oauth=oauth, http_client=http_client)

    async def __aenter__(self) -> "GoogleApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _is_expired(self) -> bool:
        expiry = _as_utc_naive(self._expiry_date)
        return expiry is not None and expiry - EXPIRY_SKEW <= utc_now()

    async def _refresh(self) -> str:
        # concurrent requests share the repository session
        async with self._refresh_lock:
            return await self._refresh_unlocked()

    async def _refresh_unlocked(self) -> str:
        if not self._stored_refresh_token:
            raise GoogleApiError(f"{self.service} refresh token missing", status_code=401, reason="invalid_grant")

        refresh_token = decrypt_string(self._stored_refresh_token)
        try:
            grant = await self._oauth.refresh_access_token(refresh_token)
        except GoogleOAuthError as e:
            raise GoogleApiError(str(e), status_code=e.status_code, reason=e.reason) from e

        integration = await self.repository.upsert_tokens(
            self.user_id,
            self.service,
            access_token=encrypt_string(grant.access_token),
            refresh_token=encrypt_string(grant.refresh_token) if grant.refresh_token else None,
            expiry_date=grant.expiry_date,
            scope=grant.scope,
        )
        self._stored_access_token = integration.access_token
        self._stored_refresh_token = integration.refresh_token
        self._expiry_date = integration.expiry_date
        self._access_token = grant.access_token
        logger.info(f"Refreshed {self.service} access token for user {mask_identifier(self.user_id)}")
        return grant.access_token

    async def access_token(self) -> str:
        if self._is_expired():
            return await self._refresh()
        if self._access_token is None:
            self._access_token = decrypt_string(self._stored_access_token)
        return self._access_token

    async def request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send an authorized request, refreshing and retrying once on 401."""
        token = await self.access_token()
        response = await self._http.request(method, url, params=params, headers={"Authorization": f"Bearer {token}"})
        if response.status_code == 401:
            token = await self._refresh()
            response = await self._http.request(
                method, url, params=params, headers={"Authorization": f"Bearer {token}"}
            )
        if response.status_code >= 400:
            raise GoogleApiError.from_response(response)
        return response.json()

    # Gmail

    async def list_messages(
        self,
        query: Optional[str] = None,
        page_token: Optional[str] = None,
        max_results: int = 100,
        label_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"maxResults": max_results}
        if query:
            params["q"] = query
        if page_token:
            params["pageToken"] = page_token
        if label_ids:
            params["labelIds"] = list(label_ids)
        return await self.request("GET", f"{GMAIL_API}/messages", params=params)

    async def get_message(self, message_id: str, metadata_headers: Sequence[str] = METADATA_HEADERS) -> Dict[str, Any]:
        params = {"format": "metadata", "metadataHeaders": list(metadata_headers)}
        return await self.request("GET", f"{GMAIL_API}/messages/{message_id}", params=params)

    async def list_labels(self) -> List[Dict[str, Any]]:
        data = await self.request("GET", f"{GMAIL_API}/labels")
        return list(data.get("labels", []))

    # Calendar

    async def list_events(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        page_token: Optional[str] = None,
        max_results: int = 250,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "timeMin": time_min.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "timeMax": time_max.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": max_results,
        }
        if page_token:
            params["pageToken"] = page_token
        return await self.request("GET", f"{CALENDAR_API}/calendars/{calendar_id}/events", params=params)

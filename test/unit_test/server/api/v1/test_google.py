from datetime import timedelta
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from omnicrm.core.crypto import decrypt_string, encrypt_string
from omnicrm.core.database.base import utc_now
from omnicrm.core.database.entities.sync import RawEvent, RawEventError
from omnicrm.integrations.google import create_state, verify_state
from omnicrm.integrations.google.oauth import AUTH_URL

pytestmark = pytest.mark.asyncio

GOOGLE_URL = "/api/v1/google"
USER_ID = "user-practitioner-1"
SETTINGS_URL = "http://localhost:3000/settings/sync"


async def _connect(repos, service: str = "gmail", expired: bool = False) -> None:
    expiry = utc_now() + (timedelta(hours=-1) if expired else timedelta(hours=1))
    await repos.integrations.upsert_tokens(
        USER_ID,
        service,
        access_token=encrypt_string("stored-access"),
        refresh_token=encrypt_string("stored-refresh"),
        expiry_date=expiry,
        scope=f"https://www.googleapis.com/auth/{service}.readonly",
    )


def _token_response(access_token: str = "new-access", refresh_token: Optional[str] = None) -> httpx.Response:
    payload: Dict[str, Any] = {"access_token": access_token, "expires_in": 3600, "scope": "gmail.readonly"}
    if refresh_token:
        payload["refresh_token"] = refresh_token
    return httpx.Response(200, json=payload)


def _gmail_message(message_id: str, sender: str) -> Dict[str, Any]:
    return {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "labelIds": ["INBOX"],
        "internalDate": "1760000000000",
        "payload": {"headers": [{"name": "From", "value": sender}, {"name": "Subject", "value": "Hello"}]},
    }


# OAuth


async def test_connect_redirects_to_google(client: AsyncClient):
    response = await client.get(f"{GOOGLE_URL}/gmail/connect")
    assert response.status_code == 307

    location = response.headers["location"]
    assert location.startswith(AUTH_URL)
    query = parse_qs(urlparse(location).query)
    assert query["client_id"] == ["test-client-id"]
    assert query["scope"] == ["https://www.googleapis.com/auth/gmail.readonly"]
    assert query["access_type"] == ["offline"]

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("gmail_auth=")
    assert "httponly" in set_cookie.lower()
    cookie_value = set_cookie.split(";", 1)[0].split("=", 1)[1]
    assert verify_state("gmail", query["state"][0], cookie_value)


async def test_connect_unknown_service(client: AsyncClient):
    response = await client.get(f"{GOOGLE_URL}/drive/connect")
    assert response.status_code == 400


async def test_callback_with_consent_error(client: AsyncClient):
    response = await client.get(f"{GOOGLE_URL}/gmail/callback", params={"error": "access_denied"})
    assert response.status_code == 307
    assert response.headers["location"] == f"{SETTINGS_URL}?error=access_denied"


async def test_callback_without_code(client: AsyncClient):
    response = await client.get(f"{GOOGLE_URL}/calendar/callback", params={"state": "x"})
    assert response.headers["location"] == f"{SETTINGS_URL}?error=missing_code"


async def test_callback_with_invalid_state(client: AsyncClient):
    state, cookie_value = create_state("calendar")

    response = await client.get(
        f"{GOOGLE_URL}/gmail/callback",
        params={"code": "abc", "state": state},
        headers={"cookie": f"gmail_auth={cookie_value}"},
    )
    assert response.headers["location"] == f"{SETTINGS_URL}?error=invalid_state"


async def test_callback_stores_encrypted_tokens(client: AsyncClient, repos, mock_google, google_handler):
    mock_google(lambda request: _token_response("fresh-access", "fresh-refresh"))
    state, cookie_value = create_state("gmail")

    response = await client.get(
        f"{GOOGLE_URL}/gmail/callback",
        params={"code": "auth-code", "state": state},
        headers={"cookie": f"gmail_auth={cookie_value}"},
    )
    assert response.status_code == 307
    assert response.headers["location"] == f"{SETTINGS_URL}?connected=gmail"

    token_request = google_handler["requests"][0]
    assert str(token_request.url) == "https://oauth2.googleapis.com/token"
    form = parse_qs(token_request.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["auth-code"]

    integration = await repos.integrations.get_for_service(USER_ID, "gmail")
    assert integration.access_token != "fresh-access"
    assert decrypt_string(integration.access_token) == "fresh-access"
    assert decrypt_string(integration.refresh_token) == "fresh-refresh"

    status = (await client.get(f"{GOOGLE_URL}/status")).json()["data"]
    assert status["gmail"]["connected"] is True
    assert status["calendar"]["connected"] is False


async def test_callback_token_exchange_failure(client: AsyncClient, mock_google):
    mock_google(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
    state, cookie_value = create_state("gmail")

    response = await client.get(
        f"{GOOGLE_URL}/gmail/callback",
        params={"code": "stale", "state": state},
        headers={"cookie": f"gmail_auth={cookie_value}"},
    )
    assert response.headers["location"] == f"{SETTINGS_URL}?error=invalid_grant"


async def test_disconnect(client: AsyncClient, repos):
    await _connect(repos)

    response = await client.delete(f"{GOOGLE_URL}/gmail")
    assert response.json()["data"] == {"disconnected": True, "service": "gmail"}

    response = await client.delete(f"{GOOGLE_URL}/gmail")
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Gmail not connected"


# Preferences


async def test_prefs_defaults_and_update(client: AsyncClient):
    prefs = (await client.get(f"{GOOGLE_URL}/prefs")).json()["data"]
    assert prefs["calendar_ids"] == ["primary"]
    assert prefs["gmail_time_range_days"] == 365
    assert prefs["calendar_include_private"] is False

    response = await client.put(
        f"{GOOGLE_URL}/prefs", json={"calendar_ids": ["primary", "work"], "gmail_time_range_days": 30}
    )
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["calendar_ids"] == ["primary", "work"]
    assert updated["gmail_time_range_days"] == 30
    assert updated["calendar_future_days"] == prefs["calendar_future_days"]

    assert (await client.get(f"{GOOGLE_URL}/prefs")).json()["data"]["calendar_ids"] == ["primary", "work"]

    response = await client.put(f"{GOOGLE_URL}/prefs", json={"calendar_future_days": 1000})
    assert response.status_code == 400


# Previews and labels


async def test_preview_requires_connection(client: AsyncClient):
    response = await client.post(f"{GOOGLE_URL}/gmail/preview", json={})
    assert response.status_code == 502
    error = response.json()["error"]
    assert error["code"] == "INTEGRATION_ERROR"
    assert error["message"] == "Gmail not connected"


async def test_gmail_preview_estimates_size(client: AsyncClient, repos, mock_google, google_handler):
    await _connect(repos)
    mock_google(lambda request: httpx.Response(200, json={"messages": [{"id": "m1"}], "resultSizeEstimate": 12000}))

    response = await client.post(f"{GOOGLE_URL}/gmail/preview", json={"time_range_days": 30})
    assert response.status_code == 200
    preview = response.json()["data"]
    assert preview["estimated_items"] == 12000
    assert preview["estimated_size_mb"] == 585.94
    assert preview["details"]["query"] == "newer_than:30d category:primary -in:chats -in:drafts"
    assert len(preview["warnings"]) == 2

    request = google_handler["requests"][0]
    assert request.headers["authorization"] == "Bearer stored-access"
    assert request.url.params["maxResults"] == "1"


async def test_calendar_preview_applies_filters(client: AsyncClient, repos, mock_google):
    await _connect(repos, "calendar")
    events = [
        {"id": "e1", "status": "confirmed", "start": {"dateTime": "2026-10-01T10:00:00Z"}},
        {"id": "e2", "status": "cancelled", "start": {"dateTime": "2026-10-02T10:00:00Z"}},
        {"id": "e3", "visibility": "private", "start": {"dateTime": "2026-10-03T10:00:00Z"}},
    ]
    mock_google(lambda request: httpx.Response(200, json={"items": events}))

    preview = (await client.post(f"{GOOGLE_URL}/calendar/preview", json={})).json()["data"]
    assert preview["estimated_items"] == 1
    assert preview["details"]["calendar_ids"] == ["primary"]
    assert preview["warnings"] == []


async def test_labels_refresh_on_unauthorized(client: AsyncClient, repos, mock_google, google_handler):
    await _connect(repos)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            return _token_response("refreshed-access")
        if request.headers["authorization"] == "Bearer stored-access":
            return httpx.Response(401, json={"error": {"message": "expired"}})
        return httpx.Response(200, json={"labels": [{"id": "INBOX", "name": "INBOX", "type": "system"}]})

    mock_google(handler)

    response = await client.get(f"{GOOGLE_URL}/gmail/labels")
    assert response.status_code == 200
    assert response.json()["data"] == [{"id": "INBOX", "name": "INBOX", "type": "system"}]
    assert len(google_handler["requests"]) == 3

    integration = await repos.integrations.get_for_service(USER_ID, "gmail")
    assert decrypt_string(integration.access_token) == "refreshed-access"
    assert decrypt_string(integration.refresh_token) == "stored-refresh"


async def test_expired_authorization(client: AsyncClient, repos, mock_google):
    await _connect(repos, expired=True)
    mock_google(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

    response = await client.get(f"{GOOGLE_URL}/gmail/labels")
    assert response.status_code == 502
    assert response.json()["error"]["message"] == "Gmail authorization expired. Please reconnect."


async def test_rate_limited_by_google(client: AsyncClient, repos, mock_google):
    await _connect(repos)
    mock_google(lambda request: httpx.Response(429, json={"error": {"message": "slow down"}}))

    response = await client.get(f"{GOOGLE_URL}/gmail/labels")
    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Rate limit exceeded. Please try again later."


# Sync runs


async def test_gmail_sync(client: AsyncClient, repos, session: AsyncSession, mock_google):
    await _connect(repos)
    contact = (
        await client.post("/api/v1/contacts", json={"display_name": "Jane", "primary_email": "jane@example.com"})
    ).json()["data"]

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/messages"):
            return httpx.Response(200, json={"messages": [{"id": "m1"}, {"id": "m2"}, {"id": "m3"}]})
        if path.endswith("/messages/m1"):
            return httpx.Response(200, json=_gmail_message("m1", "Jane Doe <JANE@example.com>"))
        if path.endswith("/messages/m2"):
            return httpx.Response(200, json=_gmail_message("m2", "news@shop.example"))
        return httpx.Response(500, json={"error": {"message": "backend error"}})

    mock_google(handler)

    response = await client.post(f"{GOOGLE_URL}/gmail/sync", json={"incremental": False, "days_back": 30})
    assert response.status_code == 200, response.text
    result = response.json()["data"]
    assert result["total_found"] == 3
    assert result["processed"] == 3
    assert result["inserted"] == 2
    assert result["errors"] == 1
    assert result["duplicates"] == 0

    events = {event.source_id: event for event in (await session.execute(select(RawEvent))).scalars().all()}
    assert set(events) == {"m1", "m2"}
    assert events["m1"].contact_id == contact["id"]
    assert events["m2"].contact_id is None
    assert events["m1"].batch_id == result["batch_id"]

    errors = (await session.execute(select(RawEventError))).scalars().all()
    assert len(errors) == 1
    assert errors[0].context["message_id"] == "m3"

    sync_session = (await client.get(f"{GOOGLE_URL}/sync-sessions/{result['session_id']}")).json()["data"]
    assert sync_session["status"] == "completed"
    assert sync_session["progress_percentage"] == 100
    assert sync_session["imported_items"] == 2

    response = await client.post(f"{GOOGLE_URL}/gmail/sync", json={"incremental": False})
    again = response.json()["data"]
    assert again["duplicates"] == 2
    assert again["inserted"] == 0

    stats = (await client.get(f"{GOOGLE_URL}/gmail/stats")).json()["data"]
    assert stats["total_events"] == 2
    assert stats["events_last_7_days"] == 2


async def test_calendar_sync(client: AsyncClient, repos, session: AsyncSession, mock_google):
    await _connect(repos, "calendar")
    contact = (
        await client.post("/api/v1/contacts", json={"display_name": "Ana", "primary_email": "ana@example.com"})
    ).json()["data"]
    events = [
        {
            "id": "e1",
            "summary": "Session",
            "start": {"dateTime": "2026-10-01T10:00:00+02:00"},
            "attendees": [{"email": "me@example.com", "self": True}, {"email": "Ana@example.com"}],
        },
        {"id": "e2", "summary": "Retreat", "start": {"date": "2026-10-05"}},
        {"id": "e3", "summary": "Broken"},
    ]
    mock_google(lambda request: httpx.Response(200, json={"items": events}))

    result = (await client.post(f"{GOOGLE_URL}/calendar/sync")).json()["data"]
    assert result["total_found"] == 3
    assert result["inserted"] == 2
    assert result["errors"] == 1

    stored = {event.source_id: event for event in (await session.execute(select(RawEvent))).scalars().all()}
    assert stored["e1"].contact_id == contact["id"]
    assert stored["e1"].occurred_at.hour == 8
    assert stored["e2"].occurred_at.hour == 0
    assert stored["e1"].source_meta["calendar_id"] == "primary"

    assert (await client.get(f"{GOOGLE_URL}/calendar/stats")).json()["data"]["total_events"] == 2
    status = (await client.get(f"{GOOGLE_URL}/status")).json()["data"]
    assert status["calendar"]["last_sync"] is not None


async def test_sync_requires_connection(client: AsyncClient):
    response = await client.post(f"{GOOGLE_URL}/calendar/sync")
    assert response.status_code == 502
    assert response.json()["error"]["message"] == "Calendar not connected"


async def test_failed_sync(client: AsyncClient, repos, mock_google):
    await _connect(repos)
    mock_google(lambda request: httpx.Response(403, json={"error": {"message": "forbidden"}}))

    response = await client.post(f"{GOOGLE_URL}/gmail/sync")
    assert response.status_code == 502
    assert response.json()["error"]["message"] == "Gmail request failed"


async def test_unknown_sync_session(client: AsyncClient):
    assert (await client.get(f"{GOOGLE_URL}/sync-sessions/missing")).status_code == 404

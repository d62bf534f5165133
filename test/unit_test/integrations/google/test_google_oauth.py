"""Unit tests for the Google OAuth flow helpers and token client."""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from omnicrm.core.database.base import utc_now
from omnicrm.integrations.google.oauth import (
    AUTH_URL,
    SCOPES,
    TOKEN_URL,
    GoogleOAuthClient,
    GoogleOAuthError,
    TokenGrant,
    create_state,
    state_cookie_name,
    verify_state,
)
from omnicrm.server.core.config import GoogleOAuthConfig

CONFIG = GoogleOAuthConfig.model_validate(
    {
        "GOOGLE_CLIENT_ID": "client-id",
        "GOOGLE_CLIENT_SECRET": "client-secret",
        "GOOGLE_GMAIL_REDIRECT_URI": "http://localhost:8000/api/v1/google/gmail/callback",
        "GOOGLE_CALENDAR_REDIRECT_URI": "http://localhost:8000/api/v1/google/calendar/callback",
    }
)


class TestState:
    def test_cookie_name(self):
        assert state_cookie_name("gmail") == "gmail_auth"
        assert state_cookie_name("calendar") == "calendar_auth"

    def test_created_state_verifies(self):
        state, cookie = create_state("gmail")
        parsed = json.loads(state)
        assert parsed["s"] == "gmail"
        assert cookie.endswith(f".{parsed['n']}")
        assert verify_state("gmail", state, cookie)

    def test_state_is_bound_to_service(self):
        state, cookie = create_state("gmail")
        assert not verify_state("calendar", state, cookie)

    def test_cookie_from_another_flow_is_rejected(self):
        state, _ = create_state("gmail")
        _, other_cookie = create_state("gmail")
        assert not verify_state("gmail", state, other_cookie)

    def test_forged_signature_is_rejected(self):
        state, cookie = create_state("calendar")
        _, _, nonce = cookie.partition(".")
        assert not verify_state("calendar", state, f"forged.{nonce}")

    @pytest.mark.parametrize(
        "state",
        [None, "", "not json", "[]", json.dumps({"n": "short", "s": "gmail"}), json.dumps({"n": "x" * 51, "s": "gmail"})],
    )
    def test_malformed_state(self, state):
        _, cookie = create_state("gmail")
        assert not verify_state("gmail", state, cookie)

    def test_missing_cookie(self):
        state, _ = create_state("gmail")
        assert not verify_state("gmail", state, None)
        assert not verify_state("gmail", state, "")


class TestAuthorizationUrl:
    def test_builds_consent_url(self):
        url = GoogleOAuthClient(config=CONFIG).build_authorization_url("calendar", '{"n":"x","s":"calendar"}')
        parsed = urlparse(url)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == AUTH_URL
        params = parse_qs(parsed.query)
        assert params["client_id"] == ["client-id"]
        assert params["scope"] == [SCOPES["calendar"]]
        assert params["redirect_uri"] == [CONFIG.calendar_redirect_uri]
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["state"] == ['{"n":"x","s":"calendar"}']

    def test_requires_configuration(self):
        client = GoogleOAuthClient(config=GoogleOAuthConfig.model_validate({"GOOGLE_CLIENT_ID": ""}))
        assert not client.is_configured
        with pytest.raises(GoogleOAuthError) as exc_info:
            client.build_authorization_url("gmail", "state")
        assert exc_info.value.reason == "not_configured"


class TestTokenRequests:
    @pytest.mark.asyncio
    async def test_exchange_code(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"access_token": "at", "refresh_token": "rt", "expires_in": 3600, "scope": SCOPES["gmail"]},
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            grant = await GoogleOAuthClient(config=CONFIG, http_client=http_client).exchange_code("gmail", "code-1")

        assert str(seen[0].url) == TOKEN_URL
        form = parse_qs(seen[0].content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["code-1"]
        assert form["client_secret"] == ["client-secret"]
        assert form["redirect_uri"] == [CONFIG.gmail_redirect_uri]
        assert grant.access_token == "at"
        assert grant.refresh_token == "rt"
        assert grant.expiry_date > utc_now()

    @pytest.mark.asyncio
    async def test_refresh_failure_carries_reason(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            with pytest.raises(GoogleOAuthError) as exc_info:
                await GoogleOAuthClient(config=CONFIG, http_client=http_client).refresh_access_token("rt")

        assert exc_info.value.reason == "invalid_grant"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_non_json_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            with pytest.raises(GoogleOAuthError) as exc_info:
                await GoogleOAuthClient(config=CONFIG, http_client=http_client).refresh_access_token("rt")

        assert exc_info.value.reason == "token_request_failed"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            with pytest.raises(GoogleOAuthError) as exc_info:
                await GoogleOAuthClient(config=CONFIG, http_client=http_client).refresh_access_token("rt")

        assert exc_info.value.reason == "network_error"


def test_token_grant_without_expiry():
    grant = TokenGrant.from_response({"access_token": "at"})
    assert grant.refresh_token is None
    assert grant.expiry_date is None

"""Unit tests for the onboarding helpers and the submission rate limiter."""

from datetime import timedelta
from typing import Any
from unittest.mock import patch

import pytest

from omnicrm.core.database.base import utc_now
from omnicrm.core.database.entities.onboarding import OnboardingToken
from omnicrm.core.models.io.onboarding import OnboardingSubmission
from omnicrm.server.services.onboarding import (
    OnboardingRateLimiter,
    extract_client_ip,
    generate_token,
    is_valid_email,
    is_valid_phone,
    token_error,
    validate_json_field,
    validate_submission,
)


def _submission(consent: Any = None, **client_fields: Any) -> OnboardingSubmission:
    client = {"first_name": "Maya", "last_name": "Lopez", "primary_email": "maya@example.com"}
    client.update(client_fields)
    return OnboardingSubmission.model_validate(
        {"token": "t", "client": client, "consent": consent or {"consent_text_version": "v1"}}
    )


def _token(**fields: Any) -> OnboardingToken:
    values = {"user_id": "u1", "token": "tok", "expires_at": utc_now() + timedelta(hours=1), "max_uses": 1}
    values.update(fields)
    return OnboardingToken(**values)


class TestGenerateToken:
    def test_format(self):
        token = generate_token()
        prefix, _, stamp = token.rpartition("-")
        assert len(prefix) == 36
        assert stamp == stamp.lower()
        assert stamp.isalnum()

    def test_stamp_is_base36_millis(self):
        with patch("omnicrm.server.services.onboarding.time.time", return_value=1.295):
            assert generate_token().endswith("-zz")

    def test_unique(self):
        assert generate_token() != generate_token()


class TestFieldValidation:
    @pytest.mark.parametrize("email", ["jane@example.com", "j.doe+spa@mail.example.org"])
    def test_valid_email(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["jane", "jane@", "jane@example", "@example.com"])
    def test_invalid_email(self, email):
        assert not is_valid_email(email)

    @pytest.mark.parametrize("phone", ["+1 (555) 123-4567", "5551234567", "+447911123456"])
    def test_valid_phone(self, phone):
        assert is_valid_phone(phone)

    @pytest.mark.parametrize("phone", ["call me", "0123", "+1" + "2" * 16])
    def test_invalid_phone(self, phone):
        assert not is_valid_phone(phone)

    def test_json_field(self):
        assert validate_json_field(None, "address", 10) is None
        assert validate_json_field({"city": "Lisbon"}, "address", 100) is None
        assert validate_json_field(["x"], "address", 100) == "Invalid address: must be an object"
        assert validate_json_field({"notes": "x" * 50}, "preferences", 20) == (
            "preferences exceeds maximum length of 20 characters"
        )
        assert validate_json_field({"notes": "${env}"}, "consent", 100) == (
            "consent contains potentially dangerous template syntax"
        )


class TestValidateSubmission:
    def test_valid(self):
        assert validate_submission(_submission(primary_phone="+1 555 123 4567")) == []

    def test_collects_every_error(self):
        errors = validate_submission(
            _submission(
                first_name=" ",
                primary_email="nope",
                primary_phone="x",
                emergency_contact_phone="y",
                preferences={"notes": "{{ 7*7 }}"},
            )
        )
        assert errors == [
            "First and last name are required",
            "Invalid email format",
            "Invalid phone format",
            "Invalid emergency contact phone format",
            "preferences contains potentially dangerous template syntax",
        ]

    def test_health_context_length(self):
        errors = validate_submission(_submission(health_context={"notes": "a" * 10001}))
        assert errors == ["health_context exceeds maximum length of 10000 characters"]

    def test_consent_is_checked(self):
        errors = validate_submission(_submission(consent={"consent_text_version": "v1", "signature_svg": "${x}"}))
        assert errors == ["consent contains potentially dangerous template syntax"]


class TestExtractClientIp:
    @pytest.mark.parametrize(
        "headers, expected",
        [
            ({"x-forwarded-for": "203.0.113.7, 10.0.0.1"}, "203.0.113.7"),
            ({"x-forwarded-for": "203.0.113.7:5123"}, "203.0.113.7"),
            ({"x-forwarded-for": "[2001:db8::1]:443"}, "2001:db8::1"),
            ({"x-forwarded-for": "2001:db8::1"}, "2001:db8::1"),
            ({"x-forwarded-for": " , 198.51.100.2"}, "198.51.100.2"),
            ({"x-real-ip": "198.51.100.4"}, "198.51.100.4"),
            ({"x-forwarded-for": "", "x-real-ip": " 198.51.100.4:80 "}, "198.51.100.4"),
            ({}, "unknown"),
        ],
    )
    def test_extract(self, headers, expected):
        assert extract_client_ip(headers) == expected

    def test_forwarded_for_wins(self):
        assert extract_client_ip({"x-forwarded-for": "203.0.113.9", "x-real-ip": "10.0.0.2"}) == "203.0.113.9"


class TestTokenError:
    def test_missing(self):
        assert token_error(None) == "Token not found"

    def test_valid(self):
        assert token_error(_token()) is None

    def test_disabled_wins_over_expiry(self):
        assert token_error(_token(disabled=True, expires_at=utc_now() - timedelta(hours=1))) == "Token is disabled"

    def test_expired(self):
        assert token_error(_token(expires_at=utc_now() - timedelta(seconds=1))) == "Token has expired"

    def test_used_up(self):
        assert token_error(_token(max_uses=2, used_count=2)) == "Token usage limit exceeded"


class TestOnboardingRateLimiter:
    def test_limit_per_address(self):
        limiter = OnboardingRateLimiter(limit_per_minute=2)
        assert limiter.allow("1.1.1.1")
        assert limiter.allow("1.1.1.1")
        assert not limiter.allow("1.1.1.1")
        assert limiter.allow("2.2.2.2")

    def test_window_slides(self):
        limiter = OnboardingRateLimiter(limit_per_minute=1)
        with patch("omnicrm.server.services.onboarding.time.monotonic") as mock_monotonic:
            mock_monotonic.return_value = 100.0
            assert limiter.allow("1.1.1.1")
            mock_monotonic.return_value = 159.0
            assert not limiter.allow("1.1.1.1")
            mock_monotonic.return_value = 161.0
            assert limiter.allow("1.1.1.1")

    def test_reset(self):
        limiter = OnboardingRateLimiter(limit_per_minute=1)
        limiter.allow("1.1.1.1")
        limiter.reset()
        assert limiter.allow("1.1.1.1")

    def test_default_limit_from_settings(self):
        assert OnboardingRateLimiter().limit_per_minute == 5

"""
Client onboarding service.

Practitioners issue expiring, usage-limited tokens; prospective clients use a
token on the public intake form, which creates their contact, intake profile
and consent record in one transaction.
"""

from __future__ import annotations

import json
import re
import time
import uuid
from datetime import timedelta
from typing import Any, List, Mapping, Optional

from cachetools import TTLCache

from omnicrm.core.database.base import utc_now
from omnicrm.core.database.entities.contacts import Contact, ContactSource, LifecycleStage
from omnicrm.core.database.entities.onboarding import ClientConsent, ClientProfile, OnboardingToken
from omnicrm.core.database.repositories.bundle import SqlRepoBundle
from omnicrm.core.logging_config import get_logger, mask_identifier
from omnicrm.core.models.io.onboarding import (
    OnboardingResult,
    OnboardingSubmission,
    TokenCreate,
    TokenCreated,
    TokenRead,
    TokenValidation,
)
from omnicrm.server.response import APIError, ApiErrorCode

logger = get_logger(__name__)

EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_REGEX = re.compile(r"^[\+]?[1-9][\d]{0,15}$")
_PHONE_SEPARATORS = re.compile(r"[\s\-\(\)]")
_TEMPLATE_MARKERS = ("${", "{{", "}}")

JSON_FIELD_LIMITS = {
    "address": 5000,
    "health_context": 10000,
    "preferences": 5000,
    "consent": 10000,
}

SUCCESS_MESSAGE = "Onboarding completed successfully"
INVALID_TOKEN_MESSAGE = "Invalid or expired token"
RATE_LIMIT_WINDOW_SECONDS = 60


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    encoded = ""
    while value:
        value, remainder = divmod(value, 36)
        encoded = digits[remainder] + encoded
    return encoded or "0"


def generate_token() -> str:
    """Random token: a UUID followed by the base36 creation time in milliseconds."""
    return f"{uuid.uuid4()}-{_base36(int(time.time() * 1000))}"


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_REGEX.match(email))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_REGEX.match(_PHONE_SEPARATORS.sub("", phone)))


def validate_json_field(value: Any, name: str, max_length: int) -> Optional[str]:
    """Return an error message when ``value`` is not a safe, bounded JSON object."""
    if value is None:
        return None
    if not isinstance(value, dict):
        return f"Invalid {name}: must be an object"
    serialized = json.dumps(value, default=str)
    if len(serialized) > max_length:
        return f"{name} exceeds maximum length of {max_length} characters"
    if any(marker in serialized for marker in _TEMPLATE_MARKERS):
        return f"{name} contains potentially dangerous template syntax"
    return None


def validate_submission(submission: OnboardingSubmission) -> List[str]:
    client = submission.client
    errors: List[str] = []
    if not client.first_name.strip() or not client.last_name.strip():
        errors.append("First and last name are required")
    if not is_valid_email(client.primary_email.strip()):
        errors.append("Invalid email format")
    if client.primary_phone and not is_valid_phone(client.primary_phone):
        errors.append("Invalid phone format")
    if client.emergency_contact_phone and not is_valid_phone(client.emergency_contact_phone):
        errors.append("Invalid emergency contact phone format")

    json_fields = {
        "address": client.address.model_dump(exclude_none=True) if client.address else None,
        "health_context": client.health_context.model_dump(exclude_none=True) if client.health_context else None,
        "preferences": client.preferences.model_dump(exclude_none=True) if client.preferences else None,
        "consent": submission.consent.model_dump(mode="json", exclude_none=True),
    }
    for name, value in json_fields.items():
        error = validate_json_field(value, name, JSON_FIELD_LIMITS[name])
        if error:
            errors.append(error)
    return errors


def _strip_port(address: str) -> str:
    if address.startswith("["):
        return address[1:].split("]", 1)[0]
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def extract_client_ip(headers: Mapping[str, str]) -> str:
    """Client address from the proxy headers, without port or IPv6 brackets."""
    forwarded = headers.get("x-forwarded-for") or ""
    for entry in forwarded.split(","):
        entry = entry.strip()
        if entry:
            return _strip_port(entry)
    real_ip = (headers.get("x-real-ip") or "").strip()
    if real_ip:
        return _strip_port(real_ip)
    return "unknown"


def token_error(token: Optional[OnboardingToken]) -> Optional[str]:
    if token is None:
        return "Token not found"
    if token.disabled:
        return "Token is disabled"
    if token.expires_at <= utc_now():
        return "Token has expired"
    if token.used_count >= token.max_uses:
        return "Token usage limit exceeded"
    return None


class OnboardingRateLimiter:
    """Sliding one-minute window of submissions per client IP."""

    def __init__(self, limit_per_minute: Optional[int] = None, max_clients: int = 10000) -> None:
        if limit_per_minute is None:
            from omnicrm.server.core.config import settings

            limit_per_minute = settings.security.onboarding_rate_limit_per_minute
        self.limit_per_minute = limit_per_minute
        self._buckets: TTLCache[str, List[float]] = TTLCache(maxsize=max_clients, ttl=RATE_LIMIT_WINDOW_SECONDS * 2)

    def allow(self, client_ip: str) -> bool:
        now = time.monotonic()
        recent = [ts for ts in self._buckets.get(client_ip, []) if now - ts < RATE_LIMIT_WINDOW_SECONDS]
        if len(recent) >= self.limit_per_minute:
            self._buckets[client_ip] = recent
            return False
        recent.append(now)
        self._buckets[client_ip] = recent
        return True

    def reset(self) -> None:
        self._buckets.clear()


class OnboardingService:
    def __init__(self, repos: SqlRepoBundle, rate_limiter: OnboardingRateLimiter) -> None:
        self.repos = repos
        self.rate_limiter = rate_limiter

    # Admin

    async def create_token(self, user_id: str, payload: TokenCreate) -> TokenCreated:
        from omnicrm.server.core.config import settings

        token = OnboardingToken(
            user_id=user_id,
            token=generate_token(),
            expires_at=utc_now() + timedelta(hours=payload.hours_valid),
            max_uses=payload.max_uses,
            label=payload.label,
        )
        token = await self.repos.onboarding_tokens.create(token)
        logger.info(f"Created onboarding token {token.id} for user {mask_identifier(user_id)}")
        return TokenCreated(
            **TokenRead.model_validate(token).model_dump(),
            onboarding_url=f"{settings.app_url.rstrip('/')}/onboard/{token.token}",
        )

    async def list_tokens(self, user_id: str, active_only: bool = True) -> List[OnboardingToken]:
        if active_only:
            return await self.repos.onboarding_tokens.list_active(user_id)
        return await self.repos.onboarding_tokens.list_for_user(user_id)

    async def disable_token(self, user_id: str, token_id: str) -> OnboardingToken:
        token = await self.repos.onboarding_tokens.disable(user_id, token_id)
        if token is None:
            raise APIError.not_found("Onboarding token")
        return token

    async def delete_token(self, user_id: str, token_id: str) -> None:
        token = await self.repos.onboarding_tokens.get_for_user(user_id, token_id)
        if token is None:
            raise APIError.not_found("Onboarding token")
        await self.repos.onboarding_tokens.delete(token.id)

    async def list_consents(self, user_id: str, contact_id: str) -> List[ClientConsent]:
        if await self.repos.contacts.get_for_user(user_id, contact_id) is None:
            raise APIError.not_found("Contact")
        return await self.repos.consents.list_for_contact(user_id, contact_id)

    # Public

    async def validate_token(self, token_value: str) -> TokenValidation:
        error = token_error(await self.repos.onboarding_tokens.get_by_token(token_value))
        return TokenValidation(valid=error is None, error=error)

    async def submit(self, submission: OnboardingSubmission, headers: Mapping[str, str]) -> OnboardingResult:
        """
        Complete onboarding with a token.

        Args:
            submission: Intake form payload
            headers: Request headers, used for the client address and user agent

        Raises:
            APIError: RATE_LIMITED, or VALIDATION_ERROR for invalid input or token
        """
        client_ip = extract_client_ip(headers)
        if not self.rate_limiter.allow(client_ip):
            logger.warning(f"Onboarding rate limit hit for {mask_identifier(client_ip)}")
            raise APIError(ApiErrorCode.RATE_LIMITED, "Too many requests. Please try again later.")

        errors = validate_submission(submission)
        if errors:
            raise APIError.validation(errors[0], details={"errors": errors})

        token = await self.repos.onboarding_tokens.get_by_token(submission.token)
        if token_error(token) is not None:
            raise APIError.validation(INVALID_TOKEN_MESSAGE)

        client = submission.client
        consent = submission.consent
        user_agent = headers.get("user-agent") or "unknown"
        user_id = token.user_id

        if not await self.repos.onboarding_tokens.increment_usage(token.id):
            await self.repos.onboarding_tokens.rollback()
            raise APIError.validation(INVALID_TOKEN_MESSAGE)

        contact = await self.repos.contacts.add(
            Contact(
                user_id=user_id,
                display_name=f"{client.first_name.strip()} {client.last_name.strip()}",
                primary_email=client.primary_email.strip().lower(),
                primary_phone=client.primary_phone or None,
                source=ContactSource.ONBOARDING.value,
                lifecycle_stage=LifecycleStage.NEW_CLIENT.value,
                tags=[],
            )
        )
        await self.repos.client_profiles.add(
            ClientProfile(
                contact_id=contact.id,
                user_id=user_id,
                date_of_birth=client.date_of_birth,
                emergency_contact_name=client.emergency_contact_name,
                emergency_contact_phone=client.emergency_contact_phone,
                referral_source=client.referral_source,
                address=client.address.model_dump(exclude_none=True) if client.address else {},
                health_context=client.health_context.model_dump(exclude_none=True) if client.health_context else {},
                preferences=client.preferences.model_dump(exclude_none=True) if client.preferences else {},
                photo_path=submission.photo_path,
            )
        )
        await self.repos.consents.add(
            ClientConsent(
                user_id=user_id,
                contact_id=contact.id,
                consent_type=consent.consent_type.value,
                consent_text_version=consent.consent_text_version,
                granted=consent.granted,
                ip_address=client_ip,
                user_agent=user_agent[:1024],
                signature_svg=consent.signature_svg,
                signature_image_url=consent.signature_image_url,
            )
        )
        await self.repos.contacts.commit()

        logger.info(f"Onboarding completed: contact {contact.id} for user {mask_identifier(user_id)}")
        return OnboardingResult(contact_id=contact.id, message=SUCCESS_MESSAGE)

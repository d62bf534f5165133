"""
Onboarding repositories.

Token lifecycle (creation, validation, usage counting, disabling) and the
consent/profile rows written when a client completes the public form.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..base import utc_now
from ..entities.onboarding import ClientConsent, ClientProfile, OnboardingToken
from .base import AsyncSqlRepository, UserScopedRepository


class OnboardingTokenRepository(UserScopedRepository[OnboardingToken]):
    """Repository for onboarding tokens."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, OnboardingToken)

    async def get_by_token(self, token: str) -> Optional[OnboardingToken]:
        result = await self.session.execute(select(OnboardingToken).where(OnboardingToken.token == token))
        return result.scalars().first()

    async def list_active(self, user_id: str) -> List[OnboardingToken]:
        """Tokens that are neither disabled nor expired, newest first."""
        stmt = (
            select(OnboardingToken)
            .where(
                (OnboardingToken.user_id == user_id)
                & (OnboardingToken.disabled == False)  # noqa: E712
                & (OnboardingToken.expires_at > utc_now())
            )
            .order_by(OnboardingToken.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def increment_usage(self, token_id: str) -> bool:
        """Count one use of a token inside the current transaction.

        The guard on ``used_count`` keeps two concurrent submissions from
        exceeding ``max_uses``.

        Returns:
            True when a use was recorded, False when the limit was already reached
        """
        stmt = (
            update(OnboardingToken)
            .where((OnboardingToken.id == token_id) & (OnboardingToken.used_count < OnboardingToken.max_uses))
            .values(used_count=OnboardingToken.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False
        # the statement bypassed the identity map
        cached = await self.session.get(OnboardingToken, token_id)
        if cached is not None:
            await self.session.refresh(cached)
        return True

    async def disable(self, user_id: str, token_id: str) -> Optional[OnboardingToken]:
        token = await self.get_for_user(user_id, token_id)
        if token is None:
            return None
        token.disabled = True
        self.session.add(token)
        await self.session.commit()
        await self.session.refresh(token)
        return token


class ClientConsentRepository(UserScopedRepository[ClientConsent]):
    """Repository for consent records."""

    order_by = "granted_at"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ClientConsent)

    async def list_for_contact(self, user_id: str, contact_id: str) -> List[ClientConsent]:
        return await self.list_for_user(user_id, contact_id=contact_id)


class ClientProfileRepository(AsyncSqlRepository[ClientProfile]):
    """Repository for client intake profiles, keyed by contact id."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ClientProfile)

"""
Google integration repositories.

Stores encrypted OAuth credentials per service and the user's sync preferences.
Encryption happens in the service layer; this module only persists ciphertext.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..base import utc_now
from ..entities.integrations import UserIntegration, UserSyncPrefs
from .base import AsyncSqlRepository

GOOGLE_PROVIDER = "google"


class UserIntegrationRepository(AsyncSqlRepository[UserIntegration]):
    """Repository for stored OAuth credentials."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, UserIntegration)

    async def get_for_service(self, user_id: str, service: str) -> Optional[UserIntegration]:
        return await self.session.get(UserIntegration, (user_id, GOOGLE_PROVIDER, service))

    async def list_for_user(self, user_id: str) -> List[UserIntegration]:
        stmt = select(UserIntegration).where(UserIntegration.user_id == user_id).order_by(UserIntegration.service)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert_tokens(
        self,
        user_id: str,
        service: str,
        access_token: str,
        refresh_token: Optional[str],
        expiry_date: Optional[datetime],
        scope: Optional[str] = None,
    ) -> UserIntegration:
        """Insert or update encrypted tokens.

        An existing refresh token is kept when ``refresh_token`` is None, since
        Google only returns it on the first consent.
        """
        integration = await self.get_for_service(user_id, service)
        if integration is None:
            integration = UserIntegration(
                user_id=user_id,
                provider=GOOGLE_PROVIDER,
                service=service,
                access_token=access_token,
                refresh_token=refresh_token,
                expiry_date=expiry_date,
                scope=scope,
            )
        else:
            integration.access_token = access_token
            if refresh_token:
                integration.refresh_token = refresh_token
            integration.expiry_date = expiry_date
            if scope:
                integration.scope = scope
            integration.updated_at = utc_now()
        self.session.add(integration)
        await self.session.commit()
        await self.session.refresh(integration)
        return integration

    async def delete_for_service(self, user_id: str, service: str) -> bool:
        integration = await self.get_for_service(user_id, service)
        if integration is None:
            return False
        await self.session.delete(integration)
        await self.session.commit()
        return True


class UserSyncPrefsRepository(AsyncSqlRepository[UserSyncPrefs]):
    """Repository for sync preferences, one row per user."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, UserSyncPrefs)

    async def get_or_default(self, user_id: str) -> UserSyncPrefs:
        """Stored preferences, or an unsaved row holding the defaults."""
        prefs = await self.get_by_id(user_id)
        return prefs if prefs is not None else UserSyncPrefs(user_id=user_id)

"""
Sync pipeline repositories.

Raw event storage with duplicate detection, error recording and sync session
progress tracking.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Set

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.sync import RawEvent, RawEventError, SyncSession
from .base import UserScopedRepository


class RawEventRepository(UserScopedRepository[RawEvent]):
    """Repository for imported raw events."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RawEvent)

    async def latest_for_provider(self, user_id: str, provider: str) -> Optional[RawEvent]:
        stmt = (
            select(RawEvent)
            .where((RawEvent.user_id == user_id) & (RawEvent.provider == provider))
            .order_by(RawEvent.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def existing_source_ids(self, user_id: str, provider: str, source_ids: Sequence[str]) -> Set[str]:
        if not source_ids:
            return set()
        stmt = select(RawEvent.source_id).where(
            (RawEvent.user_id == user_id)
            & (RawEvent.provider == provider)
            & (RawEvent.source_id.in_(list(source_ids)))
        )
        result = await self.session.execute(stmt)
        return {source_id for source_id in result.scalars().all() if source_id}

    async def add_many(self, events: Sequence[RawEvent]) -> int:
        """Insert a batch of events and commit. Returns the number inserted."""
        if not events:
            return 0
        self.session.add_all(list(events))
        await self.session.commit()
        return len(events)

    async def count_for_provider(self, user_id: str, provider: str, since: Optional[datetime] = None) -> int:
        stmt = select(func.count()).select_from(RawEvent).where(
            (RawEvent.user_id == user_id) & (RawEvent.provider == provider)
        )
        if since is not None:
            stmt = stmt.where(RawEvent.created_at >= since)
        return int((await self.session.execute(stmt)).scalar_one())


class RawEventErrorRepository(UserScopedRepository[RawEventError]):
    """Repository for import/processing failures."""

    order_by = "error_at"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RawEventError)

    async def record(
        self,
        user_id: str,
        provider: str,
        stage: str,
        error: str,
        context: Optional[dict] = None,
        raw_event_id: Optional[str] = None,
    ) -> RawEventError:
        return await self.create(
            RawEventError(
                user_id=user_id,
                provider=provider,
                stage=stage,
                error=error,
                context=context or {},
                raw_event_id=raw_event_id,
            )
        )

    async def recent(self, user_id: str, provider: Optional[str] = None, limit: int = 50) -> List[RawEventError]:
        return await self.list_for_user(user_id, limit=limit, provider=provider)


class SyncSessionRepository(UserScopedRepository[SyncSession]):
    """Repository for sync session progress."""

    order_by = "started_at"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, SyncSession)

    async def latest_for_user(self, user_id: str) -> Optional[SyncSession]:
        sessions = await self.list_for_user(user_id, limit=1)
        return sessions[0] if sessions else None

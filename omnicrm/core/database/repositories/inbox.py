"""
Inbox item repository.

Provides filtered listings, status statistics and the lookup of items whose
AI processing result is waiting for approval.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.inbox import InboxItem, InboxItemStatus
from .base import LIKE_ESCAPE, UserScopedRepository, contains_pattern

PENDING_APPROVAL = "pending_approval"


class InboxRepository(UserScopedRepository[InboxItem]):
    """Repository for inbox items."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, InboxItem)

    async def list_filtered(
        self,
        user_id: str,
        statuses: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[InboxItem]:
        stmt = select(InboxItem).where(InboxItem.user_id == user_id)
        if statuses:
            stmt = stmt.where(InboxItem.status.in_(list(statuses)))
        if search and search.strip():
            stmt = stmt.where(func.lower(InboxItem.raw_text).like(contains_pattern(search), escape=LIKE_ESCAPE))
        if created_after is not None:
            stmt = stmt.where(InboxItem.created_at >= created_after)
        if created_before is not None:
            stmt = stmt.where(InboxItem.created_at <= created_before)
        stmt = stmt.order_by(InboxItem.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def stats(self, user_id: str) -> Dict[str, int]:
        """Count a user's items per status.

        Returns:
            ``{"unprocessed", "processed", "archived", "total"}``
        """
        stmt = select(InboxItem.status, func.count()).where(InboxItem.user_id == user_id).group_by(InboxItem.status)
        counts = {status.value: 0 for status in InboxItemStatus}
        for status, count in (await self.session.execute(stmt)).all():
            counts[status] = int(count)
        counts["total"] = sum(counts[status.value] for status in InboxItemStatus)
        return counts

    async def get_many_for_user(self, user_id: str, item_ids: Sequence[str]) -> List[InboxItem]:
        if not item_ids:
            return []
        stmt = select(InboxItem).where((InboxItem.user_id == user_id) & (InboxItem.id.in_(list(item_ids))))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def pending_approval(self, user_id: str) -> List[InboxItem]:
        """Unprocessed items holding an AI result that awaits approval.

        The status lives inside the JSON ``details`` column, which is filtered
        in Python to stay portable across PostgreSQL and SQLite.
        """
        items = await self.list_filtered(user_id, statuses=[InboxItemStatus.UNPROCESSED.value])
        return [item for item in items if (item.details or {}).get("status") == PENDING_APPROVAL]

"""
Contact and note repositories.

This module provides data access operations for contacts (paged search,
e-mail lookup, bulk delete, summaries) and their notes.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.contacts import Contact, Note
from ..entities.momentum import TaskContactTag
from ..entities.onboarding import ClientConsent, ClientProfile
from ..entities.sync import RawEvent
from .base import LIKE_ESCAPE, UserScopedRepository, contains_pattern

SORTABLE_COLUMNS = {
    "display_name": Contact.display_name,
    "created_at": Contact.created_at,
    "updated_at": Contact.updated_at,
}

LAST_NOTE_PREVIEW_LENGTH = 500


class ContactRepository(UserScopedRepository[Contact]):
    """Repository for contact data access operations using SQLModel."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Contact)

    async def search_page(
        self,
        user_id: str,
        search: Optional[str] = None,
        sort: str = "display_name",
        order: str = "asc",
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Contact], int]:
        """Return one page of a user's contacts and the total number of matches.

        Args:
            user_id: Owner identifier
            search: Case-insensitive substring matched against name, e-mail and phone
            sort: display_name, created_at or updated_at
            order: asc or desc
            page: 1-based page number
            page_size: Page length

        Returns:
            Tuple of (contacts on the page, total matching contacts)
        """
        conditions = [Contact.user_id == user_id]
        if search and search.strip():
            pattern = contains_pattern(search)
            conditions.append(
                or_(
                    func.lower(Contact.display_name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(func.coalesce(Contact.primary_email, "")).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(func.coalesce(Contact.primary_phone, "")).like(pattern, escape=LIKE_ESCAPE),
                )
            )

        total_stmt = select(func.count()).select_from(Contact).where(*conditions)
        total = int((await self.session.execute(total_stmt)).scalar_one())

        column = SORTABLE_COLUMNS.get(sort, Contact.display_name)
        ordering = column.desc() if order == "desc" else column.asc()
        stmt = (
            select(Contact)
            .where(*conditions)
            .order_by(ordering, Contact.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def find_by_email(self, user_id: str, email: str) -> Optional[Contact]:
        stmt = select(Contact).where(
            (Contact.user_id == user_id) & (func.lower(Contact.primary_email) == email.strip().lower())
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_by_emails(self, user_id: str, emails: Sequence[str]) -> Dict[str, Contact]:
        """Map lower-cased e-mail addresses to the user's contacts that own them."""
        wanted = {email.strip().lower() for email in emails if email}
        if not wanted:
            return {}
        stmt = select(Contact).where(
            (Contact.user_id == user_id) & (func.lower(Contact.primary_email).in_(list(wanted)))
        )
        result = await self.session.execute(stmt)
        return {contact.primary_email.lower(): contact for contact in result.scalars().all()}

    async def delete_for_user(self, user_id: str, contact_ids: Sequence[str]) -> int:
        """Delete contacts owned by the user together with their dependent rows.

        Args:
            user_id: Owner identifier
            contact_ids: Contact ids to delete; ids owned by other users are ignored

        Returns:
            Number of contacts deleted
        """
        if not contact_ids:
            return 0
        owned_stmt = select(Contact.id).where((Contact.user_id == user_id) & (Contact.id.in_(list(contact_ids))))
        owned = list((await self.session.execute(owned_stmt)).scalars().all())
        if not owned:
            return 0

        await self.session.execute(delete(Note).where(Note.contact_id.in_(owned)))
        await self.session.execute(delete(TaskContactTag).where(TaskContactTag.contact_id.in_(owned)))
        await self.session.execute(delete(ClientConsent).where(ClientConsent.contact_id.in_(owned)))
        await self.session.execute(delete(ClientProfile).where(ClientProfile.contact_id.in_(owned)))
        await self.session.execute(
            update(RawEvent).where(RawEvent.contact_id.in_(owned)).values(contact_id=None)
        )
        await self.session.execute(delete(Contact).where(Contact.id.in_(owned)))
        await self.session.commit()
        return len(owned)

    async def count_by_column(self, user_id: str, column_name: str) -> Dict[str, int]:
        """Group the user's contacts by ``lifecycle_stage`` or ``source``."""
        column = getattr(Contact, column_name)
        stmt = select(column, func.count()).where(Contact.user_id == user_id).group_by(column)
        result = await self.session.execute(stmt)
        return {(key or "unknown"): int(count) for key, count in result.all()}

    async def notes_overview(self, user_id: str, contact_ids: Sequence[str]) -> Dict[str, Tuple[int, Optional[str]]]:
        """Note count and most recent note preview per contact.

        Args:
            user_id: Owner identifier
            contact_ids: Contacts to inspect

        Returns:
            Mapping of contact id to (notes count, last note content preview)
        """
        if not contact_ids:
            return {}
        ids = list(contact_ids)
        count_stmt = (
            select(Note.contact_id, func.count())
            .where((Note.user_id == user_id) & (Note.contact_id.in_(ids)))
            .group_by(Note.contact_id)
        )
        counts = {contact_id: int(count) for contact_id, count in (await self.session.execute(count_stmt)).all()}

        notes_stmt = (
            select(Note.contact_id, Note.content)
            .where((Note.user_id == user_id) & (Note.contact_id.in_(ids)))
            .order_by(Note.created_at.desc())
        )
        latest: Dict[str, str] = {}
        for contact_id, content in (await self.session.execute(notes_stmt)).all():
            latest.setdefault(contact_id, content[:LAST_NOTE_PREVIEW_LENGTH])

        return {contact_id: (counts.get(contact_id, 0), latest.get(contact_id)) for contact_id in ids}


class NoteRepository(UserScopedRepository[Note]):
    """Repository for contact notes."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Note)

    async def list_for_contact(self, user_id: str, contact_id: str) -> List[Note]:
        stmt = (
            select(Note)
            .where((Note.user_id == user_id) & (Note.contact_id == contact_id))
            .order_by(Note.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: str) -> int:
        return await self.count({"user_id": user_id})

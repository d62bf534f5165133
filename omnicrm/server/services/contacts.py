"""
Contacts and notes service.

Business rules for the contact list (search, paging, note previews), batch
imports with e-mail duplicate detection, bulk deletion and contact notes.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from omnicrm.core.database.entities.contacts import Contact, ContactSource, Note
from omnicrm.core.database.repositories.bundle import SqlRepoBundle
from omnicrm.core.logging_config import get_logger, mask_identifier
from omnicrm.core.models.io.contacts import (
    BulkDeleteResult,
    ContactBatchCreate,
    ContactBatchError,
    ContactBatchResult,
    ContactCreate,
    ContactDuplicate,
    ContactListItem,
    ContactListResponse,
    ContactRead,
    ContactsSummary,
    ContactUpdate,
    NoteCreate,
    NoteUpdate,
    Pagination,
)
from omnicrm.server.response import APIError

logger = get_logger(__name__)

RECENT_CONTACTS_LIMIT = 5


def _new_contact(user_id: str, payload: ContactCreate) -> Contact:
    data = payload.model_dump(mode="json", exclude_none=True)
    data.setdefault("source", ContactSource.MANUAL.value)
    data.setdefault("tags", [])
    return Contact(user_id=user_id, **data)


def bulk_delete_message(deleted: int) -> str:
    if deleted == 0:
        return "No contacts found to delete"
    return f"Successfully deleted {deleted} contact{'' if deleted == 1 else 's'}"


class ContactsService:
    """Contact and note operations scoped to one practitioner per call."""

    def __init__(self, repos: SqlRepoBundle) -> None:
        self.repos = repos

    async def list_contacts(
        self,
        user_id: str,
        search: Optional[str] = None,
        sort: str = "display_name",
        order: str = "asc",
        page: int = 1,
        page_size: int = 50,
    ) -> ContactListResponse:
        contacts, total = await self.repos.contacts.search_page(
            user_id, search=search, sort=sort, order=order, page=page, page_size=page_size
        )
        overview = await self.repos.contacts.notes_overview(user_id, [contact.id for contact in contacts])

        items: List[ContactListItem] = []
        for contact in contacts:
            notes_count, last_note = overview.get(contact.id, (0, None))
            item = ContactListItem.model_validate(contact)
            item.notes_count = notes_count
            item.last_note = last_note
            items.append(item)
        return ContactListResponse(items=items, pagination=Pagination.build(page, page_size, total))

    async def get_contact(self, user_id: str, contact_id: str) -> Contact:
        contact = await self.repos.contacts.get_for_user(user_id, contact_id)
        if contact is None:
            raise APIError.not_found("Contact")
        return contact

    async def create_contact(self, user_id: str, payload: ContactCreate) -> Contact:
        contact = await self.repos.contacts.create(_new_contact(user_id, payload))
        logger.info(f"Created contact {contact.id} for user {mask_identifier(user_id)}")
        return contact

    async def update_contact(self, user_id: str, contact_id: str, payload: ContactUpdate) -> Contact:
        contact = await self.get_contact(user_id, contact_id)
        changes = payload.model_dump(mode="json", exclude_unset=True)
        if "display_name" in changes and changes["display_name"] is None:
            raise APIError.validation("display_name cannot be null")
        if "tags" in changes and changes["tags"] is None:
            changes["tags"] = []
        for field, value in changes.items():
            setattr(contact, field, value)
        return await self.repos.contacts.update(contact)

    async def delete_contact(self, user_id: str, contact_id: str) -> None:
        deleted = await self.repos.contacts.delete_for_user(user_id, [contact_id])
        if not deleted:
            raise APIError.not_found("Contact")

    async def create_contacts_batch(self, user_id: str, payload: ContactBatchCreate) -> ContactBatchResult:
        """
        Create many contacts at once.

        A contact whose e-mail already belongs to one of the user's contacts,
        or to an earlier entry of the same batch, is reported as a duplicate
        instead of being created.
        """
        emails = [contact.primary_email for contact in payload.contacts if contact.primary_email]
        known: Dict[str, str] = {
            email: contact.id for email, contact in (await self.repos.contacts.find_by_emails(user_id, emails)).items()
        }

        result = ContactBatchResult()
        for index, entry in enumerate(payload.contacts):
            email = entry.primary_email.lower() if entry.primary_email else None
            if email and email in known:
                result.duplicates.append(
                    ContactDuplicate(
                        display_name=entry.display_name,
                        primary_email=entry.primary_email,
                        existing_contact_id=known[email],
                    )
                )
                continue
            try:
                contact = await self.repos.contacts.create(_new_contact(user_id, entry))
            except Exception as e:
                await self.repos.contacts.rollback()
                logger.warning(f"Batch contact {index} failed: {e}")
                result.errors.append(ContactBatchError(index=index, display_name=entry.display_name, error=str(e)))
                continue
            if email:
                known[email] = contact.id
            result.created.append(ContactRead.model_validate(contact))

        logger.info(
            f"Batch import for user {mask_identifier(user_id)}: created={len(result.created)}, "
            f"duplicates={len(result.duplicates)}, errors={len(result.errors)}"
        )
        return result

    async def bulk_delete(self, user_id: str, contact_ids: List[str]) -> BulkDeleteResult:
        deleted = await self.repos.contacts.delete_for_user(user_id, list(dict.fromkeys(contact_ids)))
        return BulkDeleteResult(deleted=deleted, message=bulk_delete_message(deleted))

    async def find_by_email(self, user_id: str, email: str) -> Contact:
        contact = await self.repos.contacts.find_by_email(user_id, email)
        if contact is None:
            raise APIError.not_found("Contact")
        return contact

    async def contacts_summary(self, user_id: str) -> ContactsSummary:
        total = await self.repos.contacts.count({"user_id": user_id})
        by_stage = await self.repos.contacts.count_by_column(user_id, "lifecycle_stage")
        by_source = await self.repos.contacts.count_by_column(user_id, "source")
        recent = await self.repos.contacts.list_for_user(user_id, limit=RECENT_CONTACTS_LIMIT)
        return ContactsSummary(
            total_contacts=total,
            by_stage=by_stage,
            by_source=by_source,
            recent=[ContactRead.model_validate(contact) for contact in recent],
        )

    # Notes

    async def list_notes(self, user_id: str, contact_id: str) -> List[Note]:
        await self.get_contact(user_id, contact_id)
        return await self.repos.notes.list_for_contact(user_id, contact_id)

    async def create_note(self, user_id: str, contact_id: str, payload: NoteCreate) -> Note:
        await self.get_contact(user_id, contact_id)
        note = Note(user_id=user_id, contact_id=contact_id, content=payload.content, title=payload.title)
        return await self.repos.notes.create(note)

    async def get_note(self, user_id: str, note_id: str) -> Note:
        note = await self.repos.notes.get_for_user(user_id, note_id)
        if note is None:
            raise APIError.not_found("Note")
        return note

    async def update_note(self, user_id: str, note_id: str, payload: NoteUpdate) -> Note:
        note = await self.get_note(user_id, note_id)
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("content", "") is None:
            raise APIError.validation("content cannot be null")
        for field, value in changes.items():
            setattr(note, field, value)
        return await self.repos.notes.update(note)

    async def delete_note(self, user_id: str, note_id: str) -> None:
        note = await self.get_note(user_id, note_id)
        await self.repos.notes.delete(note.id)

"""
Contacts API Endpoints.

This module provides the practitioner's contact book: paginated search,
CRUD, batch import, bulk delete, a summary for the dashboard, and the notes
and consent records attached to each contact.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Query, Request, status

from omnicrm.core.models.io.contacts import (
    BulkDeleteRequest,
    BulkDeleteResult,
    ContactBatchCreate,
    ContactBatchResult,
    ContactCreate,
    ContactListResponse,
    ContactRead,
    ContactsSummary,
    ContactUpdate,
    NoteCreate,
    NoteRead,
)
from omnicrm.core.models.io.onboarding import ConsentRead
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import ContactsServiceDep, CurrentUserDep, OnboardingServiceDep

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[ContactListResponse],
    summary="List Contacts",
    description="List the caller's contacts, page by page, with note counts and the latest note preview.",
    response_description="A page of contacts plus pagination metadata.",
    responses={
        200: {"description": "Contacts retrieved successfully"},
        401: {"description": "Missing caller identity"},
    },
)
async def list_contacts(
    request: Request,
    user_id: CurrentUserDep,
    service: ContactsServiceDep,
    search: Optional[str] = Query(default=None, max_length=200, description="Match name, e-mail or phone"),
    sort: Literal["display_name", "created_at", "updated_at"] = "display_name",
    order: Literal["asc", "desc"] = "asc",
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
) -> Dict[str, Any]:
    """
    List contacts.

    - **search**: Case-insensitive substring matched against display name, e-mail and phone.
    - **sort**: `display_name`, `created_at` or `updated_at`.
    - **order**: `asc` or `desc`.
    - **page** / **page_size**: 1-based page number and page size (max 200).
    """
    result = await service.list_contacts(
        user_id, search=search, sort=sort, order=order, page=page, page_size=page_size
    )
    return ok(request, result)


@router.post(
    "",
    response_model=ApiResponse[ContactRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create Contact",
    description="Create a single contact.",
    response_description="The created contact.",
    responses={
        201: {"description": "Contact created successfully"},
        400: {"description": "Invalid contact data"},
    },
)
async def create_contact(
    request: Request, payload: ContactCreate, user_id: CurrentUserDep, service: ContactsServiceDep
) -> Dict[str, Any]:
    """
    Create a contact.

    - **display_name**: Required, shown in the contact list.
    - **primary_email** / **primary_phone**: Optional; empty strings are stored as null.
    - **lifecycle_stage**: Optional, e.g. `Prospect`, `New Client`, `VIP Client` (case-insensitive).
    - **tags**: Optional list of free-form tags.
    """
    contact = await service.create_contact(user_id, payload)
    return ok(request, ContactRead.model_validate(contact))


@router.post(
    "/batch",
    response_model=ApiResponse[ContactBatchResult],
    summary="Import Contacts",
    description="Create several contacts at once. Contacts whose e-mail already exists are reported as duplicates.",
    response_description="Created contacts, skipped duplicates and per-row errors.",
)
async def create_contacts_batch(
    request: Request, payload: ContactBatchCreate, user_id: CurrentUserDep, service: ContactsServiceDep
) -> Dict[str, Any]:
    """
    Batch-create contacts.

    Each row is created independently; a failing row is reported in **errors**
    without affecting the others.
    """
    return ok(request, await service.create_contacts_batch(user_id, payload))


@router.post(
    "/bulk-delete",
    response_model=ApiResponse[BulkDeleteResult],
    summary="Bulk Delete Contacts",
    description="Delete several of the caller's contacts by id. Unknown ids are ignored.",
    response_description="Number of deleted contacts and a human-readable message.",
)
async def bulk_delete_contacts(
    request: Request, payload: BulkDeleteRequest, user_id: CurrentUserDep, service: ContactsServiceDep
) -> Dict[str, Any]:
    return ok(request, await service.bulk_delete(user_id, payload.ids))


@router.get(
    "/summary",
    response_model=ApiResponse[ContactsSummary],
    summary="Contacts Summary",
    description="Totals per lifecycle stage and source, plus the most recently added contacts.",
    response_description="Contact summary.",
)
async def contacts_summary(request: Request, user_id: CurrentUserDep, service: ContactsServiceDep) -> Dict[str, Any]:
    return ok(request, await service.contacts_summary(user_id))


@router.get(
    "/by-email",
    response_model=ApiResponse[ContactRead],
    summary="Find Contact by E-mail",
    description="Look up a contact by its primary e-mail address (case-insensitive).",
    response_description="The matching contact.",
    responses={404: {"description": "No contact with this e-mail"}},
)
async def find_contact_by_email(
    request: Request,
    user_id: CurrentUserDep,
    service: ContactsServiceDep,
    email: str = Query(min_length=3, max_length=320),
) -> Dict[str, Any]:
    contact = await service.find_by_email(user_id, email)
    return ok(request, ContactRead.model_validate(contact))


@router.get(
    "/{contact_id}",
    response_model=ApiResponse[ContactRead],
    summary="Get Contact",
    description="Retrieve one of the caller's contacts.",
    response_description="The contact.",
    responses={404: {"description": "Contact not found"}},
)
async def get_contact(
    request: Request, contact_id: str, user_id: CurrentUserDep, service: ContactsServiceDep
) -> Dict[str, Any]:
    contact = await service.get_contact(user_id, contact_id)
    return ok(request, ContactRead.model_validate(contact))


@router.patch(
    "/{contact_id}",
    response_model=ApiResponse[ContactRead],
    summary="Update Contact",
    description="Partially update a contact. Omitted fields are left unchanged.",
    response_description="The updated contact.",
    responses={
        400: {"description": "Invalid contact data"},
        404: {"description": "Contact not found"},
    },
)
async def update_contact(
    request: Request,
    contact_id: str,
    payload: ContactUpdate,
    user_id: CurrentUserDep,
    service: ContactsServiceDep,
) -> Dict[str, Any]:
    contact = await service.update_contact(user_id, contact_id, payload)
    return ok(request, ContactRead.model_validate(contact))


@router.delete(
    "/{contact_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Delete Contact",
    description="Delete a contact together with its notes.",
    response_description="Deletion confirmation.",
    responses={404: {"description": "Contact not found"}},
)
async def delete_contact(
    request: Request, contact_id: str, user_id: CurrentUserDep, service: ContactsServiceDep
) -> Dict[str, Any]:
    await service.delete_contact(user_id, contact_id)
    return ok(request, {"deleted": True, "id": contact_id})


@router.get(
    "/{contact_id}/notes",
    response_model=ApiResponse[List[NoteRead]],
    summary="List Contact Notes",
    description="List the notes of a contact, newest first.",
    response_description="Notes of the contact.",
    responses={404: {"description": "Contact not found"}},
)
async def list_contact_notes(
    request: Request, contact_id: str, user_id: CurrentUserDep, service: ContactsServiceDep
) -> Dict[str, Any]:
    notes = await service.list_notes(user_id, contact_id)
    return ok(request, [NoteRead.model_validate(note) for note in notes])


@router.post(
    "/{contact_id}/notes",
    response_model=ApiResponse[NoteRead],
    status_code=status.HTTP_201_CREATED,
    summary="Add Note",
    description="Add a note to a contact.",
    response_description="The created note.",
    responses={
        400: {"description": "Blank note content"},
        404: {"description": "Contact not found"},
    },
)
async def create_contact_note(
    request: Request,
    contact_id: str,
    payload: NoteCreate,
    user_id: CurrentUserDep,
    service: ContactsServiceDep,
) -> Dict[str, Any]:
    """
    Add a note.

    - **content**: Required, must not be blank.
    - **title**: Optional heading.
    """
    note = await service.create_note(user_id, contact_id, payload)
    return ok(request, NoteRead.model_validate(note))


@router.get(
    "/{contact_id}/consents",
    response_model=ApiResponse[List[ConsentRead]],
    summary="List Contact Consents",
    description="Consent records captured for the contact during onboarding.",
    response_description="Consent records, newest first.",
    responses={404: {"description": "Contact not found"}},
)
async def list_contact_consents(
    request: Request, contact_id: str, user_id: CurrentUserDep, service: OnboardingServiceDep
) -> Dict[str, Any]:
    consents = await service.list_consents(user_id, contact_id)
    return ok(request, [ConsentRead.model_validate(consent) for consent in consents])

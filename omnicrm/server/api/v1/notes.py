"""
Notes API Endpoints.

Notes are created under a contact (see the contacts endpoints); this module
reads, edits and deletes them by id.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request

from omnicrm.core.models.io.contacts import NoteRead, NoteUpdate
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import ContactsServiceDep, CurrentUserDep

router = APIRouter()


@router.get(
    "/{note_id}",
    response_model=ApiResponse[NoteRead],
    summary="Get Note",
    description="Retrieve one of the caller's notes.",
    response_description="The note.",
    responses={404: {"description": "Note not found"}},
)
async def get_note(request: Request, note_id: str, user_id: CurrentUserDep, service: ContactsServiceDep) -> Dict[str, Any]:
    note = await service.get_note(user_id, note_id)
    return ok(request, NoteRead.model_validate(note))


@router.patch(
    "/{note_id}",
    response_model=ApiResponse[NoteRead],
    summary="Update Note",
    description="Change the title or content of a note.",
    response_description="The updated note.",
    responses={
        400: {"description": "Blank note content"},
        404: {"description": "Note not found"},
    },
)
async def update_note(
    request: Request, note_id: str, payload: NoteUpdate, user_id: CurrentUserDep, service: ContactsServiceDep
) -> Dict[str, Any]:
    note = await service.update_note(user_id, note_id, payload)
    return ok(request, NoteRead.model_validate(note))


@router.delete(
    "/{note_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Delete Note",
    description="Delete a note.",
    response_description="Deletion confirmation.",
    responses={404: {"description": "Note not found"}},
)
async def delete_note(request: Request, note_id: str, user_id: CurrentUserDep, service: ContactsServiceDep) -> Dict[str, Any]:
    await service.delete_note(user_id, note_id)
    return ok(request, {"deleted": True, "id": note_id})

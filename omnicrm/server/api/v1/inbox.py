"""
Inbox API Endpoints.

Quick and voice capture of loose thoughts, inbox management, AI
categorization and the intelligent processing workflow in which suggested
tasks and projects wait for the practitioner's approval before they are
created.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request, status

from omnicrm.core.database.entities.inbox import InboxItemStatus
from omnicrm.core.models.io.inbox import (
    ApprovalRequest,
    ApprovalResult,
    BatchProcessingStats,
    BatchProcessRequest,
    BulkProcessRequest,
    BulkProcessResult,
    CategorizeRequest,
    InboxCategorization,
    InboxItemRead,
    InboxItemUpdate,
    InboxStats,
    IntelligentProcessingResult,
    MarkProcessed,
    PendingApproval,
    QuickCapture,
    RejectRequest,
    VoiceCapture,
)
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, InboxServiceDep

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[InboxItemRead],
    status_code=status.HTTP_201_CREATED,
    summary="Quick Capture",
    description="Capture a thought, task or list into the inbox for later processing.",
    response_description="The created inbox item.",
    responses={
        201: {"description": "Item captured"},
        400: {"description": "Empty capture"},
    },
)
async def quick_capture(
    request: Request, payload: QuickCapture, user_id: CurrentUserDep, service: InboxServiceDep
) -> Dict[str, Any]:
    """
    Quick capture.

    - **raw_text**: The captured text; it must not be blank.
    """
    item = await service.quick_capture(user_id, payload.raw_text)
    return ok(request, InboxItemRead.model_validate(item))


@router.post(
    "/voice",
    response_model=ApiResponse[InboxItemRead],
    status_code=status.HTTP_201_CREATED,
    summary="Voice Capture",
    description="Capture a speech-to-text transcription; the transcription is stored as the item text.",
    response_description="The created inbox item.",
)
async def voice_capture(
    request: Request, payload: VoiceCapture, user_id: CurrentUserDep, service: InboxServiceDep
) -> Dict[str, Any]:
    item = await service.voice_capture(user_id, payload.transcription)
    return ok(request, InboxItemRead.model_validate(item))


@router.get(
    "",
    response_model=ApiResponse[List[InboxItemRead]],
    summary="List Inbox Items",
    description="List the caller's inbox items, newest first.",
    response_description="Matching inbox items.",
)
async def list_inbox_items(
    request: Request,
    user_id: CurrentUserDep,
    service: InboxServiceDep,
    status_filter: Optional[List[InboxItemStatus]] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None, max_length=200),
    created_after: Optional[datetime] = None,
    created_before: Optional[datetime] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
) -> Dict[str, Any]:
    """
    List inbox items.

    - **status**: `unprocessed`, `processed` or `archived`; repeat to match several.
    - **search**: Case-insensitive match on the captured text.
    - **created_after** / **created_before**: Capture time window.
    """
    items = await service.list_items(
        user_id,
        statuses=[value.value for value in status_filter] if status_filter else None,
        search=search,
        created_after=created_after,
        created_before=created_before,
        limit=limit,
    )
    return ok(request, [InboxItemRead.model_validate(item) for item in items])


@router.get(
    "/stats",
    response_model=ApiResponse[InboxStats],
    summary="Inbox Statistics",
    description="Count the caller's inbox items per status.",
    response_description="Counts per status and in total.",
)
async def inbox_stats(request: Request, user_id: CurrentUserDep, service: InboxServiceDep) -> Dict[str, Any]:
    return ok(request, await service.stats(user_id))


@router.get(
    "/pending-approvals",
    response_model=ApiResponse[List[PendingApproval]],
    summary="Pending Approvals",
    description="Inbox items whose intelligent processing result awaits approval.",
    response_description="Items with their stored processing result.",
)
async def pending_approvals(request: Request, user_id: CurrentUserDep, service: InboxServiceDep) -> Dict[str, Any]:
    return ok(request, await service.pending_approvals(user_id))


@router.post(
    "/bulk",
    response_model=ApiResponse[BulkProcessResult],
    summary="Bulk Process",
    description="Archive, delete or mark several inbox items as processed. Unknown ids are skipped.",
    response_description="The affected items and the action applied.",
)
async def bulk_process(
    request: Request, payload: BulkProcessRequest, user_id: CurrentUserDep, service: InboxServiceDep
) -> Dict[str, Any]:
    """
    Bulk process items.

    - **action**: `process` (only unprocessed items change), `archive` or `delete`.
    - **item_ids**: Up to 100 item ids.
    """
    return ok(request, await service.bulk_process(user_id, payload.action, payload.item_ids))


@router.post(
    "/process-batch",
    response_model=ApiResponse[BatchProcessingStats],
    summary="Batch Process Inbox",
    description=(
        "Run intelligent processing on the unprocessed items without an approval step. Projects and tasks are "
        "created only when the overall confidence reaches the configured thresholds; every item is marked processed."
    ),
    response_description="Per-item outcomes and totals.",
)
async def process_batch(
    request: Request,
    user_id: CurrentUserDep,
    service: InboxServiceDep,
    payload: Optional[BatchProcessRequest] = None,
) -> Dict[str, Any]:
    """
    Batch process the inbox.

    - **limit**: Maximum number of unprocessed items to process, up to 100.
    """
    limit = payload.limit if payload else BatchProcessRequest().limit
    return ok(request, await service.process_batch(user_id, limit))


@router.get(
    "/{item_id}",
    response_model=ApiResponse[InboxItemRead],
    summary="Get Inbox Item",
    description="Retrieve one of the caller's inbox items.",
    response_description="The inbox item.",
    responses={404: {"description": "Inbox item not found"}},
)
async def get_inbox_item(request: Request, item_id: str, user_id: CurrentUserDep, service: InboxServiceDep) -> Dict[str, Any]:
    return ok(request, InboxItemRead.model_validate(await service.get_item(user_id, item_id)))


@router.patch(
    "/{item_id}",
    response_model=ApiResponse[InboxItemRead],
    summary="Update Inbox Item",
    description="Edit the captured text or change the status of an inbox item.",
    response_description="The updated inbox item.",
    responses={404: {"description": "Inbox item not found"}},
)
async def update_inbox_item(
    request: Request, item_id: str, payload: InboxItemUpdate, user_id: CurrentUserDep, service: InboxServiceDep
) -> Dict[str, Any]:
    item = await service.update_item(user_id, item_id, payload)
    return ok(request, InboxItemRead.model_validate(item))


@router.delete(
    "/{item_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Delete Inbox Item",
    description="Delete an inbox item.",
    response_description="Deletion confirmation.",
    responses={404: {"description": "Inbox item not found"}},
)
async def delete_inbox_item(request: Request, item_id: str, user_id: CurrentUserDep, service: InboxServiceDep) -> Dict[str, Any]:
    await service.delete_item(user_id, item_id)
    return ok(request, {"deleted": True, "id": item_id})


@router.post(
    "/{item_id}/processed",
    response_model=ApiResponse[InboxItemRead],
    summary="Mark as Processed",
    description="Mark an inbox item as processed, optionally linking the task created from it.",
    response_description="The processed inbox item.",
    responses={
        400: {"description": "Unknown task"},
        404: {"description": "Inbox item not found"},
    },
)
async def mark_processed(
    request: Request, item_id: str, payload: MarkProcessed, user_id: CurrentUserDep, service: InboxServiceDep
) -> Dict[str, Any]:
    item = await service.mark_as_processed(user_id, item_id, payload.created_task_id)
    return ok(request, InboxItemRead.model_validate(item))


@router.post(
    "/{item_id}/categorize",
    response_model=ApiResponse[InboxCategorization],
    summary="Categorize Item",
    description="Suggest a zone, priority, project and tasks for the item with the LLM. Falls back to defaults when the model fails.",
    response_description="Categorization suggestions.",
    responses={404: {"description": "Inbox item not found"}},
)
async def categorize_item(
    request: Request,
    item_id: str,
    user_id: CurrentUserDep,
    service: InboxServiceDep,
    payload: Optional[CategorizeRequest] = None,
) -> Dict[str, Any]:
    """
    Categorize an inbox item.

    - **user_context.current_energy**: Energy level from 1 to 5.
    - **user_context.available_time**: Minutes available.
    - **user_context.preferred_zone** / **working_hours**: Optional hints.
    """
    user_context = payload.user_context if payload else None
    return ok(request, await service.categorize(user_id, item_id, user_context))


@router.post(
    "/{item_id}/process",
    response_model=ApiResponse[IntelligentProcessingResult],
    summary="Process Item Intelligently",
    description="Split the item into suggested tasks, projects and task hierarchies. The result is stored for approval.",
    response_description="The processing result awaiting approval.",
    responses={404: {"description": "Inbox item not found"}},
)
async def process_item(request: Request, item_id: str, user_id: CurrentUserDep, service: InboxServiceDep) -> Dict[str, Any]:
    return ok(request, await service.process_intelligently(user_id, item_id))


@router.post(
    "/{item_id}/approve",
    response_model=ApiResponse[ApprovalResult],
    summary="Approve Processing Result",
    description="Create the approved projects and tasks of the stored processing result and mark the item processed.",
    response_description="Created and skipped tasks and projects.",
    responses={
        400: {"description": "No pending processing result for this inbox item"},
        404: {"description": "Inbox item not found"},
    },
)
async def approve_item(
    request: Request, item_id: str, payload: ApprovalRequest, user_id: CurrentUserDep, service: InboxServiceDep
) -> Dict[str, Any]:
    """
    Approve suggestions.

    - **approved_task_ids** / **approved_project_ids**: Suggested ids to create; the rest are skipped.
    - **modifications**: Optional edits per suggested task or project id.
    """
    return ok(request, await service.approve(user_id, item_id, payload))


@router.post(
    "/{item_id}/reject",
    response_model=ApiResponse[InboxItemRead],
    summary="Reject Processing Result",
    description="Discard the stored processing result; the item stays unprocessed.",
    response_description="The inbox item.",
    responses={
        400: {"description": "No pending processing result for this inbox item"},
        404: {"description": "Inbox item not found"},
    },
)
async def reject_item(
    request: Request,
    item_id: str,
    user_id: CurrentUserDep,
    service: InboxServiceDep,
    payload: Optional[RejectRequest] = None,
) -> Dict[str, Any]:
    item = await service.reject(user_id, item_id, payload.reason if payload else None)
    return ok(request, InboxItemRead.model_validate(item))

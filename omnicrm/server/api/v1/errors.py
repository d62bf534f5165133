"""
Sync Errors API Endpoints.

Recorded ingestion errors with their classification and recovery
suggestions, and ad-hoc classification of an error message.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from omnicrm.core.database.entities.integrations import GoogleService
from omnicrm.core.models.io.dashboard import ClassifyRequest, ClassifyResult, RecentErrors
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, ErrorsServiceDep

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[RecentErrors],
    summary="List Sync Errors",
    description="The caller's most recent ingestion errors, each classified, plus a summary with suggested actions.",
    response_description="Classified errors and their batch summary.",
)
async def recent_errors(
    request: Request,
    user_id: CurrentUserDep,
    service: ErrorsServiceDep,
    provider: Optional[GoogleService] = None,
    limit: int = Query(default=50, ge=1, le=200),
) -> Dict[str, Any]:
    """
    List recent sync errors.

    - **provider**: Restrict to `gmail` or `calendar`.
    - **limit**: Number of errors, newest first (max 200).
    """
    result = await service.recent_errors(user_id, provider=provider.value if provider else None, limit=limit)
    return ok(request, result)


@router.post(
    "/classify",
    response_model=ApiResponse[ClassifyResult],
    summary="Classify Error",
    description="Classify an error message and build the report shown to the user.",
    response_description="Classification and user-facing report.",
)
async def classify_error(
    request: Request, payload: ClassifyRequest, user_id: CurrentUserDep, service: ErrorsServiceDep
) -> Dict[str, Any]:
    """
    Classify an error message.

    - **message**: The raw error message.
    - **context**: Optional context copied into the debug information.
    """
    return ok(request, service.classify(payload.message, payload.context))

"""
Dashboard API Endpoints.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request

from omnicrm.core.models.io.dashboard import DashboardSummary
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, DashboardServiceDep

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[DashboardSummary],
    summary="Dashboard Summary",
    description="Contact and note totals, task counts per status, inbox statistics, connected Google services and the last sync run.",
    response_description="Dashboard summary.",
)
async def dashboard_summary(request: Request, user_id: CurrentUserDep, service: DashboardServiceDep) -> Dict[str, Any]:
    return ok(request, await service.summary(user_id))

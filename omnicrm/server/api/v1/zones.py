"""
Zones API Endpoints.

Zones are the shared life/business areas (Personal Wellness, Client Care, ...)
that projects and tasks are grouped under. The list can include per-caller
progress statistics.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Request, status

from omnicrm.core.models.io.momentum import ZoneCreate, ZonePalette, ZoneRead, ZoneUpdate, ZoneWithStats
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, ZonesServiceDep

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[List[ZoneRead]],
    summary="List Zones",
    description="List all zones ordered by name.",
    response_description="Zones ordered by name.",
)
async def list_zones(request: Request, user_id: CurrentUserDep, service: ZonesServiceDep) -> Dict[str, Any]:
    zones = await service.list_zones()
    return ok(request, [ZoneRead.model_validate(zone) for zone in zones])


@router.get(
    "/stats",
    response_model=ApiResponse[List[ZoneWithStats]],
    summary="List Zones with Statistics",
    description="List all zones with the caller's project and task statistics per zone.",
    response_description="Zones with progress statistics.",
)
async def list_zones_with_stats(request: Request, user_id: CurrentUserDep, service: ZonesServiceDep) -> Dict[str, Any]:
    """
    List zones with statistics.

    - **active_projects**: The caller's projects in the zone with status `active`.
    - **active_tasks** / **completed_tasks**: Open and done tasks of those projects.
    - **progress_percentage**: completed / (active + completed) x 100, rounded to 2 decimals.
    """
    return ok(request, await service.list_with_stats(user_id))


@router.get(
    "/palette",
    response_model=ApiResponse[ZonePalette],
    summary="Zone Palette",
    description="Colors, icons and categories offered when creating or editing a zone.",
    response_description="Zone palette.",
)
async def zone_palette(request: Request, user_id: CurrentUserDep, service: ZonesServiceDep) -> Dict[str, Any]:
    return ok(request, service.palette())


@router.get(
    "/{zone_id}",
    response_model=ApiResponse[ZoneRead],
    summary="Get Zone",
    description="Retrieve a zone by id.",
    response_description="The zone.",
    responses={404: {"description": "Zone not found"}},
)
async def get_zone(request: Request, zone_id: int, user_id: CurrentUserDep, service: ZonesServiceDep) -> Dict[str, Any]:
    return ok(request, ZoneRead.model_validate(await service.get_zone(zone_id)))


@router.post(
    "",
    response_model=ApiResponse[ZoneRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create Zone",
    description="Create a zone. The name must be unique.",
    response_description="The created zone.",
    responses={
        400: {"description": "Invalid zone data"},
        409: {"description": "A zone with this name already exists"},
    },
)
async def create_zone(
    request: Request, payload: ZoneCreate, user_id: CurrentUserDep, service: ZonesServiceDep
) -> Dict[str, Any]:
    """
    Create a zone.

    - **name**: 1 to 100 characters after trimming.
    - **color**: Optional `#RRGGBB` color.
    - **icon_name**: Optional icon from the palette.
    """
    return ok(request, ZoneRead.model_validate(await service.create_zone(payload)))


@router.patch(
    "/{zone_id}",
    response_model=ApiResponse[ZoneRead],
    summary="Update Zone",
    description="Rename or restyle a zone.",
    response_description="The updated zone.",
    responses={
        400: {"description": "Invalid zone data"},
        404: {"description": "Zone not found"},
        409: {"description": "A zone with this name already exists"},
    },
)
async def update_zone(
    request: Request, zone_id: int, payload: ZoneUpdate, user_id: CurrentUserDep, service: ZonesServiceDep
) -> Dict[str, Any]:
    return ok(request, ZoneRead.model_validate(await service.update_zone(zone_id, payload)))


@router.delete(
    "/{zone_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Delete Zone",
    description="Delete a zone that no project uses.",
    response_description="Deletion confirmation.",
    responses={
        404: {"description": "Zone not found"},
        409: {"description": "Zone is assigned to existing projects"},
    },
)
async def delete_zone(request: Request, zone_id: int, user_id: CurrentUserDep, service: ZonesServiceDep) -> Dict[str, Any]:
    await service.delete_zone(zone_id)
    return ok(request, {"deleted": True, "id": zone_id})

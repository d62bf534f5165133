"""
Projects API Endpoints.

Projects group the caller's tasks and optionally belong to a zone.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request, status

from omnicrm.core.database.entities.momentum import ProjectStatus
from omnicrm.core.models.io.momentum import ProjectCreate, ProjectRead, ProjectUpdate, TaskRead
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, ProjectsServiceDep, TasksServiceDep

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[ProjectRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create Project",
    description="Create a project, optionally inside a zone.",
    response_description="The created project.",
    responses={
        201: {"description": "Project created successfully"},
        400: {"description": "Invalid project data or unknown zone"},
    },
)
async def create_project(
    request: Request, payload: ProjectCreate, user_id: CurrentUserDep, service: ProjectsServiceDep
) -> Dict[str, Any]:
    """
    Create a project.

    - **name**: Project name.
    - **zone_id**: Optional zone; it must exist.
    - **status**: `active` (default), `on_hold`, `completed` or `archived`.
    - **due_date**: Optional due date.
    - **details**: Free-form metadata.
    """
    project = await service.create_project(user_id, payload)
    return ok(request, ProjectRead.model_validate(project))


@router.get(
    "",
    response_model=ApiResponse[List[ProjectRead]],
    summary="List Projects",
    description="List the caller's projects, filtered by zone, status or name.",
    response_description="Matching projects, newest first.",
)
async def list_projects(
    request: Request,
    user_id: CurrentUserDep,
    service: ProjectsServiceDep,
    zone_id: Optional[int] = None,
    status_filter: Optional[List[ProjectStatus]] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None, max_length=200),
) -> Dict[str, Any]:
    statuses = [value.value for value in status_filter] if status_filter else None
    projects = await service.list_projects(user_id, zone_id=zone_id, statuses=statuses, search=search)
    return ok(request, [ProjectRead.model_validate(project) for project in projects])


@router.get(
    "/{project_id}",
    response_model=ApiResponse[ProjectRead],
    summary="Get Project",
    description="Retrieve one of the caller's projects.",
    response_description="The project.",
    responses={404: {"description": "Project not found"}},
)
async def get_project(
    request: Request, project_id: str, user_id: CurrentUserDep, service: ProjectsServiceDep
) -> Dict[str, Any]:
    return ok(request, ProjectRead.model_validate(await service.get_project(user_id, project_id)))


@router.patch(
    "/{project_id}",
    response_model=ApiResponse[ProjectRead],
    summary="Update Project",
    description="Partially update a project.",
    response_description="The updated project.",
    responses={
        400: {"description": "Invalid project data or unknown zone"},
        404: {"description": "Project not found"},
    },
)
async def update_project(
    request: Request,
    project_id: str,
    payload: ProjectUpdate,
    user_id: CurrentUserDep,
    service: ProjectsServiceDep,
) -> Dict[str, Any]:
    project = await service.update_project(user_id, project_id, payload)
    return ok(request, ProjectRead.model_validate(project))


@router.delete(
    "/{project_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Delete Project",
    description="Delete a project. Its tasks are kept and detached from it.",
    response_description="Deletion confirmation.",
    responses={404: {"description": "Project not found"}},
)
async def delete_project(
    request: Request, project_id: str, user_id: CurrentUserDep, service: ProjectsServiceDep
) -> Dict[str, Any]:
    await service.delete_project(user_id, project_id)
    return ok(request, {"deleted": True, "id": project_id})


@router.get(
    "/{project_id}/tasks",
    response_model=ApiResponse[List[TaskRead]],
    summary="List Project Tasks",
    description="List the tasks of a project.",
    response_description="Tasks of the project.",
    responses={404: {"description": "Project not found"}},
)
async def list_project_tasks(
    request: Request,
    project_id: str,
    user_id: CurrentUserDep,
    projects: ProjectsServiceDep,
    tasks: TasksServiceDep,
) -> Dict[str, Any]:
    await projects.get_project(user_id, project_id)
    result = await tasks.list_tasks(user_id, project_id=project_id)
    return ok(request, [TaskRead.model_validate(task) for task in result])

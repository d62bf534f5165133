"""
Tasks API Endpoints.

Tasks belong to the caller, optionally sit in a project, can have subtasks
through ``parent_task_id`` and can be tagged with contacts.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request, status

from omnicrm.core.database.entities.momentum import TaskPriority, TaskStatus
from omnicrm.core.models.io.momentum import (
    TaskContactTagRequest,
    TaskCreate,
    TaskRead,
    TaskUpdate,
    TaskWithRelations,
)
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, TasksServiceDep

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[TaskRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a task, optionally inside a project or under a parent task.",
    response_description="The created task.",
    responses={
        201: {"description": "Task created successfully"},
        400: {"description": "Invalid task data, unknown project or parent task"},
    },
)
async def create_task(
    request: Request, payload: TaskCreate, user_id: CurrentUserDep, service: TasksServiceDep
) -> Dict[str, Any]:
    """
    Create a task.

    - **name**: Task name.
    - **project_id** / **parent_task_id**: Optional; both must belong to the caller.
    - **status**: `todo` (default), `in_progress`, `done` or `canceled`.
    - **priority**: `low`, `medium` (default), `high` or `urgent`.
    - **due_date**: Optional due date.
    """
    task = await service.create_task(user_id, payload)
    return ok(request, TaskRead.model_validate(task))


@router.get(
    "",
    response_model=ApiResponse[List[TaskRead]],
    summary="List Tasks",
    description="List the caller's tasks with optional filters.",
    response_description="Matching tasks, newest first.",
)
async def list_tasks(
    request: Request,
    user_id: CurrentUserDep,
    service: TasksServiceDep,
    status_filter: Optional[List[TaskStatus]] = Query(default=None, alias="status"),
    priority: Optional[List[TaskPriority]] = Query(default=None),
    project_id: Optional[str] = None,
    parent_task_id: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    due_after: Optional[datetime] = None,
    due_before: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    List tasks.

    - **status** / **priority**: Repeat the parameter to match several values.
    - **project_id** / **parent_task_id**: Restrict to a project or to the subtasks of a task.
    - **search**: Case-insensitive match on the task name.
    - **due_after** / **due_before**: Due date window.
    """
    tasks = await service.list_tasks(
        user_id,
        statuses=[value.value for value in status_filter] if status_filter else None,
        priorities=[value.value for value in priority] if priority else None,
        project_id=project_id,
        parent_task_id=parent_task_id,
        search=search,
        due_after=due_after,
        due_before=due_before,
    )
    return ok(request, [TaskRead.model_validate(task) for task in tasks])


@router.get(
    "/{task_id}",
    response_model=ApiResponse[TaskWithRelations],
    summary="Get Task",
    description="Retrieve a task with its project, parent task, subtasks and tagged contacts.",
    response_description="The task and its relations.",
    responses={404: {"description": "Task not found"}},
)
async def get_task(request: Request, task_id: str, user_id: CurrentUserDep, service: TasksServiceDep) -> Dict[str, Any]:
    return ok(request, await service.get_task_with_relations(user_id, task_id))


@router.patch(
    "/{task_id}",
    response_model=ApiResponse[TaskRead],
    summary="Update Task",
    description="Partially update a task. Moving to `done` stamps `completed_at`; leaving `done` clears it.",
    response_description="The updated task.",
    responses={
        400: {"description": "Invalid task data"},
        404: {"description": "Task not found"},
    },
)
async def update_task(
    request: Request, task_id: str, payload: TaskUpdate, user_id: CurrentUserDep, service: TasksServiceDep
) -> Dict[str, Any]:
    task = await service.update_task(user_id, task_id, payload)
    return ok(request, TaskRead.model_validate(task))


@router.delete(
    "/{task_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Delete Task",
    description="Delete a task and its contact tags.",
    response_description="Deletion confirmation.",
    responses={404: {"description": "Task not found"}},
)
async def delete_task(request: Request, task_id: str, user_id: CurrentUserDep, service: TasksServiceDep) -> Dict[str, Any]:
    await service.delete_task(user_id, task_id)
    return ok(request, {"deleted": True, "id": task_id})


@router.get(
    "/{task_id}/subtasks",
    response_model=ApiResponse[List[TaskRead]],
    summary="List Subtasks",
    description="List the direct subtasks of a task.",
    response_description="Subtasks of the task.",
    responses={404: {"description": "Task not found"}},
)
async def list_subtasks(request: Request, task_id: str, user_id: CurrentUserDep, service: TasksServiceDep) -> Dict[str, Any]:
    subtasks = await service.list_subtasks(user_id, task_id)
    return ok(request, [TaskRead.model_validate(task) for task in subtasks])


@router.post(
    "/{task_id}/contacts",
    response_model=ApiResponse[TaskWithRelations],
    summary="Tag Contacts",
    description="Tag the task with one or more of the caller's contacts.",
    response_description="The task and its relations after tagging.",
    responses={
        400: {"description": "Unknown contact"},
        404: {"description": "Task not found"},
    },
)
async def tag_task_contacts(
    request: Request,
    task_id: str,
    payload: TaskContactTagRequest,
    user_id: CurrentUserDep,
    service: TasksServiceDep,
) -> Dict[str, Any]:
    return ok(request, await service.tag_contacts(user_id, task_id, payload.contact_ids))


@router.delete(
    "/{task_id}/contacts/{contact_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Untag Contact",
    description="Remove a contact tag from the task.",
    response_description="Removal confirmation.",
    responses={404: {"description": "Task or tag not found"}},
)
async def untag_task_contact(
    request: Request, task_id: str, contact_id: str, user_id: CurrentUserDep, service: TasksServiceDep
) -> Dict[str, Any]:
    await service.untag_contact(user_id, task_id, contact_id)
    return ok(request, {"deleted": True, "task_id": task_id, "contact_id": contact_id})

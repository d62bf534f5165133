"""
OmniMomentum services: zones, projects and tasks.

Zones are shared categories seeded at startup; projects and tasks belong to a
single practitioner and may only reference that practitioner's rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from omnicrm.core.database.base import utc_now
from omnicrm.core.database.entities.momentum import Project, Task, TaskStatus, Zone
from omnicrm.core.database.repositories.bundle import SqlRepoBundle
from omnicrm.core.database.repositories.momentum import ZoneRepository
from omnicrm.core.logging_config import get_logger
from omnicrm.core.models.io.contacts import ContactRead
from omnicrm.core.models.io.momentum import (
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
    TaskCreate,
    TaskRead,
    TaskUpdate,
    TaskWithRelations,
    ZoneCreate,
    ZonePalette,
    ZoneUpdate,
    ZoneWithStats,
)
from omnicrm.core.utils.zones import DEFAULT_ZONES, sanitize_zone_data, validate_zone_data, zone_palette
from omnicrm.server.response import APIError, ApiErrorCode

logger = get_logger(__name__)


async def seed_default_zones(session_maker: async_sessionmaker[AsyncSession]) -> int:
    """Insert the default zones that do not exist yet. Returns the number inserted."""
    async with session_maker() as session:
        repo = ZoneRepository(session)
        inserted = 0
        for name, color, icon_name in DEFAULT_ZONES:
            if await repo.get_by_name(name) is None:
                await repo.add(Zone(name=name, color=color, icon_name=icon_name))
                inserted += 1
        await repo.commit()
    if inserted:
        logger.info(f"Seeded {inserted} default zones")
    return inserted


def progress_percentage(active_tasks: int, completed_tasks: int) -> float:
    total = active_tasks + completed_tasks
    return round(completed_tasks / total * 100, 2) if total else 0


class ZonesService:
    def __init__(self, repos: SqlRepoBundle) -> None:
        self.repos = repos

    async def list_zones(self) -> List[Zone]:
        return await self.repos.zones.list_all()

    async def list_with_stats(self, user_id: str) -> List[ZoneWithStats]:
        zones = await self.repos.zones.list_all()
        stats = await self.repos.zones.stats_for_user(user_id)
        result = []
        for zone in zones:
            counts = stats.get(zone.id, {"active_projects": 0, "active_tasks": 0, "completed_tasks": 0})
            result.append(
                ZoneWithStats(
                    id=zone.id,
                    name=zone.name,
                    color=zone.color,
                    icon_name=zone.icon_name,
                    progress_percentage=progress_percentage(counts["active_tasks"], counts["completed_tasks"]),
                    **counts,
                )
            )
        return result

    async def get_zone(self, zone_id: int) -> Zone:
        zone = await self.repos.zones.get_by_id(zone_id)
        if zone is None:
            raise APIError.not_found("Zone")
        return zone

    async def _ensure_unique_name(self, name: str, zone_id: Optional[int] = None) -> None:
        existing = await self.repos.zones.get_by_name(name)
        if existing is not None and existing.id != zone_id:
            raise APIError(ApiErrorCode.CONFLICT, f"Zone '{name}' already exists")

    async def create_zone(self, payload: ZoneCreate) -> Zone:
        errors = validate_zone_data(payload.name, payload.color, payload.icon_name)
        if errors:
            raise APIError.validation("Invalid zone data", details={"errors": errors})
        data = sanitize_zone_data(payload.name, payload.color, payload.icon_name)
        await self._ensure_unique_name(data["name"])
        zone = await self.repos.zones.create(Zone(**data))
        logger.info(f"Created zone {zone.id} ({zone.name})")
        return zone

    async def update_zone(self, zone_id: int, payload: ZoneUpdate) -> Zone:
        zone = await self.get_zone(zone_id)
        name = payload.name if payload.name is not None else zone.name
        color = payload.color if payload.color is not None else zone.color
        icon_name = payload.icon_name if payload.icon_name is not None else zone.icon_name

        errors = validate_zone_data(name, color, icon_name)
        if errors:
            raise APIError.validation("Invalid zone data", details={"errors": errors})
        data = sanitize_zone_data(name, color, icon_name)
        await self._ensure_unique_name(data["name"], zone_id=zone.id)

        zone.name = data["name"]
        zone.color = data["color"]
        zone.icon_name = data["icon_name"]
        return await self.repos.zones.update(zone)

    async def delete_zone(self, zone_id: int) -> None:
        zone = await self.get_zone(zone_id)
        if await self.repos.zones.is_in_use(zone.id):
            raise APIError(ApiErrorCode.CONFLICT, "Zone is assigned to existing projects")
        await self.repos.zones.delete(zone.id)

    @staticmethod
    def palette() -> ZonePalette:
        return ZonePalette(**zone_palette())


class ProjectsService:
    def __init__(self, repos: SqlRepoBundle) -> None:
        self.repos = repos

    async def _check_zone(self, zone_id: Optional[int]) -> None:
        if zone_id is not None and await self.repos.zones.get_by_id(zone_id) is None:
            raise APIError.validation(f"Zone {zone_id} does not exist")

    async def create_project(self, user_id: str, payload: ProjectCreate) -> Project:
        await self._check_zone(payload.zone_id)
        project = Project(
            user_id=user_id,
            name=payload.name.strip(),
            zone_id=payload.zone_id,
            status=payload.status.value,
            due_date=payload.due_date,
            details=payload.details,
        )
        return await self.repos.projects.create(project)

    async def list_projects(
        self,
        user_id: str,
        zone_id: Optional[int] = None,
        statuses: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
    ) -> List[Project]:
        return await self.repos.projects.list_filtered(user_id, zone_id=zone_id, statuses=statuses, search=search)

    async def get_project(self, user_id: str, project_id: str) -> Project:
        project = await self.repos.projects.get_for_user(user_id, project_id)
        if project is None:
            raise APIError.not_found("Project")
        return project

    async def update_project(self, user_id: str, project_id: str, payload: ProjectUpdate) -> Project:
        project = await self.get_project(user_id, project_id)
        changes = payload.model_dump(exclude_unset=True)
        if "zone_id" in changes:
            await self._check_zone(changes["zone_id"])
        if changes.get("name", "") is None or changes.get("status", "") is None:
            raise APIError.validation("name and status cannot be null")
        for field, value in changes.items():
            if field == "status":
                value = payload.status.value
            elif field == "details":
                value = dict(value or {})
            setattr(project, field, value)
        return await self.repos.projects.update(project)

    async def delete_project(self, user_id: str, project_id: str) -> None:
        if not await self.repos.projects.delete_for_user(user_id, project_id):
            raise APIError.not_found("Project")


def _apply_completion(task: Task, status: str) -> None:
    """Stamp ``completed_at`` when a task becomes done and clear it when it leaves done."""
    if status == TaskStatus.DONE.value and task.status != TaskStatus.DONE.value:
        task.completed_at = utc_now()
    elif status != TaskStatus.DONE.value:
        task.completed_at = None
    task.status = status


class TasksService:
    def __init__(self, repos: SqlRepoBundle) -> None:
        self.repos = repos

    async def _check_project(self, user_id: str, project_id: Optional[str]) -> None:
        if project_id is not None and await self.repos.projects.get_for_user(user_id, project_id) is None:
            raise APIError.validation(f"Project {project_id} does not exist")

    async def _check_parent(self, user_id: str, parent_task_id: Optional[str], task_id: Optional[str] = None) -> None:
        if parent_task_id is None:
            return
        if parent_task_id == task_id:
            raise APIError.validation("A task cannot be its own parent")
        ancestor = await self.repos.tasks.get_for_user(user_id, parent_task_id)
        if ancestor is None:
            raise APIError.validation(f"Parent task {parent_task_id} does not exist")
        if task_id is None:
            return

        # walk up from the new parent; reaching the task itself would close a loop
        seen = {ancestor.id}
        while ancestor.parent_task_id and ancestor.parent_task_id not in seen:
            if ancestor.parent_task_id == task_id:
                raise APIError.validation("A task cannot be moved under one of its own subtasks")
            seen.add(ancestor.parent_task_id)
            ancestor = await self.repos.tasks.get_for_user(user_id, ancestor.parent_task_id)
            if ancestor is None:
                return

    async def create_task(self, user_id: str, payload: TaskCreate) -> Task:
        await self._check_project(user_id, payload.project_id)
        await self._check_parent(user_id, payload.parent_task_id)
        task = Task(
            user_id=user_id,
            name=payload.name.strip(),
            project_id=payload.project_id,
            parent_task_id=payload.parent_task_id,
            status=TaskStatus.TODO.value,
            priority=payload.priority.value,
            due_date=payload.due_date,
            details=payload.details,
        )
        _apply_completion(task, payload.status.value)
        return await self.repos.tasks.create(task)

    async def list_tasks(
        self,
        user_id: str,
        statuses: Optional[Sequence[str]] = None,
        priorities: Optional[Sequence[str]] = None,
        project_id: Optional[str] = None,
        parent_task_id: Optional[str] = None,
        search: Optional[str] = None,
        due_after: Optional[datetime] = None,
        due_before: Optional[datetime] = None,
    ) -> List[Task]:
        return await self.repos.tasks.list_filtered(
            user_id,
            statuses=statuses,
            priorities=priorities,
            project_id=project_id,
            parent_task_id=parent_task_id,
            search=search,
            due_after=due_after,
            due_before=due_before,
        )

    async def get_task(self, user_id: str, task_id: str) -> Task:
        task = await self.repos.tasks.get_for_user(user_id, task_id)
        if task is None:
            raise APIError.not_found("Task")
        return task

    async def get_task_with_relations(self, user_id: str, task_id: str) -> TaskWithRelations:
        task = await self.get_task(user_id, task_id)
        project = await self.repos.projects.get_for_user(user_id, task.project_id) if task.project_id else None
        parent = await self.repos.tasks.get_for_user(user_id, task.parent_task_id) if task.parent_task_id else None
        subtasks = await self.repos.tasks.subtasks(user_id, task.id)
        contacts = await self.repos.tasks.tagged_contacts(task.id)

        data: Dict[str, Any] = TaskRead.model_validate(task).model_dump()
        return TaskWithRelations(
            **data,
            project=ProjectRead.model_validate(project) if project else None,
            parent_task=TaskRead.model_validate(parent) if parent else None,
            subtasks=[TaskRead.model_validate(subtask) for subtask in subtasks],
            tagged_contacts=[ContactRead.model_validate(contact) for contact in contacts],
        )

    async def update_task(self, user_id: str, task_id: str, payload: TaskUpdate) -> Task:
        task = await self.get_task(user_id, task_id)
        changes = payload.model_dump(exclude_unset=True)
        if "project_id" in changes:
            await self._check_project(user_id, changes["project_id"])
        if "parent_task_id" in changes:
            await self._check_parent(user_id, changes["parent_task_id"], task_id=task.id)
        for required in ("name", "status", "priority"):
            if required in changes and changes[required] is None:
                raise APIError.validation(f"{required} cannot be null")

        for field, value in changes.items():
            if field == "status":
                _apply_completion(task, payload.status.value)
                continue
            if field == "priority":
                value = payload.priority.value
            elif field == "details":
                value = dict(value or {})
            setattr(task, field, value)
        return await self.repos.tasks.update(task)

    async def delete_task(self, user_id: str, task_id: str) -> None:
        if not await self.repos.tasks.delete_for_user(user_id, task_id):
            raise APIError.not_found("Task")

    async def list_subtasks(self, user_id: str, task_id: str) -> List[Task]:
        await self.get_task(user_id, task_id)
        return await self.repos.tasks.subtasks(user_id, task_id)

    async def _owned_contacts(self, user_id: str, contact_ids: Sequence[str]) -> List[str]:
        owned = []
        for contact_id in dict.fromkeys(contact_ids):
            if await self.repos.contacts.get_for_user(user_id, contact_id) is None:
                raise APIError.validation(f"Contact {contact_id} does not exist")
            owned.append(contact_id)
        return owned

    async def tag_contacts(self, user_id: str, task_id: str, contact_ids: Sequence[str]) -> TaskWithRelations:
        task = await self.get_task(user_id, task_id)
        for contact_id in await self._owned_contacts(user_id, contact_ids):
            await self.repos.tasks.tag_contact(task.id, contact_id)
        return await self.get_task_with_relations(user_id, task.id)

    async def untag_contact(self, user_id: str, task_id: str, contact_id: str) -> None:
        task = await self.get_task(user_id, task_id)
        if not await self.repos.tasks.untag_contact(task.id, contact_id):
            raise APIError.not_found("Contact tag")

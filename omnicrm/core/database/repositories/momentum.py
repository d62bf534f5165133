"""
OmniMomentum repositories.

Data access for zones, projects, tasks and task/contact tags, including the
filtered listings and per-zone statistics used by the productivity views.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.contacts import Contact
from ..entities.inbox import InboxItem
from ..entities.momentum import Project, ProjectStatus, Task, TaskContactTag, TaskStatus, Zone
from .base import LIKE_ESCAPE, AsyncSqlRepository, UserScopedRepository, contains_pattern


class ZoneRepository(AsyncSqlRepository[Zone]):
    """Repository for zones. Zones are global, not user-scoped."""

    order_by = None

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Zone)

    async def list_all(self) -> List[Zone]:
        result = await self.session.execute(select(Zone).order_by(Zone.name))
        return list(result.scalars().all())

    async def get_by_name(self, name: str) -> Optional[Zone]:
        stmt = select(Zone).where(func.lower(Zone.name) == name.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def stats_for_user(self, user_id: str) -> Dict[int, Dict[str, int]]:
        """Count a user's active projects and active/completed tasks per zone.

        Tasks are attributed to the zone of their project.

        Returns:
            Mapping of zone id to ``{"active_projects", "active_tasks", "completed_tasks"}``
        """
        stats: Dict[int, Dict[str, int]] = {}

        def bucket(zone_id: int) -> Dict[str, int]:
            return stats.setdefault(zone_id, {"active_projects": 0, "active_tasks": 0, "completed_tasks": 0})

        project_stmt = (
            select(Project.zone_id, func.count())
            .where(
                (Project.user_id == user_id)
                & (Project.zone_id.is_not(None))
                & (Project.status == ProjectStatus.ACTIVE.value)
            )
            .group_by(Project.zone_id)
        )
        for zone_id, count in (await self.session.execute(project_stmt)).all():
            bucket(zone_id)["active_projects"] = int(count)

        task_stmt = (
            select(Project.zone_id, Task.status, func.count())
            .join(Project, Task.project_id == Project.id)
            .where((Task.user_id == user_id) & (Project.zone_id.is_not(None)))
            .group_by(Project.zone_id, Task.status)
        )
        for zone_id, status, count in (await self.session.execute(task_stmt)).all():
            if status == TaskStatus.DONE.value:
                bucket(zone_id)["completed_tasks"] += int(count)
            elif status in (TaskStatus.TODO.value, TaskStatus.IN_PROGRESS.value):
                bucket(zone_id)["active_tasks"] += int(count)
        return stats

    async def is_in_use(self, zone_id: int) -> bool:
        stmt = select(func.count()).select_from(Project).where(Project.zone_id == zone_id)
        return int((await self.session.execute(stmt)).scalar_one()) > 0


class ProjectRepository(UserScopedRepository[Project]):
    """Repository for projects."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Project)

    async def list_filtered(
        self,
        user_id: str,
        zone_id: Optional[int] = None,
        statuses: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
    ) -> List[Project]:
        stmt = select(Project).where(Project.user_id == user_id)
        if zone_id is not None:
            stmt = stmt.where(Project.zone_id == zone_id)
        if statuses:
            stmt = stmt.where(Project.status.in_(list(statuses)))
        if search and search.strip():
            stmt = stmt.where(func.lower(Project.name).like(contains_pattern(search), escape=LIKE_ESCAPE))
        stmt = stmt.order_by(Project.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_for_user(self, user_id: str, project_id: str) -> bool:
        """Delete a project and detach its tasks."""
        project = await self.get_for_user(user_id, project_id)
        if project is None:
            return False
        await self.session.execute(update(Task).where(Task.project_id == project_id).values(project_id=None))
        await self.session.delete(project)
        await self.session.commit()
        return True


class TaskRepository(UserScopedRepository[Task]):
    """Repository for tasks and their contact tags."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Task)

    async def list_filtered(
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
        stmt = select(Task).where(Task.user_id == user_id)
        if statuses:
            stmt = stmt.where(Task.status.in_(list(statuses)))
        if priorities:
            stmt = stmt.where(Task.priority.in_(list(priorities)))
        if project_id is not None:
            stmt = stmt.where(Task.project_id == project_id)
        if parent_task_id is not None:
            stmt = stmt.where(Task.parent_task_id == parent_task_id)
        if search and search.strip():
            stmt = stmt.where(func.lower(Task.name).like(contains_pattern(search), escape=LIKE_ESCAPE))
        if due_after is not None:
            stmt = stmt.where(Task.due_date >= due_after)
        if due_before is not None:
            stmt = stmt.where(Task.due_date <= due_before)
        stmt = stmt.order_by(Task.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def subtasks(self, user_id: str, task_id: str) -> List[Task]:
        stmt = (
            select(Task)
            .where((Task.user_id == user_id) & (Task.parent_task_id == task_id))
            .order_by(Task.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self, user_id: str) -> Dict[str, int]:
        stmt = select(Task.status, func.count()).where(Task.user_id == user_id).group_by(Task.status)
        result = await self.session.execute(stmt)
        return {status: int(count) for status, count in result.all()}

    async def delete_for_user(self, user_id: str, task_id: str) -> bool:
        """Delete a task. Subtasks are promoted to top-level tasks."""
        task = await self.get_for_user(user_id, task_id)
        if task is None:
            return False
        await self.session.execute(update(Task).where(Task.parent_task_id == task_id).values(parent_task_id=None))
        await self.session.execute(
            update(InboxItem).where(InboxItem.created_task_id == task_id).values(created_task_id=None)
        )
        await self.session.execute(delete(TaskContactTag).where(TaskContactTag.task_id == task_id))
        await self.session.delete(task)
        await self.session.commit()
        return True

    async def tag_contact(self, task_id: str, contact_id: str) -> bool:
        """Tag a contact on a task. Returns False when the tag already exists."""
        existing = await self.session.get(TaskContactTag, (task_id, contact_id))
        if existing is not None:
            return False
        self.session.add(TaskContactTag(task_id=task_id, contact_id=contact_id))
        await self.session.commit()
        return True

    async def untag_contact(self, task_id: str, contact_id: str) -> bool:
        existing = await self.session.get(TaskContactTag, (task_id, contact_id))
        if existing is None:
            return False
        await self.session.delete(existing)
        await self.session.commit()
        return True

    async def tagged_contacts(self, task_id: str) -> List[Contact]:
        stmt = (
            select(Contact)
            .join(TaskContactTag, TaskContactTag.contact_id == Contact.id)
            .where(TaskContactTag.task_id == task_id)
            .order_by(Contact.display_name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

"""
OmniMomentum entity models.

Zones are life/business categories, projects group tasks inside a zone and
tasks may nest under a parent task. Tasks can be tagged with contacts.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELED = "canceled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Zone(Base, table=True):
    """Life/business area used to group projects and tasks.

    Zones are shared across users and looked up by name.

    Table: zones
    """

    __tablename__ = "zones"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100, unique=True)
    color: Optional[str] = Field(default=None, max_length=7)
    icon_name: Optional[str] = Field(default=None, max_length=50)

    def __repr__(self) -> str:
        return f"Zone(id={self.id}, name={self.name})"


class Project(Base, table=True):
    """Project (pathway) grouping tasks toward an outcome.

    Table: projects
    """

    __tablename__ = "projects"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    zone_id: Optional[int] = Field(default=None, foreign_key="zones.id", index=True)
    name: str = Field(max_length=255)
    status: str = Field(default=ProjectStatus.ACTIVE, sa_type=sa.String(16), index=True)
    due_date: Optional[datetime] = Field(sa_type=sa.DateTime, default=None)
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)

    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)
    updated_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Project(id={self.id}, name={self.name}, status={self.status})"


class Task(Base, table=True):
    """Unit of work, optionally inside a project and/or under a parent task.

    Table: tasks
    """

    __tablename__ = "tasks"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    project_id: Optional[str] = Field(default=None, foreign_key="projects.id", index=True)
    parent_task_id: Optional[str] = Field(default=None, foreign_key="tasks.id", index=True)
    name: str = Field(max_length=255)
    status: str = Field(default=TaskStatus.TODO, sa_type=sa.String(16), index=True)
    priority: str = Field(default=TaskPriority.MEDIUM, sa_type=sa.String(16))
    due_date: Optional[datetime] = Field(sa_type=sa.DateTime, default=None, index=True)
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    completed_at: Optional[datetime] = Field(sa_type=sa.DateTime, default=None)

    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)
    updated_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Task(id={self.id}, name={self.name}, status={self.status})"


class TaskContactTag(Base, table=True):
    """Link between a task and a contact it concerns.

    Table: task_contact_tags
    """

    __tablename__ = "task_contact_tags"
    __table_args__ = ({"extend_existing": True},)

    task_id: str = Field(foreign_key="tasks.id", primary_key=True, max_length=36)
    contact_id: str = Field(foreign_key="contacts.id", primary_key=True, max_length=36)
    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now)

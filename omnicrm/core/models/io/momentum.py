"""
OmniMomentum I/O models: zones, projects and tasks.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from omnicrm.core.database.entities.momentum import ProjectStatus, TaskPriority, TaskStatus

from .contacts import ContactRead


class ZoneCreate(BaseModel):
    name: str = Field(description="Zone name, 1 to 100 characters after trimming")
    color: Optional[str] = Field(default=None, description="#RRGGBB color")
    icon_name: Optional[str] = Field(default=None, description="Icon identifier from the zone palette")


class ZoneUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    icon_name: Optional[str] = None


class ZoneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: Optional[str] = None
    icon_name: Optional[str] = None


class ZoneWithStats(ZoneRead):
    active_projects: int = 0
    active_tasks: int = 0
    completed_tasks: int = 0
    progress_percentage: float = 0


class ZonePalette(BaseModel):
    colors: List[str]
    icons: List[str]
    categories: List[str]
    text_colors: Dict[str, str] = Field(description="Accessible text color for each palette color")


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    zone_id: Optional[int] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    due_date: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    zone_id: Optional[int] = None
    status: Optional[ProjectStatus] = None
    due_date: Optional[datetime] = None
    details: Optional[Dict[str, Any]] = None


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    zone_id: Optional[int] = None
    name: str
    status: str
    due_date: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class TaskCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    project_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class TaskUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    project_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    details: Optional[Dict[str, Any]] = None


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    project_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    name: str
    status: str
    priority: str
    due_date: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskWithRelations(TaskRead):
    project: Optional[ProjectRead] = None
    parent_task: Optional[TaskRead] = None
    subtasks: List[TaskRead] = Field(default_factory=list)
    tagged_contacts: List[ContactRead] = Field(default_factory=list)


class TaskContactTagRequest(BaseModel):
    contact_ids: List[str] = Field(min_length=1, max_length=100)

"""
Inbox I/O models.

Covers quick/voice capture, listing and bulk actions, and the structured
results produced by the AI categorizer and the intelligent processor. The
result models double as the LLM agents' output types.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from omnicrm.core.database.entities.inbox import InboxItemStatus
from omnicrm.core.database.entities.momentum import ProjectStatus, TaskPriority


class QuickCapture(BaseModel):
    raw_text: str = Field(min_length=1, max_length=10000, description="Captured thought or task list")

    @field_validator("raw_text")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("raw_text must not be blank")
        return value


class VoiceCapture(BaseModel):
    transcription: str = Field(min_length=1, max_length=10000, description="Speech-to-text transcription")
    raw_text: Optional[str] = Field(default=None, description="Ignored; the transcription is stored")

    @field_validator("transcription")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("transcription must not be blank")
        return value


class InboxItemUpdate(BaseModel):
    raw_text: Optional[str] = Field(default=None, min_length=1, max_length=10000)
    status: Optional[InboxItemStatus] = None


class InboxItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    raw_text: str
    status: str
    created_task_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class InboxStats(BaseModel):
    unprocessed: int = 0
    processed: int = 0
    archived: int = 0
    total: int = 0


class MarkProcessed(BaseModel):
    created_task_id: Optional[str] = None


class BulkAction(str, Enum):
    PROCESS = "process"
    ARCHIVE = "archive"
    DELETE = "delete"


class BulkProcessRequest(BaseModel):
    action: BulkAction
    item_ids: List[str] = Field(min_length=1, max_length=100)


class BulkProcessResult(BaseModel):
    processed_items: List[InboxItemRead]
    action: BulkAction


class WorkingHours(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None


class UserContext(BaseModel):
    """What the practitioner reports about their current state."""

    current_energy: Optional[int] = Field(default=None, ge=1, le=5, description="Energy level from 1 to 5")
    available_time: Optional[int] = Field(default=None, ge=0, description="Minutes available")
    preferred_zone: Optional[str] = None
    working_hours: Optional[WorkingHours] = None


class CategorizeRequest(BaseModel):
    user_context: Optional[UserContext] = None


class ExtractedTask(BaseModel):
    name: str
    description: Optional[str] = None
    estimated_minutes: Optional[int] = None
    due_date: Optional[date] = None


class InboxCategorization(BaseModel):
    """Zone, priority and task suggestions for one inbox item."""

    suggested_zone: str = Field(description="Name of one of the available zones")
    suggested_priority: TaskPriority
    suggested_project: Optional[str] = Field(default=None, description="Project name, when the item is part of one")
    extracted_tasks: List[ExtractedTask] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)
    reasoning: str


class IntelligentTask(BaseModel):
    id: str
    name: str = Field(min_length=1)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_minutes: Optional[int] = None
    due_date: Optional[date] = None
    zone_id: Optional[int] = None
    project_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)
    reasoning: str


class IntelligentProject(BaseModel):
    id: str
    name: str = Field(min_length=1)
    description: Optional[str] = None
    zone_id: Optional[int] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    due_date: Optional[date] = None
    confidence: float = Field(ge=0, le=1)
    reasoning: str


class RelationshipType(str, Enum):
    TASK_SUBTASK = "task_subtask"
    PROJECT_TASK = "project_task"


class TaskHierarchy(BaseModel):
    parent_task_id: str
    subtask_ids: List[str] = Field(default_factory=list)
    relationship_type: RelationshipType = RelationshipType.TASK_SUBTASK
    confidence: float = Field(default=0.5, ge=0, le=1)


class IntelligentProcessingResult(BaseModel):
    """Tasks, projects and hierarchies split out of a bulk inbox capture."""

    extracted_tasks: List[IntelligentTask] = Field(default_factory=list)
    suggested_projects: List[IntelligentProject] = Field(default_factory=list)
    task_hierarchies: List[TaskHierarchy] = Field(default_factory=list)
    overall_confidence: float = Field(ge=0, le=1)
    processing_notes: str = ""
    requires_approval: bool = True


class PendingApproval(BaseModel):
    item: InboxItemRead
    result: IntelligentProcessingResult
    processed_at: Optional[str] = None


class TaskModification(BaseModel):
    """User edits applied to a suggested task before it is created."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    zone_id: Optional[int] = None
    estimated_minutes: Optional[int] = None


class ProjectModification(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    zone_id: Optional[int] = None
    due_date: Optional[date] = None


class ApprovalModifications(BaseModel):
    tasks: Dict[str, TaskModification] = Field(default_factory=dict)
    projects: Dict[str, ProjectModification] = Field(default_factory=dict)


class ApprovalRequest(BaseModel):
    approved_task_ids: List[str] = Field(default_factory=list)
    approved_project_ids: List[str] = Field(default_factory=list)
    modifications: Optional[ApprovalModifications] = None


class ApprovalResult(BaseModel):
    created_tasks: List[Dict[str, Any]]
    created_projects: List[Dict[str, Any]]
    skipped_tasks: List[str]
    skipped_projects: List[str]
    summary: str


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class BatchProcessRequest(BaseModel):
    limit: int = Field(default=100, ge=1, le=100, description="Maximum number of unprocessed items to process")


class ItemProcessingOutcome(BaseModel):
    inbox_item_id: str
    success: bool
    tasks_created: int = 0
    projects_created: int = 0
    confidence: float = 0.0
    error: Optional[str] = None


class BatchProcessingStats(BaseModel):
    """Outcome of processing every unprocessed item without an approval step."""

    total_processed: int = 0
    successful_tasks: int = 0
    successful_projects: int = 0
    failed_items: int = 0
    average_confidence: float = 0.0
    processing_time_ms: int = 0
    results: List[ItemProcessingOutcome] = Field(default_factory=list)

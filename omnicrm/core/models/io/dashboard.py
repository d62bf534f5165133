"""
Dashboard and sync error I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from omnicrm.core.errors.classification import ErrorBatchSummary, ErrorClassification, ErrorReport

from .google import SyncSessionRead
from .inbox import InboxStats


class ClassifyRequest(BaseModel):
    message: str = Field(min_length=1, max_length=5000)
    context: Dict[str, Any] = Field(default_factory=dict)


class ClassifyResult(BaseModel):
    classification: ErrorClassification
    report: ErrorReport


class RawEventErrorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: str
    stage: str
    error: str
    context: Dict[str, Any] = Field(default_factory=dict)
    error_at: datetime


class ClassifiedError(BaseModel):
    error: RawEventErrorRead
    classification: ErrorClassification


class RecentErrors(BaseModel):
    errors: List[ClassifiedError]
    summary: ErrorBatchSummary


class DashboardSummary(BaseModel):
    total_contacts: int
    total_notes: int
    tasks_by_status: Dict[str, int]
    inbox: InboxStats
    connected_services: List[str]
    last_sync: Optional[SyncSessionRead] = None

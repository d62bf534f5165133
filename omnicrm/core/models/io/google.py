"""
Google integration I/O models: connection status, sync preferences, preview,
sync runs and ingestion statistics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceStatus(BaseModel):
    service: str
    connected: bool
    expiry_date: Optional[datetime] = None
    scope: Optional[str] = None
    last_sync: Optional[datetime] = None


class GoogleStatus(BaseModel):
    gmail: ServiceStatus
    calendar: ServiceStatus


class SyncPrefsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gmail_query: str
    gmail_label_includes: List[str]
    gmail_label_excludes: List[str]
    gmail_time_range_days: int
    calendar_include_organizer_self: bool
    calendar_include_private: bool
    calendar_time_window_days: int
    calendar_future_days: int
    calendar_ids: List[str]


class SyncPrefsUpdate(BaseModel):
    gmail_query: Optional[str] = Field(default=None, max_length=1000)
    gmail_label_includes: Optional[List[str]] = None
    gmail_label_excludes: Optional[List[str]] = None
    gmail_time_range_days: Optional[int] = Field(default=None, ge=1, le=3650)
    calendar_include_organizer_self: Optional[bool] = None
    calendar_include_private: Optional[bool] = None
    calendar_time_window_days: Optional[int] = Field(default=None, ge=1, le=3650)
    calendar_future_days: Optional[int] = Field(default=None, ge=0, le=365)
    calendar_ids: Optional[List[str]] = None


class GmailPreviewRequest(BaseModel):
    time_range_days: int = Field(default=365, ge=1, le=365)
    import_everything: bool = Field(default=False, description="Include every category, not only Primary")


class CalendarPreviewRequest(BaseModel):
    time_range_days: int = Field(default=60, ge=1, le=365)
    future_days: int = Field(default=30, ge=0, le=365)


class DateRange(BaseModel):
    start: datetime
    end: datetime


class SyncPreview(BaseModel):
    service: str
    estimated_items: int
    estimated_size_mb: float
    date_range: DateRange
    details: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class GmailLabel(BaseModel):
    id: str
    name: str
    type: Optional[str] = None


class SyncRequest(BaseModel):
    incremental: bool = True
    overlap_hours: int = Field(default=0, ge=0, le=168)
    days_back: Optional[int] = Field(default=None, ge=1, le=3650)


class SyncResult(BaseModel):
    session_id: str
    batch_id: str
    total_found: int
    processed: int
    inserted: int
    duplicates: int
    errors: int


class IngestionStats(BaseModel):
    provider: str
    total_events: int
    events_last_7_days: int
    last_ingested_at: Optional[datetime] = None


class SyncSessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    service: str
    status: str
    progress_percentage: int
    current_step: Optional[str] = None
    total_items: int
    imported_items: int
    duplicate_items: int
    failed_items: int
    error_details: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime
    completed_at: Optional[datetime] = None


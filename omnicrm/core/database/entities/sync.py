"""
Sync pipeline entity models.

Raw events are verbatim copies of imported Gmail messages and Calendar events.
Failures while importing are kept as raw event errors and every sync run is
tracked by a sync session.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class SyncSessionStatus(str, Enum):
    STARTED = "started"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"


class RawEvent(Base, table=True):
    """Imported provider item prior to normalization.

    Table: raw_events
    """

    __tablename__ = "raw_events"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "provider", "source_id", name="uq_raw_events_user_provider_source"),
        {"extend_existing": True},
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    provider: str = Field(sa_type=sa.String(32), index=True)
    payload: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    occurred_at: datetime = Field(sa_type=sa.DateTime, index=True)
    contact_id: Optional[str] = Field(default=None, foreign_key="contacts.id", index=True)
    batch_id: Optional[str] = Field(default=None, max_length=36, index=True)
    source_meta: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    source_id: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)


class RawEventError(Base, table=True):
    """Failure recorded while importing or processing raw events.

    Table: raw_event_errors
    """

    __tablename__ = "raw_event_errors"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    raw_event_id: Optional[str] = Field(default=None, max_length=36)
    provider: str = Field(sa_type=sa.String(32))
    stage: str = Field(max_length=32)
    error: str = Field(sa_type=sa.Text)
    context: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    error_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)


class SyncSession(Base, table=True):
    """Progress of a single Gmail or Calendar sync run.

    Table: sync_sessions
    """

    __tablename__ = "sync_sessions"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    service: str = Field(sa_type=sa.String(32))
    status: str = Field(default=SyncSessionStatus.STARTED, sa_type=sa.String(16))
    progress_percentage: int = Field(default=0, ge=0, le=100)
    current_step: Optional[str] = Field(default=None, max_length=255)
    total_items: int = Field(default=0)
    imported_items: int = Field(default=0)
    duplicate_items: int = Field(default=0)
    failed_items: int = Field(default=0)
    preferences: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    error_details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    started_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)
    completed_at: Optional[datetime] = Field(sa_type=sa.DateTime, default=None)

"""
Inbox item entity.

Inbox items are raw captures (typed or dictated) waiting to be turned into
OmniMomentum tasks. AI processing results are kept in ``details`` until the
practitioner approves or rejects them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class InboxItemStatus(str, Enum):
    UNPROCESSED = "unprocessed"
    PROCESSED = "processed"
    ARCHIVED = "archived"


class InboxItem(Base, table=True):
    """Captured inbox entry.

    Table: inbox_items
    """

    __tablename__ = "inbox_items"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    raw_text: str = Field(sa_type=sa.Text)
    raw_text_hash: Optional[str] = Field(default=None, max_length=64)
    status: str = Field(default=InboxItemStatus.UNPROCESSED, sa_type=sa.String(16), index=True)
    created_task_id: Optional[str] = Field(default=None, foreign_key="tasks.id")
    processed_at: Optional[datetime] = Field(sa_type=sa.DateTime, default=None)
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)

    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)
    updated_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"InboxItem(id={self.id}, status={self.status})"

"""
Google integration entity models.

``UserIntegration`` stores encrypted OAuth tokens per Google service and
``UserSyncPrefs`` the practitioner's choices about what gets imported.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

import sqlalchemy as sa
from sqlmodel import JSON, Field

from ..base import Base, utc_now

DEFAULT_GMAIL_QUERY = "category:primary -in:chats -in:drafts newer_than:30d"
DEFAULT_GMAIL_LABEL_EXCLUDES = ["Promotions", "Social", "Forums", "Updates"]


class GoogleService(str, Enum):
    GMAIL = "gmail"
    CALENDAR = "calendar"


class UserIntegration(Base, table=True):
    """OAuth credentials of one Google service for one user.

    Tokens are stored encrypted (see ``omnicrm.core.crypto``).

    Table: user_integrations
    """

    __tablename__ = "user_integrations"
    __table_args__ = ({"extend_existing": True},)

    user_id: str = Field(primary_key=True, max_length=64)
    provider: str = Field(default="google", primary_key=True, max_length=32)
    service: str = Field(primary_key=True, sa_type=sa.String(32))
    access_token: str = Field(sa_type=sa.Text)
    refresh_token: Optional[str] = Field(default=None, sa_type=sa.Text)
    expiry_date: Optional[datetime] = Field(sa_type=sa.DateTime, default=None)
    scope: Optional[str] = Field(default=None, sa_type=sa.Text)

    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now)
    updated_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"UserIntegration(provider={self.provider}, service={self.service})"


class UserSyncPrefs(Base, table=True):
    """Per-user Gmail and Calendar import preferences.

    Table: user_sync_prefs
    """

    __tablename__ = "user_sync_prefs"
    __table_args__ = ({"extend_existing": True},)

    user_id: str = Field(primary_key=True, max_length=64)
    gmail_query: str = Field(default=DEFAULT_GMAIL_QUERY, sa_type=sa.Text)
    gmail_label_includes: List[str] = Field(default_factory=list, sa_type=JSON)
    gmail_label_excludes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_GMAIL_LABEL_EXCLUDES), sa_type=JSON
    )
    gmail_time_range_days: int = Field(default=365, ge=1, le=3650)
    calendar_include_organizer_self: bool = Field(default=True)
    calendar_include_private: bool = Field(default=False)
    calendar_time_window_days: int = Field(default=60, ge=1, le=3650)
    calendar_future_days: int = Field(default=30, ge=0, le=365)
    calendar_ids: List[str] = Field(default_factory=lambda: ["primary"], sa_type=JSON)

    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now)
    updated_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

"""
Contact and note entity models.

Contacts are the clients and prospects of a practitioner. Notes are free-form
session notes attached to a contact.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

import sqlalchemy as sa
from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class ContactSource(str, Enum):
    """Where a contact record came from."""

    MANUAL = "manual"
    GMAIL_IMPORT = "gmail_import"
    UPLOAD = "upload"
    CALENDAR_IMPORT = "calendar_import"
    ONBOARDING = "onboarding"


class LifecycleStage(str, Enum):
    """Client lifecycle stages used to segment contacts."""

    PROSPECT = "Prospect"
    NEW_CLIENT = "New Client"
    CORE_CLIENT = "Core Client"
    REFERRING_CLIENT = "Referring Client"
    VIP_CLIENT = "VIP Client"
    LOST_CLIENT = "Lost Client"
    AT_RISK_CLIENT = "At Risk Client"

    @classmethod
    def normalize(cls, value: str) -> "LifecycleStage":
        """Match a stage case-insensitively, accepting ``core_client`` style input."""
        candidate = value.strip().replace("_", " ").replace("-", " ").lower()
        for stage in cls:
            if stage.value.lower() == candidate:
                return stage
        raise ValueError(f"Unknown lifecycle stage: {value}")


class ContactBase(Base):
    """Base fields for a contact."""

    display_name: str = Field(min_length=1, max_length=255, description="Name shown in the contact list")
    primary_email: Optional[str] = Field(default=None, max_length=320, index=True)
    primary_phone: Optional[str] = Field(default=None, max_length=50)
    source: Optional[str] = Field(default=ContactSource.MANUAL, sa_type=sa.String(32))
    lifecycle_stage: Optional[str] = Field(default=None, sa_type=sa.String(32))
    tags: List[str] = Field(default_factory=list, sa_type=JSON)
    confidence_score: Optional[str] = Field(default=None, max_length=16)
    slug: Optional[str] = Field(default=None, max_length=255)


class Contact(ContactBase, table=True):
    """Persistent contact owned by a practitioner.

    Table: contacts
    """

    __tablename__ = "contacts"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)

    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)
    updated_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Contact(id={self.id}, display_name={self.display_name})"


class Note(Base, table=True):
    """Session note, optionally attached to a contact.

    Table: notes
    """

    __tablename__ = "notes"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    contact_id: Optional[str] = Field(default=None, foreign_key="contacts.id", index=True, ondelete="CASCADE")
    title: Optional[str] = Field(default=None, max_length=255)
    content: str = Field(sa_type=sa.Text)

    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, index=True)
    updated_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Note(id={self.id}, contact_id={self.contact_id})"

"""
Contact and note I/O models for API requests and responses.

Empty strings in optional text fields are treated as "not provided" and stored
as null. Lifecycle stages are accepted case-insensitively and normalized to
their canonical spelling.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from omnicrm.core.database.entities.contacts import ContactSource, LifecycleStage


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _normalize_stage(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return LifecycleStage.normalize(value).value


class ContactFields(BaseModel):
    """Optional contact fields shared by create and update payloads."""

    primary_email: Optional[EmailStr] = Field(default=None, description="Primary e-mail address")
    primary_phone: Optional[str] = Field(default=None, max_length=50, description="Primary phone number")
    source: Optional[ContactSource] = Field(default=None, description="Where the contact came from")
    lifecycle_stage: Optional[str] = Field(
        default=None, description="Client lifecycle stage, e.g. 'Prospect' or 'VIP Client'"
    )
    tags: Optional[List[str]] = Field(default=None, description="Free-form tags")
    confidence_score: Optional[str] = Field(default=None, max_length=16)
    slug: Optional[str] = Field(default=None, max_length=255)

    @field_validator("primary_email", "primary_phone", "lifecycle_stage", "confidence_score", "slug", mode="before")
    @classmethod
    def blank_as_null(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("lifecycle_stage")
    @classmethod
    def known_stage(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_stage(value)


class ContactCreate(ContactFields):
    """Schema for creating a contact."""

    display_name: str = Field(min_length=1, max_length=255, description="Name shown in the contact list")

    @field_validator("display_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("display_name must not be blank")
        return value


class ContactUpdate(ContactFields):
    """Schema for partially updating a contact; omitted fields are left unchanged."""

    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @field_validator("display_name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("display_name must not be blank")
        return value


class ContactRead(BaseModel):
    """Schema for reading a contact."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    display_name: str
    primary_email: Optional[str] = None
    primary_phone: Optional[str] = None
    source: Optional[str] = None
    lifecycle_stage: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    confidence_score: Optional[str] = None
    slug: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ContactListItem(ContactRead):
    """Contact row in the list view, enriched with note information."""

    notes_count: int = 0
    last_note: Optional[str] = Field(default=None, description="Preview of the most recent note")


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        total_pages = (total + page_size - 1) // page_size if total else 0
        return cls(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ContactListResponse(BaseModel):
    items: List[ContactListItem]
    pagination: Pagination


class ContactBatchCreate(BaseModel):
    contacts: List[ContactCreate] = Field(min_length=1, max_length=500)


class ContactDuplicate(BaseModel):
    display_name: str
    primary_email: Optional[str] = None
    existing_contact_id: str


class ContactBatchError(BaseModel):
    index: int
    display_name: Optional[str] = None
    error: str


class ContactBatchResult(BaseModel):
    created: List[ContactRead] = Field(default_factory=list)
    duplicates: List[ContactDuplicate] = Field(default_factory=list)
    errors: List[ContactBatchError] = Field(default_factory=list)


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(min_length=1, max_length=500, description="Contact ids to delete")


class BulkDeleteResult(BaseModel):
    deleted: int
    message: str


class ContactsSummary(BaseModel):
    total_contacts: int
    by_stage: Dict[str, int]
    by_source: Dict[str, int]
    recent: List[ContactRead]


class NoteCreate(BaseModel):
    """Schema for creating a note on a contact."""

    content: str = Field(min_length=1, description="Note body")
    title: Optional[str] = Field(default=None, max_length=255)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value

    @field_validator("title", mode="before")
    @classmethod
    def blank_title(cls, value: Any) -> Any:
        return _blank_to_none(value)


class NoteUpdate(BaseModel):
    content: Optional[str] = Field(default=None, min_length=1)
    title: Optional[str] = Field(default=None, max_length=255)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("content must not be blank")
        return value


class NoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    contact_id: Optional[str] = None
    title: Optional[str] = None
    content: str
    created_at: datetime
    updated_at: datetime

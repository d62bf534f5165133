"""
Client onboarding entity models.

Onboarding tokens grant a prospective client access to the public intake form.
A completed form produces a contact, a client profile with the intake answers
and a consent record.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class ConsentType(str, Enum):
    DATA_PROCESSING = "data_processing"
    MARKETING = "marketing"
    HIPAA = "hipaa"
    PHOTOGRAPHY = "photography"


class OnboardingToken(Base, table=True):
    """Expiring, usage-limited credential for the public onboarding form.

    Table: onboarding_tokens
    """

    __tablename__ = "onboarding_tokens"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    token: str = Field(max_length=255, unique=True, index=True)
    expires_at: datetime = Field(sa_type=sa.DateTime)
    max_uses: int = Field(default=1, ge=1)
    used_count: int = Field(default=0, ge=0)
    disabled: bool = Field(default=False)
    label: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now)

    def __repr__(self) -> str:
        return f"OnboardingToken(id={self.id}, used={self.used_count}/{self.max_uses})"


class ClientProfile(Base, table=True):
    """Intake answers collected through the onboarding form.

    Table: client_profiles
    """

    __tablename__ = "client_profiles"
    __table_args__ = ({"extend_existing": True},)

    contact_id: str = Field(foreign_key="contacts.id", primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    date_of_birth: Optional[date] = Field(default=None)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=50)
    referral_source: Optional[str] = Field(default=None, max_length=255)
    address: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    health_context: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    preferences: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    photo_path: Optional[str] = Field(default=None, max_length=1024)
    created_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now)


class ClientConsent(Base, table=True):
    """Consent granted by a client during onboarding.

    Table: client_consents
    """

    __tablename__ = "client_consents"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=64)
    contact_id: str = Field(foreign_key="contacts.id", index=True, max_length=36)
    consent_type: str = Field(default=ConsentType.DATA_PROCESSING, sa_type=sa.String(32))
    consent_text_version: str = Field(max_length=50)
    granted: bool = Field(default=True)
    granted_at: datetime = Field(sa_type=sa.DateTime, default_factory=utc_now)
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=1024)
    signature_svg: Optional[str] = Field(default=None, sa_type=sa.Text)
    signature_image_url: Optional[str] = Field(default=None, max_length=1024)

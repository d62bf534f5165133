"""
Onboarding I/O models: admin token management and the public intake form.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from omnicrm.core.database.entities.onboarding import ConsentType


class TokenCreate(BaseModel):
    hours_valid: int = Field(default=72, ge=1, le=720, description="Hours until the token expires")
    max_uses: int = Field(default=1, ge=1, le=100, description="Number of submissions allowed")
    label: Optional[str] = Field(default=None, max_length=255, description="Note shown in the admin list")


class TokenRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    token: str
    expires_at: datetime
    max_uses: int
    used_count: int
    disabled: bool
    label: Optional[str] = None
    created_at: datetime


class TokenCreated(TokenRead):
    onboarding_url: str


class TokenValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


class Address(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class HealthContext(BaseModel):
    conditions: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    fitness_level: Optional[str] = None
    stress_level: Optional[str] = None
    medications: Optional[List[str]] = None
    notes: Optional[str] = None


class ClientPreferences(BaseModel):
    session_times: Optional[List[str]] = None
    communication_preference: Optional[Literal["email", "phone", "text"]] = None
    reminder_frequency: Optional[Literal["none", "daily", "weekly", "monthly"]] = None
    notes: Optional[str] = None


class OnboardingClient(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    primary_email: str = Field(min_length=3, max_length=320)
    primary_phone: Optional[str] = Field(default=None, max_length=50)
    date_of_birth: Optional[date] = None
    emergency_contact_name: Optional[str] = Field(default=None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=50)
    referral_source: Optional[str] = Field(default=None, max_length=255)
    address: Optional[Address] = None
    health_context: Optional[HealthContext] = None
    preferences: Optional[ClientPreferences] = None


class OnboardingConsent(BaseModel):
    consent_type: ConsentType = ConsentType.DATA_PROCESSING
    consent_text_version: str = Field(min_length=1, max_length=50)
    granted: bool = True
    signature_svg: Optional[str] = None
    signature_image_url: Optional[str] = Field(default=None, max_length=1024)


class OnboardingSubmission(BaseModel):
    token: str = Field(min_length=1, max_length=255)
    client: OnboardingClient
    consent: OnboardingConsent
    photo_path: Optional[str] = Field(default=None, max_length=1024)


class OnboardingResult(BaseModel):
    contact_id: str
    message: str


class ConsentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    contact_id: str
    consent_type: str
    consent_text_version: str
    granted: bool
    granted_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

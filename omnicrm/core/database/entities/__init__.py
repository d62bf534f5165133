"""
Database entities organized by business domain.

Importing this package registers every table with the shared SQLModel metadata.
"""

from .contacts import Contact, ContactBase, ContactSource, LifecycleStage, Note
from .inbox import InboxItem, InboxItemStatus
from .integrations import (
    DEFAULT_GMAIL_LABEL_EXCLUDES,
    DEFAULT_GMAIL_QUERY,
    GoogleService,
    UserIntegration,
    UserSyncPrefs,
)
from .momentum import Project, ProjectStatus, Task, TaskContactTag, TaskPriority, TaskStatus, Zone
from .onboarding import ClientConsent, ClientProfile, ConsentType, OnboardingToken
from .sync import RawEvent, RawEventError, SyncSession, SyncSessionStatus

__all__ = [
    "ClientConsent",
    "ClientProfile",
    "ConsentType",
    "Contact",
    "ContactBase",
    "ContactSource",
    "DEFAULT_GMAIL_LABEL_EXCLUDES",
    "DEFAULT_GMAIL_QUERY",
    "GoogleService",
    "InboxItem",
    "InboxItemStatus",
    "LifecycleStage",
    "Note",
    "OnboardingToken",
    "Project",
    "ProjectStatus",
    "RawEvent",
    "RawEventError",
    "SyncSession",
    "SyncSessionStatus",
    "Task",
    "TaskContactTag",
    "TaskPriority",
    "TaskStatus",
    "UserIntegration",
    "UserSyncPrefs",
    "Zone",
]

"""Data access layer organized by business domain."""

from .base import AsyncBaseRepository, AsyncQueryBuilder, AsyncSqlRepository, UserScopedRepository
from .bundle import SqlRepoBundle, build_sql_repos_from_session
from .contacts import ContactRepository, NoteRepository
from .inbox import InboxRepository
from .integrations import UserIntegrationRepository, UserSyncPrefsRepository
from .momentum import ProjectRepository, TaskRepository, ZoneRepository
from .onboarding import ClientConsentRepository, ClientProfileRepository, OnboardingTokenRepository
from .sync import RawEventErrorRepository, RawEventRepository, SyncSessionRepository

__all__ = [
    "AsyncBaseRepository",
    "AsyncQueryBuilder",
    "AsyncSqlRepository",
    "ClientConsentRepository",
    "ClientProfileRepository",
    "ContactRepository",
    "InboxRepository",
    "NoteRepository",
    "OnboardingTokenRepository",
    "ProjectRepository",
    "RawEventErrorRepository",
    "RawEventRepository",
    "SqlRepoBundle",
    "SyncSessionRepository",
    "TaskRepository",
    "UserIntegrationRepository",
    "UserScopedRepository",
    "UserSyncPrefsRepository",
    "ZoneRepository",
    "build_sql_repos_from_session",
]

"""
Repository bundle for dependency injection.

This module provides a convenience bundle of all repository instances
sharing one session, so services can write across tables in one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from .contacts import ContactRepository, NoteRepository
from .inbox import InboxRepository
from .integrations import UserIntegrationRepository, UserSyncPrefsRepository
from .momentum import ProjectRepository, TaskRepository, ZoneRepository
from .onboarding import ClientConsentRepository, ClientProfileRepository, OnboardingTokenRepository
from .sync import RawEventErrorRepository, RawEventRepository, SyncSessionRepository


@dataclass(frozen=True)
class SqlRepoBundle:
    """Convenience bundle of all SQL repositories for dependency injection."""

    contacts: ContactRepository
    notes: NoteRepository
    zones: ZoneRepository
    projects: ProjectRepository
    tasks: TaskRepository
    inbox: InboxRepository
    onboarding_tokens: OnboardingTokenRepository
    consents: ClientConsentRepository
    client_profiles: ClientProfileRepository
    integrations: UserIntegrationRepository
    sync_prefs: UserSyncPrefsRepository
    raw_events: RawEventRepository
    raw_event_errors: RawEventErrorRepository
    sync_sessions: SyncSessionRepository


def build_sql_repos_from_session(*, session: AsyncSession) -> SqlRepoBundle:
    """Build a SqlRepoBundle from an existing session.

    Args:
        session: Existing async session

    Returns:
        Bundle containing all repository instances
    """
    return SqlRepoBundle(
        contacts=ContactRepository(session),
        notes=NoteRepository(session),
        zones=ZoneRepository(session),
        projects=ProjectRepository(session),
        tasks=TaskRepository(session),
        inbox=InboxRepository(session),
        onboarding_tokens=OnboardingTokenRepository(session),
        consents=ClientConsentRepository(session),
        client_profiles=ClientProfileRepository(session),
        integrations=UserIntegrationRepository(session),
        sync_prefs=UserSyncPrefsRepository(session),
        raw_events=RawEventRepository(session),
        raw_event_errors=RawEventErrorRepository(session),
        sync_sessions=SyncSessionRepository(session),
    )

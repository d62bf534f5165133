"""
Service Dependencies.

FastAPI dependencies resolving the caller, the repository bundle and the
domain services used by the API endpoints.
"""

from typing import Annotated, Optional

import httpx
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from omnicrm.core.database import get_session
from omnicrm.core.database.repositories.bundle import SqlRepoBundle, build_sql_repos_from_session
from omnicrm.integrations.ai import InboxAIProcessor
from omnicrm.integrations.google import GoogleOAuthClient
from omnicrm.server.response import APIError, ApiErrorCode

from .contacts import ContactsService
from .dashboard import DashboardService
from .errors import ErrorsService
from .google import GoogleIntegrationService
from .inbox import InboxService
from .momentum import ProjectsService, TasksService, ZonesService
from .onboarding import OnboardingRateLimiter, OnboardingService

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_repos(session: SessionDep) -> SqlRepoBundle:
    return build_sql_repos_from_session(session=session)


ReposDep = Annotated[SqlRepoBundle, Depends(get_repos)]


async def get_current_user_id(x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None) -> str:
    """
    Resolve the authenticated practitioner.

    The identity proxy in front of the API sets ``X-User-Id`` after verifying
    the session; requests without it are rejected.
    """
    if not x_user_id or not x_user_id.strip():
        raise APIError(ApiErrorCode.UNAUTHORIZED, "Authentication required")
    return x_user_id.strip()


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]

_inbox_processor: Optional[InboxAIProcessor] = None
_rate_limiter: Optional[OnboardingRateLimiter] = None


def get_inbox_processor() -> InboxAIProcessor:
    global _inbox_processor
    if _inbox_processor is None:
        _inbox_processor = InboxAIProcessor()
    return _inbox_processor


def get_onboarding_rate_limiter() -> OnboardingRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = OnboardingRateLimiter()
    return _rate_limiter


def get_google_http_client() -> Optional[httpx.AsyncClient]:
    """Shared HTTP client for Google calls; None lets each client open its own."""
    return None


def get_google_oauth_client(
    http_client: Annotated[Optional[httpx.AsyncClient], Depends(get_google_http_client)],
) -> GoogleOAuthClient:
    return GoogleOAuthClient(http_client=http_client)


def get_contacts_service(repos: ReposDep) -> ContactsService:
    return ContactsService(repos)


def get_zones_service(repos: ReposDep) -> ZonesService:
    return ZonesService(repos)


def get_projects_service(repos: ReposDep) -> ProjectsService:
    return ProjectsService(repos)


def get_tasks_service(repos: ReposDep) -> TasksService:
    return TasksService(repos)


def get_inbox_service(
    repos: ReposDep, processor: Annotated[InboxAIProcessor, Depends(get_inbox_processor)]
) -> InboxService:
    return InboxService(repos, processor)


def get_onboarding_service(
    repos: ReposDep, rate_limiter: Annotated[OnboardingRateLimiter, Depends(get_onboarding_rate_limiter)]
) -> OnboardingService:
    return OnboardingService(repos, rate_limiter)


def get_google_service(
    repos: ReposDep,
    oauth: Annotated[GoogleOAuthClient, Depends(get_google_oauth_client)],
    http_client: Annotated[Optional[httpx.AsyncClient], Depends(get_google_http_client)],
) -> GoogleIntegrationService:
    return GoogleIntegrationService(repos, oauth, http_client=http_client)


def get_errors_service(repos: ReposDep) -> ErrorsService:
    return ErrorsService(repos)


def get_dashboard_service(repos: ReposDep) -> DashboardService:
    return DashboardService(repos)


ContactsServiceDep = Annotated[ContactsService, Depends(get_contacts_service)]
ZonesServiceDep = Annotated[ZonesService, Depends(get_zones_service)]
ProjectsServiceDep = Annotated[ProjectsService, Depends(get_projects_service)]
TasksServiceDep = Annotated[TasksService, Depends(get_tasks_service)]
InboxServiceDep = Annotated[InboxService, Depends(get_inbox_service)]
OnboardingServiceDep = Annotated[OnboardingService, Depends(get_onboarding_service)]
GoogleServiceDep = Annotated[GoogleIntegrationService, Depends(get_google_service)]
ErrorsServiceDep = Annotated[ErrorsService, Depends(get_errors_service)]
DashboardServiceDep = Annotated[DashboardService, Depends(get_dashboard_service)]

"""
Dashboard service: a one-call overview of the practitioner's workspace.
"""

from __future__ import annotations

from omnicrm.core.database.repositories.bundle import SqlRepoBundle
from omnicrm.core.models.io.dashboard import DashboardSummary
from omnicrm.core.models.io.google import SyncSessionRead
from omnicrm.core.models.io.inbox import InboxStats


class DashboardService:
    def __init__(self, repos: SqlRepoBundle) -> None:
        self.repos = repos

    async def summary(self, user_id: str) -> DashboardSummary:
        integrations = await self.repos.integrations.list_for_user(user_id)
        last_session = await self.repos.sync_sessions.latest_for_user(user_id)
        return DashboardSummary(
            total_contacts=await self.repos.contacts.count({"user_id": user_id}),
            total_notes=await self.repos.notes.count_for_user(user_id),
            tasks_by_status=await self.repos.tasks.count_by_status(user_id),
            inbox=InboxStats(**await self.repos.inbox.stats(user_id)),
            connected_services=sorted(integration.service for integration in integrations),
            last_sync=SyncSessionRead.model_validate(last_session) if last_session else None,
        )

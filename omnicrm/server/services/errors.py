"""
Sync error service.

Classifies the ingestion errors recorded for a user and ad-hoc error messages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from omnicrm.core.database.repositories.bundle import SqlRepoBundle
from omnicrm.core.errors.classification import classify_error, classify_error_batch, generate_error_report
from omnicrm.core.models.io.dashboard import ClassifiedError, ClassifyResult, RawEventErrorRead, RecentErrors


class ErrorsService:
    def __init__(self, repos: SqlRepoBundle) -> None:
        self.repos = repos

    async def recent_errors(self, user_id: str, provider: Optional[str] = None, limit: int = 50) -> RecentErrors:
        """Newest recorded errors of the user, each classified, plus a batch summary."""
        records = await self.repos.raw_event_errors.recent(user_id, provider=provider, limit=limit)
        batch = classify_error_batch(
            [
                (record.error, {**(record.context or {}), "provider": record.provider, "stage": record.stage})
                for record in records
            ]
        )
        return RecentErrors(
            errors=[
                ClassifiedError(error=RawEventErrorRead.model_validate(record), classification=classification)
                for record, classification in zip(records, batch.classifications)
            ],
            summary=batch.summary,
        )

    @staticmethod
    def classify(message: str, context: Optional[Dict[str, Any]] = None) -> ClassifyResult:
        classification = classify_error(message, context)
        return ClassifyResult(classification=classification, report=generate_error_report(classification))

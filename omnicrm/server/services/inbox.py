"""
Inbox service.

Captures, lists and bulk-processes inbox items, runs the AI categorizer and the
intelligent processor, and turns approved processing results into projects and
tasks.
"""

from __future__ import annotations

import hashlib
from datetime import date, datetime, time
from time import perf_counter
from typing import Dict, List, Optional, Sequence, Set, Tuple

from omnicrm.core.database.base import utc_now
from omnicrm.core.database.entities.inbox import InboxItem, InboxItemStatus
from omnicrm.core.database.entities.momentum import Project, ProjectStatus, Task, TaskStatus
from omnicrm.core.database.repositories.bundle import SqlRepoBundle
from omnicrm.core.database.repositories.inbox import PENDING_APPROVAL
from omnicrm.core.logging_config import get_logger, mask_identifier
from omnicrm.core.models.io.inbox import (
    ApprovalRequest,
    ApprovalResult,
    BatchProcessingStats,
    BulkAction,
    BulkProcessResult,
    InboxCategorization,
    InboxItemRead,
    InboxItemUpdate,
    InboxStats,
    IntelligentProcessingResult,
    IntelligentProject,
    IntelligentTask,
    ItemProcessingOutcome,
    PendingApproval,
    RelationshipType,
    TaskHierarchy,
    UserContext,
)
from omnicrm.integrations.ai import InboxAIProcessor, processor_summary
from omnicrm.server.response import APIError

logger = get_logger(__name__)

RESULT_KEY = "intelligent_processing"


def text_hash(raw_text: str) -> str:
    return hashlib.sha256(raw_text.strip().encode("utf-8")).hexdigest()


def _as_datetime(value: Optional[date]) -> Optional[datetime]:
    return datetime.combine(value, time.min) if value is not None else None


def approval_summary(tasks: int, projects: int, skipped_tasks: int, skipped_projects: int) -> str:
    return (
        f"Created {tasks} tasks and {projects} projects. "
        f"Skipped {skipped_tasks} tasks and {skipped_projects} projects."
    )


class InboxService:
    """Inbox operations for one practitioner per call."""

    def __init__(self, repos: SqlRepoBundle, processor: InboxAIProcessor) -> None:
        self.repos = repos
        self.processor = processor

    # Capture and CRUD

    async def quick_capture(self, user_id: str, raw_text: str) -> InboxItem:
        item = InboxItem(
            user_id=user_id, raw_text=raw_text, raw_text_hash=text_hash(raw_text), details={"source": "quick"}
        )
        return await self.repos.inbox.create(item)

    async def voice_capture(self, user_id: str, transcription: str) -> InboxItem:
        item = InboxItem(
            user_id=user_id,
            raw_text=transcription,
            raw_text_hash=text_hash(transcription),
            details={"source": "voice"},
        )
        return await self.repos.inbox.create(item)

    async def list_items(
        self,
        user_id: str,
        statuses: Optional[Sequence[str]] = None,
        search: Optional[str] = None,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[InboxItem]:
        return await self.repos.inbox.list_filtered(
            user_id,
            statuses=statuses,
            search=search,
            created_after=created_after,
            created_before=created_before,
            limit=limit,
        )

    async def stats(self, user_id: str) -> InboxStats:
        return InboxStats(**await self.repos.inbox.stats(user_id))

    async def get_item(self, user_id: str, item_id: str) -> InboxItem:
        item = await self.repos.inbox.get_for_user(user_id, item_id)
        if item is None:
            raise APIError.not_found("Inbox item")
        return item

    async def update_item(self, user_id: str, item_id: str, payload: InboxItemUpdate) -> InboxItem:
        item = await self.get_item(user_id, item_id)
        if payload.raw_text is not None:
            item.raw_text = payload.raw_text
            item.raw_text_hash = text_hash(payload.raw_text)
        if payload.status is not None:
            item.status = payload.status.value
            item.processed_at = utc_now() if payload.status == InboxItemStatus.PROCESSED else item.processed_at
        return await self.repos.inbox.update(item)

    async def delete_item(self, user_id: str, item_id: str) -> None:
        item = await self.get_item(user_id, item_id)
        await self.repos.inbox.delete(item.id)

    async def mark_as_processed(self, user_id: str, item_id: str, created_task_id: Optional[str] = None) -> InboxItem:
        item = await self.get_item(user_id, item_id)
        if created_task_id is not None and await self.repos.tasks.get_for_user(user_id, created_task_id) is None:
            raise APIError.validation(f"Task {created_task_id} does not exist")
        item.status = InboxItemStatus.PROCESSED.value
        item.processed_at = utc_now()
        item.created_task_id = created_task_id
        return await self.repos.inbox.update(item)

    async def bulk_process(self, user_id: str, action: BulkAction, item_ids: Sequence[str]) -> BulkProcessResult:
        """
        Apply one action to many items. Items that do not exist or belong to
        another user are skipped; ``process`` only touches unprocessed items.
        """
        items = await self.repos.inbox.get_many_for_user(user_id, list(dict.fromkeys(item_ids)))
        affected: List[InboxItemRead] = []
        now = utc_now()

        for item in items:
            if action == BulkAction.DELETE:
                affected.append(InboxItemRead.model_validate(item))
                await self.repos.inbox.session.delete(item)
                continue
            if action == BulkAction.PROCESS:
                if item.status != InboxItemStatus.UNPROCESSED.value:
                    continue
                item.status = InboxItemStatus.PROCESSED.value
                item.processed_at = now
            else:
                item.status = InboxItemStatus.ARCHIVED.value
            item.updated_at = now
            await self.repos.inbox.add(item)
            affected.append(InboxItemRead.model_validate(item))

        await self.repos.inbox.commit()
        logger.info(f"Bulk {action.value} on {len(affected)} inbox items for user {mask_identifier(user_id)}")
        return BulkProcessResult(processed_items=affected, action=action)

    # AI processing

    async def categorize(
        self, user_id: str, item_id: str, user_context: Optional[UserContext] = None
    ) -> InboxCategorization:
        item = await self.get_item(user_id, item_id)
        zones = await self.repos.zones.list_all()
        return await self.processor.categorize(item.raw_text, [zone.name for zone in zones], user_context)

    async def process_intelligently(self, user_id: str, item_id: str) -> IntelligentProcessingResult:
        item = await self.get_item(user_id, item_id)
        zones = await self.repos.zones.list_all()
        result = await self.processor.process_intelligently(item.raw_text, [(zone.id, zone.name) for zone in zones])
        summary = processor_summary(result)

        item.details = {
            **(item.details or {}),
            RESULT_KEY: result.model_dump(mode="json"),
            "summary": summary,
            "processed_at": utc_now().isoformat(),
            "status": PENDING_APPROVAL,
        }
        await self.repos.inbox.update(item)
        logger.info(
            f"Stored processing result for inbox item {item.id}: "
            f"{summary['tasks']} tasks, {summary['projects']} projects, confidence={summary['overall_confidence']}"
        )
        return result

    async def process_batch(self, user_id: str, limit: int = 100) -> BatchProcessingStats:
        """
        Process the unprocessed items without an approval step.

        Suggested projects are created when the overall confidence reaches the
        project threshold and extracted tasks when it reaches the task
        threshold; the item is marked processed either way. Every item is
        committed on its own, so a failing item leaves the others in place.
        """
        started = perf_counter()
        items = await self.repos.inbox.list_filtered(
            user_id, statuses=[InboxItemStatus.UNPROCESSED.value], limit=limit
        )
        queued = [(item.id, item.raw_text) for item in items]
        zones = [(zone.id, zone.name) for zone in await self.repos.zones.list_all()]

        outcomes = [await self._process_unattended(user_id, item_id, raw_text, zones) for item_id, raw_text in queued]

        succeeded = [outcome for outcome in outcomes if outcome.success]
        stats = BatchProcessingStats(
            total_processed=len(outcomes),
            successful_tasks=sum(outcome.tasks_created for outcome in outcomes),
            successful_projects=sum(outcome.projects_created for outcome in outcomes),
            failed_items=len(outcomes) - len(succeeded),
            average_confidence=sum(outcome.confidence for outcome in succeeded) / len(succeeded) if succeeded else 0.0,
            processing_time_ms=int((perf_counter() - started) * 1000),
            results=outcomes,
        )
        logger.info(
            f"Batch processed {stats.total_processed} inbox items for user {mask_identifier(user_id)}: "
            f"tasks={stats.successful_tasks}, projects={stats.successful_projects}, failed={stats.failed_items}"
        )
        return stats

    async def _process_unattended(
        self, user_id: str, item_id: str, raw_text: str, zones: Sequence[Tuple[int, str]]
    ) -> ItemProcessingOutcome:
        config = self.processor.config
        try:
            result = await self.processor.process_intelligently(raw_text, zones)
            confidence = result.overall_confidence
            projects = result.suggested_projects if confidence >= config.project_confidence_threshold else []
            tasks = result.extracted_tasks if confidence >= config.task_confidence_threshold else []
            created_projects, created_tasks = await self._materialize(
                user_id, projects, tasks, result.task_hierarchies
            )

            item = await self.get_item(user_id, item_id)
            now = utc_now()
            item.status = InboxItemStatus.PROCESSED.value
            item.processed_at = now
            item.created_task_id = created_tasks[0].id if created_tasks else None
            item.updated_at = now
            item.details = {
                **(item.details or {}),
                "auto_processing": {
                    **processor_summary(result),
                    "tasks_created": len(created_tasks),
                    "projects_created": len(created_projects),
                    "processed_at": now.isoformat(),
                },
            }
            await self.repos.inbox.add(item)
            await self.repos.inbox.commit()
        except Exception as e:
            await self.repos.inbox.rollback()
            logger.error(f"Batch processing failed for inbox item {item_id}: {e}", exc_info=True)
            return ItemProcessingOutcome(inbox_item_id=item_id, success=False, error=str(e))

        return ItemProcessingOutcome(
            inbox_item_id=item_id,
            success=True,
            tasks_created=len(created_tasks),
            projects_created=len(created_projects),
            confidence=confidence,
        )

    async def pending_approvals(self, user_id: str) -> List[PendingApproval]:
        items = await self.repos.inbox.pending_approval(user_id)
        pending = []
        for item in items:
            details = item.details or {}
            pending.append(
                PendingApproval(
                    item=InboxItemRead.model_validate(item),
                    result=IntelligentProcessingResult.model_validate(details[RESULT_KEY]),
                    processed_at=details.get("processed_at"),
                )
            )
        return pending

    def _pending_result(self, item: InboxItem) -> IntelligentProcessingResult:
        details = item.details or {}
        if details.get("status") != PENDING_APPROVAL or not details.get(RESULT_KEY):
            raise APIError.validation("No pending processing result for this inbox item")
        return IntelligentProcessingResult.model_validate(details[RESULT_KEY])

    async def _check_zone(self, zone_id: Optional[int]) -> None:
        if zone_id is not None and await self.repos.zones.get_by_id(zone_id) is None:
            raise APIError.validation(f"Zone {zone_id} does not exist")

    async def approve(self, user_id: str, item_id: str, request: ApprovalRequest) -> ApprovalResult:
        """
        Create the approved projects and tasks of a stored processing result.

        A zone given in the modifications must exist; a zone suggested by the
        model that does not exist is dropped.
        """
        item = await self.get_item(user_id, item_id)
        result = self._pending_result(item)
        modifications = request.modifications
        approved_projects = set(request.approved_project_ids)
        approved_tasks = set(request.approved_task_ids)

        projects: List[IntelligentProject] = []
        for suggestion in result.suggested_projects:
            if suggestion.id not in approved_projects:
                continue
            if modifications and suggestion.id in modifications.projects:
                changes = modifications.projects[suggestion.id].model_dump(exclude_none=True)
                await self._check_zone(changes.get("zone_id"))
                suggestion = suggestion.model_copy(update=changes)
            projects.append(suggestion)

        tasks: List[IntelligentTask] = []
        for suggestion in result.extracted_tasks:
            if suggestion.id not in approved_tasks:
                continue
            if modifications and suggestion.id in modifications.tasks:
                changes = modifications.tasks[suggestion.id].model_dump(exclude_none=True)
                await self._check_zone(changes.get("zone_id"))
                suggestion = suggestion.model_copy(update=changes)
            tasks.append(suggestion)

        created_projects, created = await self._materialize(user_id, projects, tasks, result.task_hierarchies)

        skipped_tasks = [task.id for task in result.extracted_tasks if task.id not in approved_tasks]
        skipped_projects = [project.id for project in result.suggested_projects if project.id not in approved_projects]
        now = utc_now()
        details = {key: value for key, value in (item.details or {}).items() if key != "status"}
        item.details = {**details, "status": "approved", "approved_at": now.isoformat()}
        item.status = InboxItemStatus.PROCESSED.value
        item.processed_at = now
        item.created_task_id = created[0].id if created else None
        item.updated_at = now
        await self.repos.inbox.add(item)
        await self.repos.inbox.commit()

        summary = approval_summary(len(created), len(created_projects), len(skipped_tasks), len(skipped_projects))
        logger.info(f"Approved inbox item {item.id}: {summary}")
        return ApprovalResult(
            created_tasks=[
                {"id": task.id, "name": task.name, "project_id": task.project_id, "parent_task_id": task.parent_task_id}
                for task in created
            ],
            created_projects=[
                {"id": project.id, "name": project.name, "zone_id": project.zone_id} for project in created_projects
            ],
            skipped_tasks=skipped_tasks,
            skipped_projects=skipped_projects,
            summary=summary,
        )

    async def _materialize(
        self,
        user_id: str,
        projects: Sequence[IntelligentProject],
        tasks: Sequence[IntelligentTask],
        hierarchies: Sequence[TaskHierarchy],
    ) -> Tuple[List[Project], List[Task]]:
        """
        Stage project and task rows for suggestions without committing.

        Projects are created first so tasks can be attached to them. Suggested
        ids referenced by tasks are remapped to the created rows; a reference
        to a project or parent task outside the given suggestions is dropped,
        and so is a zone id that does not exist.
        """
        zone_ids = {zone.id for zone in await self.repos.zones.list_all()}

        project_ids: Dict[str, str] = {}
        created_projects: List[Project] = []
        for suggestion in projects:
            project = await self.repos.projects.add(self._project_from(user_id, suggestion, zone_ids))
            project_ids[suggestion.id] = project.id
            created_projects.append(project)

        task_ids: Dict[str, str] = {}
        created_tasks: List[Task] = []
        for suggestion in tasks:
            task = self._task_from(user_id, suggestion, project_ids.get(suggestion.project_id or ""), zone_ids)
            task = await self.repos.tasks.add(task)
            task_ids[suggestion.id] = task.id
            created_tasks.append(task)

        parents = {suggestion.id: suggestion.parent_task_id for suggestion in tasks}
        for hierarchy in hierarchies:
            if hierarchy.relationship_type != RelationshipType.TASK_SUBTASK:
                continue
            for subtask_id in hierarchy.subtask_ids:
                if subtask_id in parents and not parents[subtask_id]:
                    parents[subtask_id] = hierarchy.parent_task_id
        for suggestion, task in zip(tasks, created_tasks):
            parent = parents.get(suggestion.id)
            if parent and parent in task_ids and parent != suggestion.id:
                task.parent_task_id = task_ids[parent]
                await self.repos.tasks.add(task)

        return created_projects, created_tasks

    async def reject(self, user_id: str, item_id: str, reason: Optional[str] = None) -> InboxItem:
        item = await self.get_item(user_id, item_id)
        self._pending_result(item)
        details = {
            key: value
            for key, value in (item.details or {}).items()
            if key not in (RESULT_KEY, "summary", "processed_at", "status")
        }
        item.details = {**details, "rejected_at": utc_now().isoformat(), "rejection_reason": reason}
        item.status = InboxItemStatus.UNPROCESSED.value
        return await self.repos.inbox.update(item)

    @staticmethod
    def _project_from(user_id: str, suggestion: IntelligentProject, zone_ids: Set[int]) -> Project:
        return Project(
            user_id=user_id,
            name=suggestion.name,
            zone_id=suggestion.zone_id if suggestion.zone_id in zone_ids else None,
            status=(suggestion.status or ProjectStatus.ACTIVE).value,
            due_date=_as_datetime(suggestion.due_date),
            details={
                "created_from_inbox": True,
                "original_project_id": suggestion.id,
                "confidence": suggestion.confidence,
                "reasoning": suggestion.reasoning,
                "description": suggestion.description,
            },
        )

    @staticmethod
    def _task_from(user_id: str, suggestion: IntelligentTask, project_id: Optional[str], zone_ids: Set[int]) -> Task:
        return Task(
            user_id=user_id,
            name=suggestion.name[:255],
            project_id=project_id,
            status=TaskStatus.TODO.value,
            priority=suggestion.priority.value,
            due_date=_as_datetime(suggestion.due_date),
            details={
                "created_from_inbox": True,
                "original_task_id": suggestion.id,
                "confidence": suggestion.confidence,
                "reasoning": suggestion.reasoning,
                "description": suggestion.description,
                "estimated_minutes": suggestion.estimated_minutes,
                "tags": list(suggestion.tags),
                "zone_id": suggestion.zone_id if suggestion.zone_id in zone_ids else None,
            },
        )

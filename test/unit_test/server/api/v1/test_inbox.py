from typing import Any, Dict

import pytest
from httpx import AsyncClient
from pydantic_ai.messages import ModelMessage
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from omnicrm.integrations.ai import InboxAIProcessor
from omnicrm.server.core.config import AIConfig
from omnicrm.server.main import app
from omnicrm.server.services.deps import get_inbox_processor
from omnicrm.server.services.inbox import InboxService

pytestmark = pytest.mark.asyncio

INBOX_URL = "/api/v1/inbox"

PROCESSING_RESULT: Dict[str, Any] = {
    "extracted_tasks": [
        {
            "id": "t1",
            "name": "Draft retreat schedule",
            "priority": "urgent",
            "project_id": "p1",
            "confidence": 0.9,
            "reasoning": "explicit",
        },
        {
            "id": "t2",
            "name": "Email venue",
            "priority": "medium",
            "project_id": "p1",
            "confidence": 0.8,
            "reasoning": "part of schedule",
        },
        {"id": "t3", "name": "Buy candles", "confidence": 0.4, "reasoning": "maybe"},
    ],
    "suggested_projects": [
        {"id": "p1", "name": "Spring retreat", "confidence": 0.85, "reasoning": "grouped"},
        {"id": "p2", "name": "Shopping", "confidence": 0.2, "reasoning": "weak"},
    ],
    "task_hierarchies": [{"parent_task_id": "t1", "subtask_ids": ["t2"], "relationship_type": "task_subtask"}],
    "overall_confidence": 0.8,
    "processing_notes": "three tasks",
    "requires_approval": False,
}


def _use_processor(processor: InboxAIProcessor) -> None:
    app.dependency_overrides[get_inbox_processor] = lambda: processor


def _failing_model() -> FunctionModel:
    def fail(messages: list[ModelMessage], info: AgentInfo):
        raise RuntimeError("model unavailable")

    return FunctionModel(fail)


async def _capture(client: AsyncClient, text: str = "Call Jane about her session") -> dict:
    response = await client.post(INBOX_URL, json={"raw_text": text})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_quick_and_voice_capture(client: AsyncClient):
    item = await _capture(client)
    assert item["status"] == "unprocessed"
    assert item["details"] == {"source": "quick"}

    response = await client.post(f"{INBOX_URL}/voice", json={"transcription": "Book massage", "raw_text": "ignored"})
    assert response.status_code == 201
    voice = response.json()["data"]
    assert voice["raw_text"] == "Book massage"
    assert voice["details"] == {"source": "voice"}


async def test_capture_rejects_blank_text(client: AsyncClient):
    response = await client.post(INBOX_URL, json={"raw_text": "   "})
    assert response.status_code == 400
    assert response.json()["error"]["details"]["issues"][0]["path"] == "raw_text"


async def test_list_and_stats(client: AsyncClient):
    first = await _capture(client, "Renew insurance")
    await _capture(client, "Post on Instagram")
    await client.patch(f"{INBOX_URL}/{first['id']}", json={"status": "archived"})

    response = await client.get(INBOX_URL, params={"status": "unprocessed"})
    assert [item["raw_text"] for item in response.json()["data"]] == ["Post on Instagram"]

    response = await client.get(INBOX_URL, params={"search": "insurance"})
    assert [item["id"] for item in response.json()["data"]] == [first["id"]]

    stats = (await client.get(f"{INBOX_URL}/stats")).json()["data"]
    assert stats == {"unprocessed": 1, "processed": 0, "archived": 1, "total": 2}


async def test_update_and_delete_item(client: AsyncClient, other_client: AsyncClient):
    item = await _capture(client)

    response = await client.patch(f"{INBOX_URL}/{item['id']}", json={"raw_text": "Call Jane tomorrow"})
    assert response.json()["data"]["raw_text"] == "Call Jane tomorrow"

    response = await client.patch(f"{INBOX_URL}/{item['id']}", json={"status": "processed"})
    assert response.json()["data"]["processed_at"] is not None

    assert (await other_client.get(f"{INBOX_URL}/{item['id']}")).status_code == 404

    response = await client.delete(f"{INBOX_URL}/{item['id']}")
    assert response.json()["data"] == {"deleted": True, "id": item["id"]}
    assert (await client.get(f"{INBOX_URL}/{item['id']}")).status_code == 404


async def test_mark_processed_with_task(client: AsyncClient):
    item = await _capture(client)
    task = (await client.post("/api/v1/tasks", json={"name": "Call Jane"})).json()["data"]

    response = await client.post(f"{INBOX_URL}/{item['id']}/processed", json={"created_task_id": task["id"]})
    data = response.json()["data"]
    assert data["status"] == "processed"
    assert data["created_task_id"] == task["id"]

    response = await client.post(f"{INBOX_URL}/{item['id']}/processed", json={"created_task_id": "missing"})
    assert response.status_code == 400


async def test_bulk_actions(client: AsyncClient, other_client: AsyncClient):
    first = await _capture(client, "one")
    second = await _capture(client, "two")
    foreign = await _capture(other_client, "theirs")
    await client.post(f"{INBOX_URL}/{second['id']}/processed", json={})

    response = await client.post(
        f"{INBOX_URL}/bulk", json={"action": "process", "item_ids": [first["id"], second["id"], foreign["id"]]}
    )
    data = response.json()["data"]
    assert data["action"] == "process"
    assert [item["id"] for item in data["processed_items"]] == [first["id"]]

    response = await client.post(f"{INBOX_URL}/bulk", json={"action": "archive", "item_ids": [first["id"]]})
    assert response.json()["data"]["processed_items"][0]["status"] == "archived"

    response = await client.post(
        f"{INBOX_URL}/bulk", json={"action": "delete", "item_ids": [first["id"], second["id"]]}
    )
    assert len(response.json()["data"]["processed_items"]) == 2
    assert (await client.get(INBOX_URL)).json()["data"] == []
    assert (await other_client.get(f"{INBOX_URL}/{foreign['id']}")).status_code == 200

    response = await client.post(f"{INBOX_URL}/bulk", json={"action": "shred", "item_ids": [first["id"]]})
    assert response.status_code == 400


async def test_categorize(client: AsyncClient):
    _use_processor(
        InboxAIProcessor(
            model=TestModel(
                custom_output_args={
                    "suggested_zone": "Client Care",
                    "suggested_priority": "high",
                    "extracted_tasks": [{"name": "Call Jane", "estimated_minutes": 15}],
                    "confidence": 0.8,
                    "reasoning": "client follow-up",
                }
            )
        )
    )
    item = await _capture(client)

    response = await client.post(
        f"{INBOX_URL}/{item['id']}/categorize", json={"user_context": {"current_energy": 3, "available_time": 30}}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["suggested_zone"] == "Client Care"
    assert data["suggested_priority"] == "high"
    assert data["extracted_tasks"][0]["name"] == "Call Jane"


async def test_categorize_falls_back_when_model_fails(client: AsyncClient):
    _use_processor(InboxAIProcessor(model=_failing_model()))
    item = await _capture(client)

    response = await client.post(f"{INBOX_URL}/{item['id']}/categorize")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["suggested_zone"] == "Personal Wellness"
    assert data["confidence"] == 0.1
    assert data["extracted_tasks"][0]["name"] == "Call Jane about her session"


async def test_process_and_approve(client: AsyncClient):
    _use_processor(InboxAIProcessor(model=TestModel(custom_output_args=PROCESSING_RESULT)))
    item = await _capture(client, "Plan spring retreat, email venue, buy candles")

    response = await client.post(f"{INBOX_URL}/{item['id']}/process")
    result = response.json()["data"]
    assert result["requires_approval"] is True
    assert [task["id"] for task in result["extracted_tasks"]] == ["t1", "t2", "t3"]

    pending = (await client.get(f"{INBOX_URL}/pending-approvals")).json()["data"]
    assert [entry["item"]["id"] for entry in pending] == [item["id"]]
    assert pending[0]["item"]["details"]["summary"] == {
        "tasks": 3,
        "projects": 2,
        "hierarchies": 1,
        "overall_confidence": 0.8,
    }

    response = await client.post(
        f"{INBOX_URL}/{item['id']}/approve",
        json={
            "approved_task_ids": ["t1", "t2"],
            "approved_project_ids": ["p1"],
            "modifications": {"projects": {"p1": {"name": "Retreat 2026"}}},
        },
    )
    assert response.status_code == 200
    approval = response.json()["data"]
    assert approval["summary"] == "Created 2 tasks and 1 projects. Skipped 1 tasks and 1 projects."
    assert approval["skipped_tasks"] == ["t3"]
    assert approval["skipped_projects"] == ["p2"]

    project = approval["created_projects"][0]
    assert project["name"] == "Retreat 2026"
    first, second = approval["created_tasks"]
    assert first["project_id"] == project["id"]
    assert second["parent_task_id"] == first["id"]

    task = (await client.get(f"/api/v1/tasks/{first['id']}")).json()["data"]
    assert task["priority"] == "urgent"
    assert task["details"]["created_from_inbox"] is True

    item = (await client.get(f"{INBOX_URL}/{item['id']}")).json()["data"]
    assert item["status"] == "processed"
    assert item["created_task_id"] == first["id"]
    assert item["details"]["status"] == "approved"
    assert (await client.get(f"{INBOX_URL}/pending-approvals")).json()["data"] == []


async def test_process_falls_back_when_model_fails(client: AsyncClient):
    _use_processor(InboxAIProcessor(model=_failing_model()))
    item = await _capture(client)

    result = (await client.post(f"{INBOX_URL}/{item['id']}/process")).json()["data"]
    assert result["overall_confidence"] == 0.3
    assert len(result["extracted_tasks"]) == 1
    assert result["extracted_tasks"][0]["name"] == "Call Jane about her session"


async def test_reject(client: AsyncClient):
    _use_processor(InboxAIProcessor(model=TestModel(custom_output_args=PROCESSING_RESULT)))
    item = await _capture(client)
    await client.post(f"{INBOX_URL}/{item['id']}/process")

    response = await client.post(f"{INBOX_URL}/{item['id']}/reject", json={"reason": "not now"})
    data = response.json()["data"]
    assert data["status"] == "unprocessed"
    assert data["details"]["rejection_reason"] == "not now"
    assert "intelligent_processing" not in data["details"]
    assert "summary" not in data["details"]

    response = await client.post(f"{INBOX_URL}/{item['id']}/approve", json={"approved_task_ids": ["t1"]})
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "No pending processing result for this inbox item"


async def test_approve_without_processing(client: AsyncClient):
    item = await _capture(client)
    response = await client.post(f"{INBOX_URL}/{item['id']}/approve", json={})
    assert response.status_code == 400
    assert (await client.post(f"{INBOX_URL}/{item['id']}/reject")).status_code == 400


def _batch_processor(overall_confidence: float) -> InboxAIProcessor:
    config = AIConfig.model_validate(
        {"OMNICRM_AI_PROJECT_CONFIDENCE_THRESHOLD": 0.6, "OMNICRM_AI_TASK_CONFIDENCE_THRESHOLD": 0.5}
    )
    output = {**PROCESSING_RESULT, "overall_confidence": overall_confidence}
    return InboxAIProcessor(config=config, model=TestModel(custom_output_args=output))


@pytest.mark.parametrize(
    "confidence, projects_per_item, tasks_per_item",
    [(0.8, 2, 3), (0.6, 2, 3), (0.55, 0, 3), (0.5, 0, 3), (0.3, 0, 0)],
)
async def test_process_batch_applies_confidence_thresholds(
    client: AsyncClient, other_client: AsyncClient, confidence: float, projects_per_item: int, tasks_per_item: int
):
    _use_processor(_batch_processor(confidence))
    first = await _capture(client, "Plan spring retreat")
    second = await _capture(client, "Email venue and buy candles")
    archived = await _capture(client, "Old idea")
    await client.patch(f"{INBOX_URL}/{archived['id']}", json={"status": "archived"})
    foreign = await _capture(other_client, "Their capture")

    response = await client.post(f"{INBOX_URL}/process-batch")
    assert response.status_code == 200, response.text
    stats = response.json()["data"]
    assert stats["total_processed"] == 2
    assert stats["failed_items"] == 0
    assert stats["successful_projects"] == 2 * projects_per_item
    assert stats["successful_tasks"] == 2 * tasks_per_item
    assert stats["average_confidence"] == pytest.approx(confidence)
    assert {result["inbox_item_id"] for result in stats["results"]} == {first["id"], second["id"]}

    projects = (await client.get("/api/v1/projects")).json()["data"]
    tasks = (await client.get("/api/v1/tasks")).json()["data"]
    assert len(projects) == 2 * projects_per_item
    assert len(tasks) == 2 * tasks_per_item

    item = (await client.get(f"{INBOX_URL}/{first['id']}")).json()["data"]
    assert item["status"] == "processed"
    assert item["details"]["auto_processing"]["tasks_created"] == tasks_per_item
    if tasks_per_item:
        assert item["created_task_id"] in {task["id"] for task in tasks}
    else:
        assert item["created_task_id"] is None

    assert (await client.get(f"{INBOX_URL}/{archived['id']}")).json()["data"]["status"] == "archived"
    assert (await other_client.get(f"{INBOX_URL}/{foreign['id']}")).json()["data"]["status"] == "unprocessed"


async def test_process_batch_links_created_rows(client: AsyncClient):
    _use_processor(_batch_processor(0.9))
    await _capture(client, "Plan spring retreat")

    await client.post(f"{INBOX_URL}/process-batch", json={"limit": 10})

    projects = {project["name"]: project for project in (await client.get("/api/v1/projects")).json()["data"]}
    tasks = {task["name"]: task for task in (await client.get("/api/v1/tasks")).json()["data"]}
    assert tasks["Draft retreat schedule"]["project_id"] == projects["Spring retreat"]["id"]
    assert tasks["Email venue"]["parent_task_id"] == tasks["Draft retreat schedule"]["id"]
    assert tasks["Buy candles"]["project_id"] is None


async def test_process_batch_without_items(client: AsyncClient):
    stats = (await client.post(f"{INBOX_URL}/process-batch")).json()["data"]
    assert stats["total_processed"] == 0
    assert stats["average_confidence"] == 0
    assert stats["results"] == []


async def test_process_batch_keeps_going_after_item_failure(client: AsyncClient, monkeypatch):
    _use_processor(_batch_processor(0.9))
    await _capture(client, "first")
    await _capture(client, "second")

    materialize = InboxService._materialize
    calls = []

    async def failing_once(self, *args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return await materialize(self, *args, **kwargs)

    monkeypatch.setattr(InboxService, "_materialize", failing_once)

    stats = (await client.post(f"{INBOX_URL}/process-batch")).json()["data"]
    assert stats["total_processed"] == 2
    assert stats["failed_items"] == 1
    failed = next(result for result in stats["results"] if not result["success"])
    assert failed["error"] == "database unavailable"
    assert stats["average_confidence"] == pytest.approx(0.9)

    item = (await client.get(f"{INBOX_URL}/{failed['inbox_item_id']}")).json()["data"]
    assert item["status"] == "unprocessed"
    assert len((await client.get("/api/v1/tasks")).json()["data"]) == 3


async def test_process_batch_rejects_invalid_limit(client: AsyncClient):
    response = await client.post(f"{INBOX_URL}/process-batch", json={"limit": 0})
    assert response.status_code == 400


async def _pending_item(client: AsyncClient, zone_id: int) -> dict:
    project = {**PROCESSING_RESULT["suggested_projects"][0], "zone_id": zone_id}
    output = {**PROCESSING_RESULT, "suggested_projects": [project]}
    _use_processor(InboxAIProcessor(model=TestModel(custom_output_args=output)))
    item = await _capture(client, "Plan spring retreat")
    await client.post(f"{INBOX_URL}/{item['id']}/process")
    return item


async def test_approve_drops_unknown_suggested_zone(client: AsyncClient):
    item = await _pending_item(client, 9999)

    response = await client.post(f"{INBOX_URL}/{item['id']}/approve", json={"approved_project_ids": ["p1"]})
    assert response.status_code == 200
    assert response.json()["data"]["created_projects"][0]["zone_id"] is None


async def test_approve_keeps_existing_suggested_zone(client: AsyncClient):
    zone_id = (await client.get("/api/v1/zones")).json()["data"][0]["id"]
    item = await _pending_item(client, zone_id)

    response = await client.post(f"{INBOX_URL}/{item['id']}/approve", json={"approved_project_ids": ["p1"]})
    assert response.json()["data"]["created_projects"][0]["zone_id"] == zone_id


async def test_approve_rejects_unknown_zone_modification(client: AsyncClient):
    item = await _pending_item(client, 1)

    response = await client.post(
        f"{INBOX_URL}/{item['id']}/approve",
        json={"approved_project_ids": ["p1"], "modifications": {"projects": {"p1": {"zone_id": 9999}}}},
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Zone 9999 does not exist"
    assert (await client.get("/api/v1/projects")).json()["data"] == []
    assert [entry["item"]["id"] for entry in (await client.get(f"{INBOX_URL}/pending-approvals")).json()["data"]] == [
        item["id"]
    ]

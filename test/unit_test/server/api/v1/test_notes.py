import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def _note(client: AsyncClient) -> dict:
    contact = (await client.post("/api/v1/contacts", json={"display_name": "Client"})).json()["data"]
    response = await client.post(
        f"/api/v1/contacts/{contact['id']}/notes", json={"content": "Initial consult", "title": "Intake"}
    )
    return response.json()["data"]


async def test_get_update_delete_note(client: AsyncClient):
    note = await _note(client)

    response = await client.get(f"/api/v1/notes/{note['id']}")
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Intake"

    response = await client.patch(f"/api/v1/notes/{note['id']}", json={"content": "Follow-up booked"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["content"] == "Follow-up booked"
    assert data["title"] == "Intake"

    response = await client.delete(f"/api/v1/notes/{note['id']}")
    assert response.json()["data"] == {"deleted": True, "id": note["id"]}
    assert (await client.get(f"/api/v1/notes/{note['id']}")).status_code == 404


async def test_update_rejects_null_or_blank_content(client: AsyncClient):
    note = await _note(client)

    response = await client.patch(f"/api/v1/notes/{note['id']}", json={"content": None})
    assert response.status_code == 400

    response = await client.patch(f"/api/v1/notes/{note['id']}", json={"content": "   "})
    assert response.status_code == 400


async def test_notes_are_scoped_to_caller(client: AsyncClient, other_client: AsyncClient):
    note = await _note(client)
    assert (await other_client.get(f"/api/v1/notes/{note['id']}")).status_code == 404
    assert (await other_client.delete(f"/api/v1/notes/{note['id']}")).status_code == 404

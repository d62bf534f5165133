import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

CONTACTS_URL = "/api/v1/contacts"


async def _create(client: AsyncClient, **fields) -> dict:
    response = await client.post(CONTACTS_URL, json=fields)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_requires_identity(anonymous_client: AsyncClient):
    response = await anonymous_client.get(CONTACTS_URL)
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


async def test_create_and_get_contact(client: AsyncClient):
    created = await _create(
        client,
        display_name="  Jane Doe  ",
        primary_email="jane@example.com",
        lifecycle_stage="core_client",
        tags=["yoga"],
    )
    assert created["display_name"] == "Jane Doe"
    assert created["lifecycle_stage"] == "Core Client"
    assert created["source"] == "manual"
    assert created["tags"] == ["yoga"]

    response = await client.get(f"{CONTACTS_URL}/{created['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["data"]["primary_email"] == "jane@example.com"
    assert body["request_id"] == response.headers["x-request-id"]


async def test_blank_optional_fields_are_stored_as_null(client: AsyncClient):
    created = await _create(client, display_name="Blank Fields", primary_email="", primary_phone="  ")
    assert created["primary_email"] is None
    assert created["primary_phone"] is None


async def test_create_contact_validation(client: AsyncClient):
    response = await client.post(CONTACTS_URL, json={"display_name": "   "})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["issues"][0]["path"] == "display_name"

    response = await client.post(CONTACTS_URL, json={"display_name": "X", "lifecycle_stage": "Unknown"})
    assert response.status_code == 400


async def test_invalid_json_body(client: AsyncClient):
    response = await client.post(
        CONTACTS_URL, content=b"{not json", headers={"content-type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid JSON in request body"


async def test_list_contacts_search_and_pagination(client: AsyncClient):
    for name in ("Alice Adams", "Bob Brown", "Carol Clark"):
        await _create(client, display_name=name, primary_email=f"{name.split()[0].lower()}@example.com")

    response = await client.get(CONTACTS_URL, params={"page_size": 2})
    data = response.json()["data"]
    assert [item["display_name"] for item in data["items"]] == ["Alice Adams", "Bob Brown"]
    assert data["pagination"] == {
        "page": 1,
        "page_size": 2,
        "total": 3,
        "total_pages": 2,
        "has_next": True,
        "has_prev": False,
    }

    response = await client.get(CONTACTS_URL, params={"search": "CAROL"})
    items = response.json()["data"]["items"]
    assert len(items) == 1
    assert items[0]["display_name"] == "Carol Clark"

    response = await client.get(CONTACTS_URL, params={"order": "desc"})
    assert response.json()["data"]["items"][0]["display_name"] == "Carol Clark"


async def test_list_includes_note_overview(client: AsyncClient):
    contact = await _create(client, display_name="Noted")
    await client.post(f"{CONTACTS_URL}/{contact['id']}/notes", json={"content": "first"})
    await client.post(f"{CONTACTS_URL}/{contact['id']}/notes", json={"content": "second"})

    item = (await client.get(CONTACTS_URL)).json()["data"]["items"][0]
    assert item["notes_count"] == 2
    assert item["last_note"] in ("first", "second")


async def test_contacts_are_scoped_to_caller(client: AsyncClient, other_client: AsyncClient):
    contact = await _create(client, display_name="Private Client")

    response = await other_client.get(f"{CONTACTS_URL}/{contact['id']}")
    assert response.status_code == 404
    assert (await other_client.get(CONTACTS_URL)).json()["data"]["items"] == []

    response = await other_client.delete(f"{CONTACTS_URL}/{contact['id']}")
    assert response.status_code == 404


async def test_update_contact(client: AsyncClient):
    contact = await _create(client, display_name="Before", tags=["a"])

    response = await client.patch(
        f"{CONTACTS_URL}/{contact['id']}", json={"display_name": "After", "lifecycle_stage": "vip client"}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["display_name"] == "After"
    assert data["lifecycle_stage"] == "VIP Client"
    assert data["tags"] == ["a"]

    response = await client.patch(f"{CONTACTS_URL}/{contact['id']}", json={"display_name": None})
    assert response.status_code == 400


async def test_delete_contact(client: AsyncClient):
    contact = await _create(client, display_name="Gone")
    response = await client.delete(f"{CONTACTS_URL}/{contact['id']}")
    assert response.status_code == 200
    assert response.json()["data"]["deleted"] is True
    assert (await client.get(f"{CONTACTS_URL}/{contact['id']}")).status_code == 404


async def test_batch_create_reports_duplicates(client: AsyncClient):
    await _create(client, display_name="Existing", primary_email="known@example.com")

    response = await client.post(
        f"{CONTACTS_URL}/batch",
        json={
            "contacts": [
                {"display_name": "Known Again", "primary_email": "KNOWN@example.com"},
                {"display_name": "New One", "primary_email": "new@example.com"},
                {"display_name": "New One Twice", "primary_email": "new@example.com"},
                {"display_name": "No Email"},
            ]
        },
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert [contact["display_name"] for contact in data["created"]] == ["New One", "No Email"]
    assert [duplicate["display_name"] for duplicate in data["duplicates"]] == ["Known Again", "New One Twice"]
    assert data["errors"] == []


async def test_bulk_delete(client: AsyncClient, other_client: AsyncClient):
    first = await _create(client, display_name="First")
    second = await _create(client, display_name="Second")
    foreign = await _create(other_client, display_name="Foreign")

    response = await client.post(
        f"{CONTACTS_URL}/bulk-delete", json={"ids": [first["id"], second["id"], foreign["id"]]}
    )
    assert response.json()["data"] == {"deleted": 2, "message": "Successfully deleted 2 contacts"}
    assert (await other_client.get(f"{CONTACTS_URL}/{foreign['id']}")).status_code == 200

    response = await client.post(f"{CONTACTS_URL}/bulk-delete", json={"ids": [first["id"]]})
    assert response.json()["data"] == {"deleted": 0, "message": "No contacts found to delete"}


async def test_summary(client: AsyncClient):
    await _create(client, display_name="P1", lifecycle_stage="Prospect")
    await _create(client, display_name="P2", lifecycle_stage="Prospect")
    await _create(client, display_name="Unstaged")

    data = (await client.get(f"{CONTACTS_URL}/summary")).json()["data"]
    assert data["total_contacts"] == 3
    assert data["by_stage"] == {"Prospect": 2, "unknown": 1}
    assert data["by_source"] == {"manual": 3}
    assert len(data["recent"]) == 3


async def test_find_by_email(client: AsyncClient):
    contact = await _create(client, display_name="Mail Me", primary_email="mail@example.com")

    response = await client.get(f"{CONTACTS_URL}/by-email", params={"email": "MAIL@example.com"})
    assert response.json()["data"]["id"] == contact["id"]

    response = await client.get(f"{CONTACTS_URL}/by-email", params={"email": "nobody@example.com"})
    assert response.status_code == 404


async def test_notes_for_contact(client: AsyncClient):
    contact = await _create(client, display_name="Client")

    response = await client.post(
        f"{CONTACTS_URL}/{contact['id']}/notes", json={"content": "Session went well", "title": ""}
    )
    assert response.status_code == 201
    note = response.json()["data"]
    assert note["contact_id"] == contact["id"]
    assert note["title"] is None

    notes = (await client.get(f"{CONTACTS_URL}/{contact['id']}/notes")).json()["data"]
    assert [item["id"] for item in notes] == [note["id"]]

    response = await client.post(f"{CONTACTS_URL}/missing/notes", json={"content": "x"})
    assert response.status_code == 404


async def test_consents_of_unknown_contact(client: AsyncClient):
    response = await client.get(f"{CONTACTS_URL}/missing/consents")
    assert response.status_code == 404

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from leadhub.api import leads as leads_api
from leadhub.api import notifications as notifications_api
from leadhub.db import get_db
from leadhub.errors import register_error_handlers

LEAD = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "phone": "+15550100",
}


@pytest.fixture()
async def client(db_session):
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(leads_api.router, prefix="/api")
    app.include_router(notifications_api.router, prefix="/api")
    app.dependency_overrides[get_db] = lambda: db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


async def test_process_lead_delivers_and_lists(client, account, fund, make_config):
    config = make_config(account)
    fund(account.id, 5000)

    response = await client.post(
        "/api/leads/process",
        json={"config_id": str(config.id), "lead_data": LEAD, "source_lead_id": "ext-1"},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["duplicate"] is False

    listed = await client.get(
        "/api/leads", params={"account_id": str(account.id), "status": "delivered"}
    )
    assert listed.json()["count"] == 1
    assert listed.json()["items"][0]["id"] == body["lead_id"]

    detail = await client.get(f"/api/leads/{body['lead_id']}")
    assert detail.json()["cost_cents"] == 1500
    assert detail.json()["lead_data"]["email"] == "ada@example.com"


async def test_process_lead_repeated_is_duplicate(client, account, fund, make_config):
    config = make_config(account)
    fund(account.id, 5000)
    payload = {"config_id": str(config.id), "lead_data": LEAD, "source_lead_id": "ext-2"}

    first = await client.post("/api/leads/process", json=payload)
    second = await client.post("/api/leads/process", json=payload)

    assert second.json()["success"] is True
    assert second.json()["duplicate"] is True
    assert second.json()["lead_id"] == first.json()["lead_id"]


async def test_process_lead_without_funds(client, account, make_config):
    config = make_config(account)

    response = await client.post(
        "/api/leads/process",
        json={"config_id": str(config.id), "lead_data": LEAD, "source_lead_id": "ext-3"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "lead_id": None,
        "error": "Insufficient balance",
        "duplicate": False,
    }


async def test_get_unknown_lead(client):
    response = await client.get("/api/leads/not-a-uuid")
    assert response.status_code == 404


async def test_lead_notification_can_be_marked_read(client, account, fund, make_config):
    config = make_config(account)
    fund(account.id, 5000)
    await client.post(
        "/api/leads/process",
        json={"config_id": str(config.id), "lead_data": LEAD, "source_lead_id": "ext-4"},
    )

    unread = await client.get(
        "/api/notifications",
        params={"account_id": str(account.id), "unread_only": True},
    )
    items = unread.json()["items"]
    assert [item["type"] for item in items] == ["new_lead"]
    assert items[0]["message"] == "New custom lead imported: Ada Lovelace"

    marked = await client.post(f"/api/notifications/{items[0]['id']}/read")
    assert marked.json()["is_read"] is True

    after = await client.get(
        "/api/notifications",
        params={"account_id": str(account.id), "unread_only": True},
    )
    assert after.json()["count"] == 0

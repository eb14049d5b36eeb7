"""Contract tests for /notifications."""
import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]


async def _raise_two(client: AsyncClient) -> None:
    for _ in range(2):
        resp = await client.post("/api/v1/purchase-requests", json={"items": [{"name": "Gloves", "quantity": 10}]})
        assert resp.status_code == 201


@pytest.mark.asyncio
async def test_feed_newest_first_with_unread_count(auth_client: AsyncClient):
    await _raise_two(auth_client)
    resp = await auth_client.get("/api/v1/notifications")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["unread_count"] == 2
    assert [n["meta"]["request_number"] for n in data["notifications"]] == ["PR-0002", "PR-0001"]
    assert all(n["read"] is False for n in data["notifications"])


@pytest.mark.asyncio
async def test_mark_one_read(auth_client: AsyncClient):
    await _raise_two(auth_client)
    feed = (await auth_client.get("/api/v1/notifications")).json()["data"]["notifications"]
    resp = await auth_client.post(f"/api/v1/notifications/{feed[0]['id']}/read")
    assert resp.status_code == 200
    assert resp.json()["data"]["notification"]["read"] is True
    after = (await auth_client.get("/api/v1/notifications")).json()["data"]
    assert after["unread_count"] == 1


@pytest.mark.asyncio
async def test_mark_all_read(staff_client: AsyncClient):
    await _raise_two(staff_client)
    resp = await staff_client.post("/api/v1/notifications/read-all")
    assert resp.status_code == 200
    assert resp.json()["data"]["unread_count"] == 0


@pytest.mark.asyncio
async def test_unknown_notification(auth_client: AsyncClient):
    resp = await auth_client.post("/api/v1/notifications/not-an-id/read")
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Notification not found"


@pytest.mark.asyncio
async def test_requires_authentication(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/notifications")
    assert resp.status_code == 401

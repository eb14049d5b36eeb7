"""Scans that cross the threshold raise low-stock notifications and show up on the dashboard."""
import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.integration]


@pytest.mark.asyncio
async def test_out_scan_below_threshold_notifies(auth_client: AsyncClient, staff_client: AsyncClient):
    created = await auth_client.post("/api/v1/inventory/items", json={
        "name": "Air filter element", "barcode": "AF-100", "stock": 6, "threshold": 3, "unit": "pcs",
    })
    item = created.json()["data"]["item"]

    await staff_client.post("/api/v1/inventory/scan", json={"barcode": "AF-100", "action": "OUT", "quantity": 2})
    feed = (await staff_client.get("/api/v1/notifications")).json()["data"]
    assert all(n["title"] != "Low stock alert" for n in feed["notifications"])

    resp = await staff_client.post("/api/v1/inventory/scan", json={"barcode": "AF-100", "action": "OUT", "quantity": 1})
    snapshot = resp.json()["data"]["snapshot"]
    assert [i["id"] for i in snapshot["low_stock"]] == [item["id"]]

    feed = (await staff_client.get("/api/v1/notifications")).json()["data"]
    alert = next(n for n in feed["notifications"] if n["title"] == "Low stock alert")
    assert alert["severity"] == "warning"
    assert alert["message"] == "Air filter element is at 3 pcs (threshold 3)."
    assert alert["meta"] == {"item_id": item["id"]}

    stats = (await staff_client.get("/api/v1/dashboard/stats")).json()["data"]
    assert stats["low_stock_items"] == 1
    low = (await staff_client.get("/api/v1/dashboard/low-stock")).json()["data"]["items"]
    assert low[0]["name"] == "Air filter element"

    # Replenishing clears the low-stock flag
    await staff_client.post("/api/v1/inventory/scan", json={"barcode": "AF-100", "action": "IN", "quantity": 10})
    snap = (await staff_client.get("/api/v1/inventory")).json()["data"]
    assert snap["low_stock"] == []
    assert [t["action"] for t in snap["transactions"]] == ["IN", "OUT", "OUT"]

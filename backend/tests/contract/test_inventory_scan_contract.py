"""Contract tests for /inventory: catalogue, lookup, scan movements and thresholds."""
import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]


async def _create(client: AsyncClient, **overrides) -> dict:
    payload = {
        "name": "Ball bearing 6204",
        "barcode": "8901234567890",
        "category": "Spares",
        "unit": "pcs",
        "hsnCode": "8482",
        "gstRate": 18,
        "stock": 10,
        "threshold": 3,
    }
    payload.update(overrides)
    resp = await client.post("/api/v1/inventory/items", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["item"]


@pytest.mark.asyncio
async def test_create_item_and_snapshot(auth_client: AsyncClient):
    item = await _create(auth_client)
    assert item["hsn_code"] == "8482"
    assert item["gst_rate"] == 18.0
    assert item["low_stock"] is False

    snap = await auth_client.get("/api/v1/inventory")
    assert snap.status_code == 200
    data = snap.json()["data"]
    assert [i["barcode"] for i in data["items"]] == ["8901234567890"]
    assert data["low_stock"] == []
    assert data["transactions"] == []


@pytest.mark.asyncio
async def test_duplicate_barcode_conflicts(auth_client: AsyncClient):
    await _create(auth_client)
    resp = await auth_client.post("/api/v1/inventory/items", json={"name": "Other", "barcode": "8901234567890"})
    assert resp.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"name": ""},
        {"name": "Gasket", "stock": -1},
        {"name": "Gasket", "hsnCode": "12AB"},
    ],
)
async def test_create_item_validation(auth_client: AsyncClient, payload):
    resp = await auth_client.post("/api/v1/inventory/items", json=payload)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_staff_cannot_create_items(staff_client: AsyncClient):
    resp = await staff_client.post("/api/v1/inventory/items", json={"name": "Gasket"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_list_filters_and_pagination(auth_client: AsyncClient):
    await _create(auth_client)
    await _create(auth_client, name="V-belt A42", barcode="B-42", category="Belts", stock=1, threshold=2)
    await _create(auth_client, name="Grease 1kg", barcode="G-1", category="Consumables", stock=5, threshold=0)

    page = await auth_client.get("/api/v1/inventory/items", params={"page": 1, "page_size": 2})
    body = page.json()["data"]
    assert len(body["items"]) == 2
    assert body["pagination"]["total_items"] == 3
    assert body["pagination"]["total_pages"] == 2
    assert body["pagination"]["has_next"] is True

    low = await auth_client.get("/api/v1/inventory/items", params={"low_stock": True})
    assert [i["name"] for i in low.json()["data"]["items"]] == ["V-belt A42"]

    belts = await auth_client.get("/api/v1/inventory/items", params={"category": "Belts"})
    assert len(belts.json()["data"]["items"]) == 1

    search = await auth_client.get("/api/v1/inventory/search", params={"q": "GREASE"})
    assert [i["barcode"] for i in search.json()["data"]["items"]] == ["G-1"]


@pytest.mark.asyncio
async def test_lookup_by_barcode_then_name(staff_client: AsyncClient, auth_client: AsyncClient):
    await _create(auth_client)
    by_code = await staff_client.get("/api/v1/inventory/lookup", params={"q": "8901234567890"})
    assert by_code.status_code == 200
    by_name = await staff_client.get("/api/v1/inventory/lookup", params={"q": "bearing"})
    assert by_name.json()["data"]["item"]["id"] == by_code.json()["data"]["item"]["id"]

    missing = await staff_client.get("/api/v1/inventory/lookup", params={"q": "unobtainium"})
    assert missing.status_code == 404
    blank = await staff_client.get("/api/v1/inventory/lookup", params={"q": " "})
    assert blank.status_code == 400


@pytest.mark.asyncio
async def test_scan_in_and_out(staff_client: AsyncClient, auth_client: AsyncClient):
    await _create(auth_client)
    resp = await staff_client.post("/api/v1/inventory/scan", json={"barcode": "8901234567890", "action": "in", "quantity": "5"})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["transaction"]["action"] == "IN"
    assert data["transaction"]["quantity"] == 5
    assert data["transaction"]["reason"] == "Stock replenishment"
    assert data["transaction"]["user"] == "Sita Staff"
    assert data["snapshot"]["items"][0]["stock"] == 15

    out = await staff_client.post("/api/v1/inventory/scan", json={
        "barcode": "8901234567890", "action": "OUT", "quantity": 4, "reason": "Line 2 maintenance",
    })
    data = out.json()["data"]
    assert data["snapshot"]["items"][0]["stock"] == 11
    assert data["transaction"]["reason"] == "Line 2 maintenance"
    assert [t["action"] for t in data["snapshot"]["transactions"]][:2] == ["OUT", "IN"]


@pytest.mark.asyncio
async def test_scan_out_more_than_available(staff_client: AsyncClient, auth_client: AsyncClient):
    await _create(auth_client, stock=2)
    resp = await staff_client.post("/api/v1/inventory/scan", json={"barcode": "8901234567890", "action": "OUT", "quantity": 3})
    assert resp.status_code == 400
    err = resp.json()["error"]
    assert err["code"] == "INSUFFICIENT_STOCK"
    assert err["details"] == {"available": 2, "requested": 3}

    snap = await staff_client.get("/api/v1/inventory")
    assert snap.json()["data"]["items"][0]["stock"] == 2
    assert snap.json()["data"]["transactions"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, status_code",
    [
        ({"action": "IN", "quantity": 1}, 400),
        ({"barcode": "8901234567890", "action": "MOVE", "quantity": 1}, 400),
        ({"barcode": "8901234567890", "action": "IN", "quantity": 0}, 400),
        ({"barcode": "8901234567890", "action": "IN", "quantity": "two"}, 400),
        ({"barcode": "nothing-here", "action": "IN", "quantity": 1}, 404),
    ],
)
async def test_scan_rejections(auth_client: AsyncClient, payload, status_code):
    await _create(auth_client)
    resp = await auth_client.post("/api/v1/inventory/scan", json=payload)
    assert resp.status_code == status_code


@pytest.mark.asyncio
async def test_threshold_update(auth_client: AsyncClient, staff_client: AsyncClient):
    item = await _create(auth_client)
    resp = await auth_client.put(f"/api/v1/inventory/items/{item['id']}", json={"threshold": 12})
    assert resp.status_code == 200
    updated = resp.json()["data"]["item"]
    assert updated["threshold"] == 12
    assert updated["low_stock"] is True

    bad = await auth_client.put(f"/api/v1/inventory/items/{item['id']}", json={"threshold": -1})
    assert bad.status_code == 400
    missing = await auth_client.put("/api/v1/inventory/items/00000000-0000-0000-0000-000000000000", json={"threshold": 1})
    assert missing.status_code == 404
    forbidden = await staff_client.put(f"/api/v1/inventory/items/{item['id']}", json={"threshold": 1})
    assert forbidden.status_code == 403

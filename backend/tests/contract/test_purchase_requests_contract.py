"""Contract tests for /purchase-requests."""
import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]

ITEMS = [{"name": "Cutting oil", "quantity": 4, "unit": "litre"}, {"name": "Hacksaw blade", "quantity": "12"}]


@pytest.mark.asyncio
async def test_create_request(staff_client: AsyncClient):
    resp = await staff_client.post("/api/v1/purchase-requests", json={
        "items": ITEMS, "reason": "", "neededBy": "2024-05-01",
    })
    assert resp.status_code == 201, resp.text
    request = resp.json()["data"]["request"]
    assert request["request_number"] == "PR-0001"
    assert request["status"] == "pending-supervisor"
    assert request["reason"] == "Operational requirement"
    assert request["needed_by"] == "2024-05-01"
    assert [i["quantity"] for i in request["items"]] == [4, 12]
    assert request["items"][1]["unit"] == "pcs"
    assert request["approvals"]["supervisor"]["status"] == "pending"
    assert request["history"][0]["action"] == "created"

    second = await staff_client.post("/api/v1/purchase-requests", json={"items": ITEMS})
    assert second.json()["data"]["request"]["request_number"] == "PR-0002"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "items",
    [[], [{"name": "", "quantity": 1}], [{"name": "Oil", "quantity": 0}], [{"name": "Oil", "quantity": "many"}], ["oil"]],
)
async def test_create_request_validation(staff_client: AsyncClient, items):
    resp = await staff_client.post("/api/v1/purchase-requests", json={"items": items})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_listing_visibility_and_counts(staff_client: AsyncClient, supervisor_client: AsyncClient):
    await staff_client.post("/api/v1/purchase-requests", json={"items": ITEMS})
    await supervisor_client.post("/api/v1/purchase-requests", json={"items": ITEMS})

    own = await staff_client.get("/api/v1/purchase-requests")
    assert own.json()["meta"]["total"] == 1
    assert own.json()["data"]["requests"][0]["created_by"] == "Sita Staff"

    everything = await supervisor_client.get("/api/v1/purchase-requests")
    data = everything.json()["data"]
    assert len(data["requests"]) == 2
    assert data["counts"] == {"pending-supervisor": 2, "pending-executive": 0, "approved": 0, "rejected": 0}


@pytest.mark.asyncio
async def test_review_requires_stage_permission(staff_client: AsyncClient):
    created = await staff_client.post("/api/v1/purchase-requests", json={"items": ITEMS})
    request_id = created.json()["data"]["request"]["id"]
    resp = await staff_client.post(f"/api/v1/purchase-requests/{request_id}/review", json={"action": "approve"})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_review_rejects_bad_action_and_unknown_id(supervisor_client: AsyncClient):
    created = await supervisor_client.post("/api/v1/purchase-requests", json={"items": ITEMS})
    request_id = created.json()["data"]["request"]["id"]
    bad = await supervisor_client.post(f"/api/v1/purchase-requests/{request_id}/review", json={"action": "maybe"})
    assert bad.status_code == 400
    missing = await supervisor_client.post(
        "/api/v1/purchase-requests/00000000-0000-0000-0000-000000000000/review", json={"action": "approve"}
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_export_csv(auth_client: AsyncClient):
    await auth_client.post("/api/v1/purchase-requests", json={"items": ITEMS, "reason": "Monthly, restock"})
    resp = await auth_client.get("/api/v1/purchase-requests/export")
    assert resp.status_code == 200
    lines = resp.text.split("\r\n")
    assert lines[0] == "Request,Requested By,Status,Items,Reason,Needed By,Created"
    assert lines[1].startswith("PR-0001,Administrator,pending-supervisor,Cutting oil x 4 litre; Hacksaw blade x 12 pcs,")
    assert '"Monthly, restock"' in lines[1]

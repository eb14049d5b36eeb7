"""Contract tests for /roles and /employees."""
import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]


async def _role(client: AsyncClient, name: str) -> dict:
    resp = await client.get("/api/v1/roles")
    assert resp.status_code == 200
    return next(r for r in resp.json()["data"]["roles"] if r["name"] == name)


@pytest.mark.asyncio
async def test_list_roles_includes_defaults(staff_client: AsyncClient):
    resp = await staff_client.get("/api/v1/roles")
    assert resp.status_code == 200
    body = resp.json()
    names = {r["name"] for r in body["data"]["roles"]}
    assert {"Chairwoman", "Managing Director", "CEO", "Supervisor", "Staff"} <= names
    assert body["meta"]["total"] == len(body["data"]["roles"])


@pytest.mark.asyncio
async def test_update_role_permissions_merges(auth_client: AsyncClient):
    staff = await _role(auth_client, "Staff")
    resp = await auth_client.put(
        f"/api/v1/roles/{staff['id']}/permissions",
        json={"permissions": {"viewInvoices": True, "updateInventory": False}},
    )
    assert resp.status_code == 200, resp.text
    perms = resp.json()["data"]["role"]["permissions"]
    assert perms["viewInvoices"] is True
    assert perms["updateInventory"] is False
    assert perms["viewInventory"] is True


@pytest.mark.asyncio
async def test_full_access_role_is_immutable(auth_client: AsyncClient):
    ceo = await _role(auth_client, "CEO")
    resp = await auth_client.put(f"/api/v1/roles/{ceo['id']}/permissions", json={"permissions": {"viewDashboard": False}})
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Full access roles cannot be modified"


@pytest.mark.asyncio
async def test_unknown_permission_rejected(auth_client: AsyncClient):
    staff = await _role(auth_client, "Staff")
    resp = await auth_client.put(f"/api/v1/roles/{staff['id']}/permissions", json={"permissions": {"flyPlanes": True}})
    assert resp.status_code == 400
    assert resp.json()["error"]["details"] == {"unknown": ["flyPlanes"]}


@pytest.mark.asyncio
async def test_unknown_role_is_not_found(auth_client: AsyncClient):
    resp = await auth_client.put("/api/v1/roles/not-a-uuid/permissions", json={"permissions": {}})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_staff_cannot_manage_roles(staff_client: AsyncClient):
    staff = await _role(staff_client, "Staff")
    resp = await staff_client.put(f"/api/v1/roles/{staff['id']}/permissions", json={"permissions": {"viewInvoices": True}})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_create_and_list_employee(auth_client: AsyncClient):
    staff = await _role(auth_client, "Staff")
    resp = await auth_client.post("/api/v1/employees", json={
        "name": "Ravi Welder", "email": "ravi@example.com", "password": "welder1",
        "roleId": staff["id"], "designation": "Welder",
    })
    assert resp.status_code == 201, resp.text
    employee = resp.json()["data"]["employee"]
    assert employee["role"]["name"] == "Staff"
    assert employee["designation"] == "Welder"
    assert employee["department"] == "Operations"
    assert employee["status"] == "active"

    listing = await auth_client.get("/api/v1/employees")
    emails = [e["email"] for e in listing.json()["data"]["employees"]]
    assert "ravi@example.com" in emails

    notes = await auth_client.get("/api/v1/notifications")
    titles = [n["title"] for n in notes.json()["data"]["notifications"]]
    assert "New employee added" in titles


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(auth_client: AsyncClient):
    staff = await _role(auth_client, "Staff")
    resp = await auth_client.post("/api/v1/employees", json={
        "name": "Copy", "email": "staff@example.com", "password": "copy123", "roleId": staff["id"],
    })
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CONFLICT"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, status_code",
    [
        ({"name": "Bad Email", "email": "not-an-email", "password": "abcdef"}, 400),
        ({"name": "Short", "email": "short@example.com", "password": "abc"}, 400),
    ],
)
async def test_create_employee_validation(auth_client: AsyncClient, payload, status_code):
    staff = await _role(auth_client, "Staff")
    payload = dict(payload, roleId=staff["id"])
    resp = await auth_client.post("/api/v1/employees", json=payload)
    assert resp.status_code == status_code
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_employee_with_unknown_role(auth_client: AsyncClient):
    resp = await auth_client.post("/api/v1/employees", json={
        "name": "Nobody", "email": "nobody@example.com", "password": "abcdef",
        "roleId": "00000000-0000-0000-0000-000000000000",
    })
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Invalid role"

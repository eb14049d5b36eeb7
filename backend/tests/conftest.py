"""Test configuration and fixtures.

The suite runs against a file-based SQLite database (``./test.db``):

  * once per session the schema is dropped and recreated from the models and
    the default roles plus three employees are seeded (admin, supervisor, staff)
  * after every test all domain tables are emptied; roles and the seeded
    employees survive, with role permissions restored to their defaults
  * the e-invoice rate limiter is reset between tests

Environment Variables:
    TESTING=true   -> SQLite URLs in config/database.py
    FAST_TESTS=1   -> lifespan skips observability setup and startup seeding
    BCRYPT_ROUNDS  -> lowered to keep password hashing cheap
"""

import os
import tempfile
from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Flag test mode before the application modules read the environment
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("FAST_TESTS", "1")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="breeze-uploads-"))
# Demo mode for the e-invoice gateway regardless of the developer's shell
for _var in ("EINVOICE_CLIENT_ID", "EINVOICE_CLIENT_SECRET"):
    os.environ.pop(_var, None)

from sqlalchemy import delete, select  # noqa: E402

from breeze_erp.config.database import (  # noqa: E402
    AsyncSessionLocal,
    SessionLocal,
    create_database_tables,
    drop_database_tables,
)
from breeze_erp.main import app  # noqa: E402
from breeze_erp.models.database import Base, Employee, Role  # noqa: E402
from breeze_erp.services import einvoice_service  # noqa: E402
from breeze_erp.services.employee_service import DEFAULT_ROLES, get_password_hash  # noqa: E402

ADMIN = {"email": "admin@example.com", "password": "admin123", "name": "Administrator", "role": "Chairwoman"}
SUPERVISOR = {"email": "supervisor@example.com", "password": "super123", "name": "Sam Supervisor", "role": "Supervisor"}
STAFF = {"email": "staff@example.com", "password": "staff123", "name": "Sita Staff", "role": "Staff"}
SEEDED_USERS = (ADMIN, SUPERVISOR, STAFF)

PRESERVED_TABLES = {"roles", "employees"}


def _seed_sync() -> None:
    """Seed default roles and the three test employees (sync session)."""
    with SessionLocal() as session:
        roles = {}
        for name, description, permissions in DEFAULT_ROLES:
            role = Role(name=name, description=description, permissions=dict(permissions))
            session.add(role)
            roles[name] = role
        session.flush()
        for user in SEEDED_USERS:
            session.add(Employee(
                name=user["name"],
                email=user["email"],
                password_hash=get_password_hash(user["password"]),
                role_id=roles[user["role"]].id,
                designation=user["role"],
                department="Operations",
            ))
        session.commit()


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_db():  # noqa: D401
    """Drop/create the SQLite schema once per session, then seed."""
    drop_database_tables()
    create_database_tables()
    _seed_sync()
    yield


@pytest_asyncio.fixture
async def db_session():
    """Plain async session on the shared SQLite file."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest_asyncio.fixture(autouse=True)
async def _function_isolation():
    """Empty domain tables after each test; keep roles and seeded employees."""
    einvoice_service.rate_limiter.reset()
    yield
    einvoice_service.rate_limiter.reset()
    async with AsyncSessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            if table.name not in PRESERVED_TABLES:
                await session.execute(table.delete())
        seeded = [u["email"] for u in SEEDED_USERS]
        await session.execute(delete(Employee).where(Employee.email.not_in(seeded)))
        defaults = {name: permissions for name, _, permissions in DEFAULT_ROLES}
        for role in (await session.execute(select(Role))).scalars().all():
            if role.name in defaults:
                role.permissions = dict(defaults[role.name])
            else:
                await session.delete(role)
        await session.commit()


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:  # noqa: D401
    """Async HTTP client for tests (no auth)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _login(client: AsyncClient, user: Dict[str, str]) -> str:
    resp = await client.post("/api/v1/auth/login", json={"email": user["email"], "password": user["password"]})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["access_token"]


async def _client_for(user: Dict[str, str]) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        token = await _login(client, user)
        client.headers.update({"Authorization": f"Bearer {token}"})
        yield client


@pytest_asyncio.fixture
async def auth_client() -> AsyncGenerator[AsyncClient, None]:
    """Async client authenticated as the full-access administrator."""
    async for client in _client_for(ADMIN):
        yield client


@pytest_asyncio.fixture
async def supervisor_client() -> AsyncGenerator[AsyncClient, None]:
    async for client in _client_for(SUPERVISOR):
        yield client


@pytest_asyncio.fixture
async def staff_client() -> AsyncGenerator[AsyncClient, None]:
    async for client in _client_for(STAFF):
        yield client


@pytest_asyncio.fixture
async def auth_headers(async_client: AsyncClient) -> Dict[str, str]:  # noqa: D401
    """Just the Authorization header for the administrator."""
    token = await _login(async_client, ADMIN)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_einvoice_form():
    """Intra-state draft form as the e-invoice screen posts it."""
    return {
        "supplierGstin": "33AAACB1234C1Z5",
        "supplierName": "Breeze Techniques",
        "supplierState": "33",
        "recipientGstin": "33AAACR5678D1Z2",
        "recipientName": "Rathna Industries",
        "recipientState": "33",
        "recipientPin": "600001",
        "invoiceType": "INV",
        "invoiceNumber": "BT/24-25/001",
        "invoiceDate": "2024-04-15",
        "items": [
            {"product": "Air compressor", "hsn": "8414", "qty": 1, "rate": 10000, "gstPercent": 18},
            {"product": "Pneumatic hose", "hsn": "4009", "qty": 2, "rate": 500, "gstPercent": 12},
        ],
    }


def _register_markers(config):  # noqa: D401
    markers = [
        ("contract", "mark test as a contract test"),
        ("integration", "mark test as an integration test"),
        ("unit", "mark test as a unit test"),
        ("slow", "mark test as slow running"),
        ("auth", "mark test as requiring authentication"),
        ("smoke", "mark test as a smoke test"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


def pytest_configure(config):  # noqa: D401
    _register_markers(config)

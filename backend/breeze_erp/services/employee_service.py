"""Employees, roles and permission checks.

A role's ``permissions`` is a JSON map of permission name to bool. The
``fullAccess`` flag grants every permission and makes the role immutable.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, UTC
from typing import Any, Dict, Iterable, List, Optional

from passlib.context import CryptContext
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.database import Employee, EmployeeStatus, NotificationSeverity, Role
from ..utils.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from ..utils.serialization import iso, parse_uuid
from .notification_service import add_notification

logger = logging.getLogger(__name__)

FULL_ACCESS = "fullAccess"

PERMISSIONS = (
    "viewDashboard",
    "viewInventory",
    "manageInventory",
    "updateInventory",
    "viewAttendance",
    "manageAttendance",
    "createPurchaseRequest",
    "supervisePurchaseRequest",
    "approvePurchaseRequest",
    "manageRoles",
    "viewNotifications",
    "manageNotifications",
    "configureThresholds",
    "manageInvoices",
    "viewInvoices",
)

_STAFF_PERMISSIONS = (
    "viewDashboard",
    "viewInventory",
    "updateInventory",
    "viewAttendance",
    "createPurchaseRequest",
    "viewNotifications",
)

_SUPERVISOR_PERMISSIONS = _STAFF_PERMISSIONS + (
    "manageAttendance",
    "supervisePurchaseRequest",
    "viewInvoices",
)

DEFAULT_ROLES = (
    ("Chairwoman", "Board chair with unrestricted access", {FULL_ACCESS: True}),
    ("Managing Director", "Executive with unrestricted access", {FULL_ACCESS: True}),
    ("CEO", "Executive with unrestricted access", {FULL_ACCESS: True}),
    ("Supervisor", "Floor supervisor; first-stage purchase approval",
     {p: True for p in _SUPERVISOR_PERMISSIONS}),
    ("Staff", "Operations staff", {p: True for p in _STAFF_PERMISSIONS}),
)

_bcrypt_rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=_bcrypt_rounds
)

MIN_PASSWORD_LENGTH = 6


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def has_permission(role: Optional[Role], permission: str) -> bool:
    """True when the role grants ``permission`` directly or via fullAccess."""
    if role is None:
        return False
    granted = role.permissions or {}
    return bool(granted.get(FULL_ACCESS) or granted.get(permission))


def resolved_permissions(role: Optional[Role]) -> Dict[str, bool]:
    full = has_permission(role, FULL_ACCESS)
    resolved = {p: full or has_permission(role, p) for p in PERMISSIONS}
    resolved[FULL_ACCESS] = full
    return resolved


def serialize_role(role: Role) -> Dict[str, Any]:
    return {
        "id": str(role.id),
        "name": role.name,
        "description": role.description,
        "permissions": dict(role.permissions or {}),
        "full_access": role.full_access,
    }


def serialize_employee(employee: Employee) -> Dict[str, Any]:
    return {
        "id": str(employee.id),
        "name": employee.name,
        "email": employee.email,
        "designation": employee.designation,
        "department": employee.department,
        "status": employee.status,
        "role": {"id": str(employee.role.id), "name": employee.role.name} if employee.role else None,
        "last_login": iso(employee.last_login),
        "created_at": iso(employee.created_at),
    }


async def seed_default_roles(db: AsyncSession) -> List[Role]:
    """Create any missing default roles (idempotent)."""
    existing = {r.name: r for r in (await db.execute(select(Role))).scalars().all()}
    for name, description, permissions in DEFAULT_ROLES:
        if name not in existing:
            role = Role(name=name, description=description, permissions=dict(permissions))
            db.add(role)
            existing[name] = role
    await db.flush()
    return list(existing.values())


async def ensure_admin(db: AsyncSession, email: str, password: str, name: str = "Administrator") -> Employee:
    """Ensure a full-access administrator exists; used at application startup."""
    found = await get_employee_by_email(db, email)
    if found:
        return found
    roles = await seed_default_roles(db)
    top = next(r for r in roles if r.name == DEFAULT_ROLES[0][0])
    admin = Employee(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        role=top,
        designation="Administrator",
        department="Management",
    )
    db.add(admin)
    await db.commit()
    logger.info("Default administrator created: %s", email)
    return admin


async def list_roles(db: AsyncSession) -> List[Dict[str, Any]]:
    rows = (await db.execute(select(Role).order_by(Role.name))).scalars().all()
    return [serialize_role(r) for r in rows]


async def get_role(db: AsyncSession, role_id: Any) -> Role:
    rid = parse_uuid(role_id, "Role")
    role = (await db.execute(select(Role).where(Role.id == rid))).scalar_one_or_none()
    if role is None:
        raise NotFoundError("Role not found")
    return role


async def update_role_permissions(db: AsyncSession, role_id: Any, permissions: Dict[str, Any]) -> Dict[str, Any]:
    role = await get_role(db, role_id)
    if role.full_access:
        raise BusinessRuleError("Full access roles cannot be modified")
    unknown = sorted(set(permissions) - set(PERMISSIONS))
    if unknown:
        raise ValidationError("Unknown permissions", details={"unknown": unknown})
    merged = dict(role.permissions or {})
    merged.update({k: bool(v) for k, v in permissions.items()})
    role.permissions = merged
    await db.commit()
    return serialize_role(role)


async def get_employee(db: AsyncSession, employee_id: Any) -> Employee:
    eid = parse_uuid(employee_id, "Employee")
    employee = (await db.execute(select(Employee).where(Employee.id == eid))).scalar_one_or_none()
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


async def get_employee_by_email(db: AsyncSession, email: str) -> Optional[Employee]:
    result = await db.execute(select(Employee).where(Employee.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def authenticate(db: AsyncSession, identifier: str, password: str) -> Optional[Employee]:
    """Match by email, or by case-insensitive name, then verify the password."""
    ident = identifier.strip()
    result = await db.execute(
        select(Employee).where(or_(
            Employee.email == ident.lower(),
            func.lower(Employee.name) == ident.lower(),
        ))
    )
    for candidate in result.scalars().all():
        if candidate.is_active and verify_password(password, candidate.password_hash):
            return candidate
    return None


async def record_login(db: AsyncSession, employee: Employee) -> None:
    employee.last_login = datetime.now(UTC)
    await db.commit()


async def change_password(db: AsyncSession, employee: Employee, current: str, new: str) -> None:
    if not verify_password(current, employee.password_hash):
        raise BusinessRuleError("Current password is incorrect")
    if len(new or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")
    employee.password_hash = get_password_hash(new)
    await db.commit()


async def list_employees(db: AsyncSession, include_inactive: bool = False) -> List[Dict[str, Any]]:
    stmt = select(Employee).order_by(Employee.name)
    if not include_inactive:
        stmt = stmt.where(Employee.status == EmployeeStatus.ACTIVE.value)
    rows = (await db.execute(stmt)).scalars().all()
    return [serialize_employee(e) for e in rows]


def _require(payload: Dict[str, Any], fields: Iterable[str]) -> None:
    missing = [f for f in fields if not str(payload.get(f) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


async def create_employee(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, ("name", "role_id", "email", "password"))
    try:
        role = await get_role(db, payload["role_id"])
    except NotFoundError as exc:
        raise BusinessRuleError("Invalid role") from exc
    if len(payload["password"]) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if await get_employee_by_email(db, payload["email"]):
        raise ConflictError("An employee with this email already exists")
    try:
        employee = Employee(
            name=payload["name"].strip(),
            email=payload["email"].strip(),
            password_hash=get_password_hash(payload["password"]),
            role=role,
            designation=(payload.get("designation") or "Associate").strip(),
            department=(payload.get("department") or "Operations").strip(),
        )
    except ValueError as exc:  # model-level email validation
        raise ValidationError(str(exc)) from exc
    db.add(employee)
    add_notification(
        db,
        "New employee added",
        f"{employee.name} joined as {employee.designation} ({role.name}).",
        NotificationSeverity.SUCCESS.value,
        {"employee_email": employee.email},
    )
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("An employee with this email already exists") from exc
    await db.refresh(employee, attribute_names=["role"])
    return serialize_employee(employee)


__all__ = [
    "FULL_ACCESS",
    "PERMISSIONS",
    "DEFAULT_ROLES",
    "verify_password",
    "get_password_hash",
    "has_permission",
    "resolved_permissions",
    "serialize_role",
    "serialize_employee",
    "seed_default_roles",
    "ensure_admin",
    "list_roles",
    "get_role",
    "update_role_permissions",
    "get_employee",
    "get_employee_by_email",
    "authenticate",
    "record_login",
    "change_password",
    "list_employees",
    "create_employee",
]

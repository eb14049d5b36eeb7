"""Roles and employees."""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..config.observability import trace_operation
from ..models.database import Employee
from ..services import employee_service
from ..utils.api_shapes import normalize_keys, success as _success
from .auth import get_current_user, require_permission

router = APIRouter(tags=["employees"])


class RolePermissionsUpdate(BaseModel):
    permissions: Dict[str, bool]


class EmployeeCreate(BaseModel):
    name: str
    email: str
    password: str
    role_id: str
    designation: Optional[str] = None
    department: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {"roleId": "role_id"})


@router.get("/roles")
async def list_roles(
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(get_current_user),
):
    roles = await employee_service.list_roles(db)
    return _success({"roles": roles}, total=len(roles))


@router.put("/roles/{role_id}/permissions")
async def update_role_permissions(
    role_id: str,
    body: RolePermissionsUpdate,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("manageRoles")),
):
    with trace_operation("role_permissions_update", role_id=role_id):
        role = await employee_service.update_role_permissions(db, role_id, body.permissions)
    return _success({"role": role})


@router.get("/employees")
async def list_employees(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(get_current_user),
):
    employees = await employee_service.list_employees(db, include_inactive=include_inactive)
    return _success({"employees": employees}, total=len(employees))


@router.post("/employees", status_code=status.HTTP_201_CREATED)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("manageRoles")),
):
    with trace_operation("employee_create", email=body.email):
        employee = await employee_service.create_employee(db, body.model_dump())
    return _success({"employee": employee})

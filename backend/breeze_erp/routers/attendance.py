"""Attendance records, clock in/out and CSV export."""
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..models.database import Employee
from ..services import attendance_service
from ..services.employee_service import has_permission
from ..utils.api_shapes import csv_response, normalize_keys, success as _success
from .auth import get_current_user, require_permission

router = APIRouter(tags=["attendance"])


class AttendanceCreate(BaseModel):
    employee_id: Optional[str] = None
    status: Optional[str] = None
    note: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {"employeeId": "employee_id"})


class ClockRequest(BaseModel):
    action: str


def _sees_all(user: Employee) -> bool:
    return has_permission(user.role, "manageAttendance")


@router.get("")
async def list_attendance(
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("viewAttendance")),
):
    return _success(await attendance_service.list_attendance(db, current_user, _sees_all(current_user)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def record_attendance(
    body: AttendanceCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("manageAttendance")),
):
    record = await attendance_service.record_attendance(db, body.model_dump(), current_user)
    return _success({"record": record})


@router.post("/clock", status_code=status.HTTP_201_CREATED)
async def clock(
    body: ClockRequest,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success(await attendance_service.clock(db, current_user, body.action))


@router.get("/my-status")
async def my_status(
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success(await attendance_service.my_status(db, current_user))


@router.get("/export")
async def export_attendance(
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("viewAttendance")),
):
    body = await attendance_service.export_csv(db, current_user, _sees_all(current_user))
    return csv_response(body, "attendance.csv")

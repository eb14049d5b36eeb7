"""Attendance records, self-service clock in/out and CSV export.

"Today" is the server's local calendar day; timestamps are stored in UTC.
"""
from __future__ import annotations

from datetime import datetime, time as dtime, timedelta, UTC
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.settings import get_settings
from ..models.database import AttendanceRecord, AttendanceStatus, Employee, NotificationSeverity
from ..utils.csv_export import rows_to_csv
from ..utils.errors import BusinessRuleError, NotFoundError, ValidationError
from ..utils.serialization import as_utc, iso, parse_uuid
from .notification_service import add_notification

CLOCK_IN_NOTE = "Clock In"
CLOCK_OUT_NOTE = "Clock Out"
LIST_LIMIT = 200
CSV_HEADERS = ("Employee", "Status", "Date", "Time", "Note")

_STATUSES = {s.value.lower(): s.value for s in AttendanceStatus}


def _local_now(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(UTC)).astimezone()


def _day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """UTC bounds of the local calendar day containing ``now``."""
    start_local = datetime.combine(now.date(), dtime.min, tzinfo=now.tzinfo)
    start = start_local.astimezone(UTC)
    return start, start + timedelta(days=1)


def _serialize(record: AttendanceRecord) -> Dict[str, Any]:
    return {
        "id": str(record.id),
        "employee_id": str(record.employee_id),
        "employee_name": record.employee_name,
        "status": record.status,
        "note": record.note,
        "recorded_by": record.recorded_by,
        "timestamp": iso(record.created_at),
    }


def summarize(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    summary = {"present": 0, "absent": 0, "late": 0}
    for record in records:
        key = str(record["status"]).lower()
        if key in summary:
            summary[key] += 1
    total = len(records)
    percentage = round(summary["present"] / total * 100) if total else 0
    return {"summary": summary, "attendance_percentage": percentage}


async def _records(db: AsyncSession, employee_id=None, limit: int = LIST_LIMIT) -> List[AttendanceRecord]:
    stmt = select(AttendanceRecord).order_by(AttendanceRecord.created_at.desc()).limit(limit)
    if employee_id is not None:
        stmt = stmt.where(AttendanceRecord.employee_id == employee_id)
    return list((await db.execute(stmt)).scalars().all())


async def list_attendance(db: AsyncSession, user: Employee, see_all: bool) -> Dict[str, Any]:
    rows = await _records(db, None if see_all else user.id)
    records = [_serialize(r) for r in rows]
    return {"records": records, **summarize(records)}


async def record_attendance(db: AsyncSession, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    status = _STATUSES.get(str(payload.get("status") or "").strip().lower())
    if status is None:
        raise ValidationError("Status must be present, absent or late")
    employee = (await db.execute(
        select(Employee).where(Employee.id == parse_uuid(payload.get("employee_id"), "Employee"))
    )).scalar_one_or_none()
    if employee is None:
        raise NotFoundError("Employee not found")
    record = AttendanceRecord(
        employee_id=employee.id,
        employee_name=employee.name,
        status=status,
        note=(payload.get("note") or "").strip() or None,
        recorded_by=user.name,
    )
    db.add(record)
    add_notification(
        db,
        "Attendance updated",
        f"{employee.name} marked {status} by {user.name}.",
        NotificationSeverity.INFO.value,
        {"employee_id": str(employee.id)},
    )
    await db.commit()
    return _serialize(record)


async def _today(db: AsyncSession, user: Employee, now: datetime) -> Tuple[Optional[AttendanceRecord], Optional[AttendanceRecord]]:
    start, end = _day_bounds(now)
    rows = (await db.execute(
        select(AttendanceRecord)
        .where(
            AttendanceRecord.employee_id == user.id,
            AttendanceRecord.created_at >= start,
            AttendanceRecord.created_at < end,
        )
        .order_by(AttendanceRecord.created_at)
    )).scalars().all()
    clock_in = next((r for r in rows if r.note == CLOCK_IN_NOTE), None)
    clock_out = next((r for r in rows if r.note == CLOCK_OUT_NOTE), None)
    return clock_in, clock_out


async def clock(db: AsyncSession, user: Employee, action: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Clock the caller in or out for today."""
    action = (action or "").strip().lower()
    if action not in {"in", "out"}:
        raise ValidationError("Action must be 'in' or 'out'")
    local_now = _local_now(now)
    clock_in, clock_out = await _today(db, user, local_now)

    if action == "in":
        if clock_in is not None:
            raise BusinessRuleError("You have already clocked in today")
        late = local_now.hour >= get_settings().ATTENDANCE_LATE_HOUR
        status = AttendanceStatus.LATE.value if late else AttendanceStatus.PRESENT.value
        note, message = CLOCK_IN_NOTE, f"Clocked in at {local_now:%H:%M}"
    else:
        if clock_in is None:
            raise BusinessRuleError("You have not clocked in today")
        if clock_out is not None:
            raise BusinessRuleError("You have already clocked out today")
        status, note = clock_in.status, CLOCK_OUT_NOTE
        message = f"Clocked out at {local_now:%H:%M}"

    record = AttendanceRecord(
        employee_id=user.id,
        employee_name=user.name,
        status=status,
        note=note,
        recorded_by=user.name,
        created_at=local_now.astimezone(UTC),
    )
    db.add(record)
    await db.commit()
    return {"message": message, "record": _serialize(record)}


async def my_status(db: AsyncSession, user: Employee, now: Optional[datetime] = None) -> Dict[str, Any]:
    clock_in, clock_out = await _today(db, user, _local_now(now))
    return {
        "clocked_in": clock_in is not None,
        "clocked_out": clock_out is not None,
        "clock_in_time": iso(clock_in.created_at) if clock_in else None,
        "clock_out_time": iso(clock_out.created_at) if clock_out else None,
        "status": clock_in.status if clock_in else None,
    }


async def export_csv(db: AsyncSession, user: Employee, see_all: bool) -> str:
    rows = await _records(db, None if see_all else user.id, limit=10_000)
    lines = []
    for r in rows:
        stamp = as_utc(r.created_at).astimezone()
        lines.append((r.employee_name, r.status, stamp.strftime("%Y-%m-%d"),
                      stamp.strftime("%H:%M:%S"), r.note or ""))
    return rows_to_csv(CSV_HEADERS, lines)


__all__ = [
    "summarize",
    "list_attendance",
    "record_attendance",
    "clock",
    "my_status",
    "export_csv",
]

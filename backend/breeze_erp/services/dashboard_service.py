"""Dashboard aggregates over inventory, attendance and purchase requests."""
from __future__ import annotations

from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.database import (
    AttendanceRecord,
    AttendanceStatus,
    Employee,
    EmployeeStatus,
    InventoryItem,
    InventoryTransaction,
    PurchaseRequest,
    PurchaseStatus,
    StockAction,
)
from ..utils.serialization import as_utc, iso
from .inventory_service import recent_transactions

TOP_ITEMS = 6
RECENT = 5
PENDING = (PurchaseStatus.PENDING_SUPERVISOR.value, PurchaseStatus.PENDING_EXECUTIVE.value)


async def stats(db: AsyncSession) -> Dict[str, Any]:
    total_inventory = (await db.execute(
        select(func.coalesce(func.sum(InventoryItem.stock), 0))
    )).scalar_one()
    low_stock_items = (await db.execute(
        select(func.count()).select_from(InventoryItem)
        .where(InventoryItem.stock <= InventoryItem.threshold)
    )).scalar_one()
    pending_requests = (await db.execute(
        select(func.count()).select_from(PurchaseRequest)
        .where(PurchaseRequest.status.in_(PENDING))
    )).scalar_one()
    total_employees = (await db.execute(
        select(func.count()).select_from(Employee)
        .where(Employee.status == EmployeeStatus.ACTIVE.value)
    )).scalar_one()

    local_now = datetime.now(UTC).astimezone()
    day_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(UTC)
    present_today = (await db.execute(
        select(func.count(func.distinct(AttendanceRecord.employee_id)))
        .where(
            AttendanceRecord.created_at >= day_start,
            AttendanceRecord.status.in_((AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value)),
        )
    )).scalar_one()

    return {
        "total_inventory": int(total_inventory or 0),
        "low_stock_items": int(low_stock_items),
        "pending_requests": int(pending_requests),
        "present_today": int(present_today),
        "total_employees": int(total_employees),
        "attendance_percentage": round(present_today / total_employees * 100) if total_employees else 0,
    }


async def inventory_movement(db: AsyncSession, days: int = 7) -> List[Dict[str, Any]]:
    """Inbound/outbound quantities per local day, oldest first, zero-filled."""
    days = max(1, min(days, 90))
    today = datetime.now(UTC).astimezone().date()
    first_day = today - timedelta(days=days - 1)
    buckets = {}
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        buckets[day] = {"date": day.isoformat(), "label": day.strftime("%a"), "inbound": 0, "outbound": 0}

    since = datetime.combine(first_day, datetime.min.time()).astimezone().astimezone(UTC)
    rows = (await db.execute(
        select(InventoryTransaction.created_at, InventoryTransaction.action, InventoryTransaction.quantity)
        .where(InventoryTransaction.created_at >= since)
    )).all()
    for created_at, action, quantity in rows:
        day = as_utc(created_at).astimezone().date()
        bucket = buckets.get(day)
        if bucket is None:
            continue
        key = "inbound" if action == StockAction.IN.value else "outbound"
        bucket[key] += quantity
    return list(buckets.values())


def _item_brief(item: InventoryItem) -> Dict[str, Any]:
    return {
        "id": str(item.id),
        "name": item.name,
        "category": item.category,
        "stock": item.stock,
        "threshold": item.threshold,
        "unit": item.unit,
    }


async def top_items(db: AsyncSession, limit: int = TOP_ITEMS) -> List[Dict[str, Any]]:
    rows = (await db.execute(
        select(InventoryItem).order_by(InventoryItem.stock.desc(), InventoryItem.name).limit(limit)
    )).scalars().all()
    return [_item_brief(i) for i in rows]


async def low_stock(db: AsyncSession, limit: int = RECENT) -> List[Dict[str, Any]]:
    rows = (await db.execute(
        select(InventoryItem)
        .where(InventoryItem.stock <= InventoryItem.threshold)
        .order_by(InventoryItem.stock, InventoryItem.name)
        .limit(limit)
    )).scalars().all()
    return [_item_brief(i) for i in rows]


async def recent_purchases(db: AsyncSession, limit: int = RECENT) -> List[Dict[str, Any]]:
    rows = (await db.execute(
        select(PurchaseRequest).order_by(PurchaseRequest.created_at.desc()).limit(limit)
    )).scalars().all()
    return [{
        "id": str(r.id),
        "request_number": r.request_number,
        "created_by": r.created_by_name,
        "status": r.status,
        "item_count": len(r.items or []),
        "created_at": iso(r.created_at),
    } for r in rows]


async def stock_distribution(db: AsyncSession) -> List[Dict[str, Any]]:
    rows = (await db.execute(
        select(InventoryItem.category, func.sum(InventoryItem.stock), func.count())
        .group_by(InventoryItem.category)
        .order_by(InventoryItem.category)
    )).all()
    return [{"category": c, "stock": int(s or 0), "items": int(n)} for c, s, n in rows]


async def summary(db: AsyncSession) -> Dict[str, Any]:
    return {
        "stats": await stats(db),
        "inventory_movement": await inventory_movement(db),
        "stock_distribution": await stock_distribution(db),
        "top_items": await top_items(db),
        "low_stock": await low_stock(db),
        "recent_transactions": await recent_transactions(db, RECENT),
        "recent_purchases": await recent_purchases(db),
    }


__all__ = [
    "stats",
    "inventory_movement",
    "top_items",
    "low_stock",
    "recent_purchases",
    "stock_distribution",
    "summary",
]

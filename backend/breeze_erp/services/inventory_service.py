"""Inventory service layer.

Responsibilities:
- Snapshot (items, low-stock subset, recent transactions) for the inventory page.
- Item creation with barcode uniqueness; list/search filters.
- Barcode/name lookup and IN/OUT scan movements with a transaction log.
- Threshold configuration.

A scan that leaves an item at or below its threshold raises a low-stock
notification in the same commit as the movement.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.observability import stock_movement_counter, trace_operation
from ..models.database import (
    Employee,
    InventoryItem,
    InventoryTransaction,
    NotificationSeverity,
    StockAction,
)
from ..utils.errors import ConflictError, InsufficientStock, NotFoundError, ValidationError
from ..utils.serialization import iso, money, parse_uuid
from .notification_service import add_notification

RECENT_TRANSACTIONS = 20

DEFAULT_REASONS = {
    StockAction.IN.value: "Stock replenishment",
    StockAction.OUT.value: "Inventory consumption",
}


def _serialize(item: InventoryItem) -> Dict[str, Any]:
    return {
        "id": str(item.id),
        "name": item.name,
        "barcode": item.barcode,
        "category": item.category,
        "unit": item.unit,
        "hsn_code": item.hsn_code,
        "gst_rate": money(item.gst_rate) or 0.0,
        "stock": item.stock,
        "threshold": item.threshold,
        "low_stock": item.is_low_stock,
        "created_at": iso(item.created_at),
        "updated_at": iso(item.updated_at),
    }


def serialize_transaction(tx: InventoryTransaction) -> Dict[str, Any]:
    return {
        "id": str(tx.id),
        "item_id": str(tx.item_id) if tx.item_id else None,
        "item_name": tx.item_name,
        "barcode": tx.barcode,
        "action": tx.action,
        "quantity": tx.quantity,
        "user": tx.user_name,
        "reason": tx.reason,
        "timestamp": iso(tx.created_at),
    }


async def _all_items(db: AsyncSession) -> List[InventoryItem]:
    return list((await db.execute(select(InventoryItem).order_by(InventoryItem.name))).scalars().all())


async def recent_transactions(db: AsyncSession, limit: int = RECENT_TRANSACTIONS) -> List[Dict[str, Any]]:
    rows = (await db.execute(
        select(InventoryTransaction).order_by(InventoryTransaction.created_at.desc()).limit(limit)
    )).scalars().all()
    return [serialize_transaction(t) for t in rows]


async def get_snapshot(db: AsyncSession) -> Dict[str, Any]:
    items = [_serialize(i) for i in await _all_items(db)]
    return {
        "items": items,
        "low_stock": [i for i in items if i["low_stock"]],
        "transactions": await recent_transactions(db),
    }


async def create_inventory_item(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise ValidationError("Missing required fields: name")
    counts = {}
    for field in ("stock", "threshold"):
        try:
            counts[field] = int(payload.get(field) or 0)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{field} must be a whole number") from exc
        if counts[field] < 0:
            raise ValidationError(f"{field} cannot be negative")
    try:
        item = InventoryItem(
            name=name,
            barcode=(payload.get("barcode") or "").strip() or None,
            category=payload.get("category") or "General",
            unit=payload.get("unit") or "pcs",
            hsn_code=(payload.get("hsn_code") or "").strip() or None,
            gst_rate=payload.get("gst_rate") if payload.get("gst_rate") is not None else 18,
            stock=counts["stock"],
            threshold=counts["threshold"],
        )
    except ValueError as exc:  # HSN validation
        raise ValidationError(str(exc)) from exc
    db.add(item)
    try:
        await db.commit()
    except IntegrityError as ie:
        await db.rollback()
        raise ConflictError("Barcode already exists") from ie
    await db.refresh(item)
    return _serialize(item)


async def list_inventory_items(
    db: AsyncSession,
    *,
    category: Optional[str] = None,
    search: Optional[str] = None,
    low_stock: bool = False,
    limit: int = 500,
) -> List[Dict[str, Any]]:
    limit = max(1, min(limit, 1000))
    stmt = select(InventoryItem)
    if category:
        stmt = stmt.where(InventoryItem.category == category)
    if search:
        like = f"%{search.lower()}%"
        stmt = stmt.where(or_(
            func.lower(InventoryItem.name).like(like),
            func.lower(InventoryItem.barcode).like(like),
            func.lower(InventoryItem.category).like(like),
        ))
    if low_stock:
        stmt = stmt.where(InventoryItem.stock <= InventoryItem.threshold)
    stmt = stmt.order_by(InventoryItem.name).limit(limit)
    rows = (await db.execute(stmt)).scalars().all()
    return [_serialize(r) for r in rows]


async def search_inventory(db: AsyncSession, query: Optional[str]) -> Dict[str, Any]:
    items = await list_inventory_items(db, search=(query or "").strip() or None)
    return {"items": items, "low_stock": [i for i in items if i["low_stock"]]}


async def _find_item(db: AsyncSession, query: str) -> Optional[InventoryItem]:
    """Exact barcode match first, then the first partial name match."""
    exact = (await db.execute(
        select(InventoryItem).where(InventoryItem.barcode == query)
    )).scalar_one_or_none()
    if exact:
        return exact
    return (await db.execute(
        select(InventoryItem)
        .where(func.lower(InventoryItem.name).like(f"%{query.lower()}%"))
        .order_by(InventoryItem.name)
        .limit(1)
    )).scalar_one_or_none()


async def lookup_item(db: AsyncSession, query: Optional[str]) -> Dict[str, Any]:
    query = (query or "").strip()
    if not query:
        raise ValidationError("Lookup query is required")
    item = await _find_item(db, query)
    if item is None:
        raise NotFoundError("Item not found")
    return _serialize(item)


async def scan_item(db: AsyncSession, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    """Apply an IN/OUT movement identified by barcode (or name)."""
    code = str(payload.get("barcode") or "").strip()
    action = str(payload.get("action") or "").strip().upper()
    if not code or not action:
        raise ValidationError("barcode and action are required")
    if action not in DEFAULT_REASONS:
        raise ValidationError("Action must be IN or OUT")
    try:
        quantity = int(payload.get("quantity"))
    except (TypeError, ValueError) as exc:
        raise ValidationError("Quantity must be a positive whole number") from exc
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive whole number")

    with trace_operation("inventory_scan", action=action, barcode=code):
        item = await _find_item(db, code)
        if item is None:
            raise NotFoundError("Item not found")
        if action == StockAction.OUT.value and item.stock < quantity:
            raise InsufficientStock(
                "Insufficient stock for OUT operation.",
                details={"available": item.stock, "requested": quantity},
            )
        item.stock = item.stock + quantity if action == StockAction.IN.value else item.stock - quantity
        tx = InventoryTransaction(
            item_id=item.id,
            item_name=item.name,
            barcode=item.barcode,
            action=action,
            quantity=quantity,
            user_id=user.id,
            user_name=user.name,
            reason=(payload.get("reason") or "").strip() or DEFAULT_REASONS[action],
        )
        db.add(tx)
        if item.is_low_stock:
            add_notification(
                db,
                "Low stock alert",
                f"{item.name} is at {item.stock} {item.unit} (threshold {item.threshold}).",
                NotificationSeverity.WARNING.value,
                {"item_id": str(item.id)},
            )
        await db.commit()
        stock_movement_counter.add(1, {"kind": "inventory", "action": action})
    return {"transaction": serialize_transaction(tx), "snapshot": await get_snapshot(db)}


async def update_threshold(db: AsyncSession, item_id: Any, threshold: Any, user: Employee) -> Dict[str, Any]:
    try:
        value = int(threshold)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Threshold must be a non-negative whole number") from exc
    if value < 0:
        raise ValidationError("Threshold must be a non-negative whole number")
    iid = parse_uuid(item_id, "Inventory item")
    item = (await db.execute(select(InventoryItem).where(InventoryItem.id == iid))).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item not found")
    item.threshold = value
    add_notification(
        db,
        "Inventory threshold updated",
        f"{user.name} set the threshold for {item.name} to {value}.",
        NotificationSeverity.INFO.value,
        {"item_id": str(item.id)},
    )
    await db.commit()
    await db.refresh(item)
    return _serialize(item)


__all__ = [
    "serialize_transaction",
    "recent_transactions",
    "get_snapshot",
    "create_inventory_item",
    "list_inventory_items",
    "search_inventory",
    "lookup_item",
    "scan_item",
    "update_threshold",
]

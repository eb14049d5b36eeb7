"""Finished goods: catalogue, stock movements and summary figures.

Low stock here means ``stock <= (min_stock or 1)``, so a product with no
minimum configured is flagged once it is down to its last unit.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.observability import stock_movement_counter, trace_operation
from ..models.database import Employee, FinishedProduct, FinishedProductTransaction, ProductAction
from ..utils.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from ..utils.serialization import as_utc, iso, parse_uuid

TRANSACTION_LIMIT = 50
RECENT = 5

_ACTIONS = {a.value for a in ProductAction}


def _serialize(product: FinishedProduct) -> Dict[str, Any]:
    return {
        "id": str(product.id),
        "product_name": product.product_name,
        "barcode": product.barcode,
        "category": product.category,
        "stock": product.stock,
        "min_stock": product.min_stock,
        "unit": product.unit,
        "is_low_stock": product.is_low_stock,
        "created_at": iso(product.created_at),
    }


def _serialize_tx(tx: FinishedProductTransaction) -> Dict[str, Any]:
    return {
        "id": str(tx.id),
        "product_id": str(tx.product_id) if tx.product_id else None,
        "product_name": tx.product_name,
        "action": tx.action,
        "quantity": tx.quantity,
        "reason": tx.reason,
        "user": tx.user_name,
        "timestamp": iso(tx.created_at),
    }


def compute_stats(products: List[FinishedProduct]) -> Dict[str, int]:
    return {
        "total_products": len(products),
        "total_stock": sum(p.stock or 0 for p in products),
        "categories": len({p.category for p in products}),
        "low_stock_count": sum(1 for p in products if p.is_low_stock),
    }


async def _all(db: AsyncSession) -> List[FinishedProduct]:
    return list((await db.execute(select(FinishedProduct))).scalars().all())


async def list_products(db: AsyncSession, barcode: Optional[str] = None) -> Dict[str, Any]:
    stmt = select(FinishedProduct).order_by(FinishedProduct.category, FinishedProduct.product_name)
    if barcode:
        stmt = stmt.where(FinishedProduct.barcode == barcode.strip())
    products = (await db.execute(stmt)).scalars().all()
    return {"products": [_serialize(p) for p in products], "stats": compute_stats(await _all(db))}


async def summary(db: AsyncSession) -> Dict[str, Any]:
    products = await _all(db)
    recent = sorted(products, key=lambda p: as_utc(p.created_at), reverse=True)[:RECENT]
    return {
        **compute_stats(products),
        "recently_added": [
            {"id": str(p.id), "name": p.product_name, "category": p.category, "stock": p.stock}
            for p in recent
        ],
    }


def _non_negative_int(payload: Dict[str, Any], key: str) -> int:
    try:
        value = int(payload.get(key) or 0)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be a whole number") from exc
    if value < 0:
        raise ValidationError(f"{key} cannot be negative")
    return value


async def create_product(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    name = (payload.get("product_name") or "").strip()
    if not name:
        raise ValidationError("Product name is required")
    product = FinishedProduct(
        product_name=name,
        barcode=(payload.get("barcode") or "").strip() or None,
        category=(payload.get("category") or "").strip() or "General",
        stock=_non_negative_int(payload, "stock"),
        min_stock=_non_negative_int(payload, "min_stock"),
        unit=(payload.get("unit") or "").strip() or "pcs",
    )
    db.add(product)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("A product with this barcode already exists") from exc
    return _serialize(product)


async def update_stock(db: AsyncSession, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    action = str(payload.get("action") or "").strip().upper()
    if action not in _ACTIONS:
        raise ValidationError("Invalid action. Must be MANUFACTURED or DISPATCHED")
    try:
        quantity = int(payload.get("quantity") or 0)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Quantity must be a whole number") from exc
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")
    product = (await db.execute(
        select(FinishedProduct).where(FinishedProduct.id == parse_uuid(payload.get("product_id"), "Product"))
    )).scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")

    with trace_operation("finished_product_stock", product=product.product_name, action=action, quantity=quantity):
        if action == ProductAction.DISPATCHED.value:
            if quantity > product.stock:
                raise BusinessRuleError(
                    f"Insufficient stock. Available: {product.stock}, Requested: {quantity}",
                    details={"available": product.stock, "requested": quantity},
                )
            product.stock -= quantity
        else:
            product.stock += quantity
        tx = FinishedProductTransaction(
            product_id=product.id,
            product_name=product.product_name,
            action=action,
            quantity=quantity,
            reason=(payload.get("reason") or "").strip() or None,
            user_id=user.id,
            user_name=user.name,
        )
        db.add(tx)
        await db.commit()
        stock_movement_counter.add(1, {"kind": "finished_product", "action": action})
    return {
        "message": f"{action} {quantity} units successfully",
        "new_stock": product.stock,
        "product": _serialize(product),
        "transaction": _serialize_tx(tx),
    }


async def recent_transactions(db: AsyncSession, limit: int = TRANSACTION_LIMIT) -> List[Dict[str, Any]]:
    rows = (await db.execute(
        select(FinishedProductTransaction)
        .order_by(FinishedProductTransaction.created_at.desc())
        .limit(limit)
    )).scalars().all()
    return [_serialize_tx(t) for t in rows]


__all__ = [
    "compute_stats",
    "list_products",
    "summary",
    "create_product",
    "update_stock",
    "recent_transactions",
]

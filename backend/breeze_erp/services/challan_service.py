"""Delivery challans: DC-NNNN numbered dispatch notes without tax."""
from __future__ import annotations

from datetime import datetime, UTC
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.observability import document_created_counter, trace_operation
from ..models.database import DeliveryChallan, Employee
from ..utils.errors import NotFoundError, ValidationError
from ..utils.sequences import next_challan_number
from ..utils.serialization import iso, money, parse_uuid


def _whole(value: Any, default: int = 1) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _normalize_items(raw_items: Any) -> List[Dict[str, Any]]:
    items = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            continue
        particulars = str(raw.get("particulars") or "").strip()
        if not particulars:
            continue
        items.append({
            "particulars": particulars,
            "qty": max(0, _whole(raw.get("qty", raw.get("quantity")))),
            "no_of_packs": max(0, _whole(raw.get("no_of_packs", raw.get("noOfPacks")))),
        })
    return items


def serialize_challan(challan: DeliveryChallan) -> Dict[str, Any]:
    return {
        "id": str(challan.id),
        "challan_number": challan.challan_number,
        "challan_date": challan.challan_date,
        "po_number": challan.po_number,
        "po_date": challan.po_date,
        "customer_name": challan.customer_name,
        "customer_address": challan.customer_address,
        "transport": challan.transport,
        "consigned_to": challan.consigned_to,
        "party_sales_tax_no": challan.party_sales_tax_no,
        "items": challan.items or [],
        "value_of_consignment": money(challan.value_of_consignment),
        "notes": challan.notes,
        "created_by": challan.created_by_name,
        "created_at": iso(challan.created_at),
    }


async def create_challan(db: AsyncSession, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    customer_name = (payload.get("customer_name") or "").strip()
    if not customer_name:
        raise ValidationError("Customer name is required")
    items = _normalize_items(payload.get("items"))
    if not items:
        raise ValidationError("At least one item with particulars is required")
    value = payload.get("value_of_consignment")
    try:
        value = float(value) if value not in (None, "") else None
    except (TypeError, ValueError) as exc:
        raise ValidationError("value_of_consignment must be a number") from exc

    with trace_operation("delivery_challan_create", customer=customer_name, items=len(items)):
        challan = DeliveryChallan(
            challan_number=await next_challan_number(db),
            challan_date=payload.get("challan_date") or datetime.now(UTC).astimezone().date().isoformat(),
            po_number=payload.get("po_number") or None,
            po_date=payload.get("po_date") or None,
            customer_name=customer_name,
            customer_address=payload.get("customer_address") or None,
            transport=payload.get("transport") or None,
            consigned_to=payload.get("consigned_to") or None,
            party_sales_tax_no=payload.get("party_sales_tax_no") or None,
            items=items,
            value_of_consignment=value,
            notes=payload.get("notes") or None,
            created_by=user.id,
            created_by_name=user.name,
        )
        db.add(challan)
        await db.commit()
        document_created_counter.add(1, {"document": "delivery_challan"})
    return serialize_challan(challan)


async def list_challans(db: AsyncSession) -> List[Dict[str, Any]]:
    rows = (await db.execute(
        select(DeliveryChallan).order_by(DeliveryChallan.created_at.desc())
    )).scalars().all()
    return [serialize_challan(c) for c in rows]


async def _get(db: AsyncSession, challan_id: Any) -> DeliveryChallan:
    challan = (await db.execute(
        select(DeliveryChallan).where(DeliveryChallan.id == parse_uuid(challan_id, "Delivery challan"))
    )).scalar_one_or_none()
    if challan is None:
        raise NotFoundError("Delivery challan not found")
    return challan


async def get_challan(db: AsyncSession, challan_id: Any) -> Dict[str, Any]:
    return serialize_challan(await _get(db, challan_id))


async def delete_challan(db: AsyncSession, challan_id: Any) -> None:
    await db.delete(await _get(db, challan_id))
    await db.commit()


__all__ = ["serialize_challan", "create_challan", "list_challans", "get_challan", "delete_challan"]

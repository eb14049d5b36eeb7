"""Invoice domain service layer.

Creation recomputes every amount from the line items with the tax calculator;
client-side totals are never trusted. Bill numbers come from the per-day
document sequence, so concurrent creators never collide.

Drafts hold an in-progress invoice or e-invoice form for their owner only;
another employee's draft is reported as not found.
"""
from __future__ import annotations

import math
import time
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.observability import document_created_counter, performance_monitor, trace_operation
from ..config.settings import get_settings
from ..models.database import DraftKind, Employee, Invoice, InvoiceDraft, PaymentStatus
from ..utils.errors import NotFoundError, ValidationError
from ..utils.sequences import next_invoice_number
from ..utils.serialization import iso, money, parse_uuid
from .tax_calculator import (
    calculate_totals,
    coerce_items,
    line_breakdown,
    normalize_state_code,
    state_code_from_gstin,
    validate_gstin,
    validate_line_items,
)

_PAYMENT_STATUSES = {s.value for s in PaymentStatus}
_DRAFT_KINDS = {k.value for k in DraftKind}


def resolve_states(data: Dict[str, Any]) -> Tuple[str, str]:
    """Supplier defaults to the company state; recipient to the GSTIN prefix, else supplier."""
    supplier = normalize_state_code(data.get("supplier_state")) or get_settings().COMPANY_STATE_CODE
    recipient = (
        normalize_state_code(data.get("recipient_state"))
        or state_code_from_gstin(data.get("customer_gstin") or data.get("recipient_gstin"))
        or supplier
    )
    return supplier, recipient


def _non_negative(payload: Dict[str, Any], key: str) -> float:
    raw = payload.get(key)
    if raw in (None, ""):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be a number") from exc
    if not math.isfinite(value):
        raise ValidationError(f"{key} must be a finite number")
    if value < 0:
        raise ValidationError(f"{key} cannot be negative")
    return value


def _parse_due_date(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.strptime(str(raw)[:10], "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError as exc:
        raise ValidationError("due_date must be YYYY-MM-DD") from exc


def serialize_invoice(invoice: Invoice) -> Dict[str, Any]:
    return {
        "id": str(invoice.id),
        "bill_number": invoice.bill_number,
        "bill_date": iso(invoice.bill_date),
        "due_date": iso(invoice.due_date),
        "customer_name": invoice.customer_name,
        "customer_phone": invoice.customer_phone,
        "customer_email": invoice.customer_email,
        "customer_address": invoice.customer_address,
        "customer_gstin": invoice.customer_gstin,
        "supplier_state": invoice.supplier_state,
        "recipient_state": invoice.recipient_state,
        "items": invoice.items or [],
        "taxable_value": money(invoice.taxable_value),
        "cgst": money(invoice.cgst),
        "sgst": money(invoice.sgst),
        "igst": money(invoice.igst),
        "gst_total": money(invoice.gst_total),
        "discount": money(invoice.discount),
        "shipping_charges": money(invoice.shipping_charges),
        "grand_total": money(invoice.grand_total),
        "payment_status": invoice.payment_status,
        "notes": invoice.notes,
        "created_by": invoice.created_by_name,
        "created_at": iso(invoice.created_at),
    }


async def create_invoice(db: AsyncSession, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    customer_name = (payload.get("customer_name") or "").strip()
    if not customer_name:
        raise ValidationError("Customer name is required")
    items = payload.get("items") or []
    if not coerce_items(items):
        raise ValidationError("At least one item is required")
    problems = validate_line_items(items)
    if problems:
        raise ValidationError("Invalid line items", details=problems)
    gstin = (payload.get("customer_gstin") or "").strip().upper() or None
    if gstin and not validate_gstin(gstin):
        raise ValidationError(f"Invalid GSTIN format: {gstin}")
    payment_status = (payload.get("payment_status") or PaymentStatus.PENDING.value).lower()
    if payment_status not in _PAYMENT_STATUSES:
        raise ValidationError("payment_status must be pending, partial or paid")
    discount = _non_negative(payload, "discount")
    shipping = _non_negative(payload, "shipping_charges")

    supplier_state, recipient_state = resolve_states({**payload, "customer_gstin": gstin})
    started = time.perf_counter()
    totals = calculate_totals(items, supplier_state, recipient_state)
    performance_monitor.record_tax_calculation("invoice", (time.perf_counter() - started) * 1000)
    grand_total = round(totals.invoice_total - discount + shipping, 2)

    with trace_operation("invoice_create", customer=customer_name, items=len(items)):
        bill_number = await next_invoice_number(db)
        invoice = Invoice(
            bill_number=bill_number,
            due_date=_parse_due_date(payload.get("due_date")),
            customer_name=customer_name,
            customer_phone=payload.get("customer_phone") or None,
            customer_email=payload.get("customer_email") or None,
            customer_address=payload.get("customer_address") or None,
            customer_gstin=gstin,
            supplier_state=supplier_state,
            recipient_state=recipient_state,
            items=line_breakdown(items, supplier_state, recipient_state),
            taxable_value=totals.taxable_value,
            cgst=totals.cgst,
            sgst=totals.sgst,
            igst=totals.igst,
            gst_total=totals.gst_total,
            discount=discount,
            shipping_charges=shipping,
            grand_total=grand_total,
            payment_status=payment_status,
            notes=payload.get("notes") or None,
            created_by=user.id,
            created_by_name=user.name,
        )
        db.add(invoice)
        await db.commit()
        document_created_counter.add(1, {"document": "invoice"})
    return serialize_invoice(invoice)


async def list_invoices(
    db: AsyncSession,
    *,
    search: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    stmt = select(Invoice).order_by(Invoice.created_at.desc())
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(Invoice.bill_number.ilike(like), Invoice.customer_name.ilike(like)))
    if payment_status:
        stmt = stmt.where(Invoice.payment_status == payment_status.lower())
    return [serialize_invoice(i) for i in (await db.execute(stmt)).scalars().all()]


async def get_invoice(db: AsyncSession, bill_number: str) -> Invoice:
    invoice = (await db.execute(
        select(Invoice).where(Invoice.bill_number == bill_number)
    )).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


# ------------------------------- Drafts ------------------------------- #


def serialize_draft(draft: InvoiceDraft) -> Dict[str, Any]:
    return {
        "id": str(draft.id),
        "kind": draft.kind,
        "title": draft.title,
        "payload": draft.payload or {},
        "totals": draft.totals or {},
        "created_at": iso(draft.created_at),
        "updated_at": iso(draft.updated_at),
    }


def _draft_totals(data: Dict[str, Any]) -> Dict[str, float]:
    supplier_state, recipient_state = resolve_states(data)
    return calculate_totals(data.get("items"), supplier_state, recipient_state).as_dict()


def _draft_kind(raw: Any) -> str:
    kind = str(raw or DraftKind.INVOICE.value).strip().lower()
    if kind not in _DRAFT_KINDS:
        raise ValidationError("Draft kind must be invoice or einvoice")
    return kind


async def create_draft(db: AsyncSession, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    data = payload.get("payload") or {}
    if not isinstance(data, dict):
        raise ValidationError("Draft payload must be an object")
    draft = InvoiceDraft(
        owner_id=user.id,
        kind=_draft_kind(payload.get("kind")),
        title=str(payload.get("title") or "").strip() or None,
        payload=data,
        totals=_draft_totals(data),
    )
    db.add(draft)
    await db.commit()
    return serialize_draft(draft)


async def list_drafts(db: AsyncSession, user: Employee, kind: Optional[str] = None) -> List[Dict[str, Any]]:
    stmt = (
        select(InvoiceDraft)
        .where(InvoiceDraft.owner_id == user.id)
        .order_by(InvoiceDraft.updated_at.desc())
    )
    if kind:
        stmt = stmt.where(InvoiceDraft.kind == _draft_kind(kind))
    return [serialize_draft(d) for d in (await db.execute(stmt)).scalars().all()]


async def _owned_draft(db: AsyncSession, draft_id: Any, user: Employee) -> InvoiceDraft:
    draft = (await db.execute(
        select(InvoiceDraft).where(
            InvoiceDraft.id == parse_uuid(draft_id, "Draft"),
            InvoiceDraft.owner_id == user.id,
        )
    )).scalar_one_or_none()
    if draft is None:
        raise NotFoundError("Draft not found")
    return draft


async def get_draft(db: AsyncSession, draft_id: Any, user: Employee) -> Dict[str, Any]:
    return serialize_draft(await _owned_draft(db, draft_id, user))


async def update_draft(db: AsyncSession, draft_id: Any, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    draft = await _owned_draft(db, draft_id, user)
    if payload.get("title") is not None:
        draft.title = str(payload["title"]).strip() or None
    if payload.get("kind") is not None:
        draft.kind = _draft_kind(payload["kind"])
    if payload.get("payload") is not None:
        data = payload["payload"]
        if not isinstance(data, dict):
            raise ValidationError("Draft payload must be an object")
        draft.payload = data
        draft.totals = _draft_totals(data)
    draft.updated_at = datetime.now(UTC)
    await db.commit()
    return serialize_draft(draft)


async def delete_draft(db: AsyncSession, draft_id: Any, user: Employee) -> None:
    draft = await _owned_draft(db, draft_id, user)
    await db.delete(draft)
    await db.commit()


__all__ = [
    "resolve_states",
    "serialize_invoice",
    "create_invoice",
    "list_invoices",
    "get_invoice",
    "serialize_draft",
    "create_draft",
    "list_drafts",
    "get_draft",
    "update_draft",
    "delete_draft",
]

"""E-invoice (IRN) and e-way bill generation.

Totals are always recomputed from the submitted line items; anything the
client sends as totals is ignored. When NIC credentials are configured the
IRN and EWB come from the gateway, otherwise (or when the gateway fails) demo
identifiers are issued so the workflow stays usable in development.

Demo formats:
  IRN  -> "IRN" + base36(epoch ms) + 8 random base36 chars
  EWB  -> "EWB" + last 10 digits of epoch ms + 3 random digits
"""
from __future__ import annotations

import json
import logging
import math
import secrets
import string
import time
from datetime import date, datetime, timedelta, UTC
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.observability import ewb_generated_counter, irn_generated_counter, trace_operation
from ..config.settings import get_settings
from ..models.database import EInvoiceRecord, EInvoiceStatus, Employee
from ..utils.errors import BusinessRuleError, NotFoundError, ValidationError
from ..utils.qr import qr_data_url
from ..utils.serialization import iso, money, parse_uuid
from .employee_service import has_permission
from .nic_client import NicGateway
from .rate_limiter import SlidingWindowRateLimiter
from .tax_calculator import (
    InvoiceTotals,
    calculate_totals,
    coerce_items,
    is_intra_state,
    line_breakdown,
    normalize_state_code,
    state_code_from_gstin,
    validate_gstin,
    validate_line_items,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.1"
WITH_IRN_LIMIT = 50
HISTORY_LIMIT = 100
DEFAULT_RATE_KEY = "default"
_BASE36 = string.digits + string.ascii_uppercase

rate_limiter = SlidingWindowRateLimiter(
    get_settings().EINVOICE_RATE_LIMIT,
    get_settings().EINVOICE_RATE_WINDOW_SECONDS,
)


def get_gateway() -> NicGateway:
    return NicGateway(get_settings())


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def demo_irn(now_ms: Optional[int] = None) -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"IRN{to_base36(now_ms if now_ms is not None else _epoch_ms())}{suffix}"


def demo_ewb_number(now_ms: Optional[int] = None) -> str:
    stamp = str(now_ms if now_ms is not None else _epoch_ms())[-10:]
    return f"EWB{stamp}{secrets.randbelow(1000):03d}"


def ewb_validity_days(distance: int) -> int:
    """One day per 100 km started, at least one day."""
    return max(1, math.ceil(distance / 100))


def parse_invoice_date(value: Any) -> date:
    """Accept ``YYYY-MM-DD`` or ``DD/MM/YYYY``; blank means today."""
    text = str(value or "").strip()
    if not text:
        return datetime.now(UTC).astimezone().date()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    raise ValidationError("Invoice date must be YYYY-MM-DD", details={"invoice_date": text})


def nic_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _pin(value: Any) -> Optional[int]:
    text = str(value or "").strip()
    return int(text) if text.isdigit() else None


def _states(form: Mapping[str, Any]) -> tuple[str, str]:
    company_state = get_settings().COMPANY_STATE_CODE
    supplier = normalize_state_code(form.get("supplier_state")) or \
        state_code_from_gstin(form.get("supplier_gstin")) or company_state
    recipient = normalize_state_code(form.get("recipient_state")) or \
        state_code_from_gstin(form.get("recipient_gstin")) or supplier
    return supplier, recipient


def build_nic_payload(form: Mapping[str, Any], totals: InvoiceTotals, doc_date: date) -> Dict[str, Any]:
    """NIC schema 1.1 invoice document for ``form``."""
    supplier_state, recipient_state = _states(form)
    intra = is_intra_state(supplier_state, recipient_state)
    lines = line_breakdown(form.get("items"), supplier_state, recipient_state)
    item_list = [{
        "SlNo": str(line["sl_no"]),
        "PrdDesc": line["description"],
        "IsServc": "N",
        "HsnCd": line["hsn_code"],
        "Qty": line["quantity"],
        "Unit": "NOS",
        "UnitPrice": line["unit_rate"],
        "TotAmt": line["taxable_value"],
        "AssAmt": line["taxable_value"],
        "GstRt": line["gst_percent"],
        "IgstAmt": line["igst"],
        "CgstAmt": line["cgst"],
        "SgstAmt": line["sgst"],
        "TotItemVal": line["total"],
    } for line in lines]

    supplier_name = form.get("supplier_name") or get_settings().COMPANY_NAME
    recipient_name = form.get("recipient_name") or "Buyer"
    return {
        "Version": SCHEMA_VERSION,
        "TranDtls": {
            "TaxSch": "GST",
            "SupTyp": "INTRA" if intra else "INTER",
            "RegRev": "N",
            "EcmGstin": None,
            "IgstOnIntra": "N",
        },
        "DocDtls": {
            "Typ": (form.get("invoice_type") or "INV").upper(),
            "No": form.get("invoice_number"),
            "Dt": nic_date(doc_date),
        },
        "SellerDtls": {
            "Gstin": form.get("supplier_gstin"),
            "LglNm": supplier_name,
            "TrdNm": supplier_name,
            "Addr1": form.get("supplier_address") or "Industrial Area",
            "Loc": form.get("supplier_location") or "Chennai",
            "Pin": _pin(form.get("supplier_pin")) or 600001,
            "Stcd": supplier_state,
        },
        "BuyerDtls": {
            "Gstin": form.get("recipient_gstin"),
            "LglNm": recipient_name,
            "TrdNm": recipient_name,
            "Pos": recipient_state,
            "Addr1": form.get("recipient_address") or "Address Line 1",
            "Loc": form.get("recipient_location") or "Location",
            "Pin": _pin(form.get("recipient_pin")) or 600001,
            "Stcd": recipient_state,
        },
        "ItemList": item_list,
        "ValDtls": {
            "AssVal": totals.taxable_value,
            "CgstVal": totals.cgst,
            "SgstVal": totals.sgst,
            "IgstVal": totals.igst,
            "TotInvVal": totals.invoice_total,
        },
    }


def validate_form(form: Mapping[str, Any]) -> None:
    if not form.get("supplier_gstin") or not form.get("recipient_gstin"):
        raise ValidationError("Supplier and Recipient GSTIN are required.")
    for field in ("supplier_gstin", "recipient_gstin"):
        if not validate_gstin(form.get(field)):
            raise ValidationError(f"Invalid GSTIN format: {form.get(field)}", details={"field": field})
    if not form.get("invoice_number"):
        raise ValidationError("Invoice number is required.")
    if not coerce_items(form.get("items")):
        raise ValidationError("At least one item is required.")
    problems = validate_line_items(form.get("items"))
    if problems:
        raise ValidationError("Invalid line items", details=problems)


def serialize_record(record: EInvoiceRecord, full: bool = True) -> Dict[str, Any]:
    data = {
        "id": str(record.id),
        "invoice_type": record.invoice_type,
        "invoice_number": record.invoice_number,
        "invoice_date": record.invoice_date,
        "supplier_gstin": record.supplier_gstin,
        "supplier_name": record.supplier_name,
        "supplier_state": record.supplier_state,
        "recipient_gstin": record.recipient_gstin,
        "recipient_name": record.recipient_name,
        "recipient_state": record.recipient_state,
        "taxable_amount": money(record.taxable_amount),
        "cgst": money(record.cgst),
        "sgst": money(record.sgst),
        "igst": money(record.igst),
        "total_amount": money(record.total_amount),
        "irn": record.irn,
        "ack_no": record.ack_no,
        "status": record.status,
        "ewb_no": record.ewb_no,
        "ewb_status": record.ewb_status,
        "ewb_valid_upto": iso(record.ewb_valid_upto),
        "generated_by": str(record.generated_by) if record.generated_by else None,
        "generated_by_name": record.generated_by_name,
        "created_at": iso(record.created_at),
    }
    if full:
        data.update({
            "items": record.items or [],
            "qrcode": record.qrcode,
            "signed_invoice": record.signed_invoice,
            "ewb_valid_from": iso(record.ewb_valid_from),
            "ewb_qrcode": record.ewb_qrcode,
            "ewb_distance": record.ewb_distance,
            "ewb_vehicle_no": record.ewb_vehicle_no,
            "ewb_transporter_id": record.ewb_transporter_id,
            "ewb_transporter_name": record.ewb_transporter_name,
            "ewb_transporter_gstin": record.ewb_transporter_gstin,
            "ewb_generated_at": iso(record.ewb_generated_at),
        })
    return data


async def check_gateway(gstin: Optional[str]) -> Dict[str, Any]:
    key = (gstin or "").strip().upper() or DEFAULT_RATE_KEY
    rate_limiter.check(key)
    gateway = get_gateway()
    if not gateway.configured:
        return {"mode": "demo", "authenticated": False,
                "message": "E-invoice credentials not configured; running in demo mode"}
    token = await gateway.authenticate(key)
    if token:
        return {"mode": "live", "authenticated": True, "message": "NIC authentication successful"}
    return {"mode": "demo", "authenticated": False,
            "message": "NIC sandbox unavailable; requests will use demo mode"}


async def generate_irn(db: AsyncSession, form: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    form = dict(form)
    for field in ("supplier_gstin", "recipient_gstin"):
        if form.get(field):
            form[field] = str(form[field]).strip().upper()
    validate_form(form)
    rate_limiter.check(form["supplier_gstin"])

    doc_date = parse_invoice_date(form.get("invoice_date"))
    supplier_state, recipient_state = _states(form)
    totals = calculate_totals(form.get("items"), supplier_state, recipient_state)
    payload = build_nic_payload(form, totals, doc_date)

    with trace_operation("einvoice_generate_irn", gstin=form["supplier_gstin"],
                         invoice_number=form["invoice_number"]) as span:
        mode = "demo"
        nic = await get_gateway().generate_irn(form["supplier_gstin"], payload) \
            if get_settings().einvoice_configured else None
        qr_payload = json.dumps({
            "sellerGstin": form["supplier_gstin"],
            "buyerGstin": form["recipient_gstin"],
            "docNo": form["invoice_number"],
            "docDt": nic_date(doc_date),
            "totInvVal": totals.invoice_total,
        })
        if nic:
            mode = "live"
            irn = nic["Irn"]
            ack_no = str(nic.get("AckNo") or "")
            ack_dt = nic.get("AckDt") or datetime.now(UTC).isoformat()
            qrcode = qr_data_url(nic.get("SignedQRCode") or qr_payload)
            signed_invoice = nic.get("SignedInvoice") or json.dumps(nic)
        else:
            irn = demo_irn()
            ack_no = str(10**11 + secrets.randbelow(9 * 10**11))
            ack_dt = datetime.now(UTC).isoformat()
            qr_payload = json.dumps({"irn": irn, **json.loads(qr_payload)})
            qrcode = qr_data_url(qr_payload)
            signed_invoice = json.dumps({
                "Irn": irn,
                "AckNo": int(ack_no),
                "AckDt": ack_dt,
                "SignedInvoice": payload,
                "Status": "ACT",
                "EwbNo": None,
                "EwbDt": None,
            })
        span.set_attribute("einvoice.mode", mode)

        record = EInvoiceRecord(
            supplier_gstin=form["supplier_gstin"],
            supplier_name=form.get("supplier_name"),
            supplier_state=supplier_state,
            recipient_gstin=form["recipient_gstin"],
            recipient_name=form.get("recipient_name"),
            recipient_state=recipient_state,
            invoice_type=(form.get("invoice_type") or "INV").upper(),
            invoice_number=form["invoice_number"],
            invoice_date=doc_date.isoformat(),
            taxable_amount=totals.taxable_value,
            cgst=totals.cgst,
            sgst=totals.sgst,
            igst=totals.igst,
            total_amount=totals.invoice_total,
            irn=irn,
            ack_no=ack_no,
            qrcode=qrcode,
            signed_invoice=signed_invoice,
            status=EInvoiceStatus.GENERATED.value,
            items=line_breakdown(form.get("items"), supplier_state, recipient_state),
            generated_by=user.id,
            generated_by_name=user.name,
        )
        db.add(record)
        await db.commit()
        irn_generated_counter.add(1, {"mode": mode})
    logger.info("IRN %s generated for %s (%s mode)", irn, form["invoice_number"], mode)
    return {
        "irn": irn,
        "ack_no": ack_no,
        "ack_dt": ack_dt,
        "qrcode": qrcode,
        "signed_invoice": signed_invoice,
        "mode": mode,
        "totals": totals.as_dict(),
        "record": serialize_record(record),
    }


async def _find_record(db: AsyncSession, record_id: Any, irn: str) -> Optional[EInvoiceRecord]:
    """Look up by id, then by IRN; client placeholder ids (temp-<ms>) fall through to the IRN."""
    record = None
    try:
        rid = UUID(str(record_id)) if record_id else None
    except ValueError:
        rid = None
    if rid is not None:
        record = (await db.execute(
            select(EInvoiceRecord).where(EInvoiceRecord.id == rid)
        )).scalar_one_or_none()
    if record is None:
        record = (await db.execute(
            select(EInvoiceRecord).where(EInvoiceRecord.irn == irn)
        )).scalar_one_or_none()
    return record


async def generate_ewb(db: AsyncSession, form: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    irn = str(form.get("irn") or "").strip()
    if not irn:
        raise ValidationError("IRN is required to generate an E-Way Bill.")
    try:
        distance = int(float(form.get("distance") or 0))
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError("Distance must be a number of kilometres.") from exc
    if distance <= 0:
        raise ValidationError("Distance must be greater than 0 km.")

    record = await _find_record(db, form.get("record_id"), irn)
    if record is not None and record.ewb_no:
        raise BusinessRuleError(
            "E-Way Bill already generated for this invoice.",
            details={"ewb_no": record.ewb_no},
        )
    supplier_gstin = record.supplier_gstin if record else (form.get("supplier_gstin") or DEFAULT_RATE_KEY)
    rate_limiter.check(supplier_gstin)

    vehicle_no = (form.get("vehicle_no") or "").strip().upper() or None
    with trace_operation("einvoice_generate_ewb", irn=irn, distance=distance) as span:
        mode = "demo"
        nic = None
        if get_settings().einvoice_configured and record is not None:
            nic = await get_gateway().generate_ewb(supplier_gstin, {
                "Irn": irn,
                "Distance": distance,
                "TransMode": "1",
                "TransId": form.get("trans_id") or None,
                "TransName": form.get("trans_name") or None,
                "TransDocDt": None,
                "TransDocNo": None,
                "VehNo": vehicle_no,
                "VehType": "R",
            })
        now = datetime.now(UTC)
        if nic:
            mode = "live"
            ewb_no = str(nic["EwbNo"])
            valid_from = now
            valid_upto = now + timedelta(days=ewb_validity_days(distance))
            qr_source = nic.get("SignedQRCode")
        else:
            ewb_no = demo_ewb_number()
            valid_from = now
            valid_upto = now + timedelta(days=ewb_validity_days(distance))
            qr_source = None
        ewb_qrcode = qr_data_url(qr_source or json.dumps({
            "ewbNo": ewb_no,
            "irn": irn,
            "sellerGstin": record.supplier_gstin if record else "N/A",
            "buyerGstin": record.recipient_gstin if record else "N/A",
            "docNo": record.invoice_number if record else "N/A",
            "docDt": record.invoice_date if record else now.date().isoformat(),
            "totInvVal": money(record.total_amount) if record else 0,
            "distance": distance,
            "vehicleNo": vehicle_no,
            "validUpto": valid_upto.isoformat(),
        }))
        span.set_attribute("einvoice.mode", mode)

        if record is not None:
            record.ewb_no = ewb_no
            record.ewb_valid_from = valid_from
            record.ewb_valid_upto = valid_upto
            record.ewb_qrcode = ewb_qrcode
            record.ewb_distance = distance
            record.ewb_vehicle_no = vehicle_no
            record.ewb_transporter_id = form.get("trans_id") or None
            record.ewb_transporter_name = form.get("trans_name") or None
            record.ewb_transporter_gstin = form.get("trans_gstin") or None
            record.ewb_status = "GENERATED"
            record.ewb_generated_at = now
            record.ewb_generated_by = user.id
            await db.commit()
        ewb_generated_counter.add(1, {"mode": mode})
    logger.info("EWB %s generated for IRN %s (%s mode)", ewb_no, irn, mode)
    return {
        "ewb_no": ewb_no,
        "ewb_valid_from": valid_from.isoformat(),
        "ewb_valid_upto": valid_upto.isoformat(),
        "ewb_qrcode": ewb_qrcode,
        "mode": mode,
        "record": serialize_record(record) if record is not None else None,
    }


def _sees_all(user: Employee) -> bool:
    return has_permission(user.role, "manageInvoices")


async def invoices_with_irn(db: AsyncSession, user: Employee, gstin: Optional[str] = None) -> List[Dict[str, Any]]:
    stmt = (
        select(EInvoiceRecord)
        .where(EInvoiceRecord.status == EInvoiceStatus.GENERATED.value, EInvoiceRecord.irn.is_not(None))
        .order_by(EInvoiceRecord.created_at.desc())
        .limit(WITH_IRN_LIMIT)
    )
    if gstin:
        stmt = stmt.where(EInvoiceRecord.supplier_gstin == gstin.strip().upper())
    if not _sees_all(user):
        stmt = stmt.where(EInvoiceRecord.generated_by == user.id)
    return [serialize_record(r, full=False) for r in (await db.execute(stmt)).scalars().all()]


async def history(
    db: AsyncSession,
    user: Employee,
    gstin: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Dict[str, Any]:
    stmt = select(EInvoiceRecord).order_by(EInvoiceRecord.created_at.desc()).limit(HISTORY_LIMIT)
    if gstin:
        stmt = stmt.where(EInvoiceRecord.supplier_gstin == gstin.strip().upper())
    # invoice_date is stored as YYYY-MM-DD so string comparison orders correctly
    if start_date:
        stmt = stmt.where(EInvoiceRecord.invoice_date >= parse_invoice_date(start_date).isoformat())
    if end_date:
        stmt = stmt.where(EInvoiceRecord.invoice_date <= parse_invoice_date(end_date).isoformat())
    if not _sees_all(user):
        stmt = stmt.where(EInvoiceRecord.generated_by == user.id)
    records = [serialize_record(r) for r in (await db.execute(stmt)).scalars().all()]
    return {"records": records, "total": len(records)}


async def stats(db: AsyncSession, gstin: Optional[str] = None) -> Dict[str, int]:
    local_now = datetime.now(UTC).astimezone()
    day_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(UTC)

    async def count(*conditions) -> int:
        stmt = select(func.count()).select_from(EInvoiceRecord).where(*conditions)
        if gstin:
            stmt = stmt.where(EInvoiceRecord.supplier_gstin == gstin.strip().upper())
        return int((await db.execute(stmt)).scalar_one())

    return {
        "pending": await count(EInvoiceRecord.status == EInvoiceStatus.PENDING.value),
        "success_today": await count(
            EInvoiceRecord.status == EInvoiceStatus.GENERATED.value,
            EInvoiceRecord.created_at >= day_start,
        ),
        "failed": await count(EInvoiceRecord.status == EInvoiceStatus.FAILED.value),
    }


async def get_record(db: AsyncSession, record_id: Any, user: Employee) -> Dict[str, Any]:
    record = (await db.execute(
        select(EInvoiceRecord).where(EInvoiceRecord.id == parse_uuid(record_id, "E-invoice record"))
    )).scalar_one_or_none()
    if record is None or (not _sees_all(user) and record.generated_by != user.id):
        raise NotFoundError("E-invoice record not found")
    return serialize_record(record)


__all__ = [
    "rate_limiter",
    "get_gateway",
    "to_base36",
    "demo_irn",
    "demo_ewb_number",
    "ewb_validity_days",
    "parse_invoice_date",
    "nic_date",
    "build_nic_payload",
    "validate_form",
    "serialize_record",
    "check_gateway",
    "generate_irn",
    "generate_ewb",
    "invoices_with_irn",
    "history",
    "stats",
    "get_record",
]

"""GST bill uploads: validation, on-disk storage and listing.

Files land under ``UPLOAD_DIR/<type>/<type>_<epoch ms>_<8 hex>.<ext>`` and are
served back from ``/uploads``.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.observability import document_created_counter, trace_operation
from ..config.settings import get_settings
from ..models.database import Employee, GstRecord, GstRecordType
from ..utils.errors import ValidationError
from ..utils.serialization import iso, money
from .employee_service import has_permission

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
}
PUBLIC_PREFIX = "/uploads"

_TYPES = {t.value for t in GstRecordType}


def _serialize(record: GstRecord) -> Dict[str, Any]:
    return {
        "id": str(record.id),
        "file_url": record.file_url,
        "file_name": record.file_name,
        "original_name": record.original_name,
        "content_type": record.content_type,
        "size": record.size,
        "type": record.type,
        "business_date": record.business_date,
        "uploaded_by": str(record.uploaded_by) if record.uploaded_by else None,
        "uploaded_by_name": record.uploaded_by_name,
        "vendor_name": record.vendor_name,
        "customer_name": record.customer_name,
        "gst_amount": money(record.gst_amount),
        "total_amount": money(record.total_amount),
        "created_at": iso(record.created_at),
    }


def parse_metadata(raw: Optional[str]) -> Dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("Invalid metadata format.") from exc
    if not isinstance(data, dict):
        raise ValidationError("Invalid metadata format.")
    return data


def _amount(meta: Dict[str, Any], key: str) -> Optional[float]:
    value = meta.get(key)
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Metadata {key} must be a number.") from exc


def stored_name(record_type: str, content_type: str, now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{record_type}_{stamp}_{uuid4().hex[:8]}.{ALLOWED_CONTENT_TYPES[content_type]}"


def _write(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def save_upload(
    db: AsyncSession,
    *,
    content: Optional[bytes],
    original_name: Optional[str],
    content_type: Optional[str],
    record_type: Optional[str],
    business_date: Optional[str],
    metadata: Optional[str],
    user: Employee,
) -> Dict[str, Any]:
    settings = get_settings()
    if not content:
        raise ValidationError("File is required.")
    record_type = (record_type or "").strip().lower()
    if record_type not in _TYPES:
        raise ValidationError('Type must be "sales" or "purchase".')
    business_date = (business_date or "").strip()
    if not business_date:
        raise ValidationError("Business date is required.")
    try:
        datetime.strptime(business_date, "%Y-%m-%d")
    except ValueError as exc:
        raise ValidationError("Business date must be YYYY-MM-DD.") from exc
    meta = parse_metadata(metadata)
    content_type = (content_type or "").lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid file type. Only PDF, JPG, and PNG files are allowed.",
                              details={"content_type": content_type})
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError("File too large.", details={"max_bytes": settings.MAX_UPLOAD_BYTES})

    name = stored_name(record_type, content_type)
    with trace_operation("gst_upload", type=record_type, size=len(content)):
        target = Path(settings.UPLOAD_DIR) / record_type / name
        await asyncio.to_thread(_write, target, content)
        record = GstRecord(
            file_url=f"{PUBLIC_PREFIX}/{record_type}/{name}",
            file_name=name,
            original_name=original_name,
            content_type=content_type,
            size=len(content),
            type=record_type,
            business_date=business_date,
            uploaded_by=user.id,
            uploaded_by_name=user.name,
            vendor_name=meta.get("vendor_name") or None,
            customer_name=meta.get("customer_name") or None,
            gst_amount=_amount(meta, "gst_amount"),
            total_amount=_amount(meta, "amount"),
        )
        db.add(record)
        try:
            await db.commit()
        except Exception:
            # Keep disk and table in step
            target.unlink(missing_ok=True)
            raise
        document_created_counter.add(1, {"document": f"gst_{record_type}"})
    logger.info("GST %s bill stored at %s", record_type, target)
    return _serialize(record)


async def list_records(db: AsyncSession, user: Employee, record_type: Optional[str] = None) -> Dict[str, Any]:
    stmt = select(GstRecord).order_by(GstRecord.created_at.desc())
    record_type = (record_type or "").strip().lower()
    if record_type in _TYPES:
        stmt = stmt.where(GstRecord.type == record_type)
    if not has_permission(user.role, "manageInvoices"):
        stmt = stmt.where(GstRecord.uploaded_by == user.id)
    records: List[Dict[str, Any]] = [_serialize(r) for r in (await db.execute(stmt)).scalars().all()]
    return {"records": records, "total": len(records)}


__all__ = ["ALLOWED_CONTENT_TYPES", "parse_metadata", "stored_name", "save_upload", "list_records"]

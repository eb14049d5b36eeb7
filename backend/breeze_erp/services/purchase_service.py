"""Purchase requests and their two-stage review.

Review is a plain state transition on the request row:

    pending-supervisor --approve--> pending-executive --approve--> approved
            |                               |
            +-------reject-------> rejected <-------reject----------+

Each stage needs its own permission; every review appends a history entry
and raises a notification.
"""
from __future__ import annotations

from datetime import datetime, UTC
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.observability import document_created_counter, trace_operation
from ..models.database import Employee, NotificationSeverity, PurchaseRequest, PurchaseStatus
from ..utils.csv_export import rows_to_csv
from ..utils.errors import BusinessRuleError, NotFoundError, PermissionDeniedError, ValidationError
from ..utils.sequences import next_purchase_request_number
from ..utils.serialization import iso, parse_uuid
from .employee_service import has_permission
from .notification_service import add_notification

DEFAULT_REASON = "Operational requirement"
DEFAULT_UNIT = "pcs"

# status -> (approvals slot, permission, next status on approve)
REVIEW_STAGES = {
    PurchaseStatus.PENDING_SUPERVISOR.value: (
        "supervisor", "supervisePurchaseRequest", PurchaseStatus.PENDING_EXECUTIVE.value),
    PurchaseStatus.PENDING_EXECUTIVE.value: (
        "executive", "approvePurchaseRequest", PurchaseStatus.APPROVED.value),
}

CSV_HEADERS = ("Request", "Requested By", "Status", "Items", "Reason", "Needed By", "Created")


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _serialize(pr: PurchaseRequest) -> Dict[str, Any]:
    return {
        "id": str(pr.id),
        "request_number": pr.request_number,
        "created_by_id": str(pr.created_by_id) if pr.created_by_id else None,
        "created_by": pr.created_by_name,
        "items": pr.items or [],
        "reason": pr.reason,
        "needed_by": pr.needed_by,
        "status": pr.status,
        "approvals": pr.approvals or {},
        "history": pr.history or [],
        "created_at": iso(pr.created_at),
        "updated_at": iso(pr.updated_at),
    }


def _normalize_items(raw_items: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")
    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} is malformed")
        name = str(raw.get("name") or raw.get("item_name") or "").strip()
        try:
            quantity = int(raw.get("quantity") or 0)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Item {index}: quantity must be a whole number") from exc
        if not name or quantity <= 0:
            raise ValidationError(f"Item {index} needs a name and a positive quantity")
        items.append({
            "id": str(uuid4()),
            "item_id": raw.get("item_id") or raw.get("itemId"),
            "name": name,
            "quantity": quantity,
            "unit": raw.get("unit") or DEFAULT_UNIT,
        })
    return items


async def list_requests(db: AsyncSession, user: Employee) -> Dict[str, Any]:
    stmt = select(PurchaseRequest).order_by(PurchaseRequest.created_at.desc())
    if not has_permission(user.role, "supervisePurchaseRequest"):
        stmt = stmt.where(PurchaseRequest.created_by_id == user.id)
    requests = [_serialize(r) for r in (await db.execute(stmt)).scalars().all()]
    counts = {s.value: 0 for s in PurchaseStatus}
    for r in requests:
        counts[r["status"]] = counts.get(r["status"], 0) + 1
    return {"requests": requests, "counts": counts}


async def get_request(db: AsyncSession, request_id: Any) -> PurchaseRequest:
    rid = parse_uuid(request_id, "Purchase request")
    pr = (await db.execute(select(PurchaseRequest).where(PurchaseRequest.id == rid))).scalar_one_or_none()
    if pr is None:
        raise NotFoundError("Purchase request not found")
    return pr


async def create_request(db: AsyncSession, payload: Dict[str, Any], user: Employee) -> Dict[str, Any]:
    items = _normalize_items(payload.get("items"))
    with trace_operation("purchase_request_create", items=len(items)):
        number = await next_purchase_request_number(db)
        pr = PurchaseRequest(
            request_number=number,
            created_by_id=user.id,
            created_by_name=user.name,
            items=items,
            reason=(payload.get("reason") or "").strip() or DEFAULT_REASON,
            needed_by=payload.get("needed_by") or None,
            status=PurchaseStatus.PENDING_SUPERVISOR.value,
            approvals={
                "supervisor": {"status": "pending", "by": None, "at": None, "note": None},
                "executive": {"status": "pending", "by": None, "at": None, "note": None},
            },
            history=[{"action": "created", "by": user.name, "at": _now_iso(), "note": None}],
        )
        db.add(pr)
        add_notification(
            db,
            "New purchase request",
            f"{user.name} raised {number} for {len(items)} item(s).",
            NotificationSeverity.INFO.value,
            {"request_number": number},
        )
        await db.commit()
        document_created_counter.add(1, {"document": "purchase_request"})
    return _serialize(pr)


async def review_request(
    db: AsyncSession,
    request_id: Any,
    action: str,
    user: Employee,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    action = (action or "").strip().lower()
    if action not in {"approve", "reject"}:
        raise ValidationError("Action must be approve or reject")
    pr = await get_request(db, request_id)
    stage = REVIEW_STAGES.get(pr.status)
    if stage is None:
        raise BusinessRuleError(f"Request {pr.request_number} is no longer pending")
    slot, permission, approved_status = stage
    if not has_permission(user.role, permission):
        raise PermissionDeniedError(f"{permission} permission is required at this stage")

    with trace_operation("purchase_request_review", request=pr.request_number, action=action):
        decision = "approved" if action == "approve" else "rejected"
        at = _now_iso()
        approvals = dict(pr.approvals or {})
        approvals[slot] = {"status": decision, "by": user.name, "at": at, "note": note or None}
        # Reassign JSON columns so the change is tracked
        pr.approvals = approvals
        pr.history = list(pr.history or []) + [
            {"action": f"{slot}-{decision}", "by": user.name, "at": at, "note": note or None}
        ]
        pr.status = approved_status if action == "approve" else PurchaseStatus.REJECTED.value
        add_notification(
            db,
            f"Purchase request {decision}",
            f"{pr.request_number} {decision} by {user.name} ({slot} review).",
            NotificationSeverity.SUCCESS.value if action == "approve" else NotificationSeverity.WARNING.value,
            {"request_number": pr.request_number, "status": pr.status},
        )
        await db.commit()
    return _serialize(pr)


async def export_csv(db: AsyncSession, user: Employee) -> str:
    listing = await list_requests(db, user)
    rows = []
    for r in listing["requests"]:
        items = "; ".join(f"{i['name']} x {i['quantity']} {i['unit']}" for i in r["items"])
        rows.append((r["request_number"], r["created_by"], r["status"], items,
                     r["reason"], r["needed_by"], r["created_at"]))
    return rows_to_csv(CSV_HEADERS, rows)


__all__ = [
    "REVIEW_STAGES",
    "list_requests",
    "get_request",
    "create_request",
    "review_request",
    "export_csv",
]

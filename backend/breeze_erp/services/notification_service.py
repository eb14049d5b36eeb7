"""Notification feed.

Other services call :func:`add_notification` inside their own unit of work;
the notification is committed together with the change that caused it.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.database import Notification, NotificationSeverity
from ..utils.errors import NotFoundError
from ..utils.serialization import iso, parse_uuid

FEED_LIMIT = 100


def _serialize(n: Notification) -> Dict[str, Any]:
    return {
        "id": str(n.id),
        "title": n.title,
        "message": n.message,
        "severity": n.severity,
        "meta": n.meta or {},
        "read": bool(n.read),
        "created_at": iso(n.created_at),
    }


def add_notification(
    db: AsyncSession,
    title: str,
    message: str,
    severity: str = NotificationSeverity.INFO.value,
    meta: Optional[Dict[str, Any]] = None,
) -> Notification:
    notification = Notification(
        title=title, message=message, severity=severity, meta=meta or {}, read=False)
    db.add(notification)
    return notification


async def list_notifications(db: AsyncSession, limit: int = FEED_LIMIT) -> Dict[str, Any]:
    rows = (await db.execute(
        select(Notification).order_by(Notification.created_at.desc()).limit(limit)
    )).scalars().all()
    unread = (await db.execute(
        select(func.count()).select_from(Notification).where(Notification.read.is_(False))
    )).scalar_one()
    return {"notifications": [_serialize(n) for n in rows], "unread_count": int(unread)}


async def mark_read(db: AsyncSession, notification_id: str) -> Dict[str, Any]:
    nid = parse_uuid(notification_id, "Notification")
    notification = (await db.execute(
        select(Notification).where(Notification.id == nid)
    )).scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found")
    notification.read = True
    await db.commit()
    return _serialize(notification)


async def mark_all_read(db: AsyncSession) -> Dict[str, Any]:
    await db.execute(update(Notification).where(Notification.read.is_(False)).values(read=True))
    await db.commit()
    return await list_notifications(db)


__all__ = ["add_notification", "list_notifications", "mark_read", "mark_all_read"]

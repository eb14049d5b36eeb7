"""Notification feed."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..models.database import Employee
from ..services import notification_service
from ..utils.api_shapes import success as _success
from .auth import require_permission

router = APIRouter(tags=["notifications"])


@router.get("")
async def list_notifications(
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewNotifications")),
):
    return _success(await notification_service.list_notifications(db))


@router.post("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewNotifications")),
):
    return _success(await notification_service.mark_all_read(db))


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewNotifications")),
):
    return _success({"notification": await notification_service.mark_read(db, notification_id)})

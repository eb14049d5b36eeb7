"""Dashboard figures; every route needs viewDashboard."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..services import dashboard_service, inventory_service
from ..utils.api_shapes import success as _success
from .auth import require_permission

router = APIRouter(tags=["dashboard"], dependencies=[Depends(require_permission("viewDashboard"))])


@router.get("/stats")
async def dashboard_stats(db: AsyncSession = Depends(get_async_db_dependency)):
    return _success(await dashboard_service.stats(db))


@router.get("/inventory-movement")
async def inventory_movement(
    days: int = Query(7, ge=1, le=90),
    db: AsyncSession = Depends(get_async_db_dependency),
):
    movement = await dashboard_service.inventory_movement(db, days)
    return _success({"movement": movement}, days=days)


@router.get("/top-items")
async def top_items(db: AsyncSession = Depends(get_async_db_dependency)):
    return _success({"items": await dashboard_service.top_items(db)})


@router.get("/low-stock")
async def low_stock(db: AsyncSession = Depends(get_async_db_dependency)):
    return _success({"items": await dashboard_service.low_stock(db)})


@router.get("/recent-transactions")
async def recent_transactions(db: AsyncSession = Depends(get_async_db_dependency)):
    return _success({"transactions": await inventory_service.recent_transactions(db, 5)})


@router.get("/recent-purchases")
async def recent_purchases(db: AsyncSession = Depends(get_async_db_dependency)):
    return _success({"requests": await dashboard_service.recent_purchases(db)})


@router.get("/summary")
async def dashboard_summary(db: AsyncSession = Depends(get_async_db_dependency)):
    return _success(await dashboard_service.summary(db))

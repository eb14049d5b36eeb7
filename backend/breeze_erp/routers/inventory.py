"""Inventory snapshot, item catalogue, barcode lookup and scan movements."""
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..models.database import Employee
from ..services import inventory_service
from ..utils.api_shapes import normalize_keys, paginate, success as _success
from .auth import require_permission

router = APIRouter(tags=["inventory"])


class InventoryItemCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    hsn_code: Optional[str] = None
    gst_rate: Optional[float] = None
    stock: Optional[int] = 0
    threshold: Optional[int] = 0

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {"hsnCode": "hsn_code", "gstRate": "gst_rate", "hsn": "hsn_code"})


class ScanRequest(BaseModel):
    barcode: Optional[str] = None
    action: Optional[str] = None
    quantity: Union[int, str, None] = None
    reason: Optional[str] = None


class ThresholdUpdate(BaseModel):
    threshold: Union[int, str, None] = None


@router.get("")
async def inventory_snapshot(
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInventory")),
):
    return _success(await inventory_service.get_snapshot(db))


@router.get("/items")
async def list_items(
    category: Optional[str] = None,
    search: Optional[str] = None,
    low_stock: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInventory")),
):
    items = await inventory_service.list_inventory_items(
        db, category=category, search=search, low_stock=low_stock,
    )
    page_items, pagination = paginate(items, page, page_size)
    return _success({"items": page_items, "pagination": pagination})


@router.get("/search")
async def search_items(
    q: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInventory")),
):
    return _success(await inventory_service.search_inventory(db, q))


@router.post("/items", status_code=status.HTTP_201_CREATED)
async def create_item(
    body: InventoryItemCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("manageInventory")),
):
    item = await inventory_service.create_inventory_item(db, body.model_dump())
    return _success({"item": item})


@router.get("/lookup")
async def lookup_item(
    q: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("updateInventory")),
):
    return _success({"item": await inventory_service.lookup_item(db, q)})


@router.post("/scan")
async def scan(
    body: ScanRequest,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("updateInventory")),
):
    return _success(await inventory_service.scan_item(db, body.model_dump(), current_user))


@router.put("/items/{item_id}")
async def update_threshold(
    item_id: str,
    body: ThresholdUpdate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("configureThresholds")),
):
    item = await inventory_service.update_threshold(db, item_id, body.threshold, current_user)
    return _success({"item": item})

"""Finished goods catalogue and stock movements."""
from typing import Optional, Union

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..models.database import Employee
from ..services import finished_product_service
from ..utils.api_shapes import normalize_keys, success as _success
from .auth import require_permission

router = APIRouter(tags=["finished-products"])


class ProductCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_name: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    stock: Union[int, str, None] = 0
    min_stock: Union[int, str, None] = 0
    unit: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {"productName": "product_name", "name": "product_name", "minStock": "min_stock"})


class StockUpdate(BaseModel):
    product_id: Optional[str] = None
    action: Optional[str] = None
    quantity: Union[int, str, None] = None
    reason: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {"productId": "product_id"})


@router.get("")
async def list_products(
    barcode: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInventory")),
):
    return _success(await finished_product_service.list_products(db, barcode))


@router.get("/summary")
async def products_summary(
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInventory")),
):
    return _success(await finished_product_service.summary(db))


@router.get("/transactions")
async def product_transactions(
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInventory")),
):
    transactions = await finished_product_service.recent_transactions(db)
    return _success({"transactions": transactions}, total=len(transactions))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("manageInventory")),
):
    return _success({"product": await finished_product_service.create_product(db, body.model_dump())})


@router.post("/update-stock")
async def update_stock(
    body: StockUpdate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("updateInventory")),
):
    return _success(await finished_product_service.update_stock(db, body.model_dump(), current_user))

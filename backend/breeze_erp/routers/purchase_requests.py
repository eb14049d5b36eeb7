"""Purchase requests with the two-stage supervisor/executive review."""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..models.database import Employee
from ..services import purchase_service
from ..utils.api_shapes import csv_response, normalize_keys, success as _success
from .auth import get_current_user, require_permission

router = APIRouter(tags=["purchase-requests"])


class PurchaseRequestCreate(BaseModel):
    items: List[Any] = []
    reason: Optional[str] = None
    needed_by: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {"neededBy": "needed_by"})


class ReviewRequest(BaseModel):
    action: str
    note: Optional[str] = None


@router.get("")
async def list_requests(
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    listing = await purchase_service.list_requests(db, current_user)
    return _success(listing, total=len(listing["requests"]))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_request(
    body: PurchaseRequestCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("createPurchaseRequest")),
):
    request = await purchase_service.create_request(db, body.model_dump(), current_user)
    return _success({"request": request})


@router.get("/export")
async def export_requests(
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return csv_response(await purchase_service.export_csv(db, current_user), "purchase-requests.csv")


@router.post("/{request_id}/review")
async def review_request(
    request_id: str,
    body: ReviewRequest,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    request = await purchase_service.review_request(db, request_id, body.action, current_user, body.note)
    return _success({"request": request})

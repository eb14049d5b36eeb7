"""Delivery challans."""
from typing import Any, List, Optional, Union

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..config.observability import trace_operation
from ..models.database import Employee
from ..services import challan_service, pdf_service
from ..utils.api_shapes import normalize_keys, success as _success
from .auth import get_current_user, require_permission

router = APIRouter(tags=["delivery-challans"])


class ChallanCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    challan_date: Optional[str] = None
    po_number: Optional[str] = None
    po_date: Optional[str] = None
    transport: Optional[str] = None
    consigned_to: Optional[str] = None
    party_sales_tax_no: Optional[str] = None
    value_of_consignment: Union[float, str, None] = None
    notes: Optional[str] = None
    items: List[Any] = []

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {
            "customerName": "customer_name",
            "customerAddress": "customer_address",
            "challanDate": "challan_date",
            "poNumber": "po_number",
            "poDate": "po_date",
            "consignedTo": "consigned_to",
            "partySalesTaxNo": "party_sales_tax_no",
            "valueOfConsignment": "value_of_consignment",
        })


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_challan(
    body: ChallanCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("manageInvoices")),
):
    return _success({"challan": await challan_service.create_challan(db, body.model_dump(), current_user)})


@router.get("")
async def list_challans(
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(get_current_user),
):
    challans = await challan_service.list_challans(db)
    return _success({"challans": challans}, total=len(challans))


@router.get("/{challan_id}")
async def get_challan(
    challan_id: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(get_current_user),
):
    return _success({"challan": await challan_service.get_challan(db, challan_id)})


@router.delete("/{challan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_challan(
    challan_id: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("manageInvoices")),
):
    await challan_service.delete_challan(db, challan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{challan_id}/pdf")
async def download_challan(
    challan_id: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(get_current_user),
):
    challan = await challan_service.get_challan(db, challan_id)
    with trace_operation("delivery_challan_pdf", challan_number=challan["challan_number"]):
        pdf_bytes = pdf_service.generate_challan_pdf(challan)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{challan["challan_number"]}.pdf"'},
    )

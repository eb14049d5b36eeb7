"""E-invoice (IRN) and e-way bill generation, lookups and stats.

Clients post the draft form in camelCase; keys are mapped onto the snake_case
names the service reads. Line items pass through untouched since the tax
calculator accepts both spellings.
"""
from typing import Any, List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..models.database import Employee
from ..services import einvoice_service
from ..utils.api_shapes import normalize_keys, success as _success
from .auth import get_current_user, require_permission

router = APIRouter(tags=["einvoice"])

_FORM_KEYS = {
    "supplierGstin": "supplier_gstin",
    "supplierName": "supplier_name",
    "supplierState": "supplier_state",
    "supplierAddress": "supplier_address",
    "supplierLocation": "supplier_location",
    "supplierPin": "supplier_pin",
    "recipientGstin": "recipient_gstin",
    "recipientName": "recipient_name",
    "recipientState": "recipient_state",
    "recipientAddress": "recipient_address",
    "recipientLocation": "recipient_location",
    "recipientPin": "recipient_pin",
    "invoiceType": "invoice_type",
    "invoiceNumber": "invoice_number",
    "invoiceNo": "invoice_number",
    "invoiceDate": "invoice_date",
}

_EWB_KEYS = {
    "recordId": "record_id",
    "transId": "trans_id",
    "transName": "trans_name",
    "transGstin": "trans_gstin",
    "vehicleNo": "vehicle_no",
}


class EInvoiceForm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    supplier_gstin: Optional[str] = None
    supplier_name: Optional[str] = None
    supplier_state: Optional[str] = None
    supplier_address: Optional[str] = None
    supplier_location: Optional[str] = None
    supplier_pin: Union[str, int, None] = None
    recipient_gstin: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_state: Optional[str] = None
    recipient_address: Optional[str] = None
    recipient_location: Optional[str] = None
    recipient_pin: Union[str, int, None] = None
    invoice_type: Optional[str] = "INV"
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    items: List[Any] = []

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, _FORM_KEYS)


class EwbRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    record_id: Optional[str] = None
    irn: Optional[str] = None
    distance: Union[float, str, None] = None
    trans_id: Optional[str] = None
    trans_name: Optional[str] = None
    trans_gstin: Optional[str] = None
    vehicle_no: Optional[str] = None
    supplier_gstin: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {**_EWB_KEYS, "supplierGstin": "supplier_gstin"})


class GatewayAuthRequest(BaseModel):
    gstin: Optional[str] = None


@router.post("/auth")
async def gateway_auth(
    body: Optional[GatewayAuthRequest] = None,
    _current_user: Employee = Depends(get_current_user),
):
    return _success(await einvoice_service.check_gateway(body.gstin if body else None))


@router.post("/generate-irn")
async def generate_irn(
    body: EInvoiceForm,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success(await einvoice_service.generate_irn(db, body.model_dump(), current_user))


@router.post("/generate-ewb")
async def generate_ewb(
    body: EwbRequest,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success(await einvoice_service.generate_ewb(db, body.model_dump(), current_user))


@router.get("/invoices-with-irn")
async def invoices_with_irn(
    gstin: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    records = await einvoice_service.invoices_with_irn(db, current_user, gstin)
    return _success({"records": records}, total=len(records))


@router.get("/history")
async def einvoice_history(
    gstin: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success(await einvoice_service.history(db, current_user, gstin, start_date, end_date))


@router.get("/stats")
async def einvoice_stats(
    gstin: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInvoices")),
):
    return _success(await einvoice_service.stats(db, gstin))


@router.get("/{record_id}")
async def get_record(
    record_id: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success({"record": await einvoice_service.get_record(db, record_id, current_user)})

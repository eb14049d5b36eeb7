"""Invoice router: create, list, fetch and download tax invoices, plus drafts.

 - Create/list/get/download delegate to services/invoice_service.py and services/pdf_service.py
 - Drafts are per-employee; another employee's draft id reads as not found
 - Static paths (/create, /list, /drafts, /download) are declared before /{bill_number}
"""
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..config.observability import trace_operation
from ..models.database import Employee
from ..services import invoice_service, pdf_service
from ..utils.api_shapes import normalize_keys, paginate, success as _success
from .auth import get_current_user, require_permission

router = APIRouter(tags=["invoices"])


class InvoiceCreate(BaseModel):
    # Ignore unknown fields from the frontend form
    model_config = ConfigDict(extra="ignore")

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    customer_gstin: Optional[str] = None
    items: List[Any] = []
    discount: Union[float, str, None] = 0
    shipping_charges: Union[float, str, None] = 0
    notes: Optional[str] = None
    payment_status: Optional[str] = None
    due_date: Optional[str] = None
    supplier_state: Optional[str] = None
    recipient_state: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {
            "customerName": "customer_name",
            "customerPhone": "customer_phone",
            "customerEmail": "customer_email",
            "customerAddress": "customer_address",
            "customerGstin": "customer_gstin",
            "shippingCharges": "shipping_charges",
            "paymentStatus": "payment_status",
            "dueDate": "due_date",
            "supplierState": "supplier_state",
            "recipientState": "recipient_state",
        })


class DraftCreate(BaseModel):
    kind: Optional[str] = None
    title: Optional[str] = None
    payload: Dict[str, Any] = {}


class DraftUpdate(BaseModel):
    kind: Optional[str] = None
    title: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_invoice(
    body: InvoiceCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(require_permission("manageInvoices")),
):
    invoice = await invoice_service.create_invoice(db, body.model_dump(), current_user)
    return _success({"invoice": invoice})


@router.get("/list")
async def list_invoices(
    search: Optional[str] = None,
    payment_status: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInvoices")),
):
    invoices = await invoice_service.list_invoices(db, search=search, payment_status=payment_status)
    page_items, pagination = paginate(invoices, page, page_size)
    return _success({"invoices": page_items, "pagination": pagination})


@router.post("/drafts", status_code=status.HTTP_201_CREATED)
async def create_draft(
    body: DraftCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success({"draft": await invoice_service.create_draft(db, body.model_dump(), current_user)})


@router.get("/drafts")
async def list_drafts(
    kind: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    drafts = await invoice_service.list_drafts(db, current_user, kind)
    return _success({"drafts": drafts}, total=len(drafts))


@router.get("/drafts/{draft_id}")
async def get_draft(
    draft_id: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success({"draft": await invoice_service.get_draft(db, draft_id, current_user)})


@router.put("/drafts/{draft_id}")
async def update_draft(
    draft_id: str,
    body: DraftUpdate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    draft = await invoice_service.update_draft(db, draft_id, body.model_dump(), current_user)
    return _success({"draft": draft})


@router.delete("/drafts/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_draft(
    draft_id: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    await invoice_service.delete_draft(db, draft_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/download/{bill_number}")
async def download_invoice(
    bill_number: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInvoices")),
):
    invoice = invoice_service.serialize_invoice(await invoice_service.get_invoice(db, bill_number))
    with trace_operation("invoice_pdf", bill_number=bill_number):
        pdf_bytes = pdf_service.generate_invoice_pdf(invoice)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{bill_number}.pdf"'},
    )


@router.get("/{bill_number}")
async def get_invoice(
    bill_number: str,
    db: AsyncSession = Depends(get_async_db_dependency),
    _current_user: Employee = Depends(require_permission("viewInvoices")),
):
    invoice = await invoice_service.get_invoice(db, bill_number)
    return _success({"invoice": invoice_service.serialize_invoice(invoice)})

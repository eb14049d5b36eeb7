"""GST bill uploads (sales and purchase) and their listing."""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..models.database import Employee
from ..services import gst_service
from ..utils.api_shapes import success as _success
from .auth import get_current_user

router = APIRouter(tags=["gst"])


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_bill(
    file: Optional[UploadFile] = File(None),
    type: Optional[str] = Form(None),
    business_date: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    content = await file.read() if file is not None else None
    record = await gst_service.save_upload(
        db,
        content=content,
        original_name=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
        record_type=type,
        business_date=business_date,
        metadata=metadata,
        user=current_user,
    )
    return _success({"record": record})


@router.get("/records")
async def list_records(
    type: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Employee = Depends(get_current_user),
):
    return _success(await gst_service.list_records(db, current_user, type))

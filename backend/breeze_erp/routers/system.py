"""Liveness and readiness probes for orchestrators."""
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..config.database import async_database_health_check
from ..config.settings import get_settings
from ..utils.api_shapes import success as _success

router = APIRouter(tags=["System"])

_started_at = time.time()


@router.get("/health")
async def liveness():
    return _success({"ok": True, "service": get_settings().COMPANY_NAME})


@router.get("/readiness")
async def readiness():
    """Ready once the database answers; 503 with the same payload otherwise."""
    database = await async_database_health_check()
    body = _success({"database": database, "uptime_s": int(time.time() - _started_at)})
    if database["status"] != "healthy":
        return JSONResponse(status_code=503, content=body)
    return body

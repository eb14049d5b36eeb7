"""
FastAPI application factory and configuration.
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, UTC

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import Counter as _PrcCounter, Gauge as _PrcGauge, Histogram as _PrcHistogram
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .config.database import async_database_health_check, async_engine, check_async_database_connection, get_async_db
from .config.logging import configure_logging
from .config.observability import (
    instrument_fastapi,
    instrument_sqlalchemy,
    performance_monitor,
    setup_observability,
    trace_operation,
)
from .config.settings import get_settings
from .routers import API_ROUTERS
from .routers.metrics import router as metrics_router
from .services import employee_service
from .services.gst_service import PUBLIC_PREFIX
from .utils.errors import ERROR_CODES, DomainError, error_payload

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
SLOW_RESPONSE_MS = 200

# Native Prometheus metrics, independent of the OTEL reader being configured
APP_REQUEST_COUNT = _PrcCounter(
    "app_requests_total",
    "Total HTTP requests processed",
    ["method", "path", "status"],
)
APP_REQUEST_LATENCY = _PrcHistogram(
    "app_request_duration_seconds",
    "Request latency in seconds",
    ["method", "path", "status"],
)
APP_UPTIME_SECONDS = _PrcGauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)

APP_START_TIME = datetime.now(UTC)

_STATUS_CODES = {
    401: ERROR_CODES["unauthorized"],
    403: ERROR_CODES["forbidden"],
    404: ERROR_CODES["not_found"],
}


def _fast_tests() -> bool:
    return os.getenv("FAST_TESTS") == "1" or os.getenv("TESTING", "false").lower() == "true"


class ResponseTimeMiddleware(BaseHTTPMiddleware):
    """Record request latency metrics and flag responses slower than 200ms."""

    async def dispatch(self, request: Request, call_next):  # noqa: D401
        start_time = time.time()
        response = await call_next(request)
        duration_s = time.time() - start_time
        response_time_ms = duration_s * 1000
        response.headers["X-Response-Time"] = f"{response_time_ms:.1f}ms"

        status = str(response.status_code)
        path = request.url.path
        performance_monitor.record_request(
            endpoint=path,
            method=request.method,
            duration_ms=response_time_ms,
            status_code=response.status_code,
        )
        APP_REQUEST_COUNT.labels(request.method, path, status).inc()
        APP_REQUEST_LATENCY.labels(request.method, path, status).observe(duration_s)
        APP_UPTIME_SECONDS.set((datetime.now(UTC) - APP_START_TIME).total_seconds())

        if response_time_ms > SLOW_RESPONSE_MS:
            logger.warning(
                "Slow response: %.1fms exceeds %dms for %s %s",
                response_time_ms,
                SLOW_RESPONSE_MS,
                request.method,
                path,
            )
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate a per-request ID and bind it into the structlog context."""

    async def dispatch(self, request: Request, call_next):  # noqa: D401
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response


async def seed_defaults() -> None:
    """Create default roles and the administrator account when missing."""
    email = os.getenv("ADMIN_EMAIL", "admin@example.com")
    async with get_async_db() as db:
        await employee_service.seed_default_roles(db)
        await db.commit()
        await employee_service.ensure_admin(db, email, os.getenv("ADMIN_PASSWORD", "admin123"))


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Application lifespan management."""
    logger.info("Starting up Breeze ERP API...")
    configure_logging()

    if _fast_tests():
        # Test fixtures own schema setup and seeding
        logger.info("FAST_TESTS/TESTING detected: skipping observability setup, DB check and seeding")
        yield
        return

    setup_observability()
    if get_settings().ENABLE_TRACING:
        instrument_sqlalchemy(async_engine.sync_engine)
    if not await check_async_database_connection():
        logger.error("Failed to connect to database")
        raise RuntimeError("Database connection failed")
    # Schema is managed by Alembic (backend/run_migrations.py)
    await seed_defaults()
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down Breeze ERP API...")


def create_application() -> FastAPI:
    """Create and configure FastAPI application."""

    application_obj = FastAPI(
        title="Breeze ERP",
        description="Inventory, workforce, purchasing and GST invoicing for a small manufacturer",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url=f"{API_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    setup_middleware(application_obj)
    setup_exception_handlers(application_obj)
    setup_routes(application_obj)

    if get_settings().ENABLE_TRACING:
        instrument_fastapi(application_obj)

    return application_obj


def setup_middleware(app: FastAPI) -> None:
    """Setup application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=["*"])
    app.add_middleware(ResponseTimeMiddleware)
    app.add_middleware(RequestIDMiddleware)


def _jsonable(value):
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup global exception handlers."""

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(exc.code, exc.message, exc.details, str(request.url.path)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors with standardized response."""
        sanitized = [{k: _jsonable(v) for k, v in err.items()} for err in exc.errors()]
        return JSONResponse(
            status_code=422,
            content=error_payload(
                ERROR_CODES["validation"], "Request validation failed", sanitized, str(request.url.path)
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions; ``http_error`` attaches the code."""
        code = getattr(exc, "code", None) or _STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(code, str(exc.detail), path=str(request.url.path)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        performance_monitor.record_error()
        return JSONResponse(
            status_code=500,
            content=error_payload(
                ERROR_CODES["internal"], "An unexpected error occurred", path=str(request.url.path)
            ),
        )


def setup_routes(app: FastAPI) -> None:
    """Setup application routes."""

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        with trace_operation("health_check"):
            db_health = await async_database_health_check()
            return {
                "status": "healthy" if db_health["status"] == "healthy" else "unhealthy",
                "timestamp": time.time(),
                "database": db_health,
                "version": "1.0.0",
            }

    @app.get("/")
    async def root():
        return {
            "status": "success",
            "data": {
                "message": "Breeze ERP API",
                "version": "1.0.0",
                "docs": "/docs",
                "health": "/health",
            },
            "timestamp": time.time(),
        }

    @app.get(f"{API_PREFIX}/system/runtime-metrics", tags=["System"], summary="Runtime JSON metrics")
    async def runtime_metrics():
        """Runtime JSON metrics (internal diagnostic view, not Prometheus format)."""
        return {
            "status": "success",
            "data": {
                "performance": {
                    "request_count": performance_monitor.request_count,
                    "avg_response_time_ms": performance_monitor.avg_response_time_ms,
                    "error_count": performance_monitor.error_count,
                    "uptime_seconds": (datetime.now(UTC) - APP_START_TIME).total_seconds(),
                },
                "service": {"version": "1.0.0"},
            },
            "timestamp": time.time(),
        }

    for router, prefix, tags in API_ROUTERS:
        app.include_router(router, prefix=f"{API_PREFIX}{prefix}", tags=tags)
    # Prometheus exposition lives outside the API prefix
    app.include_router(metrics_router)

    app.mount(PUBLIC_PREFIX, StaticFiles(directory=get_settings().UPLOAD_DIR, check_dir=False), name="uploads")


app = create_application()


__all__ = ["app", "create_application"]

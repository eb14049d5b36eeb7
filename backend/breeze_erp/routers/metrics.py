"""Prometheus metrics exposition router.

Serves the default prometheus_client registry, which holds both the native
request metrics recorded by the middleware and the OpenTelemetry domain
counters fed through PrometheusMetricReader.
"""
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

"""Prometheus /metrics exposition."""
import pytest

from httpx import AsyncClient


@pytest.mark.asyncio
async def test_prometheus_metrics_endpoint_basic(async_client: AsyncClient):  # noqa: D401
    await async_client.get("/api/v1/system/health")
    resp = await async_client.get("/metrics")
    assert resp.status_code == 200
    text_payload = resp.text
    assert "app_requests_total" in text_payload
    assert "app_request_duration_seconds" in text_payload
    assert "app_uptime_seconds" in text_payload


@pytest.mark.asyncio
async def test_every_response_carries_request_id_and_timing(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/system/health")
    assert resp.headers["X-Request-ID"]
    assert resp.headers["X-Response-Time"].endswith("ms")
    echoed = await async_client.get("/api/v1/system/health", headers={"X-Request-ID": "abc-123"})
    assert echoed.headers["X-Request-ID"] == "abc-123"

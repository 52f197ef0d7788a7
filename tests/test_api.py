# tests/test_api.py

"""General API tests: health check and request tracing."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(async_client: AsyncClient):
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_request_id_is_generated(async_client: AsyncClient):
    response = await async_client.get("/health")

    assert len(response.headers["X-Request-ID"]) == 8


@pytest.mark.asyncio
async def test_incoming_request_id_is_echoed(async_client: AsyncClient):
    response = await async_client.get("/health", headers={"X-Request-ID": "bot-123"})

    assert response.headers["X-Request-ID"] == "bot-123"


@pytest.mark.asyncio
async def test_init_data_is_not_logged(async_client: AsyncClient, caplog):
    caplog.set_level("INFO", logger="squashrank.api")

    await async_client.get("/api/me", params={"initData": "hash=secret-value"})

    assert "secret-value" not in caplog.text
    assert "initData=%2A%2A%2A" in caplog.text

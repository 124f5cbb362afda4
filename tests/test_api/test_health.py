"""Health endpoint against the test database and a stubbed Redis."""

from __future__ import annotations

import pytest

from exchange_marketplace.api.routes import health


class PingingRedis:
    async def ping(self) -> bool:
        return True


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, client, session_factory, monkeypatch) -> None:
        monkeypatch.setattr(health, "get_session_factory", lambda: session_factory)
        monkeypatch.setattr(health, "get_redis", lambda: PingingRedis())

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "version": "0.1.0",
            "database": "healthy",
            "redis": "healthy",
        }

    @pytest.mark.asyncio
    async def test_degraded_without_redis(self, client, session_factory, monkeypatch) -> None:
        monkeypatch.setattr(health, "get_session_factory", lambda: session_factory)

        response = await client.get("/health")

        body = response.json()
        assert body["status"] == "degraded"
        assert body["database"] == "healthy"
        assert body["redis"].startswith("unhealthy")

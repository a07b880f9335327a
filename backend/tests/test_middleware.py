"""Tests for health endpoints and the HTTP middleware stack."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from onetouch.config import settings
from onetouch.middleware import rate_limit
from onetouch.middleware.rate_limit import RateLimitMiddleware


class FakeSortedSets:
    """Just enough of the Redis sorted-set API for the rate limiter."""

    def __init__(self):
        self.sets: dict[str, dict[str, float]] = {}

    async def zremrangebyscore(self, key, low, high):
        members = self.sets.setdefault(key, {})
        for member, score in list(members.items()):
            if low <= score <= high:
                del members[member]

    async def zcard(self, key):
        return len(self.sets.get(key, {}))

    async def zrange(self, key, start, end, withscores=False):
        ordered = sorted(self.sets.get(key, {}).items(), key=lambda kv: kv[1])
        return ordered[start:end + 1]

    async def zadd(self, key, mapping):
        members = self.sets.setdefault(key, {})
        # Distinct members even when two requests share a timestamp
        for member, score in mapping.items():
            members[f"{member}:{len(members)}"] = score

    async def expire(self, key, seconds):
        return True


@pytest.fixture
def limited_app(monkeypatch):
    store = FakeSortedSets()

    async def _get_redis():
        return store

    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    monkeypatch.setattr(rate_limit, "get_redis", _get_redis)

    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, default_limit=2, default_window=60)

    @app.get("/api/ping")
    async def ping():
        return {"pong": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_readiness_without_redis(self, client: AsyncClient):
        response = await client.get("/health/ready")

        assert response.status_code == 200
        checks = response.json()["checks"]
        assert checks["database"] == "ok"
        assert checks["redis"] == "disabled"

    async def test_security_headers(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in response.headers

    async def test_categories_need_authentication(self, client: AsyncClient):
        response = await client.get("/api/categories")

        assert response.status_code == 401

    async def test_categories(self, client: AsyncClient, headers, contractor):
        response = await client.get("/api/categories", headers=headers(contractor))

        assert response.status_code == 200
        assert response.json()[0] == "建物インフラ"
        assert len(response.json()) == 6


@pytest.mark.api
@pytest.mark.asyncio
class TestRateLimit:

    async def test_blocks_after_limit(self, limited_app):
        transport = ASGITransport(app=limited_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            first = await client.get("/api/ping")
            second = await client.get("/api/ping")
            third = await client.get("/api/ping")

        assert first.status_code == 200
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.status_code == 200
        assert third.status_code == 429
        assert third.json()["error"]["code"] == "RATE_LIMITED"
        assert "Retry-After" in third.headers

    async def test_exempt_paths_are_not_counted(self, limited_app):
        transport = ASGITransport(app=limited_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            responses = [await client.get("/health") for _ in range(5)]

        assert all(r.status_code == 200 for r in responses)

    async def test_clients_counted_separately(self, limited_app):
        transport = ASGITransport(app=limited_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            for _ in range(2):
                await client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.1"})
            other = await client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.2"})

        assert other.status_code == 200

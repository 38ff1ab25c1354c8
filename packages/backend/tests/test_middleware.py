"""Tests for the middleware stack: security headers, request IDs, rate limits.

Learn: Rate limiting is skipped when Redis isn't initialized, which is
the normal state in tests. The rate-limit cases swap in a dict-backed
stand-in for the two Redis commands the middleware uses.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError


class CountingRedis:
    def __init__(self):
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> None:
        self.ttls[key] = seconds


class BrokenRedis:
    async def incr(self, key: str) -> int:
        raise RedisConnectionError("connection reset")


@pytest.fixture()
def redis(monkeypatch):
    fake = CountingRedis()
    monkeypatch.setattr("peerconnect.middleware.rate_limit.get_redis", lambda: fake)
    return fake


# ═══════════════════════════════════════════════════════════
# Security headers and request IDs
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_security_headers_on_health(client):
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "Cache-Control" not in r.headers


@pytest.mark.asyncio
async def test_auth_responses_not_cached(client):
    r = await client.post("/api/auth/login", json={})
    assert r.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_security_headers_on_errors(client):
    r = await client.get("/api/groups")
    assert r.status_code == 401
    assert r.headers["X-Frame-Options"] == "DENY"


@pytest.mark.asyncio
async def test_no_hsts_on_http(client):
    r = await client.get("/api/health")
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_request_id_generated(client):
    r1 = await client.get("/api/health")
    r2 = await client.get("/api/health")
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    r = await client.get("/api/health", headers={"X-Request-ID": "trace-12345"})
    assert r.headers["X-Request-ID"] == "trace-12345"


# ═══════════════════════════════════════════════════════════
# Rate limiting
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_rate_limit_headers(client, redis):
    r = await client.get("/api/health")
    assert r.headers["X-RateLimit-Limit"] == "100"
    assert r.headers["X-RateLimit-Remaining"] == "99"
    assert list(redis.ttls.values()) == [120]


@pytest.mark.asyncio
async def test_auth_endpoints_have_stricter_limit(client, redis):
    for _ in range(10):
        r = await client.post("/api/auth/login", json={})
        assert r.status_code == 422

    r = await client.post("/api/auth/login", json={})
    assert r.status_code == 429
    assert r.json()["detail"] == "Rate limit exceeded. Try again later."
    assert r.headers["Retry-After"] == "60"

    # Other endpoints have their own budget
    r = await client.get("/api/health")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_redis_errors_do_not_block(client, monkeypatch):
    monkeypatch.setattr(
        "peerconnect.middleware.rate_limit.get_redis", lambda: BrokenRedis()
    )
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert "X-RateLimit-Limit" not in r.headers

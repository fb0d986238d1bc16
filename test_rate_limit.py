from fastapi import FastAPI
from fastapi.testclient import TestClient

from utilities.middleware import RateLimitMiddleware


class CountingRedis:
    """Minimal in-process stand-in for the redis commands the limiter uses"""

    def __init__(self):
        self.counts = {}
        self.ttls = {}

    def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    def expire(self, key, seconds):
        self.ttls[key] = seconds

    def ttl(self, key):
        return self.ttls.get(key, -1)


def limited_app(limit=2):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_window=limit, window_size=60, redis_client=CountingRedis())

    @app.get("/api/payments/plans")
    async def plans():
        return []

    @app.post("/api/payments/sslcommerz/ipn")
    async def ipn():
        return "OK"

    return app


def test_requests_over_limit_get_429():
    client = TestClient(limited_app())
    assert client.get("/api/payments/plans").status_code == 200
    second = client.get("/api/payments/plans")
    assert second.headers["X-RateLimit-Remaining"] == "0"

    resp = client.get("/api/payments/plans")
    assert resp.status_code == 429
    body = resp.json()
    assert body["success"] is False
    assert body["data"] == {"retry_after": 60}


def test_gateway_callbacks_are_never_limited():
    client = TestClient(limited_app(limit=1))
    for _ in range(5):
        assert client.post("/api/payments/sslcommerz/ipn").status_code == 200

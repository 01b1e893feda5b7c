"""
Tests for the Redis-backed rate limiter
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from redis import ConnectionError as RedisConnectionError

from schoolpay.infrastructure.settings import get_settings
from schoolpay.utils.rate_limiter import RateLimiter, RateLimitMiddleware


def _redis(count: int, oldest_score: float = 1_700_000_000):
    redis = MagicMock()
    redis.zcard.return_value = count
    redis.zrange.return_value = [("member", oldest_score)]
    return redis


@pytest.fixture
def rate_limiting_enabled(monkeypatch):
    monkeypatch.setattr(get_settings(), "RATE_LIMIT_ENABLED", True)


def _app(redis) -> TestClient:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, redis_client=redis)

    @app.post("/webhooks/v1/paystack")
    async def webhook():
        return {"status": "ok"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return TestClient(app)


class TestRateLimiter:
    def test_under_limit_is_allowed_and_counted(self):
        redis = _redis(count=3)
        limiter = RateLimiter(redis, limit=10)

        allowed, remaining, limit, _ = limiter.check_rate_limit("webhook", "1.2.3.4")

        assert allowed is True
        assert remaining == 6
        assert limit == 10
        redis.zadd.assert_called_once()
        assert redis.zadd.call_args.args[0] == "schoolpay:ratelimit:webhook:1.2.3.4"

    def test_at_limit_is_refused_without_counting(self):
        redis = _redis(count=10, oldest_score=1000)
        limiter = RateLimiter(redis, limit=10, window_seconds=60)

        allowed, remaining, _, reset_time = limiter.check_rate_limit("admin", "1.2.3.4")

        assert allowed is False
        assert remaining == 0
        assert reset_time == 1060
        redis.zadd.assert_not_called()


class TestRateLimitMiddleware:
    def test_limited_request_gets_429_envelope(self, rate_limiting_enabled):
        client = _app(_redis(count=10_000))

        response = client.post("/webhooks/v1/paystack")

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert int(response.headers["Retry-After"]) >= 1

    def test_allowed_request_carries_headers(self, rate_limiting_enabled):
        client = _app(_redis(count=0))

        response = client.post("/webhooks/v1/paystack")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == str(get_settings().RL_WEBHOOK_PER_MIN)

    def test_ungrouped_paths_are_not_limited(self, rate_limiting_enabled):
        redis = _redis(count=10_000)
        client = _app(redis)

        assert client.get("/health").status_code == 200
        redis.zcard.assert_not_called()

    def test_redis_outage_fails_open(self, rate_limiting_enabled):
        redis = MagicMock()
        redis.zremrangebyscore.side_effect = RedisConnectionError("refused")
        client = _app(redis)

        assert client.post("/webhooks/v1/paystack").status_code == 200

    def test_disabled_limiter_never_touches_redis(self):
        redis = _redis(count=10_000)
        client = _app(redis)

        assert client.post("/webhooks/v1/paystack").status_code == 200
        redis.zremrangebyscore.assert_not_called()

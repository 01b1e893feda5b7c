"""
Per-client rate limiting on a Redis sorted-set sliding window

Two groups are limited: webhook deliveries and the admin API. Health, ready
and metrics probes are never limited.
"""

import time
import uuid
import logging
from typing import Dict, List, Optional, Tuple
from fastapi import Request, status
from fastapi.responses import JSONResponse
from redis import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from schoolpay.infrastructure.settings import get_settings
from schoolpay.infrastructure.logging_config import trace_id_context
from schoolpay.utils.metrics import record_rate_limit_exceeded
from schoolpay.utils.security_logging import log_security_event

logger = logging.getLogger(__name__)

KEY_PREFIX = "schoolpay:ratelimit"


class RateLimiter:
    """
    Sliding window of `window_seconds`; each admitted request is a sorted-set
    member scored by its arrival second.
    """

    def __init__(self, redis_client, limit: int, window_seconds: int = 60):
        self.redis = redis_client
        self.limit = limit
        self.window_seconds = window_seconds

    def get_key(self, endpoint_group: str, identifier: str) -> str:
        return f"{KEY_PREFIX}:{endpoint_group}:{identifier}"

    def check_rate_limit(self, endpoint_group: str, identifier: str) -> Tuple[bool, int, int, int]:
        """
        Admit and count the request, or refuse it without counting.

        Returns:
            (is_allowed, remaining, limit, reset_time as epoch seconds)
        """
        key = self.get_key(endpoint_group, identifier)
        now = int(time.time())

        self.redis.zremrangebyscore(key, 0, now - self.window_seconds)
        in_window = self.redis.zcard(key)

        if in_window >= self.limit:
            oldest = self.redis.zrange(key, 0, 0, withscores=True)
            reset_time = int(oldest[0][1]) + self.window_seconds if oldest else now + self.window_seconds
            return False, 0, self.limit, reset_time

        self.redis.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
        self.redis.expire(key, self.window_seconds + 10)
        return True, max(0, self.limit - in_window - 1), self.limit, now + self.window_seconds


def get_client_identifier(request: Request) -> str:
    """Client IP; the first X-Forwarded-For hop wins behind the load balancer"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def _rate_limit_headers(limit: int, remaining: int, reset_time: int) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(reset_time),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fails open when Redis is unreachable: a limiter outage must never turn
    into refused payment notifications.
    """

    def __init__(self, app, redis_client):
        super().__init__(app)
        self.settings = get_settings()
        # (path prefix, group, limiter), checked in order
        self.groups: List[Tuple[str, str, RateLimiter]] = [
            (self.settings.WEBHOOKS_V1_PREFIX + "/", "webhook",
             RateLimiter(redis_client, limit=self.settings.RL_WEBHOOK_PER_MIN)),
            (self.settings.ADMIN_V1_PREFIX + "/", "admin",
             RateLimiter(redis_client, limit=self.settings.RL_ADMIN_PER_MIN)),
        ]

    def get_endpoint_group(self, path: str) -> Optional[Tuple[str, RateLimiter]]:
        for prefix, group, limiter in self.groups:
            if path.startswith(prefix):
                return group, limiter
        return None

    async def dispatch(self, request: Request, call_next):
        if not self.settings.RATE_LIMIT_ENABLED:
            return await call_next(request)

        matched = self.get_endpoint_group(request.url.path)
        if matched is None:
            return await call_next(request)

        endpoint_group, limiter = matched
        identifier = get_client_identifier(request)

        try:
            is_allowed, remaining, limit, reset_time = limiter.check_rate_limit(endpoint_group, identifier)
        except RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: group={endpoint_group}, error={e}")
            return await call_next(request)

        if is_allowed:
            response = await call_next(request)
            response.headers.update(_rate_limit_headers(limit, remaining, reset_time))
            return response

        trace_id = trace_id_context.get() or "unknown"
        record_rate_limit_exceeded(group=endpoint_group)
        log_security_event(
            action="RATE_LIMIT_EXCEEDED",
            details={
                "endpoint_group": endpoint_group,
                "identifier": identifier,
                "path": request.url.path,
                "method": request.method,
            },
            trace_id=trace_id,
            ip=identifier,
        )

        headers = _rate_limit_headers(limit, 0, reset_time)
        headers["Retry-After"] = str(max(1, reset_time - int(time.time())))
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": {
                    "code": "RATE_LIMITED",
                    "message": f"Rate limit exceeded. Maximum {limit} requests per minute.",
                    "details": {"endpoint_group": endpoint_group, "reset_at": reset_time},
                    "trace_id": trace_id,
                }
            },
            headers=headers,
        )

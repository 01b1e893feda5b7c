"""
Redis client configuration
"""

import redis
from schoolpay.infrastructure.settings import get_settings

settings = get_settings()

# Decoded client for rate limiting and cancel flags; short timeouts so a dead Redis fails fast
redis_pool = redis.ConnectionPool.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    socket_connect_timeout=2,
    socket_timeout=2,
)
redis_client = redis.Redis(connection_pool=redis_pool)


def get_redis() -> redis.Redis:
    """Get Redis client instance"""
    return redis_client


def get_queue_connection() -> redis.Redis:
    """Binary Redis connection for RQ (job payloads are pickled bytes)"""
    return redis.Redis.from_url(settings.REDIS_URL)


def ping_redis() -> bool:
    """Ping Redis to check connectivity"""
    try:
        return bool(redis_client.ping())
    except redis.RedisError:
        return False

"""
Redis-backed JSON cache.

Used for short-lived read-through values such as entitlement lookups. The
cache is optional: when redis is disabled or unreachable every helper returns
its neutral value and callers read the database instead.
"""
import json
import logging
from typing import Any, Callable, Optional, TypeVar

import redis
from redis.exceptions import RedisError

from core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Shared client, created on first use. None when caching is off or redis is down."""
    global _client

    if not settings.CACHE_ENABLED:
        return None
    if _client is not None:
        return _client

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            health_check_interval=30,
        )
        client.ping()
    except RedisError as e:
        logger.warning(f"Redis unavailable, continuing without cache: {e}")
        return None

    logger.info("Redis connection established")
    _client = client
    return _client


def cache_key(prefix: str, *parts) -> str:
    """`prefix:part1:part2`, skipping None parts."""
    return ":".join([prefix, *(str(p) for p in parts if p is not None)])


def _with_client(op: str, key: str, action: Callable[[redis.Redis], T], fallback: T) -> T:
    client = get_redis_client()
    if client is None:
        return fallback
    try:
        return action(client)
    except RedisError as e:
        logger.warning(f"Cache {op} failed for {key}: {e}")
        return fallback


def get_cache(key: str) -> Optional[Any]:
    """Cached value, or None on a miss. Stored falsy values (False, 0) are returned as-is."""
    def read(client: redis.Redis) -> Optional[Any]:
        raw = client.get(key)
        return None if raw is None else json.loads(raw)

    return _with_client("get", key, read, None)


def set_cache(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    seconds = settings.CACHE_TTL_DEFAULT if ttl is None else ttl

    def write(client: redis.Redis) -> bool:
        client.setex(key, seconds, json.dumps(value, default=str))
        return True

    return _with_client("set", key, write, False)


def delete_cache(key: str) -> bool:
    def delete(client: redis.Redis) -> bool:
        client.delete(key)
        return True

    return _with_client("delete", key, delete, False)

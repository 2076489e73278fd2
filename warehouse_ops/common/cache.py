"""Shared Redis clients and cache key naming."""

from __future__ import annotations

from redis.asyncio import Redis

from .config import WarehouseSettings

KEY_NAMESPACE = "warehouse_ops"

_CACHE: dict[str, Redis] = {}


def cache_key(*parts: str | int) -> str:
    """Namespaced key, e.g. ``cache_key("dashboard", "summary")``."""

    return ":".join([KEY_NAMESPACE, *(str(part) for part in parts)])


def get_redis_client(redis_url: str) -> Redis:
    """Return a cached Redis client for the given URL."""

    if redis_url not in _CACHE:
        _CACHE[redis_url] = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=1.0,
            health_check_interval=30,
        )
    return _CACHE[redis_url]


def resolve_redis(settings: WarehouseSettings) -> Redis | None:
    """Dashboard caching is off unless both a URL and a positive TTL are set."""

    if not settings.redis_url or settings.dashboard_cache_ttl_seconds <= 0:
        return None
    return get_redis_client(settings.redis_url)


async def close_redis_connections() -> None:
    for redis in _CACHE.values():
        await redis.aclose()
    _CACHE.clear()

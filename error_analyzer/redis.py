"""Redis client shared by the quota gate and the ephemeral report store."""

from __future__ import annotations

import redis.asyncio as redis

from error_analyzer.config import get_settings

_redis_client: redis.Redis | None = None


def create_redis(redis_url: str | None = None) -> redis.Redis:
    """Build a client that returns ``str`` values.

    The socket timeout matches the quota lock bound so a hung server fails a
    quota check instead of stalling the job.
    """
    settings = get_settings()
    return redis.from_url(
        redis_url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
    )


async def get_redis() -> redis.Redis:
    """Get or create the default client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = create_redis()
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

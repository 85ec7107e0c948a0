"""
scpb_site/core/redis_client.py — Redis client construction
Built once at startup from configuration; the URL is logged with the
password masked.
"""
from __future__ import annotations

from urllib.parse import urlparse

from loguru import logger
from redis.asyncio import Redis

from scpb_site.config import RedisSettings


def masked_url(redis_url: str) -> str:
    parsed = urlparse(redis_url)
    host = parsed.hostname or "localhost"
    port = parsed.port or 6379
    db = parsed.path.strip("/") or "0"
    return f"{parsed.scheme or 'redis'}://{host}:{port}/{db}"


def create_redis_client(config: RedisSettings) -> Redis:
    """Create the shared async Redis client for rate-limit counters."""
    logger.info(f"Redis rate-limit store: {masked_url(config.url)}")
    kwargs = {
        "socket_timeout": config.timeout_seconds,
        "socket_connect_timeout": config.timeout_seconds,
        "decode_responses": True,
    }
    if config.token:
        kwargs["password"] = config.token
    return Redis.from_url(config.url, **kwargs)

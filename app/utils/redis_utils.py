"""Redis connection utilities.

Provides helper functions for creating Redis connections with configuration
from settings to avoid code duplication.
"""

from urllib.parse import urlsplit, urlunsplit

import redis.asyncio as redis

from app.config.settings import settings


def get_redis_client(url: str | None = None) -> redis.Redis | None:
    """
    Create a Redis client from a URL.

    Args:
        url: Redis URL; defaults to ``settings.redis_url``

    Returns:
        redis.Redis with decode_responses=True, or None when no URL is configured

    Example:
        >>> client = get_redis_client("redis://localhost:6379/0")
        >>> await client.set("key", "value")
        >>> await client.aclose()
    """
    url = url or settings.redis_url
    if not url:
        return None
    return redis.Redis.from_url(url, decode_responses=True)


def get_redis_url_masked(url: str | None = None) -> str:
    """
    Redis URL with the password replaced by asterisks, safe for logging.

    Example:
        >>> get_redis_url_masked("redis://:secret@localhost:6379/0")
        'redis://:****@localhost:6379/0'
    """
    url = url or settings.redis_url
    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    user = parts.username or ""
    netloc = f"{user}:****@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

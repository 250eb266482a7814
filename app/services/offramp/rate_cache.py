"""
Off-ramp rate cache.

Rates are cached for ``RATE_CACHE_TTL_SECONDS`` in Redis when a Redis URL
is configured, otherwise in a process-local dict with the same TTL.
"""

import time
from decimal import Decimal, InvalidOperation

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from app.config.constants import RATE_CACHE_TTL_SECONDS


class RateCache:
    """TTL cache of token/fiat rates."""

    KEY_PREFIX = "hedwig:rate"

    def __init__(
        self, redis_client: redis.Redis | None = None, ttl: int = RATE_CACHE_TTL_SECONDS
    ) -> None:
        """
        Initialize rate cache.

        Args:
            redis_client: Redis client; in-process storage when None
            ttl: Entry lifetime in seconds
        """
        self.redis = redis_client
        self.ttl = ttl
        self._local: dict[str, tuple[float, Decimal]] = {}

    @classmethod
    def make_key(cls, token: str, amount: Decimal, currency: str, network: str) -> str:
        """
        Cache key of one rate lookup.

        Examples:
            >>> RateCache.make_key("usdc", Decimal("10"), "ngn", "base")
            'hedwig:rate:USDC:10:NGN:base'
        """
        return f"{cls.KEY_PREFIX}:{token.upper()}:{amount.normalize():f}:{currency.upper()}:{network}"

    async def get(self, key: str) -> Decimal | None:
        """Get cached rate or None when missing/expired."""
        if self.redis is None:
            entry = self._local.get(key)
            if entry is None:
                return None
            expires_at, rate = entry
            if expires_at <= time.monotonic():
                self._local.pop(key, None)
                return None
            return rate

        try:
            value = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Rate cache read failed: {e}")
            return None
        if value is None:
            return None
        try:
            return Decimal(value)
        except InvalidOperation:
            return None

    async def set(self, key: str, rate: Decimal) -> None:
        """Store a rate with the cache TTL."""
        if self.redis is None:
            self._local[key] = (time.monotonic() + self.ttl, rate)
            return
        try:
            await self.redis.set(key, str(rate), ex=self.ttl)
        except RedisError as e:
            logger.warning(f"Rate cache write failed: {e}")

    async def close(self) -> None:
        """Close the Redis connection, if any."""
        if self.redis is not None:
            await self.redis.aclose()

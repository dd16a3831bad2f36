"""Redis-backed cache store that fails open.

When a read or write to redis fails the store marks itself unavailable for a
short back-off window; during that window every lookup is a miss and every
write is skipped, so callers fall through to the durable store instead of
blocking on a dead connection. Deletes are always attempted. A key whose
delete fails is remembered and dropped before the next lookup once redis
answers again, so a recovered cache never serves an entry that an
invalidation meant to remove.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from redis.exceptions import RedisError

from ..routes_metrics import cache_requests_total

logger = logging.getLogger("tableside.cache")


class CacheStore:
    """Key/value get/set/delete with TTL over an async redis client."""

    def __init__(self, redis, retry_after: float = 5.0) -> None:
        self._redis = redis
        self._retry_after = retry_after
        self._down_until = 0.0
        self._stale: set[str] = set()

    @property
    def redis(self):
        return self._redis

    def is_available(self) -> bool:
        return time.monotonic() >= self._down_until

    def _mark_down(self, op: str, key: str, exc: BaseException) -> None:
        self._down_until = time.monotonic() + self._retry_after
        cache_requests_total.labels(result="error").inc()
        logger.warning("cache %s failed for %s: %s", op, key, exc)

    async def _drop_stale(self) -> bool:
        """Retry deletes that failed; False while redis is still failing."""
        if not self._stale:
            return True
        keys = tuple(self._stale)
        try:
            await self._redis.delete(*keys)
        except (RedisError, OSError) as exc:
            self._mark_down("delete", ",".join(keys), exc)
            return False
        self._stale.difference_update(keys)
        logger.info("dropped %d keys left over from the outage", len(keys))
        return True

    async def get(self, key: str) -> Any | None:
        if not self.is_available() or not await self._drop_stale():
            return None
        try:
            raw = await self._redis.get(key)
        except (RedisError, OSError) as exc:
            self._mark_down("get", key, exc)
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("dropping undecodable cache entry %s", key)
            await self.delete(key)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        if not self.is_available() or not await self._drop_stale():
            return False
        data = json.dumps(value, default=str)
        try:
            await self._redis.set(key, data, ex=ttl or None)
        except (RedisError, OSError) as exc:
            self._mark_down("set", key, exc)
            return False
        return True

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            dropped = int(await self._redis.delete(*keys) or 0)
        except (RedisError, OSError) as exc:
            self._stale.update(keys)
            self._mark_down("delete", ",".join(keys), exc)
            return 0
        self._stale.difference_update(keys)
        return dropped


__all__ = ["CacheStore"]

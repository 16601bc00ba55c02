"""Redis-backed fixed-window rate limiting with an in-process fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Tuple

from fastapi import HTTPException, Request
import redis.asyncio as redis
from redis.exceptions import RedisError

from config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "atlas:rate"


class RateLimiter:
    """Count hits per key in fixed windows; falls back to memory when Redis is down."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._local_counters: Dict[str, Tuple[int, float]] = {}
        self._local_lock = asyncio.Lock()

    def reset(self) -> None:
        self._local_counters.clear()

    async def _hit_local(self, key: str, window_seconds: int) -> int:
        now = time.time()
        async with self._local_lock:
            expired = [name for name, (_, window_end) in self._local_counters.items() if window_end <= now]
            for name in expired:
                del self._local_counters[name]
            count, reset_at = self._local_counters.get(key, (0, now + window_seconds))
            if now >= reset_at:
                count = 0
                reset_at = now + window_seconds
            count += 1
            self._local_counters[key] = (count, reset_at)
            return count

    async def _hit_redis(self, key: str, window_seconds: int) -> int:
        client = redis.from_url(self.redis_url, decode_responses=True)
        try:
            current = await client.incr(key)
            if current == 1:
                await client.expire(key, window_seconds)
            return int(current)
        finally:
            await client.aclose()

    async def hit(self, key: str, window_seconds: int) -> int:
        """Record one hit and return the count in the current window."""
        try:
            return await self._hit_redis(key, window_seconds)
        except (RedisError, OSError) as exc:
            logger.debug("Rate limit falling back to local counters: %s", exc)
            return await self._hit_local(key, window_seconds)


limiter = RateLimiter(settings.REDIS_URL)


def _client_identifier(request: Request) -> str:
    # The socket peer wins; the header is client-controlled.
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return "unknown"


def rate_limit(scope: str, limit: int, window_seconds: int) -> Callable[[Request], None]:
    """Return a FastAPI dependency allowing ``limit`` calls per client per window."""

    async def _dependency(request: Request):
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key = f"{KEY_PREFIX}:{scope}:{_client_identifier(request)}"
        if await limiter.hit(key, window_seconds) > limit:
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded for {scope}. Try again later.",
            )

    return _dependency

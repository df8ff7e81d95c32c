"""
guards/rate_limit.py

Fixed-window request counter keyed by caller identity.

The counter store is injected, so the same limiter runs against process memory
(single instance) or Redis (shared across instances). Windows reset lazily on
the next request after expiry; nothing sweeps in the background.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from banb.errors import RateLimitError

logger = logging.getLogger("banb.agent")


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    reset_at: float
    now: float

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def retry_after(self) -> int:
        return max(0, math.ceil(self.reset_at - self.now))


class MemoryCounterStore:
    """
    In-process counters. The lock makes increment-and-check atomic across
    threads and tasks. Expired windows are dropped at most once per window
    length, so only recently active callers stay in memory.
    """

    def __init__(self) -> None:
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float, window_seconds: int) -> None:
        if now < self._next_sweep:
            return
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for k in expired:
            del self._windows[k]
        self._next_sweep = now + window_seconds

    async def hit(self, key: str, limit: int, window_seconds: int, now: float) -> Tuple[int, float, bool]:
        with self._lock:
            self._sweep(now, window_seconds)
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            if count >= limit:
                self._windows[key] = (count, reset_at)
                return count, reset_at, False
            count += 1
            self._windows[key] = (count, reset_at)
            return count, reset_at, True

    async def close(self) -> None:
        self._windows.clear()


class RedisCounterStore:
    """Shared counters: INCR plus EXPIRE NX in one transaction per hit."""

    def __init__(self, client, prefix: str = "banb:ratelimit:") -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        from redis import asyncio as aioredis

        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def hit(self, key: str, limit: int, window_seconds: int, now: float) -> Tuple[int, float, bool]:
        redis_key = f"{self.prefix}{key}"
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.expire(redis_key, window_seconds, nx=True)
            pipe.ttl(redis_key)
            count, _, ttl = await pipe.execute()
        ttl = ttl if isinstance(ttl, int) and ttl > 0 else window_seconds
        count = int(count)
        return count, now + ttl, count <= limit

    async def close(self) -> None:
        await self.client.aclose()


class FixedWindowRateLimiter:
    def __init__(
        self,
        store,
        *,
        limit: int = 10,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock

    async def check(self, key: str) -> RateLimitDecision:
        now = self.clock()
        count, reset_at, allowed = await self.store.hit(key, self.limit, self.window_seconds, now)
        return RateLimitDecision(allowed=allowed, count=count, limit=self.limit, reset_at=reset_at, now=now)

    async def enforce(self, key: str) -> RateLimitDecision:
        decision = await self.check(key)
        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s (limit=%d/%ds)", key, self.limit, self.window_seconds)
            raise RateLimitError(retry_after=decision.retry_after)
        return decision

    async def close(self) -> None:
        await self.store.close()


def build_rate_limiter(settings) -> FixedWindowRateLimiter:
    if settings.rate_limit_backend == "redis":
        if not settings.redis_url:
            raise RuntimeError("RATE_LIMIT_BACKEND=redis requires REDIS_URL")
        store = RedisCounterStore.from_url(settings.redis_url)
        # wall clock so TTL-derived reset times are comparable across instances
        clock = time.time
    else:
        store = MemoryCounterStore()
        clock = time.monotonic
    logger.info("Rate limiter: backend=%s limit=%d window=%ds", settings.rate_limit_backend,
                settings.chat_rate_limit, settings.chat_rate_window_seconds)
    return FixedWindowRateLimiter(
        store,
        limit=settings.chat_rate_limit,
        window_seconds=settings.chat_rate_window_seconds,
        clock=clock,
    )

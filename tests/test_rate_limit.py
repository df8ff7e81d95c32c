"""
Fixed-window rate limiting against the memory and Redis counter stores.
"""

import asyncio

import pytest

from banb.config import Settings
from banb.errors import RateLimitError
from banb.guards.rate_limit import (
    FixedWindowRateLimiter,
    MemoryCounterStore,
    RedisCounterStore,
    build_rate_limiter,
)


async def test_tenth_request_allowed_eleventh_rejected(rate_limiter):
    for i in range(10):
        decision = await rate_limiter.enforce("u1")
        assert decision.count == i + 1
    with pytest.raises(RateLimitError) as exc:
        await rate_limiter.enforce("u1")
    assert exc.value.status_code == 429
    assert exc.value.message == "Rate limit exceeded. Please try again later."
    assert exc.value.retry_after == 60


async def test_window_resets_lazily(rate_limiter, clock):
    for _ in range(10):
        await rate_limiter.enforce("u1")
    clock.advance(59)
    decision = await rate_limiter.check("u1")
    assert not decision.allowed
    assert decision.retry_after == 1
    clock.advance(1)
    decision = await rate_limiter.enforce("u1")
    assert decision.count == 1
    assert decision.remaining == 9


async def test_rejections_do_not_extend_the_window(rate_limiter, clock):
    for _ in range(10):
        await rate_limiter.enforce("u1")
    for _ in range(5):
        clock.advance(10)
        assert not (await rate_limiter.check("u1")).allowed
    clock.advance(10)
    assert (await rate_limiter.check("u1")).allowed


async def test_keys_are_independent(rate_limiter):
    for _ in range(10):
        await rate_limiter.enforce("u1")
    assert (await rate_limiter.enforce("u2")).count == 1
    assert (await rate_limiter.enforce("anonymous")).count == 1


async def test_expired_windows_are_evicted(clock):
    store = MemoryCounterStore()
    limiter = FixedWindowRateLimiter(store, limit=10, window_seconds=60, clock=clock)
    for i in range(50):
        await limiter.enforce(f"caller-{i}")
    assert len(store) == 50

    clock.advance(60)
    await limiter.enforce("late")
    assert len(store) == 1

    # a live window survives the sweep
    clock.advance(30)
    await limiter.enforce("other")
    clock.advance(30)
    await limiter.enforce("third")
    assert len(store) == 2
    assert (await limiter.enforce("other")).count == 2


async def test_concurrent_hits_never_exceed_limit(clock):
    limiter = FixedWindowRateLimiter(MemoryCounterStore(), limit=10, window_seconds=60, clock=clock)
    decisions = await asyncio.gather(*(limiter.check("u1") for _ in range(25)))
    assert sum(d.allowed for d in decisions) == 10


class FakePipeline:
    def __init__(self, server):
        self.server = server
        self.ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def incr(self, key):
        self.ops.append(("incr", key))

    def expire(self, key, seconds, nx=False):
        self.ops.append(("expire", key, seconds, nx))

    def ttl(self, key):
        self.ops.append(("ttl", key))

    async def execute(self):
        out = []
        for op in self.ops:
            if op[0] == "incr":
                self.server.counts[op[1]] = self.server.counts.get(op[1], 0) + 1
                out.append(self.server.counts[op[1]])
            elif op[0] == "expire":
                if op[3] and op[1] in self.server.ttls:
                    out.append(False)
                else:
                    self.server.ttls[op[1]] = op[2]
                    out.append(True)
            else:
                out.append(self.server.ttls.get(op[1], -1))
        return out


class FakeRedis:
    def __init__(self):
        self.counts = {}
        self.ttls = {}
        self.closed = False
        self.transactions = []

    def pipeline(self, transaction=True):
        self.transactions.append(transaction)
        return FakePipeline(self)

    async def aclose(self):
        self.closed = True


async def test_redis_store_counts_with_expire_nx():
    redis = FakeRedis()
    store = RedisCounterStore(redis)
    limiter = FixedWindowRateLimiter(store, limit=2, window_seconds=30, clock=lambda: 500.0)

    first = await limiter.enforce("u1")
    second = await limiter.enforce("u1")
    assert (first.count, second.count) == (1, 2)
    assert first.reset_at == 530.0
    with pytest.raises(RateLimitError) as exc:
        await limiter.enforce("u1")
    assert exc.value.retry_after == 30

    assert redis.counts == {"banb:ratelimit:u1": 3}
    assert redis.ttls == {"banb:ratelimit:u1": 30}
    assert all(redis.transactions)

    await limiter.close()
    assert redis.closed


def test_build_rate_limiter_from_settings():
    limiter = build_rate_limiter(Settings(chat_rate_limit=3, chat_rate_window_seconds=15))
    assert isinstance(limiter.store, MemoryCounterStore)
    assert (limiter.limit, limiter.window_seconds) == (3, 15)


def test_redis_backend_requires_url():
    with pytest.raises(RuntimeError):
        build_rate_limiter(Settings(rate_limit_backend="redis", redis_url=None))

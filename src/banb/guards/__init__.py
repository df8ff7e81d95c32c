from banb.guards.rate_limit import FixedWindowRateLimiter, MemoryCounterStore, RedisCounterStore  # noqa: F401
from banb.guards.sanitizer import sanitize_input, wants_onchain_lookup  # noqa: F401

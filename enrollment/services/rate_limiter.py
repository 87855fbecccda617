"""Fixed-window rate limiting for code redemption.

Redemption codes are 16 hex characters, so guessing is impractical, but
an unthrottled redeem endpoint still lets one caller hammer the store
with lookups.  Each caller gets ``limit`` attempts per window; the
counter resets when the window expires.

A fixed window allows a burst of up to 2x the limit across a window
boundary.  For a per-user redemption throttle that is acceptable, and
the Redis form is a single INCR plus EXPIRE on first hit.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from enrollment.core.config import SETTINGS
from enrollment.db.redis import redis_pool


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """The outcome of a rate limit check.

    retry_after is the number of seconds until the current window ends
    (0 when allowed).
    """

    allowed: bool
    remaining: int
    limit: int
    retry_after: float


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    limit: int = 10
    window_seconds: int = 60


REDEEM_LIMIT = RateLimitConfig(limit=SETTINGS.redeem_rate_limit, window_seconds=60)


@runtime_checkable
class RateLimiter(Protocol):
    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult: ...
    async def reset(self, key: str) -> None: ...


class InMemoryRateLimiter:
    """Per-process counters.  Multiple API instances each count separately."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        # key -> (window_start, count)
        self._windows: dict[str, tuple[float, int]] = {}

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        start, count = self._windows.get(key, (now, 0))
        if now - start >= config.window_seconds:
            start, count = now, 0

        count += 1
        self._windows[key] = (start, count)
        if count <= config.limit:
            return RateLimitResult(
                allowed=True,
                remaining=config.limit - count,
                limit=config.limit,
                retry_after=0,
            )
        return RateLimitResult(
            allowed=False,
            remaining=0,
            limit=config.limit,
            retry_after=max(0.0, config.window_seconds - (now - start)),
        )

    async def reset(self, key: str) -> None:
        self._windows.pop(key, None)

    def clear(self) -> None:
        self._windows.clear()


class RedisRateLimiter:
    """Shared counters: INCR the window key, EXPIRE it on the first hit."""

    _PREFIX = "ratelimit:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        redis_key = f"{self._PREFIX}{key}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            count, ttl = await pipe.execute()
        if ttl < 0:
            # New key, or one left without expiry by a crashed caller.
            await self._redis.expire(redis_key, config.window_seconds)
            ttl = config.window_seconds

        count = int(count)
        if count <= config.limit:
            return RateLimitResult(
                allowed=True,
                remaining=config.limit - count,
                limit=config.limit,
                retry_after=0,
            )
        return RateLimitResult(
            allowed=False, remaining=0, limit=config.limit, retry_after=float(ttl)
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    rate_limiter: RateLimiter = RedisRateLimiter(redis_pool)
else:
    rate_limiter = InMemoryRateLimiter()

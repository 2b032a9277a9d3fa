# leadscout/queueing/rate_limit.py
from __future__ import annotations

import math
import random
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from redis import Redis

from leadscout.config import BucketLimit, RateLimitConfig, app_config
from leadscout.utils import utc_day_key

# ---- Keys / constants ----
DAILY_KEY = "{prefix}:daily:{day}:{key}"
DAILY_TTL = 2 * 86400  # seconds; a day's counter outlives its day by one


# ---- Token buckets ----
@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class TokenBucketLimiter:
    """
    One token bucket per key, thread-safe.

    tokens(now) = min(burst, tokens_prev + elapsed * rate)

    reserve(key, cost) debits and returns 0 when enough tokens are there;
    otherwise it debits nothing and returns the whole milliseconds until
    `cost` tokens will have accrued. Buckets start full.
    """

    def __init__(
        self,
        limits: Mapping[str, BucketLimit] | None = None,
        *,
        default: BucketLimit | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limits: dict[str, BucketLimit] = dict(limits or {})
        self._default = default
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    @classmethod
    def for_plans(
        cls,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> TokenBucketLimiter:
        """Limiter keyed by plan tier (free/pro/scale)."""
        cfg = config or app_config.rate
        return cls(cfg.plans, clock=clock)

    def set_limit(self, key: str, limit: BucketLimit) -> None:
        with self._lock:
            self._limits[key] = limit
            b = self._buckets.get(key)
            if b is not None:
                b.tokens = min(b.tokens, float(limit.burst))

    def has_limit(self, key: str) -> bool:
        with self._lock:
            return key in self._limits or self._default is not None

    def _limit(self, key: str) -> BucketLimit:
        limit = self._limits.get(key, self._default)
        if limit is None:
            raise KeyError(f"no rate limit configured for {key!r}")
        return limit

    def _refill(self, key: str, limit: BucketLimit, now: float) -> _Bucket:
        b = self._buckets.get(key)
        if b is None:
            b = _Bucket(tokens=float(limit.burst), updated_at=now)
            self._buckets[key] = b
            return b
        elapsed = max(0.0, now - b.updated_at)
        b.tokens = min(float(limit.burst), b.tokens + elapsed * limit.rate)
        b.updated_at = now
        return b

    def reserve(self, key: str, cost: float = 1.0) -> int:
        with self._lock:
            limit = self._limit(key)
            if cost > limit.burst:
                raise ValueError(f"cost {cost} exceeds burst {limit.burst} for {key!r}")
            b = self._refill(key, limit, self._clock())
            if b.tokens >= cost:
                b.tokens -= cost
                return 0
            if limit.rate <= 0:
                raise ValueError(f"bucket {key!r} never refills (rate=0)")
            return math.ceil((cost - b.tokens) / limit.rate * 1000.0)

    def tokens(self, key: str) -> float:
        with self._lock:
            limit = self._limit(key)
            return self._refill(key, limit, self._clock()).tokens


# ---- Per-org daily counters (reset on UTC day change) ----
class DailyCounter:
    """In-process counter per key for the current UTC day."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._counts: dict[str, tuple[str, int]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, now: float | None = None) -> int:
        day = utc_day_key(self._clock() if now is None else now)
        with self._lock:
            d, n = self._counts.get(key, (day, 0))
            return n if d == day else 0

    def incr(self, key: str, n: int = 1, now: float | None = None) -> int:
        day = utc_day_key(self._clock() if now is None else now)
        with self._lock:
            d, cur = self._counts.get(key, (day, 0))
            if d != day:
                cur = 0
            cur += n
            self._counts[key] = (day, cur)
            return cur


class RedisDailyCounter:
    """Same contract as DailyCounter, shared across processes via INCRBY on a per-day key."""

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.redis = redis
        self.prefix = prefix or app_config.queue.key_prefix
        self._clock = clock

    def _key(self, key: str, now: float | None) -> str:
        day = utc_day_key(self._clock() if now is None else now)
        return DAILY_KEY.format(prefix=self.prefix, day=day, key=key)

    def get(self, key: str, now: float | None = None) -> int:
        return int(self.redis.get(self._key(key, now)) or 0)

    def incr(self, key: str, n: int = 1, now: float | None = None) -> int:
        k = self._key(key, now)
        with self.redis.pipeline() as p:
            p.incrby(k, n)
            p.expire(k, DAILY_TTL)
            cur, _ = p.execute()
        return int(cur)


# ---- Jitter / backoff helpers ----
def jittered(value: float, pct: float, rng: random.Random | None = None) -> float:
    """value +/- pct*value, uniform. pct is clamped to [0, 1]."""
    pct = max(0.0, min(1.0, pct))
    r = rng or random
    return value * (1.0 + r.uniform(-pct, pct))


def compute_backoff(
    attempt: int, *, base: float = 1.0, cap: float = 60.0, jitter: str = "full"
) -> float:
    """
    Exponential backoff with jitter.
    - 'full':  uniform(0, min(cap, base * 2**attempt))
    - 'equal': uniform(min(cap, base * 2**attempt)/2, min(cap, base * 2**attempt))
    """
    if attempt < 0:
        attempt = 0
    hi = min(cap, base * (2**attempt))
    if jitter == "equal":
        lo = hi / 2.0
        return random.uniform(lo, hi)
    return random.uniform(0.0, hi)


__all__ = [
    "TokenBucketLimiter",
    "DailyCounter",
    "RedisDailyCounter",
    "jittered",
    "compute_backoff",
]

"""
Token bucket rate limiting keyed by client identity.

Two interchangeable backends:
- InMemoryRateLimiter: single process, used in development and tests
- PostgresRateLimiter: bucket state lives in ``rate_limit_buckets`` so it
  survives restarts and is shared by every API instance

Usage:
    limiter = PostgresRateLimiter(db_pool)
    rule = TokenBucketRule.per_window(5, 15 * 60)
    decision = await limiter.check("signup:203.0.113.7", rule)
    if not decision.allowed:
        ...  # 429, Retry-After: decision.retry_after
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import asyncpg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenBucketRule:
    """A bucket holding ``capacity`` tokens refilled continuously."""
    capacity: int
    refill_per_second: float

    @classmethod
    def per_window(cls, requests: int, window_seconds: float) -> "TokenBucketRule":
        """N requests per window, with a burst of up to N."""
        return cls(capacity=requests, refill_per_second=requests / window_seconds)

    def seconds_until_token(self, tokens: float) -> int:
        if tokens >= 1:
            return 0
        return max(1, math.ceil((1 - tokens) / self.refill_per_second))


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class RateLimiter(ABC):
    """Consumes one token per request from the bucket named ``key``."""

    @abstractmethod
    async def check(self, key: str, rule: TokenBucketRule) -> RateLimitDecision:
        ...


class InMemoryRateLimiter(RateLimiter):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._buckets: dict[str, tuple[float, float]] = {}
        self._lock = asyncio.Lock()

    async def check(self, key: str, rule: TokenBucketRule) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            tokens, last = self._buckets.get(key, (float(rule.capacity), now))
            tokens = min(float(rule.capacity), tokens + (now - last) * rule.refill_per_second)

            if tokens >= 1:
                self._buckets[key] = (tokens - 1, now)
                return RateLimitDecision(allowed=True)

            self._buckets[key] = (tokens, now)
            return RateLimitDecision(allowed=False, retry_after=rule.seconds_until_token(tokens))


class PostgresRateLimiter(RateLimiter):
    """
    Atomic token bucket in PostgreSQL.

    The upsert refills and consumes in one statement; the conditional
    ``DO UPDATE ... WHERE`` leaves the row untouched (and returns nothing)
    when the bucket is empty.
    """

    _CONSUME_SQL = """
        INSERT INTO rate_limit_buckets AS b (key, tokens, updated_at)
        VALUES ($1, $2::float8 - 1, NOW())
        ON CONFLICT (key) DO UPDATE SET
            tokens = LEAST(
                $2::float8,
                b.tokens + EXTRACT(EPOCH FROM (NOW() - b.updated_at))::float8 * $3::float8
            ) - 1,
            updated_at = NOW()
        WHERE LEAST(
            $2::float8,
            b.tokens + EXTRACT(EPOCH FROM (NOW() - b.updated_at))::float8 * $3::float8
        ) >= 1
        RETURNING tokens
    """

    _PEEK_SQL = """
        SELECT LEAST(
            $2::float8,
            tokens + EXTRACT(EPOCH FROM (NOW() - updated_at))::float8 * $3::float8
        )
        FROM rate_limit_buckets
        WHERE key = $1
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def check(self, key: str, rule: TokenBucketRule) -> RateLimitDecision:
        async with self.db_pool.acquire() as conn:
            remaining = await conn.fetchval(
                self._CONSUME_SQL, key, float(rule.capacity), rule.refill_per_second
            )
            if remaining is not None:
                return RateLimitDecision(allowed=True)

            tokens = await conn.fetchval(
                self._PEEK_SQL, key, float(rule.capacity), rule.refill_per_second
            )

        logger.info(f"Rate limit exceeded for {key}")
        return RateLimitDecision(
            allowed=False,
            retry_after=rule.seconds_until_token(tokens or 0.0),
        )

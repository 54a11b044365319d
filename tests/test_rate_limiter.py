"""
Rate Limiter Tests

In-memory token bucket with a manual clock, and the PostgreSQL bucket against
a mocked pool.
"""

import pytest

from core.rate_limiter import (
    InMemoryRateLimiter,
    PostgresRateLimiter,
    RateLimitDecision,
    TokenBucketRule,
)


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestTokenBucketRule:
    def test_per_window(self):
        rule = TokenBucketRule.per_window(5, 15 * 60)
        assert rule.capacity == 5
        assert rule.refill_per_second == pytest.approx(5 / 900)

    def test_seconds_until_token(self):
        rule = TokenBucketRule.per_window(5, 20)
        assert rule.seconds_until_token(1.5) == 0
        assert rule.seconds_until_token(0.0) == 4
        assert rule.seconds_until_token(0.999999) == 1


class TestInMemoryRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_burst_then_denies(self):
        """Test that the sixth signup inside the window is rejected."""
        clock = ManualClock()
        limiter = InMemoryRateLimiter(clock=clock)
        rule = TokenBucketRule.per_window(5, 20)

        for _ in range(5):
            assert (await limiter.check("signup:1.2.3.4", rule)).allowed

        decision = await limiter.check("signup:1.2.3.4", rule)
        assert decision == RateLimitDecision(allowed=False, retry_after=4)

    @pytest.mark.asyncio
    async def test_refills_over_time(self):
        clock = ManualClock()
        limiter = InMemoryRateLimiter(clock=clock)
        rule = TokenBucketRule.per_window(2, 60)

        assert (await limiter.check("upload:a", rule)).allowed
        assert (await limiter.check("upload:a", rule)).allowed
        assert not (await limiter.check("upload:a", rule)).allowed

        clock.now += 31
        assert (await limiter.check("upload:a", rule)).allowed

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(clock=ManualClock())
        rule = TokenBucketRule.per_window(1, 60)

        assert (await limiter.check("auth:a", rule)).allowed
        assert not (await limiter.check("auth:a", rule)).allowed
        assert (await limiter.check("auth:b", rule)).allowed


class TestPostgresRateLimiter:
    @pytest.mark.asyncio
    async def test_allowed_when_consume_returns_tokens(self, mock_db_pool):
        mock_db_pool.conn.fetchval.return_value = 3.0
        limiter = PostgresRateLimiter(mock_db_pool)

        decision = await limiter.check("signup:x", TokenBucketRule.per_window(5, 900))

        assert decision.allowed
        assert mock_db_pool.conn.fetchval.await_count == 1
        args = mock_db_pool.conn.fetchval.await_args.args
        assert args[1:] == ("signup:x", 5.0, pytest.approx(5 / 900))

    @pytest.mark.asyncio
    async def test_denied_reports_retry_after(self, mock_db_pool):
        """Test that an empty bucket peeks the balance to compute Retry-After."""
        mock_db_pool.conn.fetchval.side_effect = [None, 0.5]
        limiter = PostgresRateLimiter(mock_db_pool)

        decision = await limiter.check("signup:x", TokenBucketRule.per_window(5, 20))

        assert not decision.allowed
        assert decision.retry_after == 2

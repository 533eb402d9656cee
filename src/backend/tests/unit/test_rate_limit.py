"""
Unit tests for the submission rate limiter.

Tests:
- Allowance up to the limit, rejection after
- Window opens on the first request and resets once it has elapsed
- Keys are counted independently
- Concurrent hits never lose increments
- Sweeping of expired windows
"""

import asyncio

import pytest

from core.rate_limit import SubmissionRateLimiter
from tests.factories import FakeClock


def make_limiter(clock: FakeClock, max_requests: int = 5, window: float = 900) -> SubmissionRateLimiter:
    return SubmissionRateLimiter(
        max_requests=max_requests,
        window_seconds=window,
        clock=clock,
        wall_clock=lambda: 1_700_000_000.0,
    )


class TestSubmissionWindow:
    """Tests for the fixed per-client window."""

    @pytest.mark.asyncio
    async def test_allows_up_to_limit_then_rejects(self):
        limiter = make_limiter(FakeClock())

        decisions = [await limiter.hit("10.0.0.1") for _ in range(5)]
        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [4, 3, 2, 1, 0]

        sixth = await limiter.hit("10.0.0.1")
        assert sixth.allowed is False
        assert sixth.remaining == 0
        assert sixth.limit == 5

    @pytest.mark.asyncio
    async def test_retry_after_counts_down_from_first_request(self):
        clock = FakeClock()
        limiter = make_limiter(clock)

        for _ in range(5):
            await limiter.hit("ip")
        clock.advance(600)

        decision = await limiter.hit("ip")
        assert decision.allowed is False
        assert decision.retry_after == 300

    @pytest.mark.asyncio
    async def test_window_resets_after_elapsing(self):
        clock = FakeClock()
        limiter = make_limiter(clock)

        for _ in range(5):
            await limiter.hit("ip")
        clock.advance(899)
        assert (await limiter.hit("ip")).allowed is False

        clock.advance(1)
        decision = await limiter.hit("ip")
        assert decision.allowed is True
        assert decision.remaining == 4

    @pytest.mark.asyncio
    async def test_rejected_hits_do_not_extend_window(self):
        clock = FakeClock()
        limiter = make_limiter(clock)

        for _ in range(5):
            await limiter.hit("ip")
        for _ in range(10):
            clock.advance(60)
            await limiter.hit("ip")

        clock.advance(300)
        assert (await limiter.hit("ip")).allowed is True

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        limiter = make_limiter(FakeClock(), max_requests=1)

        assert (await limiter.hit("a")).allowed is True
        assert (await limiter.hit("a")).allowed is False
        assert (await limiter.hit("b")).allowed is True

    @pytest.mark.asyncio
    async def test_decision_headers(self):
        limiter = make_limiter(FakeClock())

        decision = await limiter.hit("ip")

        assert decision.headers == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset": str(1_700_000_000 + 900),
        }


class TestConcurrency:
    """Tests for lock-protected counting."""

    @pytest.mark.asyncio
    async def test_concurrent_burst_admits_exactly_the_limit(self):
        limiter = make_limiter(FakeClock())

        decisions = await asyncio.gather(*(limiter.hit("burst") for _ in range(20)))

        assert sum(1 for d in decisions if d.allowed) == 5


class TestMaintenance:
    """Tests for sweep and reset."""

    @pytest.mark.asyncio
    async def test_sweep_drops_only_expired_windows(self):
        clock = FakeClock()
        limiter = make_limiter(clock)

        await limiter.hit("old")
        clock.advance(600)
        await limiter.hit("new")
        clock.advance(300)

        removed = await limiter.sweep()

        assert removed == 1
        assert len(limiter) == 1

    @pytest.mark.asyncio
    async def test_reset_single_key_and_all(self):
        limiter = make_limiter(FakeClock(), max_requests=1)
        await limiter.hit("a")
        await limiter.hit("b")

        await limiter.reset("a")
        assert (await limiter.hit("a")).allowed is True
        assert (await limiter.hit("b")).allowed is False

        await limiter.reset()
        assert len(limiter) == 0

    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            SubmissionRateLimiter(max_requests=0)
        with pytest.raises(ValueError):
            SubmissionRateLimiter(window_seconds=0)

"""
Unit tests for the per-operation-class token bucket.

All tests drive the limiter with a FakeClock, so waits are recorded rather
than slept.
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from webquarry.crawler.rate_limiter import TokenBucketRateLimiter
from webquarry.errors import RateLimitedError, RateLimiterConfigError
from webquarry.observability.metrics import METRICS

from tests.helpers import FakeClock, metric_delta


@pytest.mark.unit
class TestConfigure:
    def test_new_bucket_starts_full(self, rate_limiter):
        rate_limiter.configure("fetch", 20, 60_000)

        assert rate_limiter.is_configured("fetch")
        assert rate_limiter.get_remaining_tokens("fetch") == 20

    @pytest.mark.parametrize("max_requests,window_ms", [(0, 1000), (-1, 1000), (5, 0), (5, -10)])
    def test_rejects_non_positive_values(self, rate_limiter, max_requests, window_ms):
        with pytest.raises(RateLimiterConfigError):
            rate_limiter.configure("fetch", max_requests, window_ms)

        assert not rate_limiter.is_configured("fetch")

    def test_unconfigured_class_has_no_tokens(self, rate_limiter):
        assert rate_limiter.get_remaining_tokens("nope") == 0

    @pytest.mark.asyncio
    async def test_acquire_on_unconfigured_class_fails(self, rate_limiter):
        with pytest.raises(RateLimiterConfigError, match="Rate limiter not configured for operation: nope"):
            await rate_limiter.acquire("nope")

    @pytest.mark.asyncio
    async def test_reconfigure_resets_to_full(self, rate_limiter):
        rate_limiter.configure("fetch", 3, 1000)
        for _ in range(3):
            await rate_limiter.acquire("fetch")
        assert rate_limiter.get_remaining_tokens("fetch") == 0

        await rate_limiter.reconfigure("fetch", 5, 1000)

        assert rate_limiter.get_remaining_tokens("fetch") == 5


@pytest.mark.unit
class TestAcquire:
    @pytest.mark.asyncio
    async def test_tokens_available_means_no_wait(self, rate_limiter, clock):
        rate_limiter.configure("fetch", 3, 1000)

        delays = [await rate_limiter.acquire("fetch") for _ in range(3)]

        assert delays == [0.0, 0.0, 0.0]
        assert clock.sleeps == []
        assert rate_limiter.get_remaining_tokens("fetch") == 0

    @pytest.mark.asyncio
    async def test_empty_bucket_waits_for_one_token(self, rate_limiter, clock):
        rate_limiter.configure("fetch", 2, 1000)
        await rate_limiter.acquire("fetch")
        await rate_limiter.acquire("fetch")

        delay = await rate_limiter.acquire("fetch")

        # 2 tokens/s: one token takes 500 ms
        assert delay == 0.5
        assert clock.sleeps == [0.5]
        assert rate_limiter.get_remaining_tokens("fetch") == 0

    @pytest.mark.asyncio
    async def test_wait_is_recorded_in_metrics(self, rate_limiter):
        rate_limiter.configure("fetch", 1, 1000)
        await rate_limiter.acquire("fetch")

        with metric_delta(METRICS["rate_limit_waits_total"].labels(op_class="fetch")):
            await rate_limiter.acquire("fetch")

    @pytest.mark.asyncio
    async def test_refill_is_lazy_and_capped(self, rate_limiter, clock):
        rate_limiter.configure("fetch", 10, 60_000)
        for _ in range(10):
            await rate_limiter.acquire("fetch")

        clock.advance(7)
        assert rate_limiter.get_remaining_tokens("fetch") == 1

        clock.advance(3600)
        assert rate_limiter.get_remaining_tokens("fetch") == 10

    @pytest.mark.asyncio
    async def test_classes_are_independent(self, rate_limiter, clock):
        rate_limiter.configure("fetch", 1, 60_000)
        rate_limiter.configure("search", 1, 60_000)
        await rate_limiter.acquire("fetch")

        assert await rate_limiter.acquire("search") == 0.0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrent_acquires_are_serialized(self, rate_limiter, clock):
        rate_limiter.configure("fetch", 1, 1000)

        delays = await asyncio.gather(*(rate_limiter.acquire("fetch") for _ in range(3)))

        assert sorted(delays) == [0.0, 1.0, 1.0]
        assert sum(clock.sleeps) == 2.0


@pytest.mark.unit
class TestCheckAvailable:
    def test_passes_with_tokens(self, rate_limiter):
        rate_limiter.configure("search", 1, 1000)

        rate_limiter.check_available("search")

        # Checking does not consume
        assert rate_limiter.get_remaining_tokens("search") == 1

    @pytest.mark.asyncio
    async def test_raises_when_empty(self, rate_limiter):
        rate_limiter.configure("search", 1, 60_000)
        await rate_limiter.acquire("search")

        with metric_delta(METRICS["rate_limit_rejections_total"].labels(op_class="search", source="local")):
            with pytest.raises(RateLimitedError, match="try later") as exc_info:
                rate_limiter.check_available("search", "try later")

        assert exc_info.value.code == "RATE_LIMITED"

    def test_unconfigured_class_is_rejected(self, rate_limiter):
        with pytest.raises(RateLimitedError):
            rate_limiter.check_available("nope")


@pytest.mark.unit
class TestUpdateFromHeaders:
    @pytest.mark.asyncio
    async def test_limit_header_reconfigures_per_second(self, rate_limiter):
        rate_limiter.configure("search", 30, 60_000)

        await rate_limiter.update_from_headers("search", {"X-RateLimit-Limit": "1, 15000"})

        assert rate_limiter.get_stats()["search"] == {
            "capacity": 1,
            "window_ms": 1000,
            "refill_rate": 1.0,
            "remaining": 1,
        }

    @pytest.mark.asyncio
    async def test_header_name_is_case_insensitive(self, rate_limiter):
        rate_limiter.configure("search", 30, 60_000)

        await rate_limiter.update_from_headers("search", {"x-ratelimit-limit": "4"})

        assert rate_limiter.get_stats()["search"]["capacity"] == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["abc", "0, 100", "-3", ""])
    async def test_unusable_limit_is_ignored(self, rate_limiter, value):
        rate_limiter.configure("search", 30, 60_000)

        await rate_limiter.update_from_headers("search", {"X-RateLimit-Limit": value})

        assert rate_limiter.get_stats()["search"]["capacity"] == 30

    @pytest.mark.asyncio
    async def test_remaining_and_reset_do_not_reconfigure(self, rate_limiter):
        rate_limiter.configure("search", 30, 60_000)

        await rate_limiter.update_from_headers(
            "search", {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}
        )

        assert rate_limiter.get_stats()["search"]["capacity"] == 30


@pytest.mark.unit
class TestStats:
    @pytest.mark.asyncio
    async def test_stats_per_class(self, rate_limiter):
        rate_limiter.configure("fetch", 20, 60_000)
        rate_limiter.configure("search", 30, 60_000)
        await rate_limiter.acquire("fetch")

        stats = rate_limiter.get_stats()

        assert set(stats) == {"fetch", "search"}
        assert stats["fetch"]["capacity"] == 20
        assert stats["fetch"]["remaining"] == 19
        assert stats["search"]["remaining"] == 30
        assert stats["search"]["refill_rate"] == pytest.approx(0.5)


@pytest.mark.unit
class TestTokenBucketProperties:
    @settings(max_examples=50, deadline=None)
    @given(capacity=st.integers(min_value=1, max_value=20), window_ms=st.integers(min_value=100, max_value=120_000))
    def test_burst_up_to_capacity_then_wait(self, capacity, window_ms):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(clock=clock, sleep=clock.sleep)
        limiter.configure("fetch", capacity, window_ms)

        async def drain():
            return [await limiter.acquire("fetch") for _ in range(capacity + 1)]

        delays = asyncio.run(drain())

        assert delays[:capacity] == [0.0] * capacity
        assert delays[capacity] > 0
        assert delays[capacity] >= window_ms / capacity / 1000 - 1e-9

    @settings(max_examples=50, deadline=None)
    @given(
        capacity=st.integers(min_value=1, max_value=10),
        window_ms=st.integers(min_value=100, max_value=120_000),
        calls=st.integers(min_value=1, max_value=15),
    )
    def test_calls_spaced_by_refill_interval_never_wait(self, capacity, window_ms, calls):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(clock=clock, sleep=clock.sleep)
        limiter.configure("fetch", capacity, window_ms)
        interval = window_ms / capacity / 1000 + 1e-6

        async def run():
            for _ in range(capacity):
                await limiter.acquire("fetch")
            delays = []
            for _ in range(calls):
                clock.advance(interval)
                delays.append(await limiter.acquire("fetch"))
            return delays

        assert asyncio.run(run()) == [0.0] * calls

    @settings(max_examples=50, deadline=None)
    @given(
        capacity=st.integers(min_value=1, max_value=50),
        elapsed=st.floats(min_value=0, max_value=1e6, allow_nan=False, allow_infinity=False),
    )
    def test_remaining_never_exceeds_capacity(self, capacity, elapsed):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(clock=clock, sleep=clock.sleep)
        limiter.configure("fetch", capacity, 1000)

        clock.advance(elapsed)

        assert 0 <= limiter.get_remaining_tokens("fetch") <= capacity

    @settings(max_examples=50, deadline=None)
    @given(
        capacity=st.integers(min_value=1, max_value=10),
        window_ms=st.integers(min_value=100, max_value=60_000),
        calls=st.integers(min_value=1, max_value=30),
    )
    def test_throughput_never_exceeds_capacity_plus_refill(self, capacity, window_ms, calls):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(clock=clock, sleep=clock.sleep)
        limiter.configure("fetch", capacity, window_ms)
        start = clock.now
        rate = capacity / (window_ms / 1000)

        async def run():
            for _ in range(calls):
                await limiter.acquire("fetch")

        asyncio.run(run())

        elapsed = clock.now - start
        assert calls <= capacity + rate * elapsed + 1e-6

    @settings(max_examples=50, deadline=None)
    @given(steps=st.lists(st.floats(min_value=0, max_value=30, allow_nan=False), min_size=1, max_size=20))
    def test_remaining_is_non_decreasing_without_consumption(self, steps):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(clock=clock, sleep=clock.sleep)
        limiter.configure("fetch", 5, 10_000)

        async def drain():
            for _ in range(5):
                await limiter.acquire("fetch")

        asyncio.run(drain())

        previous = limiter.get_remaining_tokens("fetch")
        for step in steps:
            clock.advance(step)
            current = limiter.get_remaining_tokens("fetch")
            assert previous <= current <= 5
            previous = current

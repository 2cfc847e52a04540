"""
Token-Bucket Rate Limiter Keyed by Operation Class

Every outbound call acquires one token from the bucket of its operation class
("fetch", "search", ...). Buckets refill lazily from elapsed time, so there is
no background task. Each class has its own asyncio.Lock: waiting on one class
never blocks another.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import structlog

from webquarry.errors import RateLimitedError, RateLimiterConfigError
from webquarry.observability.metrics import METRICS

logger = structlog.get_logger(__name__)


@dataclass
class BucketState:
    """Token bucket for a single operation class."""

    capacity: float
    tokens: float
    refill_rate: float  # tokens per second
    last_refill: float  # monotonic seconds
    window_ms: int


class TokenBucketRateLimiter:
    """
    Admission control for outbound calls.

    Args:
        clock: Monotonic time source in seconds.
        sleep: Coroutine used to wait for tokens.

    Both are injectable so tests can drive time deterministically.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._buckets: Dict[str, BucketState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, op_class: str) -> asyncio.Lock:
        """Get or create lock for an operation class."""
        if op_class not in self._locks:
            self._locks[op_class] = asyncio.Lock()
        return self._locks[op_class]

    def _require_bucket(self, op_class: str) -> BucketState:
        bucket = self._buckets.get(op_class)
        if bucket is None:
            raise RateLimiterConfigError(f"Rate limiter not configured for operation: {op_class}")
        return bucket

    def _refill(self, bucket: BucketState) -> None:
        now = self._clock()
        elapsed = max(0.0, now - bucket.last_refill)
        bucket.tokens = min(bucket.capacity, bucket.tokens + elapsed * bucket.refill_rate)
        bucket.last_refill = now

    def configure(self, op_class: str, max_requests: int, window_ms: int) -> None:
        """
        Create or replace the bucket for ``op_class``.

        The bucket starts full. Replacing an existing bucket also resets it to
        full capacity.
        """
        if max_requests <= 0 or window_ms <= 0:
            raise RateLimiterConfigError(
                f"Invalid rate limit for {op_class}: max_requests={max_requests}, window_ms={window_ms}"
            )

        refill_rate = max_requests / (window_ms / 1000)
        self._buckets[op_class] = BucketState(
            capacity=float(max_requests),
            tokens=float(max_requests),
            refill_rate=refill_rate,
            last_refill=self._clock(),
            window_ms=window_ms,
        )
        logger.info(
            "Rate limit configured",
            op_class=op_class,
            max_requests=max_requests,
            window_ms=window_ms,
            refill_rate=refill_rate,
        )

    async def reconfigure(self, op_class: str, max_requests: int, window_ms: int) -> None:
        """Replace a bucket while holding its class lock."""
        async with self._get_lock(op_class):
            self.configure(op_class, max_requests, window_ms)

    def is_configured(self, op_class: str) -> bool:
        return op_class in self._buckets

    async def acquire(self, op_class: str) -> float:
        """
        Take one token, waiting for a refill when the bucket is empty.

        Returns:
            Delay applied in seconds (0.0 when a token was available).
        """
        async with self._get_lock(op_class):
            bucket = self._require_bucket(op_class)
            self._refill(bucket)

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return 0.0

            wait_ms = math.ceil((1 - bucket.tokens) / bucket.refill_rate * 1000)
            delay = wait_ms / 1000
            logger.info("Rate limit reached, waiting for token", op_class=op_class, wait_ms=wait_ms)
            METRICS["rate_limit_waits_total"].labels(op_class=op_class).inc()
            METRICS["rate_limit_wait_seconds"].labels(op_class=op_class).observe(delay)

            await self._sleep(delay)

            self._refill(bucket)
            bucket.tokens = max(0.0, bucket.tokens - 1)
            return delay

    def get_remaining_tokens(self, op_class: str) -> int:
        """Whole tokens currently available; 0 for an unconfigured class."""
        bucket = self._buckets.get(op_class)
        if bucket is None:
            return 0
        self._refill(bucket)
        return max(0, math.floor(bucket.tokens))

    def check_available(self, op_class: str, message: Optional[str] = None) -> None:
        """Fail fast with RateLimitedError instead of waiting for a token."""
        if self.get_remaining_tokens(op_class) < 1:
            METRICS["rate_limit_rejections_total"].labels(op_class=op_class, source="local").inc()
            raise RateLimitedError(message or f"Rate limit exceeded for {op_class}. Please wait before trying again.")

    async def update_from_headers(self, op_class: str, headers: Mapping[str, str]) -> None:
        """
        Adopt an upstream per-second limit from ``X-RateLimit-Limit``.

        The header is a comma-separated pair such as ``"1, 15000"``
        (per-second, per-period). A positive per-second value reconfigures the
        class to that many requests per 1000 ms. Remaining/Reset headers are
        only logged.
        """
        lowered = {k.lower(): v for k, v in headers.items()}

        limit_header = lowered.get("x-ratelimit-limit")
        if limit_header:
            parts = [part.strip() for part in limit_header.split(",")]
            try:
                per_second = int(parts[0])
            except ValueError:
                logger.warning("Could not parse rate limit header", op_class=op_class, header=limit_header)
                per_second = 0

            if per_second > 0:
                await self.reconfigure(op_class, per_second, 1000)
                logger.info(
                    "Rate limit updated from upstream headers",
                    op_class=op_class,
                    per_second=per_second,
                    per_period=parts[1] if len(parts) > 1 else None,
                )

        remaining_header = lowered.get("x-ratelimit-remaining")
        if remaining_header:
            logger.debug("Upstream rate limit remaining", op_class=op_class, remaining=remaining_header)

        reset_header = lowered.get("x-ratelimit-reset")
        if reset_header:
            logger.debug("Upstream rate limit reset", op_class=op_class, reset=reset_header)

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """Capacity, window, refill rate and remaining tokens per class."""
        return {
            op_class: {
                "capacity": int(bucket.capacity),
                "window_ms": bucket.window_ms,
                "refill_rate": bucket.refill_rate,
                "remaining": self.get_remaining_tokens(op_class),
            }
            for op_class, bucket in self._buckets.items()
        }

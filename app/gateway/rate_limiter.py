"""Adaptive Rate Limiter — per-provider RPM tracking with sliding window.

Tracks requests-per-minute (RPM) for each provider using a sliding window.
When a limit is hit, returns the wait time until the next available slot.
Providers without a configured limit are never throttled.

Safe under concurrent tasks via asyncio.Lock (one lock per provider).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class _ProviderBucket:
    """Sliding window bucket for a single provider."""

    rpm_limit: int
    entries: deque[float] = field(default_factory=deque)  # time.monotonic() of each request
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def _prune(self, now: float) -> None:
        """Remove entries older than the 1-minute window."""
        cutoff = now - WINDOW_SECONDS
        while self.entries and self.entries[0] <= cutoff:
            self.entries.popleft()

    @property
    def current_rpm(self) -> int:
        return len(self.entries)

    def wait_time(self, now: float) -> float:
        """How long to wait before the next request is allowed. 0 means go."""
        self._prune(now)
        if self.current_rpm >= self.rpm_limit:
            # Wait until the oldest entry expires from the window
            wait = (self.entries[0] + WINDOW_SECONDS) - now
            return max(wait, 0.1)
        return 0.0


class AdaptiveRateLimiter:
    """Per-provider rate limiter with sliding window.

    Usage:
        limiter = AdaptiveRateLimiter({"perplexity": 20})

        # Before sending a request:
        await limiter.acquire_blocking("perplexity")
    """

    def __init__(
        self,
        rpm_limits: dict[str, int] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._buckets: dict[str, _ProviderBucket] = {
            provider_id: _ProviderBucket(rpm_limit=rpm) for provider_id, rpm in (rpm_limits or {}).items() if rpm > 0
        }

    def limits(self, provider_id: str) -> bool:
        return provider_id in self._buckets

    async def acquire(self, provider_id: str) -> float:
        """Try to take a slot for the provider.

        Returns:
            Wait time in seconds. 0 means the request can proceed immediately
            and has been recorded.
        """
        bucket = self._buckets.get(provider_id)
        if bucket is None:
            return 0.0
        async with bucket.lock:
            now = self._clock()
            wait = bucket.wait_time(now)
            if wait <= 0:
                bucket.entries.append(now)
                return 0.0
            return wait

    async def acquire_blocking(self, provider_id: str, timeout: float = 120.0) -> bool:
        """Block until a slot is available.

        Returns True if acquired, False if timeout exceeded.
        """
        deadline = self._clock() + timeout

        while self._clock() < deadline:
            wait = await self.acquire(provider_id)
            if wait <= 0:
                return True
            sleep_time = min(wait, deadline - self._clock())
            if sleep_time <= 0:
                return False
            logger.info("RPM limit reached for %s, waiting %.1fs", provider_id, sleep_time)
            await self._sleep(sleep_time)

        return False

    def get_stats(self, provider_id: str) -> dict:
        bucket = self._buckets.get(provider_id)
        if bucket is None:
            return {"provider": provider_id, "current_rpm": 0, "rpm_limit": None}
        bucket._prune(self._clock())
        return {"provider": provider_id, "current_rpm": bucket.current_rpm, "rpm_limit": bucket.rpm_limit}

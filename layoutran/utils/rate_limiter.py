"""Token-bucket rate limiting for translation provider calls."""

import asyncio
import logging
import threading
import time
from typing import Callable, Dict, Any, Optional

from layoutran.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Token bucket with continuous refill.

    ``capacity`` tokens are available up front and ``refill_per_minute``
    tokens flow back in proportionally to elapsed time. One token pays
    for one provider call. The bucket may be shared by concurrent
    translations; state is guarded by a lock.
    """

    def __init__(
        self,
        capacity: int = 100,
        refill_per_minute: float = 100.0,
        clock: Optional[Callable[[], float]] = None
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_per_minute <= 0:
            raise ValueError("refill_per_minute must be positive")
        self.capacity = capacity
        self.refill_rate = refill_per_minute / 60.0  # tokens per second
        self._clock = clock or time.monotonic
        self._tokens = float(capacity)
        self._last_refill = self._clock()
        self._lock = threading.Lock()
        self.rejected = 0

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    @property
    def tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def retry_after(self, tokens: float = 1.0) -> float:
        """Seconds until ``tokens`` are available."""
        with self._lock:
            self._refill()
            return self._wait_time(tokens)

    def _wait_time(self, tokens: float) -> float:
        deficit = tokens - self._tokens
        return 0.0 if deficit <= 0 else deficit / self.refill_rate

    def try_acquire(self, tokens: float = 1.0) -> bool:
        """Take tokens if available; never blocks."""
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            self.rejected += 1
            return False

    def consume(self, tokens: float = 1.0, provider: Optional[str] = None) -> None:
        """
        Take tokens or fail immediately.

        Raises:
            RateLimitExceeded: the bucket is empty; ``retry_after`` says
                when enough tokens will have refilled
        """
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return
            self.rejected += 1
            wait = self._wait_time(tokens)
        raise RateLimitExceeded("Rate limit exceeded", retry_after=wait, provider=provider)

    async def acquire(self, tokens: float = 1.0, timeout: Optional[float] = None,
                      provider: Optional[str] = None) -> None:
        """Reserve tokens and sleep until they have refilled.

        Reservations queue up: the balance may go negative, and each caller
        waits for its own share of the deficit, so concurrent callers are
        spread out at the refill rate instead of polling.

        Raises:
            RateLimitExceeded: the wait would exceed ``timeout``; nothing is reserved
        """
        with self._lock:
            self._refill()
            wait = self._wait_time(tokens)
            if timeout is not None and wait > timeout:
                self.rejected += 1
                raise RateLimitExceeded("Rate limit wait exceeds timeout", retry_after=wait,
                                        provider=provider)
            self._tokens -= tokens
        if wait > 0:
            await asyncio.sleep(wait)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "capacity": self.capacity,
            "tokens": round(self.tokens, 3),
            "refill_per_minute": self.refill_rate * 60.0,
            "rejected": self.rejected,
        }


class CallSpacer:
    """Enforce a minimum interval between consecutive provider calls."""

    def __init__(self, min_interval: float = 0.0):
        self.min_interval = min_interval
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        if self.min_interval <= 0:
            return
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            delay = self._next_slot - now
            if delay > 0:
                await asyncio.sleep(delay)
                now = loop.time()
            self._next_slot = now + self.min_interval

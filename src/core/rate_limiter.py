"""
Fixed-interval rate limiting for calls to the bookmarking service.

One limiter is shared per source host so that concurrent account imports
hitting the same host are throttled together rather than independently.
"""
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class IntervalRateLimiter:
    """
    Enforce a minimum interval between consecutive calls.

    `wait()` returns immediately the first time and afterwards suspends the
    caller until at least `interval` seconds have elapsed since the previous
    `wait()` returned. Callers invoke it right before each request, so no
    delay is ever spent after the final request of a traversal.
    """

    def __init__(self, interval: float) -> None:
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self._lock = asyncio.Lock()
        self._last_release: float | None = None

    async def wait(self) -> None:
        """Suspend until the next call is allowed."""
        async with self._lock:
            if self._last_release is not None and self.interval > 0:
                elapsed = time.monotonic() - self._last_release
                remaining = self.interval - elapsed
                if remaining > 0:
                    logger.debug("Rate limiter sleeping %.3fs", remaining)
                    await asyncio.sleep(remaining)
            self._last_release = time.monotonic()


_host_limiters: dict[str, IntervalRateLimiter] = {}


def get_host_rate_limiter(host: str, interval: float) -> IntervalRateLimiter:
    """
    Get or create the process-wide limiter for a source host.

    The interval of an existing limiter is updated to the latest configured value.
    """
    key = host.lower()
    limiter = _host_limiters.get(key)
    if limiter is None:
        limiter = IntervalRateLimiter(interval)
        _host_limiters[key] = limiter
    else:
        limiter.interval = interval
    return limiter


def reset_host_rate_limiters() -> None:
    """Forget all per-host limiters (used by tests)."""
    _host_limiters.clear()

"""
In-memory rate limiter.

Fixed window counters keyed by "endpoint:identifier". A window opens on
the first request after the previous one expired and closes exactly
window_seconds later, regardless of traffic in between.

Counters live in this process only. Deployments with several API
instances need a shared counter (e.g. Redis) instead; swap the
RateLimiter instance held on app.state to do that.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    window_seconds: float
    max_requests: int


# Default limits for different endpoints
RATE_LIMITS: Dict[str, RateLimitConfig] = {
    # Strict limit for uploads
    'upload': RateLimitConfig(window_seconds=60, max_requests=10),
    'process': RateLimitConfig(window_seconds=60, max_requests=20),
    'read': RateLimitConfig(window_seconds=60, max_requests=100),
    'auth': RateLimitConfig(window_seconds=300, max_requests=10),
    'default': RateLimitConfig(window_seconds=60, max_requests=60),
}


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    reset_time: float  # Unix timestamp (seconds) when the window closes
    retry_after: Optional[int] = None  # seconds to wait if blocked


@dataclass
class _WindowEntry:
    count: int
    reset_time: float


class RateLimiter:
    """
    Process-local fixed window rate limiter with a background sweep.

    Lifecycle:
        limiter = RateLimiter()
        limiter.start()      # on app startup, inside the event loop
        ...
        await limiter.stop() # on shutdown
    """

    def __init__(
        self,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.time
    ):
        self._entries: Dict[str, _WindowEntry] = {}
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._sweep_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def check(
        self,
        identifier: str,
        config: RateLimitConfig = RATE_LIMITS['default']
    ) -> RateLimitResult:
        """
        Count one request for identifier and report whether it is allowed.

        Args:
            identifier: Rate limit key (e.g., "upload:user_123")
            config: Window size and request budget

        Returns:
            RateLimitResult with allow/deny and metadata
        """
        now = self._clock()
        entry = self._entries.get(identifier)

        # Create new entry or reset if window expired
        if entry is None or entry.reset_time <= now:
            entry = _WindowEntry(count=0, reset_time=now + config.window_seconds)
            self._entries[identifier] = entry

        entry.count += 1

        allowed = entry.count <= config.max_requests
        remaining = max(0, config.max_requests - entry.count)

        return RateLimitResult(
            allowed=allowed,
            remaining=remaining,
            reset_time=entry.reset_time,
            retry_after=None if allowed else max(1, math.ceil(entry.reset_time - now)),
        )

    def sweep(self) -> int:
        """Evict expired windows. Returns the number of entries removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.reset_time <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Rate limiter evicted {len(expired)} expired windows")
        return len(expired)

    def reset(self) -> None:
        self._entries.clear()

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Rate limiter sweep failed: {e}")

    def start(self) -> None:
        """Start the periodic sweep. Must be called from a running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
            logger.info(f"Rate limiter sweep started (every {self._sweep_interval}s)")

    async def stop(self) -> None:
        """Cancel the sweep task and drop all counters."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        self.reset()
        logger.info("Rate limiter stopped")


def get_rate_limit_key(
    user_id: Optional[str],
    ip: Optional[str],
    endpoint: str
) -> str:
    """Build a rate limit key, preferring the user id over the client address."""
    identifier = user_id or ip or 'anonymous'
    return f"{endpoint}:{identifier}"


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """Standard rate limit headers for a response."""
    headers = {
        'X-RateLimit-Remaining': str(result.remaining),
        'X-RateLimit-Reset': str(int(result.reset_time)),
    }
    if result.retry_after:
        headers['Retry-After'] = str(result.retry_after)
    return headers

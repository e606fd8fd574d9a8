"""
Shared fixed-window rate limiter backed by the Django cache (Redis).

Counters live in the cache rather than in process memory, so every web
worker and every Celery worker polling the same external API draws from
one budget.

Usage:
    from core.rate_limit import SharedRateLimiter

    limiter = SharedRateLimiter("carrier:ups", limit=60, window_seconds=60)

    if not limiter.try_acquire():
        raise RateLimitError("UPS quota exhausted")

    # Or block (up to max_wait seconds) until a slot frees up
    limiter.acquire(max_wait=5)

Design Notes:
    - Window keys are ``ratelimit:<name>:<window index>`` and expire with
      the window, so no cleanup job is needed.
    - ``cache.add`` creates the counter atomically; ``cache.incr`` is atomic
      on Redis.
    - If the cache is unreachable the limiter allows the call (fail-open);
      the external API's own limits still apply.
"""

from __future__ import annotations

import logging
import time

from django.core.cache import cache

from core.exceptions import RateLimitError

logger = logging.getLogger(__name__)


class SharedRateLimiter:
    """
    Fixed-window counter shared across processes through the cache.

    Attributes:
        name: Identifier of the protected resource (e.g. "carrier:fedex")
        limit: Maximum calls allowed per window
        window_seconds: Window length in seconds
    """

    def __init__(self, name: str, limit: int, window_seconds: int = 60):
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds

    def try_acquire(self) -> bool:
        """
        Consume one slot in the current window.

        Returns:
            True if the call may proceed, False if the window is exhausted
        """
        key = self._window_key()
        try:
            if cache.add(key, 1, timeout=self.window_seconds + 1):
                return True
            count = cache.incr(key)
        except ValueError:
            # Key expired between add and incr
            cache.set(key, 1, timeout=self.window_seconds + 1)
            return True
        except Exception as e:
            logger.warning(
                f"Rate limiter cache error, failing open: {e}",
                extra={"limiter": self.name},
            )
            return True

        if count is None:
            # django-redis with IGNORE_EXCEPTIONS returns None when Redis is down
            logger.warning(
                "Rate limiter cache unavailable, failing open",
                extra={"limiter": self.name},
            )
            return True

        if count > self.limit:
            logger.info(
                "Rate limit reached",
                extra={"limiter": self.name, "count": count, "limit": self.limit},
            )
            return False
        return True

    def acquire(self, max_wait: float = 0) -> None:
        """
        Consume one slot, sleeping until the next window if allowed.

        Args:
            max_wait: Longest total time in seconds to wait for a slot

        Raises:
            RateLimitError: If no slot becomes available within max_wait
        """
        deadline = time.monotonic() + max_wait
        while True:
            if self.try_acquire():
                return
            wait = self.seconds_until_reset()
            if time.monotonic() + wait > deadline:
                raise RateLimitError(
                    f"Rate limit exceeded for {self.name}",
                    details={"retry_after": wait, "limit": self.limit},
                )
            time.sleep(wait)

    def seconds_until_reset(self) -> float:
        now = time.time()
        return self.window_seconds - (now % self.window_seconds)

    def _window_key(self) -> str:
        window = int(time.time() // self.window_seconds)
        return f"ratelimit:{self.name}:{window}"

    def __repr__(self) -> str:
        return (
            f"SharedRateLimiter(name={self.name!r}, limit={self.limit}, "
            f"window_seconds={self.window_seconds})"
        )

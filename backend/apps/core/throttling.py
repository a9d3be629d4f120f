"""
Per-key fixed-window rate limiting on Django's cache framework.

Usage::

    from apps.core.throttling import RateLimiter

    limiter = RateLimiter("otp_send", max_requests=5, window_seconds=3600)
    if not limiter.check_and_record(recipient):
        raise OTPRateLimitError(retry_after=limiter.retry_after(recipient))

Window semantics:
    - The first request for a key opens a window with count=1.
    - A window whose first attempt is older than ``window_seconds`` is
      discarded and the request opens a new one.
    - Otherwise the count is incremented; a count above ``max_requests`` is
      rejected. Rejected requests are still recorded, so hammering stays
      visible and the window only resets once it has fully elapsed.

Windows are stored under ``rate_limit:<scope>:<key>`` with the cache timeout
set to what is left of the window, so the backend evicts them on its own.
Resets are still decided against the injected clock.
"""

import math
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from django.core.cache import cache
from django.utils import timezone

from apps.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitWindow:
    """Attempt counter for one key."""

    count: int
    first_attempt_at: datetime
    last_attempt_at: datetime


class RateLimiter:
    """Fixed-window counter keyed by an arbitrary string (recipient, IP, ...)."""

    def __init__(
        self,
        scope: str,
        *,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.scope = scope
        self.max_requests = max_requests
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock
        # get/set on the cache is not atomic; serialise read-modify-write
        self._lock = threading.Lock()
        self._keys: set[str] = set()

    def _cache_key(self, key: str) -> str:
        return f"rate_limit:{self.scope}:{key}"

    def _load(self, key: str) -> RateLimitWindow | None:
        data = cache.get(self._cache_key(key))
        return RateLimitWindow(**data) if data else None

    def _store(self, key: str, window: RateLimitWindow, now: datetime) -> None:
        remaining = (window.first_attempt_at + self.window - now).total_seconds()
        cache.set(self._cache_key(key), asdict(window), timeout=max(1, math.ceil(remaining)))
        self._keys.add(key)

    def check_and_record(self, key: str) -> bool:
        """
        Record an attempt for ``key`` and report whether it is allowed.

        Returns:
            True if the request is within the limit, False if throttled.
        """
        now = self._clock()
        with self._lock:
            window = self._load(key)

            if window is None or now - window.first_attempt_at > self.window:
                fresh = RateLimitWindow(count=1, first_attempt_at=now, last_attempt_at=now)
                self._store(key, fresh, now)
                return True

            window.count += 1
            window.last_attempt_at = now
            self._store(key, window, now)
            count = window.count
            allowed = count <= self.max_requests

        if not allowed:
            logger.warning(
                "rate_limit_exceeded",
                rate_limit_key=key,
                scope=self.scope,
                count=count,
                limit=self.max_requests,
                window=int(self.window.total_seconds()),
            )
        return allowed

    def retry_after(self, key: str) -> int:
        """Seconds until the window for ``key`` resets (0 if none is open)."""
        now = self._clock()
        window = self._load(key)
        if window is None:
            return 0
        remaining = window.first_attempt_at + self.window - now
        return max(0, int(remaining.total_seconds()))

    def get_window(self, key: str) -> RateLimitWindow | None:
        """Return a snapshot of the current window for ``key``."""
        return self._load(key)

    def purge_expired(self) -> int:
        """Delete windows that have fully elapsed. Returns the number removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for key in list(self._keys):
                window = self._load(key)
                if window is None:
                    self._keys.discard(key)
                elif now - window.first_attempt_at > self.window:
                    cache.delete(self._cache_key(key))
                    self._keys.discard(key)
                    removed += 1
        return removed

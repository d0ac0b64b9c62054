"""Sliding window rate limiting."""

import threading
import time


class RateLimiter:
    """Simple sliding window rate limiter."""

    def __init__(self, max_requests: int, window_seconds: int):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum requests allowed in window.
            window_seconds: Window size in seconds.
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = time.time()

    def _sweep(self, now: float, cutoff: float) -> None:
        """Forget keys with no request inside the window. Caller holds the lock."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        stale = [key for key, times in self.requests.items() if not times or times[-1] <= cutoff]
        for key in stale:
            del self.requests[key]

    def is_allowed(self, key: str) -> bool:
        """
        Record a request for ``key`` and report whether it is allowed.

        Rejected requests are not counted against the window.
        """
        now = time.time()
        cutoff = now - self.window_seconds

        with self._lock:
            self._sweep(now, cutoff)
            recent = [t for t in self.requests.get(key, []) if t > cutoff]
            if len(recent) >= self.max_requests:
                self.requests[key] = recent
                return False
            recent.append(now)
            self.requests[key] = recent
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest request for ``key`` leaves the window."""
        with self._lock:
            recent = self.requests.get(key)
            if not recent:
                return 0
            return max(0, int(recent[0] + self.window_seconds - time.time()) + 1)

"""Sliding-window rate limiting for expensive endpoints."""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple


@dataclass
class RateLimitConfig:
    """Rate limit configuration."""
    requests_per_window: int = 2
    window_size: float = 60.0  # seconds
    cleanup_interval: float = 60.0  # seconds between sweeps of idle keys


class InMemoryRateLimiter:
    """Per-key sliding window limiter, local to one process."""

    def __init__(self, config: RateLimitConfig, clock: Optional[Callable[[], float]] = None):
        self.config = config
        self._clock = clock or time.time
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()
        self._last_cleanup = self._clock()

    def is_allowed(self, key: str) -> Tuple[bool, dict]:
        """Record a request for ``key`` if it fits in the window.

        Returns (allowed, info) where info carries limit, remaining and, when
        refused, retry_after in whole seconds.
        """
        now = self._clock()
        window_start = now - self.config.window_size
        limit = self.config.requests_per_window

        with self._lock:
            if now - self._last_cleanup > self.config.cleanup_interval:
                self._cleanup(window_start)
                self._last_cleanup = now

            timestamps = [t for t in self._requests[key] if t > window_start]

            if len(timestamps) >= limit:
                self._requests[key] = timestamps
                retry_after = int(timestamps[0] + self.config.window_size - now) + 1
                return False, {'limit': limit, 'remaining': 0, 'retry_after': retry_after}

            timestamps.append(now)
            self._requests[key] = timestamps
            return True, {'limit': limit, 'remaining': limit - len(timestamps)}

    def _cleanup(self, window_start: float):
        """Drop keys with no request inside the current window."""
        for key in list(self._requests):
            timestamps = [t for t in self._requests[key] if t > window_start]
            if timestamps:
                self._requests[key] = timestamps
            else:
                del self._requests[key]

    def reset(self, key: Optional[str] = None):
        with self._lock:
            if key is None:
                self._requests.clear()
            else:
                self._requests.pop(key, None)

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        with self._lock:
            return len(self._requests)

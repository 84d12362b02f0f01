"""
Sliding Window Log Rate Limiter

Keeps the timestamp of every accepted request per client. On each hit:
    1. Drop timestamps older than (now - window)
    2. If the remaining count has reached the limit, reject with the time
       until the oldest timestamp leaves the window
    3. Otherwise record the request and allow it

Expired clients are swept out of the table on a random subset of requests
so the table does not grow with every client ever seen. State lives in
process memory only and is lost on restart.
"""

import random
import threading
from collections import deque
from typing import Callable, Deque, Dict, Optional

from mpesa_gateway.errors import RateLimitExceeded
from mpesa_gateway.utils.clock import system_clock
from mpesa_gateway.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 15 * 60
DEFAULT_SWEEP_PROBABILITY = 0.1


class SlidingWindowRateLimiter:
    """Per-client sliding window request counter"""

    def __init__(
            self,
            max_requests: int = DEFAULT_MAX_REQUESTS,
            window_seconds: float = DEFAULT_WINDOW_SECONDS,
            sweep_probability: float = DEFAULT_SWEEP_PROBABILITY,
            clock=None,
            rng: Optional[Callable[[], float]] = None,
    ):
        if max_requests < 1:
            raise ValueError('max_requests must be at least 1')
        if window_seconds <= 0:
            raise ValueError('window_seconds must be positive')

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_probability = sweep_probability

        self._clock = clock or system_clock
        self._rng = rng or random.random
        self._lock = threading.Lock()
        self._windows: Dict[str, Deque[float]] = {}

    def hit(self, client_id: str) -> int:
        """
        Record a request from client_id.

        Returns:
            Requests remaining in the current window

        Raises:
            RateLimitExceeded: with retry_after in seconds when the window is full
        """
        with self._lock:
            now = self._clock.time()
            window_start = now - self.window_seconds

            timestamps = self._windows.get(client_id)
            if timestamps is None:
                timestamps = deque()
                self._windows[client_id] = timestamps

            self._evict(timestamps, window_start)

            if len(timestamps) >= self.max_requests:
                retry_after = timestamps[0] + self.window_seconds - now
                logger.warning(f'Rate limit exceeded for {client_id}, retry in {retry_after:.1f}s')
                raise RateLimitExceeded(
                    retry_after=retry_after,
                    limit=self.max_requests,
                    window_seconds=self.window_seconds,
                )

            timestamps.append(now)
            remaining = self.max_requests - len(timestamps)

            if self._rng() < self.sweep_probability:
                self._sweep(window_start)

            return remaining

    def remaining(self, client_id: str) -> int:
        """Requests client_id can still make in the current window"""
        with self._lock:
            timestamps = self._windows.get(client_id)
            if not timestamps:
                return self.max_requests
            self._evict(timestamps, self._clock.time() - self.window_seconds)
            return max(self.max_requests - len(timestamps), 0)

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    @staticmethod
    def _evict(timestamps: Deque[float], window_start: float) -> None:
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

    def _sweep(self, window_start: float) -> None:
        """Remove clients with no requests left in the window. Caller holds the lock."""
        expired = []
        for client_id, timestamps in self._windows.items():
            self._evict(timestamps, window_start)
            if not timestamps:
                expired.append(client_id)

        for client_id in expired:
            del self._windows[client_id]

        if expired:
            logger.debug(f'Swept {len(expired)} expired rate limit entries')

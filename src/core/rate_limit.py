"""Fixed-window admission control for outbound posts."""

from __future__ import annotations

import threading
import time
from typing import Callable


class PostRateLimiter:
    """Admit at most ``max_posts`` posts per ``window_seconds``.

    Excess posts are rejected, never queued; callers drop them.
    """

    def __init__(
        self,
        max_posts: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_posts = max_posts
        self._window = window_seconds
        self._clock = clock
        self._window_start = clock()
        self._admitted = 0
        self._lock = threading.Lock()

    def allow(self) -> bool:
        with self._lock:
            now = self._clock()
            if now - self._window_start >= self._window:
                self._window_start = now
                self._admitted = 0
            if self._admitted >= self._max_posts:
                return False
            self._admitted += 1
            return True

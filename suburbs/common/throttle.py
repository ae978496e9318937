"""Endpoint rotation and process-wide request throttling."""

from __future__ import annotations

import threading
import time
from typing import Callable, Sequence


class EndpointRotator:
    """Cursor into a fixed list of interchangeable endpoints."""

    def __init__(self, endpoints: Sequence[str], start_index: int = 0) -> None:
        if not endpoints:
            raise ValueError("EndpointRotator requires at least one endpoint")
        self.endpoints = tuple(endpoints)
        self.index = start_index % len(self.endpoints)
        self.lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.endpoints)

    def attempt_order(self) -> list[str]:
        """Endpoints in the order one call should try them, starting at the cursor."""
        with self.lock:
            start = self.index
        count = len(self.endpoints)
        return [self.endpoints[(start + attempt) % count] for attempt in range(count)]

    def advance(self) -> int:
        with self.lock:
            self.index = (self.index + 1) % len(self.endpoints)
            return self.index


class MinIntervalRateLimiter:
    """Non-blocking gate enforcing a minimum interval between outbound requests."""

    def __init__(
        self,
        min_interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval_seconds = min_interval_seconds
        self.clock = clock
        self.last_request_at: float | None = None
        self.lock = threading.Lock()

    def try_acquire(self) -> bool:
        with self.lock:
            now = self.clock()
            if self.last_request_at is not None and now - self.last_request_at < self.min_interval_seconds:
                return False
            self.last_request_at = now
            return True

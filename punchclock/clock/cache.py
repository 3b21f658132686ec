"""
Freshness-bounded cache holding the latest reference reading
"""

import threading
from typing import Optional

import structlog

from .models import TimeReading

log = structlog.get_logger()


class ClockCache:
    """
    Thread-safe holder of at most one TimeReading

    A reading is fresh while its age is strictly below the freshness window.
    Readings are immutable and swapped as a whole, so a reader never sees
    fields from two different queries.
    """

    def __init__(self, freshness_ms: int = 30_000):
        """
        Initialize an empty cache

        Args:
            freshness_ms: Maximum age of a reading before it must be refreshed
        """
        if freshness_ms <= 0:
            raise ValueError("freshness window must be positive")
        self.freshness_ms = freshness_ms
        self._reading: Optional[TimeReading] = None
        self._lock = threading.Lock()

    def lookup(self, monotonic_now: int) -> Optional[TimeReading]:
        """
        Return the cached reading if it is still fresh

        Args:
            monotonic_now: Current local monotonic time in ms

        Returns:
            The reading, or None when empty or stale
        """
        with self._lock:
            reading = self._reading
        if reading is None:
            return None
        if reading.age(monotonic_now) >= self.freshness_ms:
            return None
        return reading

    def store(self, reading: TimeReading) -> None:
        """Replace whatever is cached with a new reading"""
        with self._lock:
            self._reading = reading
        log.debug("clock.cache_stored", reference=reading.reference, epoch_ms=reading.epoch_ms)

    def peek(self) -> Optional[TimeReading]:
        """Return the cached reading regardless of its age"""
        with self._lock:
            return self._reading

    def clear(self) -> None:
        with self._lock:
            self._reading = None

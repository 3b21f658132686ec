"""Authoritative clock: cached external references with host-clock fallback."""
import threading
import time
from typing import Callable, Sequence

import structlog

from .cache import ClockCache
from .models import ClockSample, FromHostFallback, FromReference, TimeReading
from .references import ReferenceUnavailable, TimeReference

log = structlog.get_logger()


def host_wall_ms() -> int:
    """Host wall clock in ms since the Unix epoch."""
    return time.time_ns() // 1_000_000


def host_monotonic_ms() -> int:
    """Host monotonic clock in ms, only meaningful as a difference."""
    return time.monotonic_ns() // 1_000_000


class AuthoritativeClock:
    """
    Best available approximation of true UTC time.

    References are tried in priority order, each bounded by the same timeout.
    A successful answer is cached and extrapolated with the local monotonic
    clock until the freshness window expires. When every reference fails the
    host clock is returned and nothing is cached, so the next call retries.
    """

    def __init__(
        self,
        references: Sequence[TimeReference],
        cache: ClockCache | None = None,
        timeout: float = 2.0,
        wall_ms: Callable[[], int] = host_wall_ms,
        monotonic_ms: Callable[[], int] = host_monotonic_ms,
        metrics=None,
    ):
        """
        Initialize the clock.

        Args:
            references: Time references, highest priority first
            cache: Cache to use (a 30 s cache is created if not provided)
            timeout: Per-attempt timeout in seconds
            wall_ms: Host wall clock, used only for the fallback
            monotonic_ms: Host monotonic clock, used for cache ageing and extrapolation
            metrics: Optional Metrics instance for reference/fallback counters
        """
        self._references = list(references)
        self._cache = cache or ClockCache()
        self._timeout = timeout
        self._wall_ms = wall_ms
        self._monotonic_ms = monotonic_ms
        self._metrics = metrics
        self._refresh_lock = threading.Lock()
        # Bumped under _refresh_lock each time a refresh ends on the host clock
        self._failed_refreshes = 0
        self._last_sample: ClockSample | None = None

    @property
    def cache(self) -> ClockCache:
        return self._cache

    @property
    def references(self) -> list[TimeReference]:
        return list(self._references)

    @property
    def last_sample(self) -> ClockSample | None:
        return self._last_sample

    @property
    def degraded(self) -> bool:
        """True when the latest sample came from the host clock."""
        return self._last_sample is not None and self._last_sample.degraded

    def set_metrics(self, metrics) -> None:
        self._metrics = metrics

    def now(self) -> int:
        """Current authoritative time in epoch ms. Never raises."""
        return self.sample().epoch_ms

    def sample(self) -> ClockSample:
        """Current authoritative time, tagged with where it came from."""
        sample = self._from_cache()
        if sample is None:
            seen_failures = self._failed_refreshes
            with self._refresh_lock:
                # Double-checked: whoever held the lock before us may have refreshed
                sample = self._from_cache()
                if sample is None and self._failed_refreshes != seen_failures:
                    # A refresh we queued behind just failed; running the chain
                    # again would stack another full round of timeouts
                    sample = self._host_fallback(queued=True)
                elif sample is None:
                    sample = self._refresh()
        self._last_sample = sample
        return sample

    def _from_cache(self) -> FromReference | None:
        monotonic_now = self._monotonic_ms()
        reading = self._cache.lookup(monotonic_now)
        if reading is None:
            return None
        return FromReference(
            epoch_ms=reading.extrapolate(monotonic_now),
            reference=reading.reference,
            cached=True,
        )

    def _refresh(self) -> ClockSample:
        for reference in self._references:
            try:
                reading = TimeReading(
                    epoch_ms=reference.query(self._timeout),
                    obtained_at=self._monotonic_ms(),
                    reference=reference.name,
                )
            except ReferenceUnavailable as e:
                log.warning("clock.reference_failed", reference=reference.name, reason=e.reason)
                self._record_query(reference.name, "error")
                continue
            except Exception as e:
                log.warning(
                    "clock.reference_failed",
                    reference=reference.name,
                    reason=f"{type(e).__name__}: {e}",
                    exc_info=True,
                )
                self._record_query(reference.name, "error")
                continue

            self._cache.store(reading)
            self._record_query(reference.name, "ok")

            if self.degraded:
                log.info("clock.recovered", reference=reference.name)
            return FromReference(epoch_ms=reading.epoch_ms, reference=reference.name)

        self._failed_refreshes += 1
        return self._host_fallback(queued=False)

    def _host_fallback(self, queued: bool) -> FromHostFallback:
        fallback = FromHostFallback(epoch_ms=self._wall_ms())
        log.warning(
            "clock.host_fallback",
            references=[r.name for r in self._references],
            epoch_ms=fallback.epoch_ms,
            queued=queued,
        )
        if self._metrics is not None:
            self._metrics.record_host_fallback()
        return fallback

    def _record_query(self, reference: str, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_reference_query(reference, outcome)

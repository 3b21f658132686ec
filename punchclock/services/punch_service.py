"""Punch service: authoritative time, skew policy, recorder and store wired together."""
from functools import lru_cache
from typing import Sequence
import structlog
from starlette.concurrency import run_in_threadpool
from ..adapters.base import PunchStore
from ..adapters.json_file import JsonFilePunchStore
from ..adapters.memory import InMemoryPunchStore
from ..adapters.redis_stream import RedisPunchStore
from ..clock import AuthoritativeClock, ClockCache, ClockSample, FromReference, build_references, iso_utc
from ..config import Settings, get_settings
from ..punch_models import PunchInput, PunchRecord
from .recorder import EventRecorder
from .skew_policy import SkewPolicy

log = structlog.get_logger()


class PunchService:
    """
    Entry points used by the HTTP layer.

    Stateless across calls apart from the clock cache owned by the clock.
    """

    def __init__(
        self,
        clock: AuthoritativeClock,
        policy: SkewPolicy,
        recorder: EventRecorder,
        store: PunchStore,
        metrics=None,
    ):
        self.clock = clock
        self.policy = policy
        self.recorder = recorder
        self.store = store
        self._metrics = metrics

    def set_metrics(self, metrics) -> None:
        self._metrics = metrics
        self.clock.set_metrics(metrics)

    async def sample_clock(self) -> ClockSample:
        """Sample the clock off the event loop; reference queries block on the network."""
        return await run_in_threadpool(self.clock.sample)

    async def get_authoritative_time(self) -> dict:
        """Current authoritative time as {iso, epochMillis, source}."""
        sample = await self.sample_clock()
        return time_payload(sample)

    async def submit_event(self, data: PunchInput) -> PunchRecord:
        """
        Timestamp and persist one punch.

        Raises:
            StoreError: If the store could not append the record
        """
        sample = await self.sample_clock()
        decision = self.policy.evaluate(data.approx_server_millis, sample.epoch_ms)
        if decision.accepted:
            time_source = "client"
        elif isinstance(sample, FromReference):
            time_source = "reference"
        else:
            time_source = "host"

        record = self.recorder.record(data, decision, time_source)
        await self.store.append(record)

        if self._metrics is not None:
            self._metrics.record_skew_decision(decision.accepted, decision.skew_ms)
            self._metrics.record_punch(record.kind, time_source)
        log.info(
            "punch.recorded",
            id=record.id,
            kind=record.kind,
            official_timestamp=record.official_timestamp,
            time_source=time_source,
            client_id=record.client_id,
        )
        return record

    async def list_events(self) -> Sequence[PunchRecord]:
        return await self.store.list_all()


def time_payload(sample: ClockSample) -> dict:
    return {
        "iso": iso_utc(sample.epoch_ms),
        "epochMillis": sample.epoch_ms,
        "source": sample.kind,
    }


def create_store(settings: Settings) -> PunchStore:
    """
    Create the record store selected by STORE_BACKEND.

    Returns:
        PunchStore instance based on settings
    """
    if settings.STORE_BACKEND == "redis":
        if not settings.REDIS_URL:
            log.warning(
                "store.fallback",
                requested="redis",
                actual="memory",
                reason="REDIS_URL not configured"
            )
            return InMemoryPunchStore()
        log.info("store.selected", type="redis", url=str(settings.REDIS_URL))
        return RedisPunchStore(str(settings.REDIS_URL))
    if settings.STORE_BACKEND == "file":
        log.info("store.selected", type="file", path=settings.STORE_PATH)
        return JsonFilePunchStore(settings.STORE_PATH)
    log.info("store.selected", type="memory")
    return InMemoryPunchStore()


def create_punch_service(settings: Settings) -> PunchService:
    clock = AuthoritativeClock(
        build_references(settings.time_reference_urls),
        cache=ClockCache(freshness_ms=int(settings.CLOCK_FRESHNESS_SECONDS * 1000)),
        timeout=settings.TIME_REFERENCE_TIMEOUT_SECONDS,
    )
    recorder = EventRecorder(
        audit_fields=settings.audit_fields,
        unknown_user=settings.UNKNOWN_USER,
        default_kind=settings.DEFAULT_KIND,
    )
    return PunchService(clock, SkewPolicy(settings.SKEW_TOLERANCE_MS), recorder, create_store(settings))


@lru_cache(maxsize=1)
def get_punch_service() -> PunchService:
    """Process-wide service instance (override this dependency in tests)."""
    return create_punch_service(get_settings())

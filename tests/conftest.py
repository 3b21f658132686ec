"""Shared fixtures: deterministic clocks and references, no network."""
import pytest
from fastapi.testclient import TestClient

from punchclock.adapters.memory import InMemoryPunchStore
from punchclock.clock import AuthoritativeClock, ClockCache, ReferenceUnavailable, TimeReference
from punchclock.services.punch_service import PunchService, get_punch_service
from punchclock.services.recorder import EventRecorder
from punchclock.services.skew_policy import SkewPolicy

# 2023-11-14T22:13:20Z
TRUE_NOW = 1_700_000_000_000
# Host clock running 3 minutes fast
HOST_DRIFT = 180_000


class ManualTime:
    """Hand-driven wall and monotonic clocks."""

    def __init__(self, wall: int = TRUE_NOW + HOST_DRIFT, monotonic: int = 50_000):
        self.wall = wall
        self.monotonic = monotonic

    def wall_ms(self) -> int:
        return self.wall

    def monotonic_ms(self) -> int:
        return self.monotonic

    def advance(self, ms: int) -> None:
        self.wall += ms
        self.monotonic += ms


class FakeReference(TimeReference):
    """Reference answering with a fixed value, a callable's value, or failing."""

    def __init__(self, name: str, value=TRUE_NOW, fail: bool = False):
        self._name = name
        self.value = value
        self.fail = fail
        self.calls = 0
        self.timeouts: list[float] = []

    @property
    def name(self) -> str:
        return self._name

    def query(self, timeout: float) -> int:
        self.calls += 1
        self.timeouts.append(timeout)
        if self.fail:
            raise ReferenceUnavailable(self._name, "timed out")
        return self.value() if callable(self.value) else self.value


@pytest.fixture
def manual_time():
    return ManualTime()


@pytest.fixture
def reference():
    return FakeReference("ref-a")


@pytest.fixture
def clock(reference, manual_time):
    return AuthoritativeClock(
        [reference],
        cache=ClockCache(freshness_ms=30_000),
        timeout=1.5,
        wall_ms=manual_time.wall_ms,
        monotonic_ms=manual_time.monotonic_ms,
    )


@pytest.fixture
def store():
    return InMemoryPunchStore()


@pytest.fixture
def service(clock, store):
    counter = iter(range(1, 10_000))
    recorder = EventRecorder(id_source=lambda: f"punch-{next(counter)}")
    return PunchService(clock, SkewPolicy(600_000), recorder, store)


@pytest.fixture
def client(service):
    from punchclock.main import app

    app.dependency_overrides[get_punch_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()

"""
Tests for the authoritative clock

Tests cover:
- Cache extrapolation and freshness window
- Failover across references
- Host-clock fallback without cache poisoning
- Concurrent refresh
- NTP and HTTP Date references
"""

import socket
import threading
import time
from unittest.mock import MagicMock, patch

import httpx
import ntplib
import pytest

from conftest import HOST_DRIFT, TRUE_NOW, FakeReference, ManualTime
from punchclock.clock import (
    AuthoritativeClock,
    ClockCache,
    FromHostFallback,
    FromReference,
    HttpDateReference,
    NtpReference,
    ReferenceUnavailable,
    TimeReading,
    build_references,
    iso_utc,
)
from punchclock.metrics import Metrics


def make_clock(references, manual_time, freshness_ms=30_000, metrics=None):
    return AuthoritativeClock(
        references,
        cache=ClockCache(freshness_ms=freshness_ms),
        timeout=1.5,
        wall_ms=manual_time.wall_ms,
        monotonic_ms=manual_time.monotonic_ms,
        metrics=metrics,
    )


class TestCache:
    """Cache freshness and extrapolation"""

    def test_first_call_queries_reference(self, clock, reference):
        sample = clock.sample()

        assert isinstance(sample, FromReference)
        assert sample.epoch_ms == TRUE_NOW
        assert sample.reference == "ref-a"
        assert sample.cached is False
        assert reference.calls == 1
        assert reference.timeouts == [1.5]

    def test_extrapolates_linearly_within_window(self, clock, reference, manual_time):
        first = clock.now()
        manual_time.advance(1_234)
        second = clock.now()
        manual_time.advance(20_000)
        third = clock.now()

        assert second - first == 1_234
        assert third - first == 21_234
        assert reference.calls == 1

    def test_cached_sample_is_flagged(self, clock, manual_time):
        clock.sample()
        manual_time.advance(10)

        sample = clock.sample()
        assert isinstance(sample, FromReference)
        assert sample.cached is True

    def test_refreshes_at_window_boundary(self, clock, reference, manual_time):
        clock.now()
        manual_time.advance(29_999)
        clock.now()
        assert reference.calls == 1

        manual_time.advance(1)
        reference.value = TRUE_NOW + 40_000
        assert clock.now() == TRUE_NOW + 40_000
        assert reference.calls == 2

    def test_cache_replaced_on_refresh(self, clock, reference, manual_time):
        clock.now()
        manual_time.advance(31_000)
        reference.value = TRUE_NOW + 99_000
        clock.now()

        reading = clock.cache.peek()
        assert reading.epoch_ms == TRUE_NOW + 99_000
        assert reading.obtained_at == manual_time.monotonic

    def test_cache_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            ClockCache(freshness_ms=0)

    def test_cache_lookup_and_clear(self):
        cache = ClockCache(freshness_ms=1_000)
        assert cache.lookup(0) is None

        cache.store(TimeReading(epoch_ms=TRUE_NOW, obtained_at=100, reference="r"))
        assert cache.lookup(1_099).epoch_ms == TRUE_NOW
        assert cache.lookup(1_100) is None
        assert cache.peek() is not None

        cache.clear()
        assert cache.peek() is None

    def test_reading_rejects_negative_epoch(self):
        with pytest.raises(ValueError):
            TimeReading(epoch_ms=-1, obtained_at=0, reference="r")


class TestFailover:
    """Priority order and failover"""

    def test_second_reference_used_when_first_times_out(self, manual_time):
        first = FakeReference("ref-a", fail=True)
        second = FakeReference("ref-b", value=TRUE_NOW + 7)
        clock = make_clock([first, second], manual_time)

        sample = clock.sample()
        assert isinstance(sample, FromReference)
        assert sample.epoch_ms == TRUE_NOW + 7
        assert sample.reference == "ref-b"

        manual_time.advance(2_500)
        assert clock.now() == TRUE_NOW + 7 + 2_500
        assert first.calls == 1
        assert second.calls == 1

    def test_lower_priority_not_queried_after_success(self, manual_time):
        first = FakeReference("ref-a")
        second = FakeReference("ref-b")
        clock = make_clock([first, second], manual_time)

        clock.now()
        assert first.calls == 1
        assert second.calls == 0

    def test_unexpected_error_fails_over(self, manual_time):
        def broken():
            raise RuntimeError("resolver exploded")

        first = FakeReference("ref-a", value=broken)
        second = FakeReference("ref-b", value=TRUE_NOW + 7)
        clock = make_clock([first, second], manual_time)

        sample = clock.sample()
        assert sample.reference == "ref-b"
        assert sample.epoch_ms == TRUE_NOW + 7

    def test_out_of_range_reading_fails_over(self, manual_time):
        first = FakeReference("ref-a", value=-1)
        second = FakeReference("ref-b")
        clock = make_clock([first, second], manual_time)

        assert clock.sample().reference == "ref-b"


class TestHostFallback:
    """Every reference failing"""

    def test_falls_back_to_host_clock(self, manual_time):
        refs = [FakeReference("ref-a", fail=True), FakeReference("ref-b", fail=True)]
        clock = make_clock(refs, manual_time)

        sample = clock.sample()
        assert isinstance(sample, FromHostFallback)
        assert sample.epoch_ms == TRUE_NOW + HOST_DRIFT
        assert sample.degraded is True
        assert clock.degraded is True

    def test_fallback_is_not_cached(self, manual_time):
        refs = [FakeReference("ref-a", fail=True), FakeReference("ref-b", fail=True)]
        clock = make_clock(refs, manual_time)

        clock.now()
        assert clock.cache.peek() is None

        manual_time.advance(100)
        clock.now()
        assert [r.calls for r in refs] == [2, 2]

    def test_recovers_when_reference_returns(self, manual_time):
        ref = FakeReference("ref-a", fail=True)
        clock = make_clock([ref], manual_time)

        assert isinstance(clock.sample(), FromHostFallback)

        ref.fail = False
        sample = clock.sample()
        assert isinstance(sample, FromReference)
        assert sample.epoch_ms == TRUE_NOW
        assert clock.degraded is False

    def test_unexpected_errors_everywhere_fall_back(self, manual_time):
        def broken():
            raise UnicodeError("label too long")

        clock = make_clock([FakeReference("ref-a", value=broken)], manual_time)

        sample = clock.sample()
        assert isinstance(sample, FromHostFallback)
        assert sample.epoch_ms == TRUE_NOW + HOST_DRIFT

    def test_no_references_means_host_clock(self, manual_time):
        clock = make_clock([], manual_time)
        assert clock.now() == manual_time.wall

    def test_fallback_uses_real_host_clock_by_default(self):
        clock = AuthoritativeClock([FakeReference("ref-a", fail=True)])
        before = time.time() * 1000
        now = clock.now()
        after = time.time() * 1000
        assert before - 5 <= now <= after + 5


class TestMetrics:
    """Reference and fallback counters"""

    def test_reference_outcomes_counted(self, manual_time):
        metrics = Metrics()
        refs = [FakeReference("ref-a", fail=True), FakeReference("ref-b")]
        clock = make_clock(refs, manual_time, metrics=metrics)

        clock.now()

        value = metrics.registry.get_sample_value
        assert value("punchclock_clock_reference_queries_total", {"reference": "ref-a", "outcome": "error"}) == 1.0
        assert value("punchclock_clock_reference_queries_total", {"reference": "ref-b", "outcome": "ok"}) == 1.0

    def test_host_fallback_counted(self, manual_time):
        metrics = Metrics()
        clock = make_clock([FakeReference("ref-a", fail=True)], manual_time, metrics=metrics)

        clock.now()
        clock.now()

        assert metrics.registry.get_sample_value("punchclock_clock_host_fallbacks_total") == 2.0


class TestConcurrency:
    """Concurrent callers share one refresh"""

    def test_single_refresh_for_concurrent_callers(self, manual_time):
        def slow_value():
            time.sleep(0.05)
            return TRUE_NOW

        ref = FakeReference("ref-a", value=slow_value)
        clock = make_clock([ref], manual_time)
        results = []

        def worker():
            results.append(clock.now())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert ref.calls == 1
        assert results == [TRUE_NOW] * 8

    def test_outage_latency_is_bounded(self, manual_time):
        def dead_reference():
            time.sleep(0.2)
            raise ReferenceUnavailable("ref-a", "timed out")

        ref = FakeReference("ref-a", value=dead_reference)
        clock = make_clock([ref], manual_time)
        start = threading.Barrier(8)
        latencies = []
        results = []

        def worker():
            start.wait()
            began = time.monotonic()
            results.append(clock.now())
            latencies.append(time.monotonic() - began)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Callers queued behind the failed refresh get the host clock without
        # another round of timeouts
        assert max(latencies) < 0.5
        assert results == [TRUE_NOW + HOST_DRIFT] * 8
        assert clock.cache.peek() is None

    def test_next_call_after_outage_retries(self, manual_time):
        ref = FakeReference("ref-a", fail=True)
        clock = make_clock([ref], manual_time)

        assert isinstance(clock.sample(), FromHostFallback)
        ref.fail = False
        assert isinstance(clock.sample(), FromReference)
        assert ref.calls == 2


class TestNtpReference:
    """NTP reference over a mocked ntplib client"""

    def test_query_returns_transmit_time_in_ms(self):
        with patch("punchclock.clock.references.ntplib.NTPClient") as mock_client_class:
            mock_client = MagicMock()
            mock_client_class.return_value = mock_client
            mock_client.request.return_value = MagicMock(tx_time=1_700_000_000.1234)

            ref = NtpReference("pool.ntp.org")
            assert ref.query(timeout=2.0) == 1_700_000_000_123

            mock_client.request.assert_called_once_with("pool.ntp.org", version=3, port=123, timeout=2.0)
            assert ref.name == "ntp://pool.ntp.org:123"

    def test_ntp_error_becomes_unavailable(self):
        with patch("punchclock.clock.references.ntplib.NTPClient") as mock_client_class:
            mock_client_class.return_value.request.side_effect = ntplib.NTPException("No response received")

            with pytest.raises(ReferenceUnavailable) as exc_info:
                NtpReference("pool.ntp.org").query(timeout=1.0)
            assert "No response" in exc_info.value.reason

    def test_socket_error_becomes_unavailable(self):
        with patch("punchclock.clock.references.ntplib.NTPClient") as mock_client_class:
            mock_client_class.return_value.request.side_effect = socket.gaierror("Name or service not known")

            with pytest.raises(ReferenceUnavailable):
                NtpReference("nowhere.invalid").query(timeout=1.0)

    def test_unencodable_host_becomes_unavailable(self):
        with patch("punchclock.clock.references.ntplib.NTPClient") as mock_client_class:
            mock_client_class.return_value.request.side_effect = UnicodeError("label too long")

            with pytest.raises(ReferenceUnavailable) as exc_info:
                NtpReference("a" * 64 + ".example").query(timeout=1.0)
            assert "UnicodeError" in exc_info.value.reason

    def test_negative_time_is_malformed(self):
        with patch("punchclock.clock.references.ntplib.NTPClient") as mock_client_class:
            mock_client_class.return_value.request.return_value = MagicMock(tx_time=-5.0)

            with pytest.raises(ReferenceUnavailable):
                NtpReference("pool.ntp.org").query(timeout=1.0)


class TestHttpDateReference:
    """HTTP Date reference over httpx.MockTransport"""

    def test_parses_date_header(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, headers={"Date": "Tue, 14 Nov 2023 22:13:20 GMT"})
        )
        ref = HttpDateReference("https://time.example.com", transport=transport)
        assert ref.query(timeout=1.0) == TRUE_NOW

    def test_missing_date_header(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        ref = HttpDateReference("https://time.example.com", transport=transport)
        with pytest.raises(ReferenceUnavailable, match="no Date header"):
            ref.query(timeout=1.0)

    def test_garbage_date_header(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, headers={"Date": "yesterday"}))
        ref = HttpDateReference("https://time.example.com", transport=transport)
        with pytest.raises(ReferenceUnavailable):
            ref.query(timeout=1.0)

    def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        ref = HttpDateReference("https://time.example.com", transport=httpx.MockTransport(refuse))
        with pytest.raises(ReferenceUnavailable):
            ref.query(timeout=1.0)


class TestBuildReferences:
    """Configuration parsing"""

    def test_builds_in_priority_order(self):
        refs = build_references(["ntp://a.st1.ntp.br", "ntp://pool.ntp.org:1123", "https://www.example.com"])

        assert [type(r) for r in refs] == [NtpReference, NtpReference, HttpDateReference]
        assert refs[0].port == 123
        assert refs[1].port == 1123
        assert refs[2].name == "https://www.example.com"

    def test_unknown_scheme_rejected(self):
        with pytest.raises(ValueError, match="scheme"):
            build_references(["ftp://time.example.com"])

    def test_missing_host_rejected(self):
        with pytest.raises(ValueError):
            build_references(["pool.ntp.org"])


def test_iso_utc_formatting():
    assert iso_utc(TRUE_NOW + 123) == "2023-11-14T22:13:20.123Z"
    assert iso_utc(0) == "1970-01-01T00:00:00.000Z"
    assert iso_utc(5) == "1970-01-01T00:00:00.005Z"


def test_manual_time_is_deterministic():
    t = ManualTime()
    t.advance(10)
    assert t.monotonic_ms() == 50_010

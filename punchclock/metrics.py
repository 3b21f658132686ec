"""
Prometheus metrics for the punchclock service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os


class Metrics:
    """
    Centralized metrics: HTTP, process and time-authority counters.
    """

    def __init__(self, service_name: str = "punchclock", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Time authority
        self.punches_recorded_total = Counter(
            "punchclock_punches_recorded_total",
            "Punch records persisted",
            ["kind", "time_source"],
            registry=self.registry,
        )

        self.skew_decisions_total = Counter(
            "punchclock_skew_decisions_total",
            "Skew policy outcomes (accepted, rejected, absent)",
            ["outcome"],
            registry=self.registry,
        )

        self.client_skew_ms = Histogram(
            "punchclock_client_skew_milliseconds",
            "Absolute distance between client-claimed and authoritative time",
            buckets=(100, 1_000, 5_000, 30_000, 60_000, 300_000, 600_000, 3_600_000, 43_200_000),
            registry=self.registry,
        )

        self.clock_reference_queries_total = Counter(
            "punchclock_clock_reference_queries_total",
            "External time reference queries",
            ["reference", "outcome"],
            registry=self.registry,
        )

        self.clock_host_fallbacks_total = Counter(
            "punchclock_clock_host_fallbacks_total",
            "Samples served from the host clock because every reference failed",
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        try:
            process = psutil.Process(os.getpid())
            self.process_memory_bytes.labels(service=self.service_name).set(process.memory_info().rss)
            try:
                self.process_open_fds.labels(service=self.service_name).set(process.num_fds())
            except AttributeError:
                # num_fds() not available on all platforms
                pass
        except psutil.Error:
            pass

    def record_punch(self, kind: str, time_source: str):
        self.punches_recorded_total.labels(kind=kind, time_source=time_source).inc()

    def record_skew_decision(self, accepted: bool, skew_ms: int | None):
        """Count a skew decision and observe its magnitude when the client sent a time."""
        if skew_ms is None:
            outcome = "absent"
        else:
            outcome = "accepted" if accepted else "rejected"
            self.client_skew_ms.observe(skew_ms)
        self.skew_decisions_total.labels(outcome=outcome).inc()

    def record_reference_query(self, reference: str, outcome: str):
        self.clock_reference_queries_total.labels(reference=reference, outcome=outcome).inc()

    def record_host_fallback(self):
        self.clock_host_fallbacks_total.inc()

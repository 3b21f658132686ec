"""
Authoritative clock module

Provides a server-controlled notion of "now":
- External time references (NTP, HTTP Date header) with failover
- Freshness-bounded cache extrapolated with the monotonic clock
- Host-clock fallback reported as a distinct, degraded sample
"""

from .cache import ClockCache
from .models import (
    ClockSample,
    FromHostFallback,
    FromReference,
    TimeReading,
    iso_utc,
)
from .references import (
    HttpDateReference,
    NtpReference,
    ReferenceUnavailable,
    TimeReference,
    build_references,
)
from .source import AuthoritativeClock

__all__ = [
    "AuthoritativeClock",
    "ClockCache",
    "ClockSample",
    "FromHostFallback",
    "FromReference",
    "TimeReading",
    "iso_utc",
    "HttpDateReference",
    "NtpReference",
    "ReferenceUnavailable",
    "TimeReference",
    "build_references",
]

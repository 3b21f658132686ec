from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Literal
import math

CLIENT_AUDIT_FIELDS = ("confidence", "skewMs", "deviceUtcOffsetMinutes", "networkState")

TimeSource = Literal["client", "reference", "host"]


def is_finite_number(value: Any) -> bool:
    """JSON numbers only: bools are not numbers here, NaN and infinities are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _number_or_none(value: Any) -> float | None:
    return value if is_finite_number(value) else None


def _string_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PunchInput(_Wire):
    """Client submission. Every field is optional and coerced, never rejected."""
    user: str | None = None
    kind: str | None = None
    origin: str | None = None
    lat: float | None = None
    lng: float | None = None
    accuracy_meters: int | None = None
    time_zone: str | None = None
    group_id: str | None = None
    # offline reconciliation
    client_id: str | None = None
    device_wall_timestamp: str | int | float | None = None
    approx_server_millis: float | None = Field(default=None, description="Client's estimate of our clock, unrounded")
    # client audit metadata
    confidence: str | None = None
    skew_ms: int | None = None
    device_utc_offset_minutes: int | None = None
    network_state: str | None = None

    @field_validator("user", "kind", "origin", "time_zone", "group_id", "client_id",
                     "confidence", "network_state", mode="before")
    @classmethod
    def coerce_string(cls, v: Any) -> str | None:
        return _string_or_none(v)

    @field_validator("lat", "lng", "approx_server_millis", mode="before")
    @classmethod
    def coerce_float(cls, v: Any) -> float | None:
        return _number_or_none(v)

    @field_validator("accuracy_meters", "skew_ms", "device_utc_offset_minutes", mode="before")
    @classmethod
    def coerce_int(cls, v: Any) -> int | None:
        return round_half_up(v) if is_finite_number(v) else None

    @field_validator("device_wall_timestamp", mode="before")
    @classmethod
    def keep_echoable(cls, v: Any) -> str | int | float | None:
        if isinstance(v, str) or is_finite_number(v):
            return v
        return None


class PunchRecord(_Wire):
    """Persisted punch. Immutable once built; officialTimestamp is always server-chosen."""
    model_config = ConfigDict(frozen=True)

    id: str
    user: str
    kind: str
    official_timestamp: str
    origin: str = "online"
    lat: float | None = None
    lng: float | None = None
    accuracy_meters: int | None = None
    time_zone: str | None = None
    group_id: str | None = None
    client_id: str | None = None
    device_wall_timestamp: str | int | float | None = None
    approx_server_millis: int | None = None
    confidence: str | None = None
    skew_ms: int | None = None
    device_utc_offset_minutes: int | None = None
    network_state: str | None = None
    time_source: TimeSource
    server_skew_ms: int | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

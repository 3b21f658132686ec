"""
Clock readings and samples
"""

from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class TimeReading(BaseModel):
    """
    One successful answer from an external time reference.

    obtained_at is a local monotonic instant in milliseconds; it only serves
    to extrapolate elapsed time and is never sent to clients.
    """
    model_config = ConfigDict(frozen=True)

    epoch_ms: int = Field(..., ge=0, description="Reference time, ms since the Unix epoch")
    obtained_at: int = Field(..., description="Local monotonic ms when the answer arrived")
    reference: str = Field(..., description="Name of the reference that answered")

    def extrapolate(self, monotonic_now: int) -> int:
        """Project the reading forward by the local elapsed time"""
        return self.epoch_ms + (monotonic_now - self.obtained_at)

    def age(self, monotonic_now: int) -> int:
        return monotonic_now - self.obtained_at


class FromReference(BaseModel):
    """Time backed by an external reference (fresh query or cache extrapolation)"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["reference"] = "reference"
    epoch_ms: int
    reference: str
    cached: bool = False

    @property
    def degraded(self) -> bool:
        return False


class FromHostFallback(BaseModel):
    """Time read from the local host clock because every reference failed"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["host"] = "host"
    epoch_ms: int

    @property
    def degraded(self) -> bool:
        return True


ClockSample = Union[FromReference, FromHostFallback]


def iso_utc(epoch_ms: int) -> str:
    """Format epoch milliseconds as ISO-8601 UTC, e.g. 2026-03-02T11:04:12.481Z"""
    dt = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{epoch_ms % 1000:03d}Z"

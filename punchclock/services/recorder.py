"""Builds immutable punch records from client input and a skew decision."""
from typing import Callable, Iterable
import uuid
import structlog
from ..clock import iso_utc
from ..punch_models import CLIENT_AUDIT_FIELDS, PunchInput, PunchRecord, TimeSource, round_half_up
from .skew_policy import SkewDecision

log = structlog.get_logger()

# camelCase wire name -> model attribute
_AUDIT_ATTRS = {
    "confidence": "confidence",
    "skewMs": "skew_ms",
    "deviceUtcOffsetMinutes": "device_utc_offset_minutes",
    "networkState": "network_state",
}


def new_id() -> str:
    return str(uuid.uuid4())


class EventRecorder:
    """
    Materializes one PunchRecord per submission.

    Has no side effects: persisting the record is up to the caller.
    """

    def __init__(
        self,
        id_source: Callable[[], str] = new_id,
        audit_fields: Iterable[str] = CLIENT_AUDIT_FIELDS,
        unknown_user: str = "unknown",
        default_kind: str = "entrada",
    ):
        """
        Initialize recorder.

        Args:
            id_source: Generator of opaque record identifiers
            audit_fields: Client audit fields (camelCase) copied into records
            unknown_user: User stored when the submission names none
            default_kind: Kind stored when the submission names none

        Raises:
            ValueError: If audit_fields names an unknown field
        """
        audit_fields = list(audit_fields)
        unknown = [f for f in audit_fields if f not in _AUDIT_ATTRS]
        if unknown:
            raise ValueError(f"Unknown audit fields: {', '.join(unknown)}")

        self._id_source = id_source
        self._audit_attrs = [_AUDIT_ATTRS[f] for f in audit_fields]
        self.unknown_user = unknown_user
        self.default_kind = default_kind

    def record(self, data: PunchInput, decision: SkewDecision, time_source: TimeSource) -> PunchRecord:
        """
        Build the record for one submission.

        Args:
            data: Coerced client input
            decision: Skew policy outcome; its epoch becomes the official time
            time_source: Where the official time came from (client, reference or host)

        Returns:
            The new, not yet persisted, record
        """
        approx = data.approx_server_millis
        fields = dict(
            id=self._id_source(),
            user=data.user if data.user is not None else self.unknown_user,
            kind=data.kind if data.kind is not None else self.default_kind,
            official_timestamp=iso_utc(decision.epoch_ms),
            origin=data.origin if data.origin is not None else "online",
            lat=data.lat,
            lng=data.lng,
            accuracy_meters=data.accuracy_meters,
            time_zone=data.time_zone,
            group_id=data.group_id,
            client_id=data.client_id,
            device_wall_timestamp=data.device_wall_timestamp,
            approx_server_millis=round_half_up(approx) if approx is not None else None,
            time_source=time_source,
            server_skew_ms=decision.skew_ms,
        )
        for attr in self._audit_attrs:
            fields[attr] = getattr(data, attr)

        record = PunchRecord(**fields)
        log.debug("punch.built", id=record.id, time_source=time_source, accepted=decision.accepted)
        return record

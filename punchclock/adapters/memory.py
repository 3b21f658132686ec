"""In-memory punch store."""
from typing import Sequence
import structlog
from .base import PunchStore
from ..punch_models import PunchRecord

log = structlog.get_logger()


class InMemoryPunchStore(PunchStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self):
        self._records: list[PunchRecord] = []

    async def append(self, record: PunchRecord) -> None:
        self._records.append(record)
        log.info("punch.stored", id=record.id, user=record.user, kind=record.kind, store="memory")

    async def list_all(self) -> Sequence[PunchRecord]:
        return list(self._records)

    async def health_check(self) -> bool:
        """In-memory store is always healthy."""
        return True

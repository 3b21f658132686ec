"""JSON file punch store (single document holding every record)."""
from pathlib import Path
from typing import Sequence
import os
import threading
import orjson
import structlog
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from .base import PunchStore, StoreError
from ..punch_models import PunchRecord

log = structlog.get_logger()

COLLECTION_KEY = "marcacoes"


class JsonFilePunchStore(PunchStore):
    """
    Stores all records in one JSON document: {"marcacoes": [...]}.

    Appends are read-modify-write under a lock and land through an atomic
    rename, so a crash mid-write leaves the previous document intact.
    A missing or damaged document lists as empty; appending to a damaged
    document fails instead of overwriting it.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._lock = threading.Lock()

    async def append(self, record: PunchRecord) -> None:
        await run_in_threadpool(self._append_sync, record)
        log.info("punch.stored", id=record.id, user=record.user, kind=record.kind, store="file")

    async def list_all(self) -> Sequence[PunchRecord]:
        raw = await run_in_threadpool(self._load_locked)
        records = []
        for item in raw:
            try:
                records.append(PunchRecord.model_validate(item))
            except ValidationError as e:
                log.warning("store.skipped_invalid_record", path=str(self.path), error=str(e))
        return records

    async def health_check(self) -> bool:
        return os.access(self.path.parent, os.W_OK)

    def _append_sync(self, record: PunchRecord) -> None:
        with self._lock:
            raw = self._load(strict=True)
            raw.append(record.to_wire())
            self._save(raw)

    def _load_locked(self) -> list[dict]:
        with self._lock:
            return self._load()

    def _load(self, strict: bool = False) -> list[dict]:
        """Read the record list; strict mode refuses to treat a damaged document as empty."""
        try:
            document = orjson.loads(self.path.read_bytes())
        except FileNotFoundError:
            return []
        except (OSError, orjson.JSONDecodeError) as e:
            log.warning("store.unreadable", path=str(self.path), error=str(e))
            if strict:
                raise StoreError(f"Could not read {self.path}: {e}") from e
            return []
        if not isinstance(document, dict) or not isinstance(document.get(COLLECTION_KEY), list):
            log.warning("store.unexpected_layout", path=str(self.path))
            if strict:
                raise StoreError(f"Unexpected document layout in {self.path}")
            return []
        return document[COLLECTION_KEY]

    def _save(self, raw: list[dict]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_bytes(orjson.dumps({COLLECTION_KEY: raw}, option=orjson.OPT_INDENT_2))
            os.replace(tmp, self.path)
        except OSError as e:
            log.error("store.write_failed", path=str(self.path), error=str(e))
            raise StoreError(f"Could not write {self.path}: {e}") from e

"""Redis Streams punch store."""
from typing import Sequence
import structlog
import orjson
from redis import Redis
from redis.exceptions import RedisError
from pydantic import ValidationError
from .base import PunchStore, StoreError
from ..punch_models import PunchRecord
from ..config import get_settings

log = structlog.get_logger()
settings = get_settings()


class RedisPunchStore(PunchStore):
    """Redis Streams implementation of the punch store.

    Records are appended to one stream and never trimmed; the stream is the
    system of record.
    """

    def __init__(self, redis_url: str | None = None, stream_key: str = "punchclock:punches"):
        """
        Initialize Redis stream store.

        Args:
            redis_url: Redis connection URL (defaults to settings.REDIS_URL)
            stream_key: Stream holding the records
        """
        self.redis_url = redis_url or str(settings.REDIS_URL)
        self._client: Redis | None = None
        self._stream_key = stream_key

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=False,
                socket_connect_timeout=5,
                socket_timeout=5
            )
        return self._client

    async def append(self, record: PunchRecord) -> None:
        """
        Append record to the stream.

        Raises:
            StoreError: If Redis rejects the write
        """
        try:
            self._get_client().xadd(self._stream_key, {"data": orjson.dumps(record.to_wire())}, id="*")
        except RedisError as e:
            log.error("redis.append_failed", error=str(e), punch_id=record.id)
            raise StoreError(f"Redis append failed: {e}") from e

        log.info("punch.stored", id=record.id, user=record.user, kind=record.kind, store="redis_stream")

    async def list_all(self) -> Sequence[PunchRecord]:
        """
        Read the whole stream, oldest first.

        Raises:
            StoreError: If Redis cannot be read
        """
        try:
            entries = self._get_client().xrange(self._stream_key)
        except RedisError as e:
            log.error("redis.list_failed", error=str(e))
            raise StoreError(f"Redis read failed: {e}") from e

        records = []
        for entry_id, entry_data in entries:
            if b"data" not in entry_data:
                continue
            try:
                records.append(PunchRecord.model_validate(orjson.loads(entry_data[b"data"])))
            except (orjson.JSONDecodeError, ValidationError) as e:
                log.warning("store.skipped_invalid_record", entry_id=entry_id, error=str(e))
        return records

    async def health_check(self) -> bool:
        try:
            return bool(self._get_client().ping())
        except Exception as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            self._client.close()
            self._client = None

"""Base interface for punch record stores."""
from abc import ABC, abstractmethod
from typing import Sequence
from ..punch_models import PunchRecord


class StoreError(Exception):
    """Raised when a record cannot be durably appended or the store cannot be read."""


class PunchStore(ABC):
    """Abstract append-only store of punch records."""

    @abstractmethod
    async def append(self, record: PunchRecord) -> None:
        """
        Durably append a record.

        Args:
            record: The finished punch record

        Raises:
            StoreError: If the record could not be persisted
        """
        pass

    @abstractmethod
    async def list_all(self) -> Sequence[PunchRecord]:
        """
        Retrieve every stored record.

        Returns:
            Records in append order

        Raises:
            StoreError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the backend is healthy and accessible.

        Returns:
            True if backend is healthy, False otherwise
        """
        pass

    def close(self) -> None:
        """Release backend connections. Called once at shutdown."""
        pass

"""
Collaborator interfaces for the dataset lifecycle service

The lifecycle service only talks to content storage, metadata persistence,
locking and the message bus through these contracts, so deployments can wire
S3/Postgres/Redis/Kafka while tests wire in-process doubles.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from dataprep.models.dataset import ColumnMetadata, DatasetMetadata


class DatasetLockHandle(ABC):
    """
    Exclusive, timed ownership of one dataset id.

    Use as ``async with handle:`` so release runs on every exit path.
    """

    dataset_id: str

    @abstractmethod
    async def acquire(self, timeout_seconds: Optional[float] = None) -> "DatasetLockHandle":
        """Block until owned, or raise DatasetLockTimeoutError once the timeout elapses."""
        raise NotImplementedError

    @abstractmethod
    async def release(self) -> None:
        """Give up ownership. No-op when this handle does not hold the lock."""
        raise NotImplementedError

    def raise_if_lost(self) -> None:
        """Raise DatasetLockLostError when ownership expired while held."""
        return None

    async def __aenter__(self) -> "DatasetLockHandle":
        return await self.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()


class DatasetContentStore(ABC):
    """Byte storage for raw dataset content."""

    @abstractmethod
    async def store_as_raw(self, dataset_id: str, content: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get(self, metadata: DatasetMetadata) -> bytes:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, metadata: DatasetMetadata) -> None:
        raise NotImplementedError


class DatasetMetadataStore(ABC):
    """Structured metadata persistence plus the per-dataset lock factory."""

    @abstractmethod
    async def add(self, metadata: DatasetMetadata) -> None:
        """Insert or fully replace the record."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, dataset_id: str) -> Optional[DatasetMetadata]:
        raise NotImplementedError

    @abstractmethod
    async def remove(self, dataset_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def list(self) -> List[DatasetMetadata]:
        raise NotImplementedError

    @abstractmethod
    def create_lock(self, dataset_id: str) -> DatasetLockHandle:
        raise NotImplementedError

    @abstractmethod
    async def rename(self, dataset_id: str, name: str) -> bool:
        """Change only the display name. Returns False for an unknown id."""
        raise NotImplementedError

    # Narrow update paths for analyzers. They never take the dataset lock.

    @abstractmethod
    async def record_schema(self, dataset_id: str, columns: Sequence[ColumnMetadata], records: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def mark_schema_analyzed(self, dataset_id: str) -> bool:
        """Flip schema_analyzed false->true. Returns True only if this call flipped it."""
        raise NotImplementedError

    @abstractmethod
    async def mark_quality_analyzed(self, dataset_id: str) -> bool:
        """Flip quality_analyzed false->true, only once schema_analyzed is set."""
        raise NotImplementedError


class AnalysisPublisher(ABC):
    """Asynchronous work dispatch for analysis triggers."""

    @abstractmethod
    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def publish_analysis_triggers(self, dataset_id: str) -> None:
        """Publish the format-analysis trigger then the content-analysis trigger."""
        raise NotImplementedError

"""
In-process collaborators for the dataset lifecycle service

Backs the "memory" storage backend of the dataset service and the unit
tests. The lock honours the same timeout contract as the Redis lock, but
only within one event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetLockTimeoutError, DatasetServiceError
from dataprep.interfaces.dataset_collaborators import (
    AnalysisPublisher,
    DatasetContentStore,
    DatasetLockHandle,
    DatasetMetadataStore,
)
from dataprep.models.dataset import AnalysisTrigger, ColumnMetadata, DatasetMetadata

logger = logging.getLogger(__name__)

FORMAT_ANALYSIS_TOPIC = "dataset-format-analysis"
CONTENT_ANALYSIS_TOPIC = "dataset-content-analysis"


class InMemoryContentStore(DatasetContentStore):
    def __init__(self) -> None:
        self.contents: Dict[str, bytes] = {}

    async def store_as_raw(self, dataset_id: str, content: bytes) -> None:
        self.contents[dataset_id] = bytes(content)

    async def get(self, metadata: DatasetMetadata) -> bytes:
        try:
            return self.contents[metadata.id]
        except KeyError as exc:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_READ_DATASET_CONTENT,
                context={"id": metadata.id},
                cause=exc,
            ) from exc

    async def delete(self, metadata: DatasetMetadata) -> None:
        self.contents.pop(metadata.id, None)


class InMemoryDatasetLock(DatasetLockHandle):
    def __init__(self, coordinator: "InMemoryLockCoordinator", dataset_id: str) -> None:
        self._coordinator = coordinator
        self.dataset_id = dataset_id
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    async def acquire(self, timeout_seconds: Optional[float] = None) -> "InMemoryDatasetLock":
        timeout = self._coordinator.acquire_timeout_seconds if timeout_seconds is None else timeout_seconds
        lock = self._coordinator.lock_for(self.dataset_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise DatasetLockTimeoutError(self.dataset_id, timeout) from exc
        self._held = True
        return self

    async def release(self) -> None:
        if not self._held:
            return
        self._held = False
        self._coordinator.lock_for(self.dataset_id).release()


class InMemoryLockCoordinator:
    def __init__(self, acquire_timeout_seconds: float = 30.0) -> None:
        self.acquire_timeout_seconds = acquire_timeout_seconds
        self._locks: Dict[str, asyncio.Lock] = {}
        self._held: Dict[str, InMemoryDatasetLock] = {}

    def lock_for(self, dataset_id: str) -> asyncio.Lock:
        return self._locks.setdefault(dataset_id, asyncio.Lock())

    def create_lock(self, dataset_id: str) -> InMemoryDatasetLock:
        return InMemoryDatasetLock(self, dataset_id)

    async def acquire(self, resource_key: str, timeout: Optional[float] = None) -> InMemoryDatasetLock:
        lock = self.create_lock(resource_key)
        await lock.acquire(timeout)
        self._held[resource_key] = lock
        return lock

    async def release(self, resource_key: str) -> None:
        lock = self._held.pop(resource_key, None)
        if lock is not None:
            await lock.release()


class InMemoryMetadataRepository(DatasetMetadataStore):
    def __init__(self, lock_coordinator: Optional[InMemoryLockCoordinator] = None) -> None:
        self.records: Dict[str, DatasetMetadata] = {}
        self.locks = lock_coordinator or InMemoryLockCoordinator()

    async def add(self, metadata: DatasetMetadata) -> None:
        self.records[metadata.id] = metadata.model_copy(deep=True)

    async def get(self, dataset_id: str) -> Optional[DatasetMetadata]:
        metadata = self.records.get(dataset_id)
        return metadata.model_copy(deep=True) if metadata is not None else None

    async def rename(self, dataset_id: str, name: str) -> bool:
        metadata = self.records.get(dataset_id)
        if metadata is None:
            return False
        metadata.name = name
        return True

    async def remove(self, dataset_id: str) -> None:
        self.records.pop(dataset_id, None)

    async def list(self) -> List[DatasetMetadata]:
        ordered = sorted(self.records.values(), key=lambda metadata: (metadata.created, metadata.id))
        return [metadata.model_copy(deep=True) for metadata in ordered]

    def create_lock(self, dataset_id: str) -> InMemoryDatasetLock:
        return self.locks.create_lock(dataset_id)

    async def record_schema(self, dataset_id: str, columns: Sequence[ColumnMetadata], records: int) -> bool:
        metadata = self.records.get(dataset_id)
        if metadata is None:
            return False
        metadata.columns = [column.model_copy(deep=True) for column in columns]
        metadata.records = records
        return True

    async def mark_schema_analyzed(self, dataset_id: str) -> bool:
        metadata = self.records.get(dataset_id)
        if metadata is None or metadata.lifecycle.schema_analyzed:
            return False
        metadata.lifecycle.schema_analyzed = True
        return True

    async def mark_quality_analyzed(self, dataset_id: str) -> bool:
        metadata = self.records.get(dataset_id)
        if metadata is None or not metadata.lifecycle.schema_analyzed or metadata.lifecycle.quality_analyzed:
            return False
        metadata.lifecycle.quality_analyzed = True
        return True


class RecordingAnalysisPublisher(AnalysisPublisher):
    """Keeps published messages as (topic, payload) pairs instead of sending them."""

    def __init__(
        self,
        format_topic: str = FORMAT_ANALYSIS_TOPIC,
        content_topic: str = CONTENT_ANALYSIS_TOPIC,
    ) -> None:
        self.format_topic = format_topic
        self.content_topic = content_topic
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        self.published.append((topic, dict(payload)))
        logger.debug("Recorded analysis trigger %s on %s", payload, topic)

    async def publish_analysis_triggers(self, dataset_id: str) -> None:
        message = AnalysisTrigger(dataset_id=dataset_id).to_message()
        for topic in (self.format_topic, self.content_topic):
            await self.publish(topic, message)

    def topics_for(self, dataset_id: str) -> List[str]:
        return [topic for topic, payload in self.published if payload.get("dataset_id") == dataset_id]

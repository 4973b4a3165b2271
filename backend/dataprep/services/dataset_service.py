"""
Dataset lifecycle service

Owns the create/update/delete/read protocol of a dataset:

- writes to an existing dataset id are serialized through the per-dataset lock
- a content change resets the analysis flags and republishes analysis triggers
- reads are gated on the flags analyzers set asynchronously (see
  DatasetReadStatus)

Analyzers never take the lock; they use the narrow flag updates of the
metadata store. A stale analyzer from an earlier content generation can
therefore still set a flag after an update reset it.
"""

from __future__ import annotations

import csv
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from dataprep.errors.dataset_error_codes import DatasetErrorCode, list_error_codes
from dataprep.exceptions.dataset import DatasetServiceError
from dataprep.interfaces.dataset_collaborators import (
    AnalysisPublisher,
    DatasetContentStore,
    DatasetLockHandle,
    DatasetMetadataStore,
)
from dataprep.models.dataset import DatasetMetadata
from dataprep.utils.csv_content import read_rows
from dataprep.utils.date_format import format_timestamp
from dataprep.utils.row_diff import render_rows
from dataprep.utils.row_order import order_row

logger = logging.getLogger(__name__)


class DatasetReadStatus(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    ABSENT = "absent"

    @property
    def http_status(self) -> int:
        return _READ_STATUS_CODES[self]


_READ_STATUS_CODES = {
    DatasetReadStatus.READY: 200,
    DatasetReadStatus.NOT_READY: 202,
    DatasetReadStatus.ABSENT: 204,
}


@dataclass(frozen=True)
class DatasetReadResult:
    status: DatasetReadStatus
    payload: Optional[Dict[str, Any]] = None

    @property
    def ready(self) -> bool:
        return self.status == DatasetReadStatus.READY


def _new_dataset_id() -> str:
    return str(uuid.uuid4())


def _now_millis() -> int:
    return int(time.time() * 1000)


def serialize_metadata(
    metadata: DatasetMetadata,
    *,
    include_columns: bool = False,
    timezone_name: str = "UTC",
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": metadata.id,
        "name": metadata.name,
        "author": metadata.author,
        "created": format_timestamp(metadata.created, timezone_name),
        "lifecycle": metadata.lifecycle.model_dump(mode="json"),
        "records": metadata.records,
    }
    if include_columns:
        payload["columns"] = [column.model_dump(mode="json", exclude_none=True) for column in metadata.columns]
    return payload


class DatasetLifecycleService:
    def __init__(
        self,
        *,
        metadata_store: DatasetMetadataStore,
        content_store: DatasetContentStore,
        analysis_publisher: AnalysisPublisher,
        display_timezone: str = "UTC",
        lock_timeout_seconds: Optional[float] = None,
        id_factory: Callable[[], str] = _new_dataset_id,
        clock: Callable[[], int] = _now_millis,
    ) -> None:
        self.metadata_store = metadata_store
        self.content_store = content_store
        self.analysis_publisher = analysis_publisher
        self.display_timezone = display_timezone
        self._lock_timeout_seconds = lock_timeout_seconds
        self._id_factory = id_factory
        self._clock = clock

    @asynccontextmanager
    async def _locked(self, dataset_id: str) -> AsyncIterator[DatasetLockHandle]:
        lock = self.metadata_store.create_lock(dataset_id)
        await lock.acquire(self._lock_timeout_seconds)
        try:
            yield lock
        finally:
            await lock.release()

    def _serialize(self, metadata: DatasetMetadata, *, include_columns: bool = False) -> Dict[str, Any]:
        return serialize_metadata(
            metadata,
            include_columns=include_columns,
            timezone_name=self.display_timezone,
        )

    async def list_datasets(self) -> List[Dict[str, Any]]:
        return [self._serialize(metadata) for metadata in await self.metadata_store.list()]

    async def create(self, content: bytes, *, author: str, name: str = "") -> str:
        """Store a new dataset and queue its analysis. Returns the new id."""
        dataset_id = self._id_factory()
        metadata = DatasetMetadata(id=dataset_id, name=name or "", author=author, created=self._clock())
        await self.content_store.store_as_raw(dataset_id, content)
        await self.metadata_store.add(metadata)
        logger.info("Created dataset %s (author=%s, %d bytes)", dataset_id, author, len(content))
        await self.analysis_publisher.publish_analysis_triggers(dataset_id)
        return dataset_id

    async def update_raw(
        self,
        dataset_id: str,
        content: Optional[bytes],
        *,
        author: str,
        name: Optional[str] = None,
    ) -> None:
        """
        Replace content and/or rename a dataset; an unknown id is created.

        Empty content keeps the stored content and the analysis state, so the
        call only renames. A content replacement writes the reset metadata
        before the new bytes, so an interrupted update reads as not ready.
        """
        content_changed = bool(content)
        async with self._locked(dataset_id) as lock:
            existing = await self.metadata_store.get(dataset_id)
            if existing is None:
                metadata = DatasetMetadata(id=dataset_id, name=name or "", author=author, created=self._clock())
                content_changed = True
            elif not content_changed:
                if name is not None:
                    lock.raise_if_lost()
                    await self.metadata_store.rename(dataset_id, name)
                metadata = None
            else:
                metadata = existing.reset_analysis()
                if name is not None:
                    metadata.name = name

            if metadata is not None:
                lock.raise_if_lost()
                await self.metadata_store.add(metadata)
                lock.raise_if_lost()
                await self.content_store.store_as_raw(dataset_id, content or b"")

        if content_changed:
            logger.info("Replaced content of dataset %s", dataset_id)
            await self.analysis_publisher.publish_analysis_triggers(dataset_id)
        else:
            logger.info("Renamed dataset %s", dataset_id)

    async def delete(self, dataset_id: str) -> None:
        """Delete metadata then content. Deleting an unknown id is a silent no-op."""
        async with self._locked(dataset_id) as lock:
            metadata = await self.metadata_store.get(dataset_id)
            if metadata is None:
                logger.debug("Delete of unknown dataset %s ignored", dataset_id)
                return
            lock.raise_if_lost()
            await self.metadata_store.remove(dataset_id)
            await self.content_store.delete(metadata)
        logger.info("Deleted dataset %s", dataset_id)

    def _gate(self, metadata: Optional[DatasetMetadata], *, include_columns: bool) -> Optional[DatasetReadResult]:
        if metadata is None:
            return DatasetReadResult(DatasetReadStatus.ABSENT)
        if not metadata.lifecycle.schema_analyzed:
            logger.debug("Dataset %s not yet ready for service", metadata.id)
            return DatasetReadResult(DatasetReadStatus.NOT_READY)
        if include_columns and not metadata.lifecycle.quality_analyzed:
            logger.debug("Column information of dataset %s not yet ready (quality pending)", metadata.id)
            return DatasetReadResult(DatasetReadStatus.NOT_READY)
        return None

    async def get_content(
        self,
        dataset_id: str,
        *,
        include_metadata: bool = True,
        include_columns: bool = False,
    ) -> DatasetReadResult:
        metadata = await self.metadata_store.get(dataset_id)
        gated = self._gate(metadata, include_columns=include_columns)
        if gated is not None:
            return gated

        raw = await self.content_store.get(metadata)
        try:
            _, rows = read_rows(raw, metadata.columns)
            ordered = (order_row(row, metadata.columns) for row in rows)
            records = render_rows(ordered)
        except csv.Error as exc:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_READ_DATASET_CONTENT,
                context={"id": dataset_id},
                cause=exc,
            ) from exc

        payload: Dict[str, Any] = {}
        if include_metadata:
            payload["metadata"] = self._serialize(metadata)
        if include_columns:
            payload["columns"] = [column.model_dump(mode="json", exclude_none=True) for column in metadata.columns]
        payload["records"] = records
        return DatasetReadResult(DatasetReadStatus.READY, payload)

    async def get_metadata(self, dataset_id: str, *, include_columns: bool = False) -> DatasetReadResult:
        metadata = await self.metadata_store.get(dataset_id)
        gated = self._gate(metadata, include_columns=include_columns)
        if gated is not None:
            return gated
        return DatasetReadResult(
            DatasetReadStatus.READY,
            self._serialize(metadata, include_columns=include_columns),
        )

    async def mark_schema_analyzed(self, dataset_id: str) -> bool:
        return await self.metadata_store.mark_schema_analyzed(dataset_id)

    async def mark_quality_analyzed(self, dataset_id: str) -> bool:
        return await self.metadata_store.mark_quality_analyzed(dataset_id)

    @staticmethod
    def list_error_codes() -> List[Dict[str, object]]:
        return list_error_codes()

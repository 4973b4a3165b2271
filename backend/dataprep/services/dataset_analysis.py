"""
Dataset analysis stages.

Format analysis records the column layout read from the CSV header, quality
analysis counts empty and valid values per column. Both only flip lifecycle
flags through the metadata store's narrow update paths; they never take the
dataset lock.
"""

from __future__ import annotations

import csv
import logging
from typing import List, Optional

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetServiceError
from dataprep.interfaces.dataset_collaborators import DatasetContentStore, DatasetMetadataStore
from dataprep.models.dataset import ColumnMetadata, DatasetMetadata
from dataprep.utils.csv_content import column_quality, read_rows

logger = logging.getLogger(__name__)


class DatasetAnalyzer:
    def __init__(self, metadata_store: DatasetMetadataStore, content_store: DatasetContentStore) -> None:
        self.metadata_store = metadata_store
        self.content_store = content_store

    async def _load(self, dataset_id: str) -> Optional[DatasetMetadata]:
        metadata = await self.metadata_store.get(dataset_id)
        if metadata is None:
            logger.info("Skipping analysis of unknown dataset %s", dataset_id)
        return metadata

    async def analyze_format(self, dataset_id: str) -> bool:
        """Record columns and row count, then set schema_analyzed. Returns False for unknown ids."""
        metadata = await self._load(dataset_id)
        if metadata is None:
            return False
        raw = await self.content_store.get(metadata)
        try:
            row_metadata, rows = read_rows(raw)
            records = sum(1 for _ in rows)
        except csv.Error as exc:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_ANALYZE_DATASET_CONTENT,
                context={"id": dataset_id},
                cause=exc,
            ) from exc

        columns: List[ColumnMetadata] = list(row_metadata.columns)
        if not await self.metadata_store.record_schema(dataset_id, columns, records):
            logger.info("Dataset %s removed during format analysis", dataset_id)
            return False
        await self.metadata_store.mark_schema_analyzed(dataset_id)
        logger.info("Format analysis of dataset %s done (%d columns, %d records)", dataset_id, len(columns), records)
        return True

    async def analyze_quality(self, dataset_id: str) -> bool:
        metadata = await self._load(dataset_id)
        if metadata is None:
            return False
        if not metadata.lifecycle.schema_analyzed:
            if not await self.analyze_format(dataset_id):
                return False
            metadata = await self._load(dataset_id)
            if metadata is None:
                return False

        raw = await self.content_store.get(metadata)
        try:
            quality = column_quality(raw, metadata.columns)
        except csv.Error as exc:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_ANALYZE_DATASET_CONTENT,
                context={"id": dataset_id},
                cause=exc,
            ) from exc

        columns = [column.model_copy(update={"quality": quality[column.id]}) for column in metadata.columns]
        if not await self.metadata_store.record_schema(dataset_id, columns, metadata.records):
            logger.info("Dataset %s removed during quality analysis", dataset_id)
            return False
        await self.metadata_store.mark_quality_analyzed(dataset_id)
        logger.info("Quality analysis of dataset %s done", dataset_id)
        return True

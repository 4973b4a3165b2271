"""
Dataset metadata repository - durable dataset metadata in Postgres.

Full-record writes (add/remove) are issued by the lifecycle service while it
holds the dataset lock. Analyzers use the narrow single-statement updates
(record_schema, mark_*_analyzed) without the lock.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Sequence

import asyncpg

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetServiceError
from dataprep.interfaces.dataset_collaborators import DatasetLockHandle, DatasetMetadataStore
from dataprep.models.dataset import ColumnMetadata, DatasetLifecycle, DatasetMetadata

if TYPE_CHECKING:
    from dataprep.config.settings import DatabaseSettings
    from dataprep.services.dataset_lock import DatasetLockCoordinator

logger = logging.getLogger(__name__)


@contextmanager
def _repository_errors(dataset_id: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        raise DatasetServiceError(
            DatasetErrorCode.UNABLE_TO_ACCESS_METADATA,
            context={"id": dataset_id},
            cause=exc,
        ) from exc


def _coerce_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _updated_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "UPDATE 1"
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class DatasetMetadataRepository(DatasetMetadataStore):
    def __init__(
        self,
        *,
        dsn: str,
        lock_coordinator: "DatasetLockCoordinator",
        schema: str = "dataprep_datasets",
        pool_min: int = 1,
        pool_max: int = 5,
        command_timeout: int = 30,
    ):
        self._dsn = dsn
        self._schema = schema
        self._locks = lock_coordinator
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_min = pool_min
        self._pool_max = pool_max
        self._command_timeout = command_timeout

    @classmethod
    def from_settings(
        cls,
        database: "DatabaseSettings",
        lock_coordinator: "DatasetLockCoordinator",
    ) -> "DatasetMetadataRepository":
        return cls(
            dsn=database.postgres_url,
            lock_coordinator=lock_coordinator,
            schema=database.postgres_schema,
            pool_min=database.postgres_pool_min,
            pool_max=database.postgres_pool_max,
            command_timeout=database.postgres_command_timeout,
        )

    async def initialize(self) -> None:
        await self.connect()

    async def connect(self) -> None:
        if self._pool:
            return
        with _repository_errors():
            self._pool = await asyncpg.create_pool(
                self._dsn,
                min_size=self._pool_min,
                max_size=self._pool_max,
                command_timeout=self._command_timeout,
            )
            await self.ensure_schema()

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    def _require_pool(self) -> asyncpg.Pool:
        if not self._pool:
            raise RuntimeError("DatasetMetadataRepository not connected")
        return self._pool

    async def ensure_schema(self) -> None:
        pool = self._require_pool()
        async with pool.acquire() as conn:
            await conn.execute(f"CREATE SCHEMA IF NOT EXISTS {self._schema}")
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._schema}.datasets (
                    dataset_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    author TEXT NOT NULL,
                    created_ms BIGINT NOT NULL,
                    schema_analyzed BOOLEAN NOT NULL DEFAULT FALSE,
                    quality_analyzed BOOLEAN NOT NULL DEFAULT FALSE,
                    columns_json JSONB NOT NULL DEFAULT '[]'::jsonb,
                    record_count INTEGER NOT NULL DEFAULT 0,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
            await conn.execute(
                f"""
                CREATE INDEX IF NOT EXISTS idx_datasets_created
                ON {self._schema}.datasets(created_ms)
                """
            )

    def _row_to_metadata(self, row: asyncpg.Record) -> DatasetMetadata:
        columns = _coerce_json(row["columns_json"]) or []
        return DatasetMetadata(
            id=str(row["dataset_id"]),
            name=str(row["name"] or ""),
            author=str(row["author"]),
            created=int(row["created_ms"]),
            lifecycle=DatasetLifecycle(
                schema_analyzed=bool(row["schema_analyzed"]),
                quality_analyzed=bool(row["quality_analyzed"]),
            ),
            columns=[ColumnMetadata.model_validate(column) for column in columns],
            records=int(row["record_count"] or 0),
        )

    async def add(self, metadata: DatasetMetadata) -> None:
        pool = self._require_pool()
        columns_json = json.dumps([column.model_dump(mode="json") for column in metadata.columns])
        with _repository_errors(metadata.id):
            async with pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self._schema}.datasets (
                        dataset_id, name, author, created_ms,
                        schema_analyzed, quality_analyzed, columns_json, record_count
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8)
                    ON CONFLICT (dataset_id) DO UPDATE SET
                        name = EXCLUDED.name,
                        author = EXCLUDED.author,
                        created_ms = EXCLUDED.created_ms,
                        schema_analyzed = EXCLUDED.schema_analyzed,
                        quality_analyzed = EXCLUDED.quality_analyzed,
                        columns_json = EXCLUDED.columns_json,
                        record_count = EXCLUDED.record_count,
                        updated_at = NOW()
                    """,
                    metadata.id,
                    metadata.name,
                    metadata.author,
                    metadata.created,
                    metadata.lifecycle.schema_analyzed,
                    metadata.lifecycle.quality_analyzed,
                    columns_json,
                    metadata.records,
                )

    async def rename(self, dataset_id: str, name: str) -> bool:
        pool = self._require_pool()
        with _repository_errors(dataset_id):
            async with pool.acquire() as conn:
                status = await conn.execute(
                    f"UPDATE {self._schema}.datasets SET name = $2, updated_at = NOW() WHERE dataset_id = $1",
                    dataset_id,
                    name,
                )
        return _updated_rows(status) > 0

    async def get(self, dataset_id: str) -> Optional[DatasetMetadata]:
        pool = self._require_pool()
        with _repository_errors(dataset_id):
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT * FROM {self._schema}.datasets WHERE dataset_id = $1",
                    dataset_id,
                )
        if not row:
            return None
        return self._row_to_metadata(row)

    async def remove(self, dataset_id: str) -> None:
        pool = self._require_pool()
        with _repository_errors(dataset_id):
            async with pool.acquire() as conn:
                await conn.execute(
                    f"DELETE FROM {self._schema}.datasets WHERE dataset_id = $1",
                    dataset_id,
                )

    async def list(self) -> List[DatasetMetadata]:
        pool = self._require_pool()
        with _repository_errors():
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT * FROM {self._schema}.datasets ORDER BY created_ms, dataset_id"
                )
        return [self._row_to_metadata(row) for row in rows]

    def create_lock(self, dataset_id: str) -> DatasetLockHandle:
        return self._locks.create_lock(dataset_id)

    async def record_schema(self, dataset_id: str, columns: Sequence[ColumnMetadata], records: int) -> bool:
        pool = self._require_pool()
        columns_json = json.dumps([column.model_dump(mode="json") for column in columns])
        with _repository_errors(dataset_id):
            async with pool.acquire() as conn:
                status = await conn.execute(
                    f"""
                    UPDATE {self._schema}.datasets
                    SET columns_json = $2::jsonb, record_count = $3, updated_at = NOW()
                    WHERE dataset_id = $1
                    """,
                    dataset_id,
                    columns_json,
                    records,
                )
        return _updated_rows(status) > 0

    async def mark_schema_analyzed(self, dataset_id: str) -> bool:
        pool = self._require_pool()
        with _repository_errors(dataset_id):
            async with pool.acquire() as conn:
                flipped = await conn.fetchval(
                    f"""
                    UPDATE {self._schema}.datasets
                    SET schema_analyzed = TRUE, updated_at = NOW()
                    WHERE dataset_id = $1 AND schema_analyzed = FALSE
                    RETURNING dataset_id
                    """,
                    dataset_id,
                )
        if flipped:
            logger.info("Dataset %s schema analyzed", dataset_id)
        return flipped is not None

    async def mark_quality_analyzed(self, dataset_id: str) -> bool:
        pool = self._require_pool()
        with _repository_errors(dataset_id):
            async with pool.acquire() as conn:
                flipped = await conn.fetchval(
                    f"""
                    UPDATE {self._schema}.datasets
                    SET quality_analyzed = TRUE, updated_at = NOW()
                    WHERE dataset_id = $1 AND schema_analyzed = TRUE AND quality_analyzed = FALSE
                    RETURNING dataset_id
                    """,
                    dataset_id,
                )
        if flipped:
            logger.info("Dataset %s quality analyzed", dataset_id)
        return flipped is not None

from __future__ import annotations

import pytest

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetServiceError
from dataprep.models.dataset import DatasetMetadata
from dataprep.services.dataset_analysis import DatasetAnalyzer
from dataprep.services.in_memory import InMemoryContentStore, InMemoryMetadataRepository


async def _seed(content: bytes, dataset_id: str = "ds-1"):
    repository = InMemoryMetadataRepository()
    store = InMemoryContentStore()
    await repository.add(DatasetMetadata(id=dataset_id, author="alice"))
    await store.store_as_raw(dataset_id, content)
    return repository, store, DatasetAnalyzer(repository, store)


@pytest.mark.asyncio
async def test_format_analysis_records_header_columns() -> None:
    repository, _, analyzer = await _seed(b"name,age\nAl,30\nBo,41\n")

    assert await analyzer.analyze_format("ds-1") is True

    metadata = await repository.get("ds-1")
    assert [(column.id, column.name, column.type) for column in metadata.columns] == [
        ("0000", "name", "string"),
        ("0001", "age", "string"),
    ]
    assert metadata.records == 2
    assert metadata.lifecycle.schema_analyzed is True
    assert metadata.lifecycle.quality_analyzed is False


@pytest.mark.asyncio
async def test_quality_analysis_runs_format_first() -> None:
    repository, _, analyzer = await _seed(b"name,age\nAl,\nBo,41\n")

    assert await analyzer.analyze_quality("ds-1") is True

    metadata = await repository.get("ds-1")
    assert metadata.lifecycle.schema_analyzed is True
    assert metadata.lifecycle.quality_analyzed is True
    quality = {column.id: column.quality for column in metadata.columns}
    assert (quality["0000"].valid, quality["0000"].empty) == (2, 0)
    assert (quality["0001"].valid, quality["0001"].empty) == (1, 1)


@pytest.mark.asyncio
async def test_unknown_dataset_is_skipped() -> None:
    repository, _, analyzer = await _seed(b"a\n1")

    assert await analyzer.analyze_format("missing") is False
    assert await analyzer.analyze_quality("missing") is False


@pytest.mark.asyncio
async def test_missing_content_propagates_read_error() -> None:
    repository = InMemoryMetadataRepository()
    await repository.add(DatasetMetadata(id="ds-1"))
    analyzer = DatasetAnalyzer(repository, InMemoryContentStore())

    with pytest.raises(DatasetServiceError) as excinfo:
        await analyzer.analyze_format("ds-1")

    assert excinfo.value.error_code == DatasetErrorCode.UNABLE_TO_READ_DATASET_CONTENT
    assert (await repository.get("ds-1")).lifecycle.schema_analyzed is False

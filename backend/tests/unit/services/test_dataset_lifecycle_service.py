from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from itertools import count

import pytest

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetLockLostError, DatasetLockTimeoutError, DatasetServiceError
from dataprep.interfaces.dataset_collaborators import DatasetLockHandle
from dataprep.models.dataset import ColumnMetadata, ColumnQuality
from dataprep.services.dataset_analysis import DatasetAnalyzer
from dataprep.services.dataset_service import DatasetLifecycleService, DatasetReadStatus
from dataprep.services.in_memory import (
    CONTENT_ANALYSIS_TOPIC,
    FORMAT_ANALYSIS_TOPIC,
    InMemoryContentStore,
    InMemoryLockCoordinator,
    InMemoryMetadataRepository,
    RecordingAnalysisPublisher,
)

_CREATED = int(datetime(2015, 3, 7, 14, 5, tzinfo=timezone.utc).timestamp() * 1000)


class _Harness:
    def __init__(self, lock_timeout: float = 1.0, repository_cls=InMemoryMetadataRepository) -> None:
        ids = count(1)
        self.locks = InMemoryLockCoordinator(acquire_timeout_seconds=lock_timeout)
        self.repository = repository_cls(self.locks)
        self.content = InMemoryContentStore()
        self.publisher = RecordingAnalysisPublisher()
        self.service = DatasetLifecycleService(
            metadata_store=self.repository,
            content_store=self.content,
            analysis_publisher=self.publisher,
            id_factory=lambda: f"ds-{next(ids)}",
            clock=lambda: _CREATED,
        )
        self.analyzer = DatasetAnalyzer(self.repository, self.content)


class _AnalyzerRacingRepository(InMemoryMetadataRepository):
    """Runs a format analysis right after a writer takes its snapshot."""

    race = False

    async def get(self, dataset_id: str):
        snapshot = await super().get(dataset_id)
        if self.race and snapshot is not None:
            self.race = False
            await self.record_schema(dataset_id, [ColumnMetadata(id="0000", name="a")], 1)
            await self.mark_schema_analyzed(dataset_id)
        return snapshot


class _LostLock(DatasetLockHandle):
    def __init__(self, dataset_id: str, checks_before_loss: int) -> None:
        self.dataset_id = dataset_id
        self._checks_left = checks_before_loss

    async def acquire(self, timeout_seconds=None) -> "_LostLock":
        return self

    async def release(self) -> None:
        return None

    def raise_if_lost(self) -> None:
        if self._checks_left <= 0:
            raise DatasetLockLostError(self.dataset_id)
        self._checks_left -= 1


class _LosingLockRepository(InMemoryMetadataRepository):
    checks_before_loss = None

    def create_lock(self, dataset_id: str):
        if self.checks_before_loss is None:
            return super().create_lock(dataset_id)
        return _LostLock(dataset_id, self.checks_before_loss)


class _FailingContentStore(InMemoryContentStore):
    async def store_as_raw(self, dataset_id: str, content: bytes) -> None:
        raise DatasetServiceError(DatasetErrorCode.UNABLE_TO_STORE_DATASET_CONTENT, context={"id": dataset_id})


@pytest.mark.asyncio
async def test_create_persists_unanalyzed_metadata_and_publishes_triggers() -> None:
    harness = _Harness()

    dataset_id = await harness.service.create(b"a,b\n1,2", author="alice", name="Sales")

    assert dataset_id == "ds-1"
    assert harness.content.contents["ds-1"] == b"a,b\n1,2"
    metadata = await harness.repository.get("ds-1")
    assert (metadata.name, metadata.author, metadata.created) == ("Sales", "alice", _CREATED)
    assert metadata.lifecycle.schema_analyzed is False
    assert metadata.lifecycle.quality_analyzed is False
    assert harness.publisher.published == [
        (FORMAT_ANALYSIS_TOPIC, {"dataset_id": "ds-1"}),
        (CONTENT_ANALYSIS_TOPIC, {"dataset_id": "ds-1"}),
    ]


@pytest.mark.asyncio
async def test_content_is_not_ready_until_schema_analyzed() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a,b\n1,2", author="alice")

    pending = await harness.service.get_content(dataset_id)
    assert pending.status == DatasetReadStatus.NOT_READY
    assert pending.status.http_status == 202
    assert pending.payload is None

    assert await harness.analyzer.analyze_format(dataset_id) is True

    ready = await harness.service.get_content(dataset_id)
    assert ready.status.http_status == 200
    assert ready.payload["records"] == [{"0000": "1", "0001": "2", "tdpId": 1}]
    assert ready.payload["metadata"]["id"] == dataset_id
    assert ready.payload["metadata"]["created"] == "03-07-2015 14:05"
    assert "columns" not in ready.payload


@pytest.mark.asyncio
async def test_column_requests_wait_for_quality_analysis() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a,b\n1,\n3,4", author="alice")
    await harness.analyzer.analyze_format(dataset_id)

    content = await harness.service.get_content(dataset_id, include_columns=True)
    metadata = await harness.service.get_metadata(dataset_id, include_columns=True)
    assert content.status == DatasetReadStatus.NOT_READY
    assert metadata.status == DatasetReadStatus.NOT_READY

    await harness.analyzer.analyze_quality(dataset_id)

    content = await harness.service.get_content(dataset_id, include_metadata=False, include_columns=True)
    assert content.status == DatasetReadStatus.READY
    assert "metadata" not in content.payload
    assert [column["name"] for column in content.payload["columns"]] == ["a", "b"]
    assert content.payload["columns"][1]["quality"] == {"valid": 1, "empty": 1, "invalid": 0}


@pytest.mark.asyncio
async def test_unknown_dataset_is_absent() -> None:
    harness = _Harness()

    content = await harness.service.get_content("missing")
    metadata = await harness.service.get_metadata("missing")

    assert content.status == DatasetReadStatus.ABSENT
    assert content.status.http_status == 204
    assert metadata.status == DatasetReadStatus.ABSENT


@pytest.mark.asyncio
async def test_metadata_payload() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a,b\n1,2\n3,4", author="bob", name="Two rows")
    await harness.analyzer.analyze_format(dataset_id)

    result = await harness.service.get_metadata(dataset_id)

    assert result.status == DatasetReadStatus.READY
    assert result.payload == {
        "id": dataset_id,
        "name": "Two rows",
        "author": "bob",
        "created": "03-07-2015 14:05",
        "lifecycle": {"schema_analyzed": True, "quality_analyzed": False},
        "records": 2,
    }


@pytest.mark.asyncio
async def test_update_with_content_resets_analysis_and_republishes() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a\n1", author="alice", name="Old")
    await harness.analyzer.analyze_quality(dataset_id)
    harness.publisher.published.clear()

    await harness.service.update_raw(dataset_id, b"x,y\n5,6", author="bob", name="New")

    metadata = await harness.repository.get(dataset_id)
    assert metadata.name == "New"
    assert metadata.author == "alice"
    assert metadata.lifecycle.schema_analyzed is False
    assert metadata.lifecycle.quality_analyzed is False
    assert metadata.columns == []
    assert harness.content.contents[dataset_id] == b"x,y\n5,6"
    assert harness.publisher.topics_for(dataset_id) == [FORMAT_ANALYSIS_TOPIC, CONTENT_ANALYSIS_TOPIC]
    assert (await harness.service.get_content(dataset_id)).status == DatasetReadStatus.NOT_READY


@pytest.mark.asyncio
async def test_update_with_empty_body_only_renames() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a\n1", author="alice", name="Old")
    await harness.analyzer.analyze_format(dataset_id)
    harness.publisher.published.clear()

    await harness.service.update_raw(dataset_id, b"", author="bob", name="Renamed")

    metadata = await harness.repository.get(dataset_id)
    assert metadata.name == "Renamed"
    assert metadata.lifecycle.schema_analyzed is True
    assert harness.content.contents[dataset_id] == b"a\n1"
    assert harness.publisher.published == []


@pytest.mark.asyncio
async def test_update_of_unknown_dataset_creates_it() -> None:
    harness = _Harness()

    await harness.service.update_raw("explicit-id", b"a\n1", author="carol")

    metadata = await harness.repository.get("explicit-id")
    assert metadata is not None
    assert metadata.author == "carol"
    assert metadata.name == ""
    assert harness.content.contents["explicit-id"] == b"a\n1"
    assert harness.publisher.topics_for("explicit-id") == [FORMAT_ANALYSIS_TOPIC, CONTENT_ANALYSIS_TOPIC]


@pytest.mark.asyncio
async def test_delete_removes_content_and_metadata() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a\n1", author="alice")

    await harness.service.delete(dataset_id)

    assert await harness.repository.get(dataset_id) is None
    assert dataset_id not in harness.content.contents
    assert (await harness.service.get_content(dataset_id)).status == DatasetReadStatus.ABSENT


@pytest.mark.asyncio
async def test_delete_of_unknown_dataset_is_silent() -> None:
    harness = _Harness()

    await harness.service.delete("missing")

    assert harness.repository.records == {}


@pytest.mark.asyncio
async def test_list_datasets_in_creation_order() -> None:
    harness = _Harness()
    await harness.service.create(b"a\n1", author="alice", name="first")
    await harness.service.create(b"a\n1", author="alice", name="second")

    listed = await harness.service.list_datasets()

    assert [entry["name"] for entry in listed] == ["first", "second"]
    assert all("columns" not in entry for entry in listed)


@pytest.mark.asyncio
async def test_mutation_waits_for_dataset_lock_and_times_out() -> None:
    harness = _Harness(lock_timeout=0.05)
    dataset_id = await harness.service.create(b"a\n1", author="alice")
    await harness.locks.acquire(dataset_id)

    with pytest.raises(DatasetLockTimeoutError):
        await harness.service.update_raw(dataset_id, b"b\n2", author="alice")
    with pytest.raises(DatasetLockTimeoutError):
        await harness.service.delete(dataset_id)

    assert harness.content.contents[dataset_id] == b"a\n1"
    await harness.locks.release(dataset_id)
    await harness.service.delete(dataset_id)
    assert await harness.repository.get(dataset_id) is None


@pytest.mark.asyncio
async def test_concurrent_updates_are_serialized() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a\n0", author="alice")
    order: list[str] = []

    original_store = harness.content.store_as_raw

    async def _slow_store(target_id: str, content: bytes) -> None:
        order.append(f"start:{content.decode()}")
        await asyncio.sleep(0.01)
        await original_store(target_id, content)
        order.append(f"end:{content.decode()}")

    harness.content.store_as_raw = _slow_store

    await asyncio.gather(
        harness.service.update_raw(dataset_id, b"a\n1", author="alice"),
        harness.service.update_raw(dataset_id, b"a\n2", author="alice"),
    )

    assert order == ["start:a\n1", "end:a\n1", "start:a\n2", "end:a\n2"]


@pytest.mark.asyncio
async def test_lock_is_released_when_store_fails() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a\n1", author="alice")
    harness.service.content_store = _FailingContentStore()

    with pytest.raises(DatasetServiceError) as excinfo:
        await harness.service.update_raw(dataset_id, b"a\n2", author="alice")

    assert excinfo.value.error_code == DatasetErrorCode.UNABLE_TO_STORE_DATASET_CONTENT
    assert harness.locks.lock_for(dataset_id).locked() is False
    assert (await harness.service.get_content(dataset_id)).status == DatasetReadStatus.NOT_READY


@pytest.mark.asyncio
async def test_stale_analyzer_flag_after_update_is_accepted() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a\n1", author="alice")
    await harness.service.update_raw(dataset_id, b"a\n2", author="alice")

    # an analyzer from the first generation still flips the flag
    assert await harness.service.mark_schema_analyzed(dataset_id) is True
    assert await harness.service.mark_schema_analyzed(dataset_id) is False
    assert (await harness.service.get_content(dataset_id)).status == DatasetReadStatus.READY


@pytest.mark.asyncio
async def test_quality_flag_requires_schema_flag() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a\n1", author="alice")

    assert await harness.service.mark_quality_analyzed(dataset_id) is False
    await harness.service.mark_schema_analyzed(dataset_id)
    assert await harness.service.mark_quality_analyzed(dataset_id) is True


@pytest.mark.asyncio
async def test_content_rows_follow_recorded_schema_order() -> None:
    harness = _Harness()
    dataset_id = await harness.service.create(b"a,b,c\n1,2,3", author="alice")
    columns = [
        ColumnMetadata(id="0002", name="a"),
        ColumnMetadata(id="0000", name="b", quality=ColumnQuality(valid=1)),
        ColumnMetadata(id="0001", name="c"),
    ]
    await harness.repository.record_schema(dataset_id, columns, 1)
    await harness.repository.mark_schema_analyzed(dataset_id)

    result = await harness.service.get_content(dataset_id, include_metadata=False)

    record = result.payload["records"][0]
    assert list(record) == ["0002", "0000", "0001", "tdpId"]
    assert record == {"0002": "1", "0000": "2", "0001": "3", "tdpId": 1}


def test_list_error_codes_exposes_catalog() -> None:
    codes = [entry["code"] for entry in DatasetLifecycleService.list_error_codes()]

    assert "DATASET_LOCKED" in codes
    assert "UNABLE_TO_READ_DATASET_CONTENT" in codes


@pytest.mark.asyncio
async def test_rename_keeps_analysis_finished_during_update() -> None:
    harness = _Harness(repository_cls=_AnalyzerRacingRepository)
    dataset_id = await harness.service.create(b"a\n1", author="alice", name="Old")
    harness.repository.race = True

    await harness.service.update_raw(dataset_id, b"", author="bob", name="Renamed")

    metadata = await harness.repository.get(dataset_id)
    assert metadata.name == "Renamed"
    assert metadata.lifecycle.schema_analyzed is True
    assert [column.id for column in metadata.columns] == ["0000"]
    assert metadata.records == 1
    assert (await harness.service.get_content(dataset_id)).status == DatasetReadStatus.READY


@pytest.mark.asyncio
async def test_lost_lock_before_writes_leaves_dataset_untouched() -> None:
    harness = _Harness(repository_cls=_LosingLockRepository)
    dataset_id = await harness.service.create(b"a,b\n1,2", author="alice")
    await harness.analyzer.analyze_format(dataset_id)
    harness.repository.checks_before_loss = 0

    with pytest.raises(DatasetLockLostError):
        await harness.service.update_raw(dataset_id, b"x,y,z\n7,8,9", author="alice")

    assert harness.content.contents[dataset_id] == b"a,b\n1,2"
    ready = await harness.service.get_content(dataset_id)
    assert ready.status == DatasetReadStatus.READY
    assert ready.payload["records"] == [{"0000": "1", "0001": "2", "tdpId": 1}]


@pytest.mark.asyncio
async def test_lost_lock_after_reset_reads_as_not_ready() -> None:
    harness = _Harness(repository_cls=_LosingLockRepository)
    dataset_id = await harness.service.create(b"a,b\n1,2", author="alice")
    await harness.analyzer.analyze_format(dataset_id)
    harness.publisher.published.clear()
    harness.repository.checks_before_loss = 1

    with pytest.raises(DatasetLockLostError):
        await harness.service.update_raw(dataset_id, b"x,y,z\n7,8,9", author="alice")

    metadata = await harness.repository.get(dataset_id)
    assert metadata.lifecycle.schema_analyzed is False
    assert metadata.columns == []
    assert (await harness.service.get_content(dataset_id)).status == DatasetReadStatus.NOT_READY
    assert harness.publisher.published == []


@pytest.mark.asyncio
async def test_lost_lock_on_delete_keeps_dataset() -> None:
    harness = _Harness(repository_cls=_LosingLockRepository)
    dataset_id = await harness.service.create(b"a\n1", author="alice")
    harness.repository.checks_before_loss = 0

    with pytest.raises(DatasetLockLostError):
        await harness.service.delete(dataset_id)

    assert await harness.repository.get(dataset_id) is not None
    assert harness.content.contents[dataset_id] == b"a\n1"

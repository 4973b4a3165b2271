from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

ERROR_CATALOG_SCHEMA_VERSION = "1.0"
ERROR_PRODUCT = "TDP"
ERROR_GROUP = "DSS"


class DatasetErrorCode(str, Enum):
    UNEXPECTED_IO_EXCEPTION = "UNEXPECTED_IO_EXCEPTION"
    UNABLE_TO_READ_DATASET_CONTENT = "UNABLE_TO_READ_DATASET_CONTENT"
    UNABLE_TO_STORE_DATASET_CONTENT = "UNABLE_TO_STORE_DATASET_CONTENT"
    UNABLE_TO_DELETE_DATASET_CONTENT = "UNABLE_TO_DELETE_DATASET_CONTENT"
    UNABLE_TO_ACCESS_METADATA = "UNABLE_TO_ACCESS_METADATA"
    UNABLE_TO_PUBLISH_ANALYSIS = "UNABLE_TO_PUBLISH_ANALYSIS"
    UNABLE_TO_ANALYZE_DATASET_CONTENT = "UNABLE_TO_ANALYZE_DATASET_CONTENT"
    DATASET_LOCKED = "DATASET_LOCKED"
    DATASET_LOCK_LOST = "DATASET_LOCK_LOST"
    INVALID_ROW_ORDER = "INVALID_ROW_ORDER"


@dataclass(frozen=True)
class DatasetErrorSpec:
    title: str
    http_status: int
    retryable: bool
    context_entries: Tuple[str, ...] = ()

    def to_dict(self, code: DatasetErrorCode) -> Dict[str, object]:
        return {
            "schema": ERROR_CATALOG_SCHEMA_VERSION,
            "product": ERROR_PRODUCT,
            "group": ERROR_GROUP,
            "code": code.value,
            "title": self.title,
            "http_status": self.http_status,
            "retryable": self.retryable,
            "expected_context": list(self.context_entries),
        }


_CATALOG: Dict[DatasetErrorCode, DatasetErrorSpec] = {
    DatasetErrorCode.UNEXPECTED_IO_EXCEPTION: DatasetErrorSpec(
        title="Unexpected I/O failure while serving a data set",
        http_status=500,
        retryable=False,
    ),
    DatasetErrorCode.UNABLE_TO_READ_DATASET_CONTENT: DatasetErrorSpec(
        title="Data set content could not be read",
        http_status=500,
        retryable=False,
        context_entries=("id",),
    ),
    DatasetErrorCode.UNABLE_TO_STORE_DATASET_CONTENT: DatasetErrorSpec(
        title="Data set content could not be stored",
        http_status=500,
        retryable=False,
        context_entries=("id",),
    ),
    DatasetErrorCode.UNABLE_TO_DELETE_DATASET_CONTENT: DatasetErrorSpec(
        title="Data set content could not be deleted",
        http_status=500,
        retryable=False,
        context_entries=("id",),
    ),
    DatasetErrorCode.UNABLE_TO_ACCESS_METADATA: DatasetErrorSpec(
        title="Data set metadata repository failure",
        http_status=500,
        retryable=False,
        context_entries=("id",),
    ),
    DatasetErrorCode.UNABLE_TO_PUBLISH_ANALYSIS: DatasetErrorSpec(
        title="Analysis trigger could not be published",
        http_status=500,
        retryable=False,
        context_entries=("id", "topic"),
    ),
    DatasetErrorCode.UNABLE_TO_ANALYZE_DATASET_CONTENT: DatasetErrorSpec(
        title="Data set content could not be analyzed",
        http_status=500,
        retryable=False,
        context_entries=("id",),
    ),
    DatasetErrorCode.DATASET_LOCKED: DatasetErrorSpec(
        title="Data set is locked by another operation",
        http_status=409,
        retryable=True,
        context_entries=("id", "timeout_seconds"),
    ),
    DatasetErrorCode.DATASET_LOCK_LOST: DatasetErrorSpec(
        title="Data set lock expired before the operation completed",
        http_status=409,
        retryable=True,
        context_entries=("id",),
    ),
    DatasetErrorCode.INVALID_ROW_ORDER: DatasetErrorSpec(
        title="Column sequence does not match the row",
        http_status=400,
        retryable=False,
        context_entries=("expected", "actual"),
    ),
}


def get_error_spec(code: DatasetErrorCode) -> DatasetErrorSpec:
    return _CATALOG[code]


def list_error_codes() -> List[Dict[str, object]]:
    """Catalog entries in declaration order, as served by GET /datasets/errors."""
    return [_CATALOG[code].to_dict(code) for code in DatasetErrorCode]

"""
Dataset service exceptions

Every failure carries a catalog code (see dataprep.errors.dataset_error_codes)
so the HTTP edge can map it to a status without parsing messages.
"""

from typing import Any, Dict, Optional

from dataprep.errors.dataset_error_codes import DatasetErrorCode, get_error_spec
from dataprep.exceptions.base import DomainException


class DatasetServiceError(DomainException):
    """A collaborator failure wrapped once, with the original cause attached"""

    def __init__(
        self,
        error_code: DatasetErrorCode,
        message: Optional[str] = None,
        *,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        spec = get_error_spec(error_code)
        super().__init__(
            message=message or spec.title,
            code=error_code.value,
            details=dict(context or {}),
        )
        self.error_code = error_code
        self.http_status = spec.http_status
        self.retryable = spec.retryable
        if cause is not None:
            self.__cause__ = cause

    @property
    def context(self) -> Dict[str, Any]:
        return self.details


class DatasetLockTimeoutError(DatasetServiceError):
    """Lock ownership was not granted before the timeout elapsed"""

    def __init__(self, dataset_id: str, timeout_seconds: float):
        super().__init__(
            DatasetErrorCode.DATASET_LOCKED,
            f"Timed out waiting for dataset lock: {dataset_id}",
            context={"id": dataset_id, "timeout_seconds": timeout_seconds},
        )
        self.dataset_id = dataset_id
        self.timeout_seconds = timeout_seconds


class DatasetLockLostError(DatasetServiceError):
    def __init__(self, dataset_id: str):
        super().__init__(
            DatasetErrorCode.DATASET_LOCK_LOST,
            f"Dataset lock lost: {dataset_id}",
            context={"id": dataset_id},
        )
        self.dataset_id = dataset_id


class RowOrderError(DatasetServiceError):
    """Caller asked for a reorder that is not a 1:1 permutation of the row"""

    def __init__(self, message: str, *, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(
            DatasetErrorCode.INVALID_ROW_ORDER,
            message,
            context={"expected": expected, "actual": actual},
        )

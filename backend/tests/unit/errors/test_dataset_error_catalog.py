from __future__ import annotations

from botocore.exceptions import ClientError

from dataprep.errors.dataset_error_codes import DatasetErrorCode, get_error_spec, list_error_codes
from dataprep.errors.error_envelope import build_error_envelope
from dataprep.exceptions.dataset import DatasetLockTimeoutError, DatasetServiceError


def test_catalog_lists_every_code_in_order() -> None:
    entries = list_error_codes()

    assert [entry["code"] for entry in entries] == [code.value for code in DatasetErrorCode]
    first = entries[0]
    assert first["product"] == "TDP"
    assert first["group"] == "DSS"
    assert first["http_status"] == 500


def test_lock_errors_are_conflicts() -> None:
    assert get_error_spec(DatasetErrorCode.DATASET_LOCKED).http_status == 409
    assert get_error_spec(DatasetErrorCode.DATASET_LOCKED).retryable is True
    assert get_error_spec(DatasetErrorCode.INVALID_ROW_ORDER).http_status == 400


def test_service_error_keeps_cause_and_context() -> None:
    cause = ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")

    error = DatasetServiceError(
        DatasetErrorCode.UNABLE_TO_READ_DATASET_CONTENT,
        context={"id": "ds-1"},
        cause=cause,
    )

    assert str(error) == "Data set content could not be read"
    assert error.code == "UNABLE_TO_READ_DATASET_CONTENT"
    assert error.http_status == 500
    assert error.context == {"id": "ds-1"}
    assert error.__cause__ is cause


def test_error_envelope_shape() -> None:
    error = DatasetLockTimeoutError("ds-1", 2.5)

    envelope = build_error_envelope(
        error,
        service_name="DatasetService",
        origin={"method": "PUT", "path": "/datasets/ds-1/raw"},
        request_id="req-1",
    )

    assert envelope == {
        "status": "error",
        "code": "DATASET_LOCKED",
        "message": "Timed out waiting for dataset lock: ds-1",
        "http_status": 409,
        "retryable": True,
        "origin": {"service": "DatasetService", "method": "PUT", "path": "/datasets/ds-1/raw"},
        "request_id": "req-1",
        "context": {"id": "ds-1", "timeout_seconds": 2.5},
    }


def test_error_envelope_drops_empty_context_values() -> None:
    error = DatasetServiceError(
        DatasetErrorCode.UNABLE_TO_ACCESS_METADATA,
        context={"id": None},
        cause=OSError("connection refused"),
    )

    envelope = build_error_envelope(error, service_name="DatasetService")

    assert envelope["context"] == {}
    assert envelope["cause"] == "OSError"
    assert envelope["origin"] == {"service": "DatasetService", "method": None, "path": None}

from __future__ import annotations

from typing import Any, Dict, Optional

from dataprep.exceptions.dataset import DatasetServiceError


def _normalize_origin(
    *,
    service_name: str,
    origin: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, Optional[str]]:
    payload = dict(origin or {})
    payload.setdefault("service", service_name)
    payload.setdefault("method", None)
    payload.setdefault("path", None)
    return payload


def build_error_envelope(
    error: DatasetServiceError,
    *,
    service_name: str,
    origin: Optional[Dict[str, Optional[str]]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "status": "error",
        "code": error.error_code.value,
        "message": str(error),
        "http_status": error.http_status,
        "retryable": error.retryable,
        "origin": _normalize_origin(service_name=service_name, origin=origin),
        "request_id": request_id,
    }
    if error.context:
        payload["context"] = {key: value for key, value in error.context.items() if value is not None}
    cause = error.__cause__
    if cause is not None:
        payload["cause"] = type(cause).__name__
    return payload

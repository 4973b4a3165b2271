"""
Error handling for the dataset services

DatasetServiceError carries its catalog code; the handler renders the error
envelope with the catalog HTTP status so callers never parse messages.
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dataprep.errors.error_envelope import build_error_envelope
from dataprep.exceptions.dataset import DatasetServiceError

logger = logging.getLogger(__name__)


def setup_error_handlers(app: FastAPI, *, service_name: str) -> None:
    """Register the DatasetServiceError handler on ``app``."""

    @app.exception_handler(DatasetServiceError)
    async def dataset_service_error_handler(request: Request, exc: DatasetServiceError):
        request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        if exc.http_status >= 500:
            logger.error(
                "%s %s failed with %s: %s",
                request.method,
                request.url.path,
                exc.error_code.value,
                exc,
                exc_info=exc.__cause__ is not None,
            )
        else:
            logger.warning("%s %s rejected with %s: %s", request.method, request.url.path, exc.error_code.value, exc)

        return JSONResponse(
            status_code=exc.http_status,
            content=build_error_envelope(
                exc,
                service_name=service_name,
                origin={"method": request.method, "path": str(request.url.path)},
                request_id=request_id,
            ),
            headers={"X-Request-ID": request_id},
        )

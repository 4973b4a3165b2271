"""
Dataset routes.

Status codes carry the lifecycle state on reads: 200 with content, 202 while
analysis is still pending, 204 for unknown ids.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from dataprep.services.dataset_service import DatasetLifecycleService, DatasetReadResult
from dataset_service.dependencies import AuthorDep, DatasetServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/datasets", tags=["Datasets"])


def _read_response(result: DatasetReadResult) -> Response:
    if not result.ready:
        return Response(status_code=result.status.http_status)
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.payload)


@router.get("")
async def list_datasets(service: DatasetLifecycleService = DatasetServiceDep) -> List[Dict[str, Any]]:
    """List all datasets. Creation dates use the configured display timezone."""
    return await service.list_datasets()


@router.post("", response_class=PlainTextResponse)
async def create_dataset(
    request: Request,
    name: str = Query(default="", description="Display name of the new dataset"),
    author: str = AuthorDep,
    service: DatasetLifecycleService = DatasetServiceDep,
) -> PlainTextResponse:
    """Create a dataset from the raw request body; returns the new id as text."""
    content = await request.body()
    dataset_id = await service.create(content, author=author, name=name)
    return PlainTextResponse(dataset_id)


@router.get("/errors")
async def list_errors(service: DatasetLifecycleService = DatasetServiceDep) -> List[Dict[str, Any]]:
    return service.list_error_codes()


@router.get("/{dataset_id}/content")
async def get_dataset_content(
    dataset_id: str,
    metadata: bool = Query(default=True, description="Include dataset metadata"),
    columns: bool = Query(default=False, description="Include column metadata (requires quality analysis)"),
    service: DatasetLifecycleService = DatasetServiceDep,
) -> Response:
    result = await service.get_content(dataset_id, include_metadata=metadata, include_columns=columns)
    return _read_response(result)


@router.get("/{dataset_id}/metadata")
async def get_dataset_metadata(
    dataset_id: str,
    columns: bool = Query(default=False, description="Include column metadata (requires quality analysis)"),
    service: DatasetLifecycleService = DatasetServiceDep,
) -> Response:
    result = await service.get_metadata(dataset_id, include_columns=columns)
    return _read_response(result)


@router.put("/{dataset_id}/raw")
async def update_raw_dataset(
    dataset_id: str,
    request: Request,
    name: Optional[str] = Query(default=None, description="New display name"),
    author: str = AuthorDep,
    service: DatasetLifecycleService = DatasetServiceDep,
) -> Response:
    """Replace content (unknown ids are created). An empty body only renames."""
    content = await request.body()
    await service.update_raw(dataset_id, content, author=author, name=name)
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/{dataset_id}")
async def delete_dataset(
    dataset_id: str,
    service: DatasetLifecycleService = DatasetServiceDep,
) -> Response:
    """Delete a dataset. Unknown ids answer 200 as well."""
    await service.delete(dataset_id)
    return Response(status_code=status.HTTP_200_OK)

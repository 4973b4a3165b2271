"""
Dataset service dependencies

Collaborators are wired once by the application lifespan and kept on
``app.state``; routes receive them through FastAPI Depends so tests can swap
them with ``app.dependency_overrides``.
"""

from fastapi import Depends, Header, HTTPException, Request, status

from dataprep.services.dataset_service import DatasetLifecycleService

ANONYMOUS_AUTHOR = "anonymous"


def get_dataset_service(request: Request) -> DatasetLifecycleService:
    service = getattr(request.app.state, "dataset_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dataset service not initialized",
        )
    return service


def get_author(x_user_id: str = Header(default="", alias="X-User-Id")) -> str:
    """Caller identity for created/updated datasets."""
    return x_user_id.strip() or ANONYMOUS_AUTHOR


DatasetServiceDep = Depends(get_dataset_service)
AuthorDep = Depends(get_author)

"""
Dataset Service

Dataset ingestion, analysis-gated reads and deletes over the content store,
the metadata repository and the analysis message bus.

Port: 8004
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env file

from contextlib import AsyncExitStack, asynccontextmanager
from typing import Dict

from fastapi import FastAPI

from dataprep.config.settings import ApplicationSettings, StorageBackend, get_settings
from dataprep.middleware.error_handler import setup_error_handlers
from dataprep.services.analysis_queue import DatasetAnalysisPublisher
from dataprep.services.content_store import S3DatasetContentStore
from dataprep.services.dataset_lock import DatasetLockCoordinator
from dataprep.services.dataset_service import DatasetLifecycleService
from dataprep.services.metadata_repository import DatasetMetadataRepository
from dataprep.services.redis_service import create_redis_service
from dataprep.services.service_factory import create_fastapi_service, dataset_service_info, run_service
from dataprep.services.in_memory import (
    InMemoryContentStore,
    InMemoryLockCoordinator,
    InMemoryMetadataRepository,
    RecordingAnalysisPublisher,
)
from dataprep.utils.app_logger import configure_logging, get_logger
from dataset_service.routers import datasets

logger = get_logger(__name__)

DATASET_SERVICE_INFO = dataset_service_info()


def _memory_service(settings: ApplicationSettings) -> DatasetLifecycleService:
    locks = InMemoryLockCoordinator(settings.locks.dataset_lock_acquire_timeout_seconds)
    return DatasetLifecycleService(
        metadata_store=InMemoryMetadataRepository(locks),
        content_store=InMemoryContentStore(),
        analysis_publisher=RecordingAnalysisPublisher(
            settings.analysis.format_analysis_topic,
            settings.analysis.content_analysis_topic,
        ),
        display_timezone=settings.services.display_timezone,
    )


async def _postgres_service(settings: ApplicationSettings, stack: AsyncExitStack) -> DatasetLifecycleService:
    redis_service = create_redis_service(settings)
    await redis_service.connect()
    stack.push_async_callback(redis_service.disconnect)

    locks = DatasetLockCoordinator.from_settings(redis_service.client, settings.locks)
    repository = DatasetMetadataRepository.from_settings(settings.database, locks)
    await repository.initialize()
    stack.push_async_callback(repository.close)

    content_store = S3DatasetContentStore.from_settings(settings.storage)
    await content_store.ensure_bucket()

    publisher = DatasetAnalysisPublisher.from_settings(settings)
    stack.callback(publisher.close)

    return DatasetLifecycleService(
        metadata_store=repository,
        content_store=content_store,
        analysis_publisher=publisher,
        display_timezone=settings.services.display_timezone,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    backend = settings.services.storage_backend
    logger.info("Dataset Service starting (backend=%s)", backend.value)

    async with AsyncExitStack() as stack:
        if backend == StorageBackend.MEMORY:
            app.state.dataset_service = _memory_service(settings)
        else:
            app.state.dataset_service = await _postgres_service(settings, stack)
        yield
        app.state.dataset_service = None

    logger.info("Dataset Service stopped")


async def _health_probe(app: FastAPI) -> Dict[str, str]:
    service = getattr(app.state, "dataset_service", None)
    return {"dataset_service": "ok" if service is not None else "unavailable"}


app = create_fastapi_service(
    service_info=DATASET_SERVICE_INFO,
    custom_lifespan=lifespan,
    include_health_check=True,
    include_logging_middleware=True,
    health_probe=_health_probe,
)
setup_error_handlers(app, service_name=DATASET_SERVICE_INFO.name)

app.include_router(datasets.router)


if __name__ == "__main__":
    run_service(app, DATASET_SERVICE_INFO, "dataset_service.main:app")

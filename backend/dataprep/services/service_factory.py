"""
Service Factory Module

Common FastAPI application setup for the dataset services: CORS, request
logging, root and health endpoints, uvicorn configuration.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from dataprep.config.settings import ApplicationSettings, get_settings
from dataprep.models.responses import ApiResponse

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

HealthProbe = Callable[[FastAPI], Awaitable[Dict[str, str]]]


class ServiceInfo:
    """Service configuration container"""

    def __init__(
        self,
        name: str,
        title: str,
        description: str,
        version: str = "1.0.0",
        port: int = 8000,
        host: str = "localhost",
        tags: Optional[List[Dict[str, str]]] = None
    ):
        self.name = name
        self.title = title
        self.description = description
        self.version = version
        self.port = port
        self.host = host
        self.tags = tags or []


def create_fastapi_service(
    service_info: ServiceInfo,
    custom_lifespan: Optional[Callable] = None,
    include_health_check: bool = True,
    include_logging_middleware: bool = True,
    health_probe: Optional[HealthProbe] = None,
    settings: Optional[ApplicationSettings] = None,
) -> FastAPI:
    """
    Create a standardized FastAPI application.

    Args:
        service_info: Service configuration
        custom_lifespan: Optional custom lifespan function
        include_health_check: Whether to include the root and /health endpoints
        include_logging_middleware: Whether to include request logging middleware
        health_probe: Optional coroutine returning dependency states for /health
        settings: Settings override (defaults to the global settings)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    if custom_lifespan:
        lifespan_func = custom_lifespan
    else:
        @asynccontextmanager
        async def default_lifespan(app: FastAPI):
            logger.info("%s service starting", service_info.name)
            yield
            logger.info("%s service stopped", service_info.name)
        lifespan_func = default_lifespan

    openapi_tags = [
        {"name": "Health", "description": "Health check and service status"}
    ]
    openapi_tags.extend(service_info.tags)

    app = FastAPI(
        title=service_info.title,
        description=service_info.description,
        version=service_info.version,
        lifespan=lifespan_func,
        openapi_tags=openapi_tags
    )

    _configure_cors(app, settings)

    if include_logging_middleware:
        _add_logging_middleware(app)

    if include_health_check:
        _add_health_check(app, service_info, health_probe)

    logger.info("%s FastAPI app created", service_info.name)
    return app


def _configure_cors(app: FastAPI, settings: ApplicationSettings) -> None:
    """Configure CORS middleware from the service settings"""
    if not settings.services.cors_enabled:
        logger.info("CORS disabled")
        return
    origins = settings.services.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("CORS enabled with origins: %s", origins)


def _add_logging_middleware(app: FastAPI) -> None:
    """Tag each request with an X-Request-ID and log its outcome"""
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        logger.info(
            "%s %s -> %s in %.4fs [%s]",
            request.method,
            request.url.path,
            response.status_code,
            time.perf_counter() - started,
            request_id,
        )
        return response


def _add_health_check(app: FastAPI, service_info: ServiceInfo, health_probe: Optional[HealthProbe]) -> None:
    """Add standardized health check endpoints"""

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "service": service_info.name,
            "title": service_info.title,
            "version": service_info.version,
            "description": service_info.description,
            "status": "running"
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        dependencies = await health_probe(app) if health_probe else None
        return ApiResponse.health_check(
            service_name=service_info.name,
            version=service_info.version,
            description=service_info.description,
            dependencies=dependencies,
        ).to_dict()


def create_uvicorn_config(service_info: ServiceInfo, reload: bool = False) -> Dict[str, Any]:
    """Create standardized uvicorn configuration."""
    return {
        "host": service_info.host,
        "port": service_info.port,
        "reload": reload,
        "log_config": _get_logging_config(service_info.name)
    }


def _get_logging_config(service_name: str) -> Dict[str, Any]:
    """Get standardized logging configuration for uvicorn"""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(asctime)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(levelprefix)s %(asctime)s - %(client_addr)s - "%(request_line)s" %(status_code)s',
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
            "access": {
                "formatter": "access",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"level": "INFO"},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
            service_name.lower(): {"handlers": ["default"], "level": "INFO", "propagate": False},
        },
    }


def run_service(
    app: FastAPI,
    service_info: ServiceInfo,
    app_module_path: str,
    reload: bool = False
) -> None:
    """
    Run the service with standardized uvicorn configuration.

    Args:
        app: FastAPI application instance
        service_info: Service configuration
        app_module_path: Module path for uvicorn (e.g., "dataset_service.main:app")
        reload: Enable auto-reload for development
    """
    config = create_uvicorn_config(service_info, reload)
    if reload:
        uvicorn.run(app_module_path, **config)
    else:
        uvicorn.run(app, **config)


def dataset_service_info(settings: Optional[ApplicationSettings] = None) -> ServiceInfo:
    settings = settings or get_settings()
    return ServiceInfo(
        name="DatasetService",
        title="Dataset Service",
        description="Dataset ingestion with analysis-gated reads and row change tracking",
        version="1.0.0",
        port=settings.services.dataset_service_port,
        host=settings.services.dataset_service_host,
        tags=[
            {"name": "Datasets", "description": "Dataset lifecycle operations"},
        ]
    )

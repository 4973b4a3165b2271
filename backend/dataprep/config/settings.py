"""
Centralized configuration for the dataset service

Type-safe settings built on Pydantic Settings. Each group binds its own
environment variables (case-insensitive); ApplicationSettings aggregates them.
"""

import json
import os
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _settings_config() -> SettingsConfigDict:
    return SettingsConfigDict(
        env_file=".env" if not os.getenv("DOCKER_CONTAINER") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


class Environment(str, Enum):
    """Application environment types"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class StorageBackend(str, Enum):
    """Which collaborator implementations the service wires at startup"""
    POSTGRES = "postgres"
    MEMORY = "memory"


class DatabaseSettings(BaseSettings):
    """Metadata repository, lock store and message bus endpoints"""

    model_config = _settings_config()

    # PostgreSQL (metadata repository)
    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_port: int = Field(default=5432, description="PostgreSQL port")
    postgres_user: str = Field(default="dataprep", description="PostgreSQL username")
    postgres_password: str = Field(default="dataprep", description="PostgreSQL password")
    postgres_db: str = Field(default="dataprep", description="PostgreSQL database name")
    postgres_schema: str = Field(default="dataprep_datasets", description="Schema holding dataset metadata")
    postgres_pool_min: int = Field(default=1, description="Minimum pool size")
    postgres_pool_max: int = Field(default=5, description="Maximum pool size")
    postgres_command_timeout: int = Field(default=30, description="Statement timeout in seconds")

    # Redis (lock coordinator)
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_password: Optional[str] = Field(default=None, description="Redis password")
    redis_db: int = Field(default=0, description="Redis logical database")

    # Kafka (analysis triggers)
    kafka_host: str = Field(default="localhost", description="Kafka host")
    kafka_port: int = Field(default=9092, description="Kafka port")
    kafka_bootstrap_servers: Optional[str] = Field(
        default=None,
        description="Kafka bootstrap servers (overrides host:port)"
    )

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL"""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def kafka_servers(self) -> str:
        """Get Kafka bootstrap servers"""
        if self.kafka_bootstrap_servers:
            return self.kafka_bootstrap_servers
        return f"{self.kafka_host}:{self.kafka_port}"

    @property
    def redis_url(self) -> str:
        """Construct Redis URL"""
        if not self.redis_password:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"


class StorageSettings(BaseSettings):
    """Content store (MinIO/S3) settings"""

    model_config = _settings_config()

    minio_endpoint_url: str = Field(default="http://localhost:9000", description="MinIO/S3 endpoint URL")
    minio_access_key: str = Field(default="minioadmin", description="MinIO/S3 access key")
    minio_secret_key: str = Field(default="minioadmin123", description="MinIO/S3 secret key")
    minio_region: str = Field(default="us-east-1", description="MinIO/S3 region")
    dataset_content_bucket: str = Field(default="dataset-content", description="Bucket for raw dataset content")

    @property
    def use_ssl(self) -> bool:
        """Determine if SSL should be used based on endpoint URL"""
        return self.minio_endpoint_url.startswith("https://")


class LockSettings(BaseSettings):
    """Per-dataset mutual exclusion"""

    model_config = _settings_config()

    dataset_lock_ttl_seconds: int = Field(default=60, description="Lock key expiry in seconds")
    dataset_lock_renew_seconds: int = Field(
        default=20,
        description="Renewal interval while the lock is held (0 disables renewal)"
    )
    dataset_lock_retry_seconds: float = Field(default=0.1, description="Polling interval while waiting")
    dataset_lock_acquire_timeout_seconds: float = Field(
        default=30.0,
        description="How long a mutation waits for the lock before failing"
    )

    @field_validator("dataset_lock_ttl_seconds")
    @classmethod
    def _ttl_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("dataset_lock_ttl_seconds must be positive")
        return v


class AnalysisSettings(BaseSettings):
    """Analysis trigger topics and worker behaviour"""

    model_config = _settings_config()

    format_analysis_topic: str = Field(default="dataset-format-analysis", description="Format analysis trigger topic")
    content_analysis_topic: str = Field(default="dataset-content-analysis", description="Quality analysis trigger topic")
    analysis_consumer_group: str = Field(default="dataset-analysis-worker", description="Kafka consumer group")
    analysis_max_retries: int = Field(default=5, description="Attempts before a trigger is dropped")
    analysis_backoff_base_seconds: int = Field(default=2, description="Exponential backoff base")
    analysis_backoff_max_seconds: int = Field(default=60, description="Backoff ceiling")


class ServiceSettings(BaseSettings):
    """HTTP service settings"""

    model_config = _settings_config()

    dataset_service_host: str = Field(default="0.0.0.0", description="Dataset service bind host")
    dataset_service_port: int = Field(default=8004, description="Dataset service port")
    storage_backend: StorageBackend = Field(
        default=StorageBackend.POSTGRES,
        description="postgres wires Postgres/Redis/Kafka/S3, memory keeps everything in-process"
    )
    display_timezone: str = Field(default="UTC", description="Timezone used when rendering creation dates")
    cors_enabled: bool = Field(default=True, description="Enable CORS")
    cors_origins: str = Field(
        default='["http://localhost:3000", "http://localhost:8080"]',
        description="CORS allowed origins (JSON array string)"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from JSON string"""
        try:
            return json.loads(self.cors_origins)
        except (json.JSONDecodeError, TypeError):
            return ["*"]


class ApplicationSettings(BaseSettings):
    """Main application settings - aggregates all other settings"""

    model_config = _settings_config()

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Application environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    locks: LockSettings = Field(default_factory=LockSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    services: ServiceSettings = Field(default_factory=ServiceSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == Environment.PRODUCTION

    @property
    def is_test(self) -> bool:
        """Check if running in test mode"""
        return self.environment == Environment.TEST


settings = ApplicationSettings()


def get_settings() -> ApplicationSettings:
    """
    Get the global settings instance

    Usable with FastAPI's Depends() for dependency injection.
    """
    return settings


def reload_settings() -> ApplicationSettings:
    """
    Reload settings from environment (useful for testing)
    """
    global settings
    settings = ApplicationSettings()
    return settings

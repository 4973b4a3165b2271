"""
Redis Client Service

Pooled async Redis client backing the dataset lock coordinator.
"""

import logging
from typing import TYPE_CHECKING, Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from dataprep.config.settings import ApplicationSettings

logger = logging.getLogger(__name__)


class RedisService:
    """
    Async Redis client service with connection pooling.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: Optional[str] = None,
        db: int = 0,
        decode_responses: bool = True,
        max_connections: int = 50,
        socket_timeout: int = 5,
        connection_timeout: int = 5,
        retry_on_timeout: bool = True
    ):
        self.host = host
        self.port = port
        self.db = db

        self.pool = ConnectionPool(
            host=host,
            port=port,
            password=password,
            db=db,
            decode_responses=decode_responses,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            socket_connect_timeout=connection_timeout,
            retry_on_timeout=retry_on_timeout,
            health_check_interval=30
        )

        self._client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Initialize Redis connection."""
        try:
            self._client = redis.Redis(connection_pool=self.pool)
            await self._client.ping()
            logger.info("Connected to Redis at %s:%s", self.host, self.port)
        except RedisError as e:
            logger.error("Failed to connect to Redis: %s", e)
            raise

    async def disconnect(self) -> None:
        """Close Redis connection and pool."""
        try:
            if self._client:
                await self._client.aclose()
                self._client = None
            await self.pool.disconnect()
            logger.info("Disconnected from Redis")
        except RedisError as e:
            logger.error("Error disconnecting from Redis: %s", e)

    @property
    def client(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self._client:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    async def ping(self) -> bool:
        """Check Redis connection."""
        try:
            return await self.client.ping()
        except RedisError:
            return False


def create_redis_service(settings: "ApplicationSettings") -> RedisService:
    """Build a RedisService from the centralized settings."""
    return RedisService(
        host=settings.database.redis_host,
        port=settings.database.redis_port,
        password=settings.database.redis_password,
        db=settings.database.redis_db,
    )

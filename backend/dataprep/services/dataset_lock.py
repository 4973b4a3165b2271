from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import uuid4

from redis.exceptions import RedisError

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetLockLostError, DatasetLockTimeoutError, DatasetServiceError
from dataprep.interfaces.dataset_collaborators import DatasetLockHandle

if TYPE_CHECKING:
    from dataprep.config.settings import LockSettings

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = (
    "if redis.call('GET', KEYS[1]) == ARGV[1] then "
    "return redis.call('DEL', KEYS[1]) else return 0 end"
)
_EXTEND_SCRIPT = (
    "if redis.call('GET', KEYS[1]) == ARGV[1] then "
    "return redis.call('EXPIRE', KEYS[1], ARGV[2]) else return 0 end"
)


class DatasetLock(DatasetLockHandle):
    def __init__(
        self,
        *,
        redis_client: Any,
        dataset_id: str,
        key: str,
        ttl_seconds: int,
        renew_seconds: int,
        retry_seconds: float,
        acquire_timeout_seconds: float,
    ) -> None:
        self._redis = redis_client
        self.dataset_id = dataset_id
        self._key = key
        self._ttl_seconds = ttl_seconds
        self._renew_seconds = max(0, int(renew_seconds))
        self._retry_seconds = max(0.01, float(retry_seconds))
        self._acquire_timeout_seconds = acquire_timeout_seconds
        self._token: Optional[str] = None
        self._renew_task: Optional[asyncio.Task] = None
        self._lost = False

    @property
    def key(self) -> str:
        return self._key

    @property
    def held(self) -> bool:
        return self._token is not None

    async def acquire(self, timeout_seconds: Optional[float] = None) -> "DatasetLock":
        timeout = self._acquire_timeout_seconds if timeout_seconds is None else timeout_seconds
        token = uuid4().hex
        start = time.monotonic()
        while True:
            try:
                acquired = await self._redis.set(self._key, token, nx=True, ex=self._ttl_seconds)
            except RedisError as exc:
                raise DatasetServiceError(
                    DatasetErrorCode.UNEXPECTED_IO_EXCEPTION,
                    f"Lock store unavailable for dataset {self.dataset_id}",
                    context={"id": self.dataset_id},
                    cause=exc,
                ) from exc
            if acquired:
                self._token = token
                self._lost = False
                await self._start_renewal()
                logger.debug("Dataset lock acquired (key=%s)", self._key)
                return self
            elapsed = time.monotonic() - start
            if elapsed >= timeout:
                logger.warning("Timed out waiting for dataset lock (key=%s, timeout=%ss)", self._key, timeout)
                raise DatasetLockTimeoutError(self.dataset_id, timeout)
            await asyncio.sleep(min(self._retry_seconds, max(0.0, timeout - elapsed)))

    async def _start_renewal(self) -> None:
        if self._renew_seconds <= 0:
            return
        if self._renew_task:
            return
        self._renew_task = asyncio.create_task(self._renew_loop())

    def raise_if_lost(self) -> None:
        if self._lost:
            raise DatasetLockLostError(self.dataset_id)

    async def release(self) -> None:
        if self._renew_task:
            self._renew_task.cancel()
            try:
                await self._renew_task
            except asyncio.CancelledError:
                pass
            self._renew_task = None
        token, self._token = self._token, None
        if token is None:
            return
        try:
            await self._redis.eval(_RELEASE_SCRIPT, 1, self._key, token)
            logger.debug("Dataset lock released (key=%s)", self._key)
        except RedisError as exc:
            # the key still expires after ttl_seconds
            logger.warning("Failed to release dataset lock (key=%s): %s", self._key, exc)

    async def _renew_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._renew_seconds)
                ok = await self._extend()
                if not ok:
                    self._lost = True
                    logger.error("Dataset lock lost during renewal (key=%s)", self._key)
                    return
            except asyncio.CancelledError:
                raise
            except RedisError as exc:
                self._lost = True
                logger.error("Dataset lock renewal failed (key=%s): %s", self._key, exc)
                return

    async def _extend(self) -> bool:
        if self._token is None:
            return False
        result = await self._redis.eval(_EXTEND_SCRIPT, 1, self._key, self._token, self._ttl_seconds)
        return bool(result)


class DatasetLockCoordinator:
    """
    Grants exclusive, timed ownership of a dataset id across processes.

    Keys live in Redis as ``{key_prefix}:{dataset_id}`` with a TTL so a crashed
    holder cannot starve other writers forever.
    """

    def __init__(
        self,
        redis_client: Any,
        *,
        ttl_seconds: int = 60,
        renew_seconds: int = 20,
        retry_seconds: float = 0.1,
        acquire_timeout_seconds: float = 30.0,
        key_prefix: str = "dataset-lock",
    ) -> None:
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds
        self._renew_seconds = min(renew_seconds, max(1, ttl_seconds // 3)) if renew_seconds > 0 else 0
        self._retry_seconds = retry_seconds
        self._acquire_timeout_seconds = acquire_timeout_seconds
        self._key_prefix = key_prefix
        self._held: Dict[str, DatasetLock] = {}

    @classmethod
    def from_settings(cls, redis_client: Any, lock_settings: "LockSettings") -> "DatasetLockCoordinator":
        return cls(
            redis_client,
            ttl_seconds=lock_settings.dataset_lock_ttl_seconds,
            renew_seconds=lock_settings.dataset_lock_renew_seconds,
            retry_seconds=lock_settings.dataset_lock_retry_seconds,
            acquire_timeout_seconds=lock_settings.dataset_lock_acquire_timeout_seconds,
        )

    def lock_key(self, dataset_id: str) -> str:
        return f"{self._key_prefix}:{dataset_id}"

    def create_lock(self, dataset_id: str) -> DatasetLock:
        return DatasetLock(
            redis_client=self._redis,
            dataset_id=dataset_id,
            key=self.lock_key(dataset_id),
            ttl_seconds=self._ttl_seconds,
            renew_seconds=self._renew_seconds,
            retry_seconds=self._retry_seconds,
            acquire_timeout_seconds=self._acquire_timeout_seconds,
        )

    async def acquire(self, resource_key: str, timeout: Optional[float] = None) -> DatasetLock:
        lock = self.create_lock(resource_key)
        await lock.acquire(timeout)
        self._held[resource_key] = lock
        return lock

    async def release(self, resource_key: str) -> None:
        lock = self._held.pop(resource_key, None)
        if lock is None:
            return
        await lock.release()

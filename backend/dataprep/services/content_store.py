"""
Dataset content store on S3/MinIO

Raw bytes of every dataset live under ``datasets/{dataset_id}/raw`` in one
bucket. boto3 is blocking, so calls run in the default executor.
"""

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from functools import partial
from typing import TYPE_CHECKING, Any, Callable

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetServiceError
from dataprep.interfaces.dataset_collaborators import DatasetContentStore
from dataprep.models.dataset import DatasetMetadata

if TYPE_CHECKING:
    from dataprep.config.settings import StorageSettings

logger = logging.getLogger(__name__)


def raw_content_key(dataset_id: str) -> str:
    return f"datasets/{dataset_id}/raw"


class S3DatasetContentStore(DatasetContentStore):
    def __init__(
        self,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
        use_ssl: bool = False
    ):
        self.endpoint_url = endpoint_url
        self.bucket = bucket
        self.client: BaseClient = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            use_ssl=use_ssl,
        )

    @classmethod
    def from_settings(cls, storage: "StorageSettings") -> "S3DatasetContentStore":
        return cls(
            endpoint_url=storage.minio_endpoint_url,
            access_key=storage.minio_access_key,
            secret_key=storage.minio_secret_key,
            bucket=storage.dataset_content_bucket,
            region=storage.minio_region,
            use_ssl=storage.use_ssl,
        )

    async def _call(self, fn: Callable[..., Any], **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, **kwargs))

    async def ensure_bucket(self) -> None:
        try:
            await self._call(self.client.head_bucket, Bucket=self.bucket)
            return
        except ClientError:
            pass
        try:
            await self._call(self.client.create_bucket, Bucket=self.bucket)
            logger.info("Created dataset content bucket %s", self.bucket)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'BucketAlreadyOwnedByYou':
                return
            raise DatasetServiceError(
                DatasetErrorCode.UNEXPECTED_IO_EXCEPTION,
                f"Unable to create content bucket {self.bucket}",
                cause=e,
            ) from e

    async def store_as_raw(self, dataset_id: str, content: bytes) -> None:
        checksum = hashlib.sha256(content).hexdigest()
        try:
            await self._call(
                self.client.put_object,
                Bucket=self.bucket,
                Key=raw_content_key(dataset_id),
                Body=content,
                ContentType='application/octet-stream',
                Metadata={
                    'checksum': checksum,
                    'created-at': datetime.now(timezone.utc).isoformat(),
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_STORE_DATASET_CONTENT,
                context={"id": dataset_id},
                cause=e,
            ) from e
        logger.info("Stored raw content for dataset %s (%d bytes)", dataset_id, len(content))

    async def get(self, metadata: DatasetMetadata) -> bytes:
        try:
            response = await self._call(
                self.client.get_object,
                Bucket=self.bucket,
                Key=raw_content_key(metadata.id),
            )
            return await self._call(response['Body'].read)
        except (ClientError, BotoCoreError) as e:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_READ_DATASET_CONTENT,
                context={"id": metadata.id},
                cause=e,
            ) from e

    async def delete(self, metadata: DatasetMetadata) -> None:
        try:
            await self._call(
                self.client.delete_object,
                Bucket=self.bucket,
                Key=raw_content_key(metadata.id),
            )
        except (ClientError, BotoCoreError) as e:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_DELETE_DATASET_CONTENT,
                context={"id": metadata.id},
                cause=e,
            ) from e
        logger.info("Deleted raw content for dataset %s", metadata.id)

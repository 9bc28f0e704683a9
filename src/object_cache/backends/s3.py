"""S3-compatible object storage backend.

Entries are stored gzip-compressed at ``[{key_prefix}/]{storage_id}.gz`` with
the media type recorded as the object's ContentType. Works with AWS S3 and
S3-compatible stores such as Cloudflare R2 or MinIO via ``endpoint_url``.
"""

import gzip
import logging
import os
import zlib
from datetime import timezone
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from object_cache.backends.base import StorageBackend
from object_cache.exceptions import DecodeError, StorageError
from object_cache.mime import OCTET_STREAM
from object_cache.models import StoredEntry

logger = logging.getLogger(__name__)

ACCESS_KEY_ENV = "OBJECT_CACHE_S3_ACCESS_KEY_ID"
SECRET_KEY_ENV = "OBJECT_CACHE_S3_SECRET_ACCESS_KEY"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


class S3Backend(StorageBackend):
    """Stores cache entries as objects in an S3 bucket.

    When no client is supplied, credentials are read from environment
    variables at construction time:
        OBJECT_CACHE_S3_ACCESS_KEY_ID
        OBJECT_CACHE_S3_SECRET_ACCESS_KEY
    If neither is set, boto3's default credential chain applies.

    Attributes:
        bucket: Bucket name
        key_prefix: Optional prefix for all object keys, so several caches can
            share a bucket
    """

    def __init__(
        self,
        bucket: str,
        key_prefix: Optional[str] = None,
        client: Any = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
    ):
        """Initialize the S3 backend.

        Args:
            bucket: Bucket name
            key_prefix: Optional prefix for all object keys
            client: Existing boto3 S3 client; created when omitted
            endpoint_url: Endpoint URL for S3-compatible stores
            region: Region name

        Raises:
            ValueError: If only one of the credential environment variables is set
        """
        self.bucket = bucket
        self.key_prefix = key_prefix.strip("/") if key_prefix else None
        self.endpoint_url = endpoint_url
        self.region = region
        self._client = client if client is not None else self._create_client(endpoint_url, region)

    @staticmethod
    def _create_client(endpoint_url: Optional[str], region: Optional[str]) -> Any:
        access_key = os.environ.get(ACCESS_KEY_ENV)
        secret_key = os.environ.get(SECRET_KEY_ENV)

        if bool(access_key) != bool(secret_key):
            raise ValueError(
                "S3 credentials incomplete. "
                f"Set both {ACCESS_KEY_ENV} and {SECRET_KEY_ENV}, or neither to use "
                "the default AWS credential chain."
            )

        kwargs = {}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if region:
            kwargs["region_name"] = region
        if access_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key

        return boto3.client("s3", **kwargs)

    def get_object_key(self, storage_id: str) -> str:
        """Get the object key for a storage identifier.

        Args:
            storage_id: Storage identifier

        Returns:
            Object key within the bucket
        """
        name = f"{storage_id}.gz"
        return f"{self.key_prefix}/{name}" if self.key_prefix else name

    def _read_sync(self, storage_id: str) -> Optional[StoredEntry]:
        key = self.get_object_key(storage_id)

        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise StorageError(
                f"Failed to read s3://{self.bucket}/{key}: {e}",
                storage_id=storage_id,
                operation="read",
            ) from e
        except BotoCoreError as e:
            raise StorageError(
                f"Failed to read s3://{self.bucket}/{key}: {e}",
                storage_id=storage_id,
                operation="read",
            ) from e

        try:
            data = gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as e:
            raise DecodeError(
                f"Cached object s3://{self.bucket}/{key} is not valid gzip data: {e}",
                storage_id=storage_id,
            ) from e

        last_modified = response["LastModified"]
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)

        return StoredEntry(
            data=data,
            media_type=response.get("ContentType") or OCTET_STREAM,
            last_modified=last_modified,
        )

    def _write_sync(self, storage_id: str, data: bytes, media_type: str) -> str:
        key = self.get_object_key(storage_id)

        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                ContentType=media_type,
                Body=gzip.compress(data),
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to write s3://{self.bucket}/{key}: {e}",
                storage_id=storage_id,
                operation="write",
            ) from e

        return key

    def _delete_sync(self, storage_id: str) -> None:
        key = self.get_object_key(storage_id)

        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return
            raise StorageError(
                f"Failed to delete s3://{self.bucket}/{key}: {e}",
                storage_id=storage_id,
                operation="delete",
            ) from e
        except BotoCoreError as e:
            raise StorageError(
                f"Failed to delete s3://{self.bucket}/{key}: {e}",
                storage_id=storage_id,
                operation="delete",
            ) from e

    def _exists_sync(self, storage_id: str) -> bool:
        key = self.get_object_key(storage_id)

        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageError(
                f"Failed to check s3://{self.bucket}/{key}: {e}",
                storage_id=storage_id,
                operation="exists",
            ) from e
        except BotoCoreError as e:
            raise StorageError(
                f"Failed to check s3://{self.bucket}/{key}: {e}",
                storage_id=storage_id,
                operation="exists",
            ) from e

    async def read(self, storage_id: str) -> Optional[StoredEntry]:
        return await self._run_blocking(self._read_sync, storage_id)

    async def write(self, storage_id: str, data: bytes, media_type: str) -> None:
        key = await self._run_blocking(self._write_sync, storage_id, data, media_type)
        logger.debug(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")

    async def delete(self, storage_id: str) -> None:
        await self._run_blocking(self._delete_sync, storage_id)

    async def exists(self, storage_id: str) -> bool:
        return await self._run_blocking(self._exists_sync, storage_id)

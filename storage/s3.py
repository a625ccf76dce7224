"""
S3 blob store implementation using boto3.
"""

import asyncio
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from loguru import logger

from storage.base import BaseBlobStore, DEFAULT_LIST_LIMIT
from models.storage import StorageObject, UploadOptions
from exceptions import StorageError, classify_storage_message
from utils.retry import RetryPolicy, async_retry
from utils.timing import timed

# S3 accepts at most 1000 keys per DeleteObjects call.
DELETE_CHUNK_SIZE = 1000

LIST_RETRY_POLICY = RetryPolicy(max_attempts=3, initial_delay=1.0, max_delay=5.0)

_CLIENT_ERROR_CODES = {
    "NoSuchKey": "STORAGE_FILE_NOT_FOUND",
    "NotFound": "STORAGE_FILE_NOT_FOUND",
    "404": "STORAGE_FILE_NOT_FOUND",
    "NoSuchBucket": "STORAGE_BUCKET_NOT_FOUND",
    "AccessDenied": "STORAGE_PERMISSION_DENIED",
    "403": "STORAGE_PERMISSION_DENIED",
    "SlowDown": "NETWORK_RATE_LIMIT",
    "Throttling": "NETWORK_RATE_LIMIT",
    "RequestLimitExceeded": "NETWORK_RATE_LIMIT",
    "TooManyRequests": "NETWORK_RATE_LIMIT",
    "RequestTimeout": "NETWORK_TIMEOUT",
    "QuotaExceeded": "STORAGE_QUOTA_EXCEEDED",
}

_SERVER_ERROR_CODES = {"InternalError", "ServiceUnavailable", "500", "502", "503", "504"}


def _to_storage_error(error: Exception, operation: str, path: Optional[str] = None) -> StorageError:
    """Translate a boto3 / botocore exception into a catalogued storage error."""
    if isinstance(error, ClientError):
        aws_code = error.response.get("Error", {}).get("Code", "")
        message = error.response.get("Error", {}).get("Message", str(error))
        if aws_code in _CLIENT_ERROR_CODES:
            code = _CLIENT_ERROR_CODES[aws_code]
        elif aws_code in _SERVER_ERROR_CODES:
            code = f"STORAGE_{operation.upper()}_FAILED"
        else:
            code = classify_storage_message(message, operation)
        return StorageError(f"S3 {operation} failed ({aws_code}): {message}",
                            operation=operation, path=path, code=code)
    if isinstance(error, (ConnectTimeoutError, ReadTimeoutError)):
        return StorageError(f"S3 {operation} timed out: {error}", operation=operation, path=path,
                            code="NETWORK_TIMEOUT")
    if isinstance(error, EndpointConnectionError):
        return StorageError(f"S3 endpoint unreachable: {error}", operation=operation, path=path,
                            code="NETWORK_CONNECTION_FAILED")
    return StorageError.from_exception(error, operation, path)


class S3BlobStore(BaseBlobStore):
    """
    Blob store backed by an S3 bucket (or an S3-compatible service).

    boto3 is synchronous, so every call runs in a worker thread. Folders are
    emulated with '/' delimited keys.
    """

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_url: Optional[str] = None,
        client: Any = None,
    ):
        """
        Initialize S3 blob store.

        Args:
            bucket: Bucket name.
            region: AWS region.
            endpoint_url: Custom endpoint for S3-compatible services.
            public_url: URL prefix for public object URLs; defaults to the
                bucket's virtual-hosted endpoint.
            client: Pre-built boto3 S3 client (created lazily otherwise).
        """
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_url = public_url.rstrip("/") if public_url else None
        self._client = client
        logger.info(f"Initialized S3BlobStore (bucket={bucket}, region={region})")

    def _get_client(self):
        """Get or create the S3 client."""
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)
        return self._client

    async def _call(self, operation: str, path: Optional[str], method: str, **kwargs) -> Dict[str, Any]:
        client = self._get_client()
        try:
            with timed(f"s3 {method} {path or ''}"):
                return await asyncio.to_thread(getattr(client, method), **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise _to_storage_error(e, operation, path) from e

    async def upload(self, path: str, data: bytes, options: Optional[UploadOptions] = None) -> None:
        """
        Upload an object with ``PutObject``.

        Raises:
            StorageError: If the upload fails or the object exists and
                ``upsert`` is False.
        """
        options = options or UploadOptions()
        key = self._normalize(path)
        if not options.upsert and await self._exists(key):
            raise StorageError("Object already exists", operation="upload", path=key,
                               code="STORAGE_ALREADY_EXISTS", retryable=False)
        await self._call(
            "upload", key, "put_object",
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=options.content_type,
            CacheControl=f"max-age={options.cache_control}",
        )
        logger.debug(f"Uploaded s3://{self.bucket}/{key} ({len(data)} bytes)")

    async def delete(self, paths: List[str]) -> None:
        """
        Delete objects with ``DeleteObjects``.

        Raises:
            StorageError: If the call fails or S3 reports per-key errors.
        """
        keys = [self._normalize(path) for path in paths]
        for start in range(0, len(keys), DELETE_CHUNK_SIZE):
            chunk = keys[start:start + DELETE_CHUNK_SIZE]
            response = await self._call(
                "delete", chunk[0], "delete_objects",
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
            )
            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                raise StorageError(
                    f"S3 could not delete {len(errors)} objects: {first.get('Code')}: {first.get('Message')}",
                    operation="delete",
                    path=first.get("Key"),
                    code=_CLIENT_ERROR_CODES.get(first.get("Code", ""), "STORAGE_DELETE_FAILED"),
                )
        logger.debug(f"Deleted {len(keys)} objects from s3://{self.bucket}")

    async def copy(self, source: str, destination: str) -> None:
        source_key, destination_key = self._normalize(source), self._normalize(destination)
        await self._call(
            "copy", source_key, "copy_object",
            Bucket=self.bucket,
            Key=destination_key,
            CopySource={"Bucket": self.bucket, "Key": source_key},
        )

    @async_retry(LIST_RETRY_POLICY)
    async def list(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT, offset: int = 0) -> List[StorageObject]:
        """
        List the files and folders directly below ``prefix``.

        S3 has no offset parameter, so the folder is read page by page and
        sliced. Transient failures are retried.
        """
        prefix = prefix.strip("/")
        lead = f"{prefix}/" if prefix else ""
        entries: Dict[str, StorageObject] = {}
        token = None
        while True:
            kwargs = {"Bucket": self.bucket, "Prefix": lead, "Delimiter": "/"}
            if token:
                kwargs["ContinuationToken"] = token
            response = await self._call("list", prefix, "list_objects_v2", **kwargs)

            for common in response.get("CommonPrefixes") or []:
                name = common["Prefix"][len(lead):].rstrip("/")
                entries[name] = StorageObject(name=name, path=f"{lead}{name}")
            for item in response.get("Contents") or []:
                name = item["Key"][len(lead):]
                if not name:
                    continue
                entries[name] = StorageObject(
                    name=name,
                    path=item["Key"],
                    id=item.get("ETag", "").strip('"') or item["Key"],
                    size=item.get("Size"),
                )

            if len(entries) >= offset + limit or not response.get("IsTruncated"):
                break
            token = response.get("NextContinuationToken")

        ordered = [entries[name] for name in sorted(entries)]
        return ordered[offset:offset + limit]

    def get_public_url(self, path: str) -> str:
        key = path.strip("/")
        if self.public_url:
            return f"{self.public_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"

    async def _exists(self, key: str) -> bool:
        try:
            await self._call("head", key, "head_object", Bucket=self.bucket, Key=key)
        except StorageError as e:
            if e.code == "STORAGE_FILE_NOT_FOUND":
                return False
            raise
        return True

    def __repr__(self) -> str:
        return f"S3BlobStore(bucket={self.bucket})"

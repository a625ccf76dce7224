"""
Abstract base class for blob store implementations.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from loguru import logger

from models.operations import BatchOperationResult
from models.storage import StorageObject, UploadOptions
from exceptions import StorageError
from utils.retry import RetryPolicy, with_partial_retry

DEFAULT_LIST_LIMIT = 1000


class BaseBlobStore(ABC):
    """
    Abstract base class for the blob store holding page and cover images.

    Paths are '/'-separated keys relative to the store root, e.g.
    ``"12/pages/sayfa_001.webp"``. Every method raises ``StorageError``
    (with a classified ``code``) on failure.
    """

    @abstractmethod
    async def upload(self, path: str, data: bytes, options: Optional[UploadOptions] = None) -> None:
        """
        Store an object.

        Args:
            path: Object path.
            data: Object content.
            options: Content type, cache control and upsert flag.

        Raises:
            StorageError: If the upload fails or the object exists and
                ``upsert`` is False.
        """

    @abstractmethod
    async def delete(self, paths: List[str]) -> None:
        """
        Delete objects. Paths that do not exist are ignored.

        Args:
            paths: Object paths.

        Raises:
            StorageError: If the delete fails.
        """

    @abstractmethod
    async def copy(self, source: str, destination: str) -> None:
        """
        Copy an object, overwriting the destination.

        Raises:
            StorageError: If the source does not exist or the copy fails.
        """

    async def move(self, source: str, destination: str) -> None:
        """
        Move an object.

        Backends without a native move inherit this copy-then-delete version.

        Raises:
            StorageError: If the source does not exist or the move fails.
        """
        await self.copy(source, destination)
        await self.delete([source])

    @abstractmethod
    async def list(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT, offset: int = 0) -> List[StorageObject]:
        """
        List the immediate children of a folder.

        Args:
            prefix: Folder path without trailing slash ('' for the root).
            limit: Maximum number of entries returned.
            offset: Number of entries to skip, in name order.

        Returns:
            List[StorageObject]: Files (``id`` set) and sub-folders
            (``id`` None), sorted by name. A missing folder lists as empty.

        Raises:
            StorageError: If listing fails.
        """

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """
        Get the public URL of an object.

        Args:
            path: Object path.

        Returns:
            str: URL under which the object is served.
        """

    async def delete_with_partial_retry(
        self,
        paths: Iterable[str],
        policy: Optional[RetryPolicy] = None,
    ) -> BatchOperationResult[str]:
        """
        Delete objects one by one, retrying only the ones that fail.

        Args:
            paths: Object paths.
            policy: Retry policy for individual deletes.

        Returns:
            BatchOperationResult: Deleted paths and the paths that could not be
            deleted with their final error.
        """
        async def delete_one(path: str) -> None:
            await self.delete([path])

        result = await with_partial_retry(paths, delete_one, policy)
        if result.failures:
            logger.warning(
                f"{len(result.failures)}/{result.total} deletes failed: "
                f"{', '.join(result.failed_items)}"
            )
        return result

    @staticmethod
    def _normalize(path: str) -> str:
        """Strip surrounding slashes and reject empty or parent-relative keys."""
        normalized = path.strip("/")
        if not normalized or any(part in ("", ".", "..") for part in normalized.split("/")):
            raise StorageError(f"Invalid object path: {path!r}", operation="validate", path=path,
                               code="STORAGE_INVALID_PATH", retryable=False)
        return normalized

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

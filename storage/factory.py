"""
Factory for creating blob stores and issue stores from settings.
"""

from typing import Callable, Dict, Optional

from loguru import logger

from storage.base import BaseBlobStore
from storage.local import LocalBlobStore
from storage.memory import MemoryBlobStore
from metadata.base import BaseIssueStore
from metadata.local import LocalIssueStore
from metadata.memory import MemoryIssueStore
from exceptions import ConfigurationError
from core.config import Settings, get_settings

BlobStoreBuilder = Callable[[Settings], BaseBlobStore]
IssueStoreBuilder = Callable[[Settings], BaseIssueStore]


def _build_s3(settings: Settings) -> BaseBlobStore:
    # boto3 is only imported when the s3 backend is selected
    from storage.s3 import S3BlobStore

    return S3BlobStore(
        bucket=settings.S3_BUCKET_NAME,
        region=settings.S3_REGION,
        endpoint_url=settings.S3_ENDPOINT_URL,
        public_url=settings.S3_PUBLIC_URL,
    )


class StorageFactory:
    """
    Factory for creating storage backends.
    """

    # Registry of backend builders
    _blob_stores: Dict[str, BlobStoreBuilder] = {
        'local': lambda s: LocalBlobStore(s.get_blob_path(), s.PUBLIC_BASE_URL),
        'memory': lambda s: MemoryBlobStore(s.PUBLIC_BASE_URL),
        's3': _build_s3,
    }

    _issue_stores: Dict[str, IssueStoreBuilder] = {
        'local': lambda s: LocalIssueStore(s.get_index_path()),
        'memory': lambda s: MemoryIssueStore(),
    }

    @classmethod
    def create_blob_store(cls, backend: Optional[str] = None, settings: Optional[Settings] = None) -> BaseBlobStore:
        """
        Create a blob store.

        Args:
            backend: Backend name; defaults to ``STORAGE_BACKEND``.
            settings: Settings to configure the backend with.

        Returns:
            BaseBlobStore: The configured blob store.

        Raises:
            ConfigurationError: If the backend is unknown or misconfigured.
        """
        settings = settings or get_settings()
        backend = (backend or settings.STORAGE_BACKEND).lower()
        builder = cls._blob_stores.get(backend)
        if builder is None:
            raise ConfigurationError(
                f"Unknown storage backend: {backend}. "
                f"Available backends: {', '.join(cls._blob_stores.keys())}",
                config_key="STORAGE_BACKEND",
            )
        try:
            settings.validate_backend()
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="STORAGE_BACKEND") from e

        store = builder(settings)
        logger.debug(f"Created blob store: {store}")
        return store

    @classmethod
    def create_issue_store(cls, backend: Optional[str] = None, settings: Optional[Settings] = None) -> BaseIssueStore:
        """
        Create an issue store.

        Args:
            backend: Backend name; defaults to ``METADATA_BACKEND``.
            settings: Settings to configure the backend with.

        Returns:
            BaseIssueStore: The configured issue store.

        Raises:
            ConfigurationError: If the backend is unknown.
        """
        settings = settings or get_settings()
        backend = (backend or settings.METADATA_BACKEND).lower()
        builder = cls._issue_stores.get(backend)
        if builder is None:
            raise ConfigurationError(
                f"Unknown metadata backend: {backend}. "
                f"Available backends: {', '.join(cls._issue_stores.keys())}",
                config_key="METADATA_BACKEND",
            )
        store = builder(settings)
        logger.debug(f"Created issue store: {store}")
        return store

    @classmethod
    def register_blob_store(cls, name: str, builder: BlobStoreBuilder) -> None:
        """Register a blob store backend under ``name``."""
        cls._blob_stores[name.lower()] = builder
        logger.info(f"Registered blob store backend: {name}")

    @classmethod
    def register_issue_store(cls, name: str, builder: IssueStoreBuilder) -> None:
        """Register an issue store backend under ``name``."""
        cls._issue_stores[name.lower()] = builder
        logger.info(f"Registered issue store backend: {name}")

"""
Wiring of services from settings.
"""

from typing import Optional

from loguru import logger

from core.config import Settings, get_settings
from metadata.base import BaseIssueStore
from processors.factory import ProcessorFactory
from services.issues import IssueService
from services.upload import UploadService
from storage.base import BaseBlobStore
from storage.factory import StorageFactory


class ServiceFactory:
    """
    Builds the upload and issue services over one pair of stores.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        blob_store: Optional[BaseBlobStore] = None,
        issue_store: Optional[BaseIssueStore] = None,
    ):
        """
        Args:
            settings: Settings; the global settings if omitted.
            blob_store: Blob store to use instead of the configured backend.
            issue_store: Issue store to use instead of the configured backend.
        """
        self.settings = settings or get_settings()
        self.blob_store = blob_store or StorageFactory.create_blob_store(settings=self.settings)
        self.issue_store = issue_store or StorageFactory.create_issue_store(settings=self.settings)
        logger.debug(f"Service factory ready: {self.blob_store}, {self.issue_store}")

    def upload_service(self) -> UploadService:
        return UploadService(
            blob_store=self.blob_store,
            issue_store=self.issue_store,
            processor_factory=ProcessorFactory(settings=self.settings),
            settings=self.settings,
        )

    def issue_service(self) -> IssueService:
        return IssueService(
            issue_store=self.issue_store,
            blob_store=self.blob_store,
            settings=self.settings,
        )

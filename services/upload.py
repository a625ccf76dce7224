"""
Upload pipeline: PDF pages and cover into the blob store, then the issue record.
"""

import asyncio
from contextlib import aclosing
from datetime import date
from typing import Callable, List, Optional, Union

from loguru import logger as default_logger

from core.config import Settings, get_settings
from core.paths import IMAGE_CONTENT_TYPE, StoragePaths
from exceptions import MetadataCommitError, PartialFailureError, ProcessingError
from metadata.base import BaseIssueStore
from models.issue import Issue, IssueCreate, parse_date, validate_issue_number, validate_title
from models.operations import BatchFailure
from models.storage import PageImage, SourceFile, UploadOptions
from processors.factory import ProcessorFactory
from storage.base import BaseBlobStore
from utils.progress import notify
from utils.retry import RetryPolicy, with_retry

PageProgress = Callable[[int, int], None]
CoverProgress = Callable[[int], None]


class UploadService:
    """
    Turns a PDF (and optionally a custom cover) into a stored issue.

    Order of effects: every page, then the cover, then the issue record. The
    record is only written once all files are in the blob store, so a
    listed issue always has its files.
    """

    def __init__(
        self,
        blob_store: BaseBlobStore,
        issue_store: BaseIssueStore,
        processor_factory: Optional[ProcessorFactory] = None,
        settings: Optional[Settings] = None,
        upload_policy: Optional[RetryPolicy] = None,
        logger=None,
    ):
        """
        Initialize the upload service.

        Args:
            blob_store: Destination for page and cover images.
            issue_store: Destination for the issue record.
            processor_factory: Processor selection; built from settings if omitted.
            settings: Settings providing sizes, quality and concurrency.
            upload_policy: Retry policy of a single page or cover upload.
            logger: Logger to use; defaults to loguru bound to this component.
        """
        settings = settings or get_settings()
        self.blob_store = blob_store
        self.issue_store = issue_store
        self.processor_factory = processor_factory or ProcessorFactory(settings=settings)
        self.concurrency = settings.CONCURRENT_UPLOADS
        self.target_height = settings.PAGE_TARGET_HEIGHT
        self.quality = settings.IMAGE_QUALITY
        self.cover_quality = settings.COVER_QUALITY
        self.upload_options = UploadOptions(
            content_type=IMAGE_CONTENT_TYPE,
            cache_control=settings.CACHE_CONTROL,
            upsert=True,
        )
        self.upload_policy = upload_policy or RetryPolicy(
            max_attempts=settings.UPLOAD_MAX_ATTEMPTS,
            initial_delay=settings.RETRY_INITIAL_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            retry_unknown_errors=True,
        )
        self.logger = logger or default_logger.bind(component="upload")

    async def upload_issue(
        self,
        document: SourceFile,
        title: str,
        issue_number: int,
        publication_date: Union[date, str],
        cover: Optional[SourceFile] = None,
        on_page_progress: Optional[PageProgress] = None,
        on_cover_progress: Optional[CoverProgress] = None,
        on_pdf_processing: Optional[PageProgress] = None,
    ) -> Issue:
        """
        Convert, store and register a new issue.

        Args:
            document: The issue PDF.
            title: Issue title.
            issue_number: Issue number (1-9999).
            publication_date: Date or ISO string.
            cover: Optional custom cover image; page 1 is used otherwise.
            on_page_progress: Called with ``(uploaded, total)`` pages.
            on_cover_progress: Called with 0, 50 (custom covers only) and 100.
            on_pdf_processing: Called with ``(rendered, total)`` pages.

        Returns:
            Issue: The created issue record.

        Raises:
            ValidationError: If the metadata is invalid.
            ProcessingError: If the document or cover cannot be converted.
            PartialFailureError: If pages are still failing after retries.
            StorageError: If the cover upload fails.
            MetadataCommitError: If all files were stored but the record was not.
        """
        title = validate_title(title)
        issue_number = validate_issue_number(issue_number)
        publication_date = parse_date(publication_date)

        self.logger.info(f"Uploading issue #{issue_number}: {title!r} from {document.name}")

        pages = await self.render_pages(document, issue_number, on_pdf_processing)
        if not pages:
            raise ProcessingError(f"{document.name} produced no pages", kind="pdf_processing")

        cover_data = await self.convert_cover(cover) if cover is not None else None

        await self.upload_pages(pages, on_page_progress)
        cover_url = await self.upload_cover(issue_number, pages, cover_data, on_cover_progress)

        issue_data = IssueCreate(
            title=title,
            issue_number=issue_number,
            publication_date=publication_date,
            cover_image_url=cover_url,
            page_count=len(pages),
            published=True,
        )
        issue = await self.commit_issue(issue_data)
        self.logger.info(f"Issue #{issue_number} uploaded ({len(pages)} pages, id={issue.id})")
        return issue

    async def render_pages(
        self,
        document: SourceFile,
        issue_number: int,
        on_pdf_processing: Optional[PageProgress] = None,
    ) -> List[PageImage]:
        """Render every page of ``document`` into memory, bound to its storage path."""
        processor = self.processor_factory.get_processor(document.media_type)
        pages: List[PageImage] = []
        rendered = processor.render(document, self.target_height, self.quality)
        async with aclosing(rendered):
            async for page in rendered:
                pages.append(PageImage(
                    page_number=page.page_number,
                    data=page.data,
                    storage_path=StoragePaths.page_path(issue_number, page.page_number),
                ))
                notify(on_pdf_processing, page.page_number, page.page_count,
                       name="pdf processing", log=self.logger)
        return pages

    async def upload_pages(self, pages: List[PageImage], on_page_progress: Optional[PageProgress] = None) -> None:
        """
        Upload pages in sequential batches of ``concurrency`` parallel uploads.

        Every upload in a batch settles before the batch is evaluated. A batch
        with failures stops the upload before the next batch starts.

        Raises:
            PartialFailureError: Listing every page that still failed.
        """
        total = len(pages)
        completed = 0
        failures: List[BatchFailure[int]] = []

        for start in range(0, total, self.concurrency):
            batch = pages[start:start + self.concurrency]
            results = await asyncio.gather(*(self._upload_page(page) for page in batch), return_exceptions=True)

            for page, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    failures.append(BatchFailure(item=page.page_number, error=result))
                else:
                    completed += 1
                    notify(on_page_progress, completed, total, name="page progress", log=self.logger)

            if failures:
                break

        if failures:
            listing = "; ".join(f"page {f.item}: {f.message}" for f in failures)
            self.logger.error(f"Page upload failed for {len(failures)} pages: {listing}")
            raise PartialFailureError(
                f"Failed to upload {len(failures)} pages: {listing}",
                total=total,
                completed=completed,
                failures=failures,
                operation="upload",
                code="OPERATION_UPLOAD_PARTIAL_FAILURE",
                user_message=(
                    f"Some pages could not be uploaded "
                    f"(pages {', '.join(str(f.item) for f in failures)}). Please try again."
                ),
            )
        self.logger.debug(f"Uploaded {total} pages")

    async def convert_cover(self, cover: SourceFile) -> bytes:
        """Convert a custom cover to WebP before anything is stored."""
        processor = self.processor_factory.get_processor(cover.media_type)
        return await processor.convert(cover, self.cover_quality)

    async def upload_cover(
        self,
        issue_number: int,
        pages: List[PageImage],
        cover_data: Optional[bytes] = None,
        on_cover_progress: Optional[CoverProgress] = None,
    ) -> str:
        """
        Store the cover image and return its public URL.

        ``cover_data`` is a custom cover already converted by
        ``convert_cover``; without one, page 1 is reused.
        """
        path = StoragePaths.cover_path(issue_number)
        notify(on_cover_progress, 0, name="cover progress", log=self.logger)

        if cover_data is not None:
            data = cover_data
            notify(on_cover_progress, 50, name="cover progress", log=self.logger)
        else:
            data = pages[0].data

        await with_retry(
            lambda: self.blob_store.upload(path, data, self.upload_options),
            self.upload_policy,
            name=f"upload {path}",
        )
        notify(on_cover_progress, 100, name="cover progress", log=self.logger)
        return self.blob_store.get_public_url(path)

    async def commit_issue(self, issue_data: IssueCreate) -> Issue:
        """
        Create the issue record for files that are already stored.

        Can be called again with ``MetadataCommitError.issue_data`` to finish
        an upload without re-uploading its files.

        Raises:
            MetadataCommitError: If the record cannot be created.
        """
        try:
            return await self.issue_store.create(issue_data)
        except Exception as e:
            self.logger.error(
                f"Issue #{issue_data.issue_number} files are stored but the record could not be created: {e}"
            )
            raise MetadataCommitError(
                f"Issue #{issue_data.issue_number} files were stored but the record could not be created: {e}",
                issue_data=issue_data,
                code=getattr(e, "code", None) or "DATABASE_ERROR",
                retryable=getattr(e, "retryable", False),
            ) from e

    async def _upload_page(self, page: PageImage) -> None:
        await with_retry(
            lambda: self.blob_store.upload(page.storage_path, page.data, self.upload_options),
            self.upload_policy,
            name=f"upload page {page.page_number}",
        )

"""
Factory selecting the processor for an input file.
"""

from typing import Iterable, List, Optional

from loguru import logger

from processors.base import BaseProcessor
from processors.image import ImageProcessor
from models.storage import PDF_MEDIA_TYPE
from exceptions import ProcessingError
from core.config import Settings, get_settings

MB = 1024 * 1024


class ProcessorFactory:
    """
    Picks the processor that can handle a media type.

    Processors are tried in registration order. The PDF processor needs the
    PyMuPDF engine, so it is loaded the first time a PDF is requested; the
    outcome of that import is cached for the life of the factory.
    """

    def __init__(
        self,
        processors: Optional[Iterable[BaseProcessor]] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the factory.

        Args:
            processors: Initial processors. Defaults to the image processor.
            settings: Settings used to configure the default processors.
        """
        self.settings = settings or get_settings()
        if processors is None:
            processors = [
                ImageProcessor(
                    quality=self.settings.COVER_QUALITY,
                    max_size=self.settings.MAX_IMAGE_SIZE_MB * MB,
                    target_height=self.settings.PAGE_TARGET_HEIGHT,
                )
            ]
        self._processors: List[BaseProcessor] = list(processors)
        self._pdf_available: Optional[bool] = None

    def get_processor(self, media_type: str) -> BaseProcessor:
        """
        Get the processor for a media type.

        Args:
            media_type: MIME type of the input file (e.g. 'application/pdf').

        Returns:
            BaseProcessor: The first registered processor that can handle it.

        Raises:
            ProcessingError: kind ``file_validation`` if no processor is
                available, including when the PDF engine is missing.
        """
        media_type = (media_type or "").lower()
        if media_type == PDF_MEDIA_TYPE:
            self._load_pdf_processor()

        for processor in self._processors:
            if processor.can_handle(media_type):
                logger.debug(f"Selected {processor} for {media_type}")
                return processor

        raise ProcessingError(
            f"No processor available for file type: {media_type or 'unknown'}. "
            f"Supported types: {', '.join(self.supported_types())}",
            kind="file_validation",
            code="FILE_INVALID_TYPE",
            user_message=f"Unsupported file type: {media_type or 'unknown'}",
        )

    def can_process(self, media_type: str) -> bool:
        try:
            self.get_processor(media_type)
        except ProcessingError:
            return False
        return True

    def register_processor(self, processor: BaseProcessor) -> None:
        """
        Register an additional processor.

        Args:
            processor: Processor instance; it is consulted after the ones
                already registered.
        """
        self._processors.append(processor)
        logger.info(f"Registered processor: {processor}")

    def supported_types(self) -> List[str]:
        """
        Get list of supported media types.

        Returns:
            list: Media types of every registered processor.
        """
        types: List[str] = []
        for processor in self._processors:
            types.extend(t for t in processor.media_types if t not in types)
        return types

    def _load_pdf_processor(self) -> None:
        """Import the PDF processor once; a missing PyMuPDF leaves PDFs unsupported."""
        if self._pdf_available is not None:
            return
        if any(processor.can_handle(PDF_MEDIA_TYPE) for processor in self._processors):
            self._pdf_available = True
            return

        try:
            from processors.pdf import PDFProcessor
        except ImportError as e:
            logger.warning(f"PDF processing unavailable: {e}")
            self._pdf_available = False
            return

        self._processors.append(
            PDFProcessor(
                target_height=self.settings.PAGE_TARGET_HEIGHT,
                quality=self.settings.IMAGE_QUALITY,
                max_pages=self.settings.MAX_PDF_PAGES,
                max_size=self.settings.MAX_PDF_SIZE_MB * MB,
            )
        )
        self._pdf_available = True
        logger.debug("PDF processor loaded")

    def __repr__(self) -> str:
        return f"ProcessorFactory(supported={self.supported_types()})"

"""
PDF processor using PyMuPDF (fitz) to render pages as WebP images.
"""

import asyncio
from typing import AsyncIterator, Optional

try:
    import fitz  # PyMuPDF
except ImportError:
    raise ImportError("PyMuPDF is required. Install with: pip install pymupdf")

from loguru import logger
from PIL import Image

from processors.base import BaseProcessor, encode_webp
from processors.validation import FileValidator
from models.storage import PDF_MEDIA_TYPE, RenderedPage, SourceFile
from exceptions import ProcessingError

# Hand control back to the event loop after this many pages.
YIELD_EVERY_PAGES = 5
YIELD_DELAY_SECONDS = 0.01


class PDFProcessor(BaseProcessor):
    """
    PDF processor that renders every page to a fixed height.
    """

    media_types = (PDF_MEDIA_TYPE,)

    def __init__(
        self,
        target_height: int = 2400,
        quality: float = 0.9,
        max_pages: int = 500,
        max_size: Optional[int] = None,
    ):
        """
        Initialize PDF processor.

        Args:
            target_height: Height in pixels of every rendered page.
            quality: WebP quality (0.0-1.0).
            max_pages: Documents with more pages are rejected.
            max_size: Maximum accepted PDF size in bytes.
        """
        self.target_height = target_height
        self.quality = quality
        self.max_pages = max_pages
        self.max_size = max_size
        logger.debug(
            f"Initialized PDFProcessor (height={self.target_height}, quality={self.quality}, "
            f"max_pages={self.max_pages})"
        )

    async def render(
        self,
        source: SourceFile,
        target_height: Optional[int] = None,
        quality: Optional[float] = None,
    ) -> AsyncIterator[RenderedPage]:
        """
        Render every page of a PDF.

        Pages are yielded one at a time in source order; the document and
        every intermediate raster are released when the generator finishes,
        fails or is closed early.

        Args:
            source: The PDF file.
            target_height: Height in pixels, defaults to the processor's.
            quality: WebP quality, defaults to the processor's.

        Yields:
            RenderedPage: ``(page_number, page_count, webp_bytes)``.

        Raises:
            ProcessingError: ``file_validation`` for invalid input or too many
                pages, ``pdf_processing`` if the PDF cannot be opened or a page
                cannot be rendered.
        """
        target_height = target_height or self.target_height
        quality = self.quality if quality is None else quality
        FileValidator.validate_pdf(source, self.max_size)

        try:
            pdf_document = fitz.open(stream=source.data, filetype="pdf")
        except Exception as e:
            raise ProcessingError(
                f"Failed to open PDF {source.name}: {e}",
                kind="pdf_processing",
                details=str(e),
            ) from e

        with pdf_document:
            page_count = pdf_document.page_count
            if page_count > self.max_pages:
                raise ProcessingError(
                    f"PDF has {page_count} pages. Maximum is {self.max_pages}",
                    kind="file_validation",
                    code="FILE_TOO_MANY_PAGES",
                )
            logger.info(f"Rendering PDF: {source.name} ({page_count} pages, height={target_height})")

            for page_number in range(1, page_count + 1):
                try:
                    data = self._render_page(pdf_document[page_number - 1], target_height, quality)
                except ProcessingError:
                    raise
                except Exception as e:
                    raise ProcessingError(
                        f"Failed to render page: {e}",
                        kind="pdf_processing",
                        page_number=page_number,
                        details=str(e),
                    ) from e

                logger.debug(f"Rendered page {page_number}/{page_count} ({len(data)} bytes)")
                yield RenderedPage(page_number=page_number, page_count=page_count, data=data)

                if page_number % YIELD_EVERY_PAGES == 0:
                    await asyncio.sleep(YIELD_DELAY_SECONDS)

    async def convert(self, source: SourceFile, quality: Optional[float] = None) -> bytes:
        """Render the first page of a PDF as a single image (used as a cover)."""
        pages = self.render(source, quality=quality)
        try:
            async for page in pages:
                return page.data
        finally:
            await pages.aclose()
        raise ProcessingError(f"{source.name} has no pages", kind="pdf_processing")

    def _render_page(self, pdf_page: "fitz.Page", target_height: int, quality: float) -> bytes:
        """
        Rasterize one page, scaled uniformly so its height is ``target_height``.

        Args:
            pdf_page: Page of an open PyMuPDF document.
            target_height: Output height in pixels.
            quality: WebP quality.

        Returns:
            bytes: The WebP image.
        """
        page_height = pdf_page.rect.height
        if page_height <= 0:
            raise ProcessingError("Page has no height", kind="pdf_processing")

        scale = target_height / page_height
        pixmap = pdf_page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        try:
            image = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
        finally:
            del pixmap

        with image:
            return encode_webp(image, quality)

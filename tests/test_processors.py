# tests/test_processors.py
"""
Unit tests for the PDF and image processors and the processor factory
"""
import sys

import fitz
import pytest

from conftest import EmptyProcessor, make_image, make_pdf, webp_size
from exceptions import ProcessingError
from models.storage import SourceFile
from processors.factory import ProcessorFactory
from processors.image import ImageProcessor
from processors.pdf import PDFProcessor
from processors.validation import FileValidator


def pdf_source(page_count=3, **kwargs):
    return SourceFile(name="issue.pdf", media_type="application/pdf", data=make_pdf(page_count, **kwargs))


async def collect(pages):
    return [page async for page in pages]


class TestPDFProcessor:
    """Test PDF rendering"""

    @pytest.mark.asyncio
    async def test_renders_every_page_in_order(self):
        """Test page numbering and count"""
        processor = PDFProcessor(target_height=400)

        pages = await collect(processor.render(pdf_source(4)))

        assert [page.page_number for page in pages] == [1, 2, 3, 4]
        assert all(page.page_count == 4 for page in pages)

    @pytest.mark.asyncio
    async def test_scales_pages_to_target_height(self):
        """Test uniform scaling to the requested height"""
        processor = PDFProcessor()

        pages = await collect(processor.render(pdf_source(1, width=100, height=200), target_height=400))

        width, height = webp_size(pages[0].data)
        assert height == 400
        assert width == 200

    @pytest.mark.asyncio
    async def test_yields_more_than_five_pages(self):
        """Test that cooperative yields do not drop pages"""
        pages = await collect(PDFProcessor(target_height=100).render(pdf_source(7)))

        assert len(pages) == 7

    @pytest.mark.asyncio
    async def test_rejects_non_pdf_bytes(self):
        """Test that a file without the PDF signature fails validation"""
        source = SourceFile(name="fake.pdf", media_type="application/pdf", data=b"not a pdf at all")

        with pytest.raises(ProcessingError) as exc_info:
            await collect(PDFProcessor().render(source))

        assert exc_info.value.kind == "file_validation"

    @pytest.mark.asyncio
    async def test_corrupt_pdf_is_a_processing_error(self):
        """Test that an unreadable PDF body raises pdf_processing"""
        source = SourceFile(name="broken.pdf", media_type="application/pdf", data=b"%PDF-1.7\n garbage")

        try:
            pages = await collect(PDFProcessor().render(source))
        except ProcessingError as e:
            assert e.kind == "pdf_processing"
        else:
            # PyMuPDF may repair the body into an empty document
            assert pages == []

    @pytest.mark.asyncio
    async def test_page_limit(self):
        """Test that documents over max_pages are rejected"""
        with pytest.raises(ProcessingError) as exc_info:
            await collect(PDFProcessor(max_pages=2).render(pdf_source(3)))

        assert exc_info.value.kind == "file_validation"
        assert exc_info.value.code == "FILE_TOO_MANY_PAGES"

    @pytest.fixture
    def opened_documents(self, monkeypatch):
        """Record every document opened through PyMuPDF"""
        opened = []
        real_open = fitz.open

        def recording_open(*args, **kwargs):
            document = real_open(*args, **kwargs)
            opened.append(document)
            return document

        monkeypatch.setattr(fitz, "open", recording_open)
        return opened

    @pytest.mark.asyncio
    async def test_early_close_stops_rendering(self, opened_documents):
        """Test that a consumer may stop after the first page and the document is released"""
        pages = PDFProcessor(target_height=100).render(pdf_source(3))

        first = await pages.__anext__()
        assert not opened_documents[-1].is_closed
        await pages.aclose()

        assert first.page_number == 1
        assert opened_documents[-1].is_closed

    @pytest.mark.asyncio
    async def test_failed_page_releases_document(self, opened_documents, monkeypatch):
        """Test that a page failing mid-render closes the document"""
        real_render_page = PDFProcessor._render_page

        def render_page(self, pdf_page, target_height, quality):
            if pdf_page.number == 1:
                raise RuntimeError("rasterizer crashed")
            return real_render_page(self, pdf_page, target_height, quality)

        monkeypatch.setattr(PDFProcessor, "_render_page", render_page)
        source = pdf_source(3)

        with pytest.raises(ProcessingError) as exc_info:
            await collect(PDFProcessor(target_height=100).render(source))

        assert exc_info.value.kind == "pdf_processing"
        assert exc_info.value.page_number == 2
        assert opened_documents[-1].is_closed

    @pytest.mark.asyncio
    async def test_convert_releases_document(self, opened_documents):
        """Test that taking only the first page as a cover closes the document"""
        await PDFProcessor(target_height=100).convert(pdf_source(2))

        assert opened_documents[-1].is_closed

    @pytest.mark.asyncio
    async def test_convert_returns_first_page(self):
        """Test using a PDF as a cover"""
        data = await PDFProcessor(target_height=300).convert(pdf_source(2))

        assert webp_size(data)[1] == 300


class TestImageProcessor:
    """Test image conversion"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fmt,media_type", [
        ("PNG", "image/png"),
        ("JPEG", "image/jpeg"),
        ("WEBP", "image/webp"),
    ])
    async def test_converts_supported_formats(self, fmt, media_type):
        """Test WebP output for each common format"""
        source = SourceFile(name=f"cover.{fmt.lower()}", media_type=media_type, data=make_image(fmt, (30, 50)))

        data = await ImageProcessor().convert(source, quality=0.8)

        assert webp_size(data) == (30, 50)

    @pytest.mark.asyncio
    async def test_keeps_transparency(self):
        """Test that RGBA images stay RGBA"""
        source = SourceFile(name="logo.png", media_type="image/png", data=make_image("PNG", mode="RGBA"))

        data = await ImageProcessor().convert(source)

        assert data[:4] == b"RIFF"

    @pytest.mark.asyncio
    async def test_undecodable_image_is_file_validation(self):
        """Test that garbage with a PNG signature fails validation"""
        source = SourceFile(name="bad.png", media_type="image/png", data=b"\x89PNG\r\n\x1a\n" + b"\x00" * 20)

        with pytest.raises(ProcessingError) as exc_info:
            await ImageProcessor().convert(source)

        assert exc_info.value.kind == "file_validation"

    @pytest.mark.asyncio
    async def test_render_yields_single_page(self):
        """Test an image rendered as a one-page document"""
        source = SourceFile(name="cover.png", media_type="image/png", data=make_image())

        pages = await collect(ImageProcessor().render(source))

        assert [(p.page_number, p.page_count) for p in pages] == [(1, 1)]

    @pytest.mark.asyncio
    async def test_render_scales_to_page_height(self):
        """Test that an image used as a document reaches the page height"""
        source = SourceFile(name="poster.png", media_type="image/png", data=make_image("PNG", (40, 60)))

        pages = await collect(ImageProcessor(target_height=400).render(source))

        assert webp_size(pages[0].data) == (267, 400)

    @pytest.mark.asyncio
    async def test_convert_keeps_cover_size(self):
        """Test that covers are not scaled to the page height"""
        source = SourceFile(name="cover.png", media_type="image/png", data=make_image("PNG", (40, 60)))

        data = await ImageProcessor(target_height=400).convert(source)

        assert webp_size(data) == (40, 60)


class TestFileValidator:
    """Test signature and size checks"""

    def test_rejects_oversized_pdf(self):
        """Test PDF size limit"""
        source = SourceFile(name="big.pdf", media_type="application/pdf", data=b"%PDF" + b"0" * 100)

        with pytest.raises(ProcessingError) as exc_info:
            FileValidator.validate_pdf(source, max_size=50)

        assert exc_info.value.code == "FILE_TOO_LARGE"

    def test_rejects_empty_file(self):
        """Test empty input"""
        with pytest.raises(ProcessingError):
            FileValidator.validate_image(SourceFile(name="x.png", media_type="image/png", data=b""))

    def test_signature_mismatch(self):
        """Test a JPEG declared as PNG"""
        source = SourceFile(name="x.png", media_type="image/png", data=make_image("JPEG"))

        with pytest.raises(ProcessingError) as exc_info:
            FileValidator.validate_image(source)

        assert exc_info.value.code == "FILE_CORRUPTED"

    def test_webp_signature(self):
        """Test RIFF/WEBP detection"""
        assert FileValidator.has_image_signature(make_image("WEBP"), "image/webp")
        assert not FileValidator.has_image_signature(make_image("PNG"), "image/webp")

    def test_media_type_case_is_ignored(self):
        """Test that declared types are matched without regard to case"""
        FileValidator.validate_pdf(SourceFile(name="issue.pdf", media_type="Application/PDF", data=make_pdf(1)))
        assert FileValidator.has_image_signature(make_image("WEBP"), "Image/WebP")

        source = SourceFile(name="x.png", media_type="IMAGE/PNG", data=make_image("JPEG"))
        with pytest.raises(ProcessingError) as exc_info:
            FileValidator.validate_image(source)

        assert exc_info.value.code == "FILE_CORRUPTED"


class TestProcessorFactory:
    """Test processor selection"""

    def test_selects_image_processor(self, settings):
        """Test image media types"""
        factory = ProcessorFactory(settings=settings)

        assert isinstance(factory.get_processor("image/jpeg"), ImageProcessor)

    def test_loads_pdf_processor_lazily(self, settings):
        """Test that the PDF processor is added on first request"""
        factory = ProcessorFactory(settings=settings)
        assert "application/pdf" not in factory.supported_types()

        processor = factory.get_processor("application/pdf")

        assert isinstance(processor, PDFProcessor)
        assert processor.target_height == settings.PAGE_TARGET_HEIGHT
        assert factory.get_processor("application/pdf") is processor

    def test_unknown_type_raises_file_validation(self, settings):
        """Test the no-processor error"""
        factory = ProcessorFactory(settings=settings)

        with pytest.raises(ProcessingError) as exc_info:
            factory.get_processor("application/zip")

        assert exc_info.value.kind == "file_validation"
        assert "application/zip" in exc_info.value.user_message
        assert not factory.can_process("application/zip")

    def test_missing_pdf_engine_is_no_processor(self, settings, monkeypatch):
        """Test that an unavailable PDF engine folds into the same error"""
        monkeypatch.setitem(sys.modules, "processors.pdf", None)
        factory = ProcessorFactory(settings=settings)

        with pytest.raises(ProcessingError) as exc_info:
            factory.get_processor("application/pdf")

        assert exc_info.value.kind == "file_validation"
        # the failed import is remembered
        with pytest.raises(ProcessingError):
            factory.get_processor("application/pdf")

    def test_registered_processor_is_used(self, settings):
        """Test late registration"""
        factory = ProcessorFactory(processors=[], settings=settings)
        custom = EmptyProcessor()

        factory.register_processor(custom)

        assert factory.get_processor("application/pdf") is custom
        assert factory.supported_types() == ["application/pdf"]

    @pytest.mark.asyncio
    async def test_mixed_case_pdf_type_renders(self, settings):
        """Test that a type accepted by selection also passes validation"""
        factory = ProcessorFactory(settings=settings)
        source = SourceFile(name="issue.pdf", media_type="Application/PDF", data=make_pdf(2))

        pages = await collect(factory.get_processor(source.media_type).render(source))

        assert len(pages) == 2

    def test_image_processor_uses_page_height(self, settings):
        """Test that the default image processor is configured for pages"""
        factory = ProcessorFactory(settings=settings)

        assert factory.get_processor("image/png").target_height == settings.PAGE_TARGET_HEIGHT

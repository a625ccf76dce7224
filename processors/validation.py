# processors/validation.py
"""
Input file validation: signatures and size limits
"""
from typing import Optional

from loguru import logger

from exceptions import ProcessingError
from models.storage import SourceFile, PDF_MEDIA_TYPE

MB = 1024 * 1024


class FileValidator:
    """Validate uploaded files before they reach a processor"""

    PDF_SIGNATURE = b"%PDF"

    IMAGE_SIGNATURES = {
        "image/jpeg": (b"\xff\xd8\xff",),
        "image/png": (b"\x89PNG\r\n\x1a\n",),
        "image/gif": (b"GIF87a", b"GIF89a"),
        "image/bmp": (b"BM",),
        "image/tiff": (b"II*\x00", b"MM\x00*"),
    }

    DEFAULT_MAX_PDF_SIZE = 50 * MB
    DEFAULT_MAX_IMAGE_SIZE = 10 * MB

    @classmethod
    def validate_pdf(cls, source: SourceFile, max_size: Optional[int] = None) -> None:
        """
        Validate a PDF before rendering

        Args:
            source: The uploaded document
            max_size: Size limit in bytes

        Raises:
            ProcessingError: kind ``file_validation`` if validation fails
        """
        max_size = max_size or cls.DEFAULT_MAX_PDF_SIZE
        if source.media_type.lower() != PDF_MEDIA_TYPE:
            raise ProcessingError(
                f"Invalid file type: {source.media_type}. Only PDF files are allowed.",
                kind="file_validation",
                code="FILE_INVALID_TYPE",
            )
        cls._check_size(source, max_size)
        if not source.data.startswith(cls.PDF_SIGNATURE):
            raise ProcessingError(
                f"{source.name} is not a valid PDF file",
                kind="file_validation",
                code="FILE_CORRUPTED",
            )
        logger.debug(f"✅ PDF validation passed: {source.name} ({source.size / 1024:.1f}KB)")

    @classmethod
    def validate_image(cls, source: SourceFile, max_size: Optional[int] = None) -> None:
        """Validate an image's size and, for known types, its signature"""
        max_size = max_size or cls.DEFAULT_MAX_IMAGE_SIZE
        if not source.media_type.lower().startswith("image/"):
            raise ProcessingError(
                f"Invalid file type: {source.media_type}. Expected an image.",
                kind="file_validation",
                code="FILE_INVALID_TYPE",
            )
        cls._check_size(source, max_size)
        if not cls.has_image_signature(source.data, source.media_type):
            raise ProcessingError(
                f"{source.name} does not match its declared type {source.media_type}",
                kind="file_validation",
                code="FILE_CORRUPTED",
            )

    @classmethod
    def has_image_signature(cls, data: bytes, media_type: str) -> bool:
        media_type = media_type.lower()
        if media_type == "image/webp":
            return data[:4] == b"RIFF" and data[8:12] == b"WEBP"
        signatures = cls.IMAGE_SIGNATURES.get(media_type)
        if signatures is None:
            # Unknown raster types are left to the decoder
            return True
        return data.startswith(signatures)

    @staticmethod
    def _check_size(source: SourceFile, max_size: int) -> None:
        if source.size == 0:
            raise ProcessingError(f"{source.name} is empty", kind="file_validation", code="FILE_CORRUPTED")
        if source.size > max_size:
            raise ProcessingError(
                f"File too large: {source.size / MB:.1f}MB. Maximum size is {max_size / MB:.1f}MB",
                kind="file_validation",
                code="FILE_TOO_LARGE",
            )

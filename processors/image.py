"""
Image processor: re-encodes raster images (covers) as WebP using Pillow.
"""

from typing import AsyncIterator, Optional
import io

from loguru import logger
from PIL import Image, UnidentifiedImageError

from processors.base import BaseProcessor, encode_webp
from processors.validation import FileValidator
from models.storage import RenderedPage, SourceFile
from exceptions import ProcessingError


class ImageProcessor(BaseProcessor):
    """
    Converts JPEG, PNG, WebP, GIF, BMP and TIFF images to WebP.
    """

    media_types = (
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/bmp",
        "image/tiff",
    )

    SUPPORTED_FORMATS = {"JPEG", "PNG", "WEBP", "GIF", "BMP", "TIFF", "MPO"}

    def __init__(self, quality: float = 0.9, max_size: Optional[int] = None, target_height: Optional[int] = None):
        """
        Initialize image processor.

        Args:
            quality: Default WebP quality (0.0-1.0).
            max_size: Maximum accepted input size in bytes.
            target_height: Page height used when an image is rendered as a
                document. Covers keep their own size.
        """
        self.quality = quality
        self.max_size = max_size
        self.target_height = target_height
        logger.debug(f"Initialized ImageProcessor (quality={self.quality}, height={self.target_height})")

    async def convert(self, source: SourceFile, quality: Optional[float] = None) -> bytes:
        """
        Re-encode an image as WebP at its own size.

        Args:
            source: The image file.
            quality: WebP quality, defaults to the processor's quality.

        Returns:
            bytes: The WebP image.

        Raises:
            ProcessingError: ``file_validation`` if the input is not a supported
                image, ``image_processing`` if encoding fails.
        """
        return self._encode(source, self.quality if quality is None else quality)

    async def render(
        self,
        source: SourceFile,
        target_height: Optional[int] = None,
        quality: Optional[float] = None,
    ) -> AsyncIterator[RenderedPage]:
        """A single image renders as a one-page document scaled to the page height."""
        quality = self.quality if quality is None else quality
        data = self._encode(source, quality, target_height or self.target_height)
        yield RenderedPage(page_number=1, page_count=1, data=data)

    def _encode(self, source: SourceFile, quality: float, target_height: Optional[int] = None) -> bytes:
        FileValidator.validate_image(source, self.max_size)

        try:
            with Image.open(io.BytesIO(source.data)) as image:
                if image.format not in self.SUPPORTED_FORMATS:
                    raise ProcessingError(
                        f"Unsupported image format: {image.format}",
                        kind="file_validation",
                        code="FILE_INVALID_TYPE",
                    )
                image.load()
                mode = "RGBA" if image.mode in ("RGBA", "LA", "P") and _has_alpha(image) else "RGB"
                with image.convert(mode) as converted:
                    if target_height and converted.height != target_height:
                        width = max(1, round(converted.width * target_height / converted.height))
                        with converted.resize((width, target_height), Image.Resampling.LANCZOS) as scaled:
                            data = encode_webp(scaled, quality)
                    else:
                        data = encode_webp(converted, quality)
        except ProcessingError:
            raise
        except (UnidentifiedImageError, SyntaxError) as e:
            raise ProcessingError(
                f"Could not decode image {source.name}: {e}",
                kind="file_validation",
                code="FILE_CORRUPTED",
            ) from e
        except Exception as e:
            raise ProcessingError(
                f"Failed to convert image {source.name}: {e}",
                kind="image_processing",
                details=str(e),
            ) from e

        logger.debug(f"Converted {source.name} to WebP ({source.size} -> {len(data)} bytes)")
        return data


def _has_alpha(image: Image.Image) -> bool:
    if image.mode == "P":
        return "transparency" in image.info
    return True

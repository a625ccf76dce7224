"""
Abstract base class for file processors.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Tuple
import io

from PIL import Image

from models.storage import RenderedPage, SourceFile


def encode_webp(image: Image.Image, quality: float) -> bytes:
    """
    Encode a Pillow image as WebP.

    Args:
        image: Image in a WebP-compatible mode (RGB or RGBA).
        quality: Quality between 0.0 and 1.0.

    Returns:
        bytes: The encoded image.
    """
    if not 0.0 <= quality <= 1.0:
        raise ValueError(f"Quality must be between 0.0 and 1.0, got {quality}")
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP", quality=int(round(quality * 100)))
    return buffer.getvalue()


class BaseProcessor(ABC):
    """
    Abstract base class for file processors.

    A processor turns one input file into WebP output: a lazy sequence of
    pages (``render``) or a single image (``convert``).
    """

    media_types: Tuple[str, ...] = ()

    def can_handle(self, media_type: str) -> bool:
        """
        Check if this processor supports the given media type.

        Args:
            media_type: MIME type of the input file.

        Returns:
            bool: True if this processor can handle the file.
        """
        return media_type.lower() in self.media_types

    @abstractmethod
    def render(
        self,
        source: SourceFile,
        target_height: Optional[int] = None,
        quality: Optional[float] = None,
    ) -> AsyncIterator[RenderedPage]:
        """
        Render the file into pages, yielding each one as soon as it is ready.

        Args:
            source: The input file.
            target_height: Height in pixels of every page.
            quality: WebP quality between 0.0 and 1.0.

        Yields:
            RenderedPage: Pages in source order, numbered from 1.

        Raises:
            ProcessingError: If the file cannot be rendered.
        """

    @abstractmethod
    async def convert(self, source: SourceFile, quality: Optional[float] = None) -> bytes:
        """
        Convert the file into a single WebP image.

        Args:
            source: The input file.
            quality: WebP quality between 0.0 and 1.0.

        Returns:
            bytes: The WebP image.

        Raises:
            ProcessingError: If the file cannot be converted.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(types={list(self.media_types)})"

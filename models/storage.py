"""
Models describing files flowing into and out of the blob store.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Optional, Union
import mimetypes

from exceptions import ProcessingError

PDF_MEDIA_TYPE = "application/pdf"

mimetypes.add_type("image/webp", ".webp")


@dataclass(frozen=True)
class SourceFile:
    """An input file handed to the pipeline (the PDF or a custom cover)."""

    name: str
    media_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Union[str, Path], media_type: Optional[str] = None) -> 'SourceFile':
        """
        Read a file from disk, guessing its media type from the extension.

        Raises:
            ProcessingError: kind ``file_validation`` if the file cannot be read.
        """
        path = Path(path)
        if media_type is None:
            media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ProcessingError(
                f"Cannot read {path}: {e}",
                kind="file_validation",
                code="FILE_NOT_READABLE",
            ) from e
        return cls(name=path.name, media_type=media_type, data=data)

    def __repr__(self) -> str:
        return f"SourceFile(name={self.name!r}, media_type={self.media_type!r}, size={self.size})"


class RenderedPage(NamedTuple):
    """A page produced by a processor: 1-based number, document page count and WebP bytes."""

    page_number: int
    page_count: int
    data: bytes


@dataclass(frozen=True)
class PageImage:
    """A rendered page bound to its storage path."""

    page_number: int
    data: bytes
    storage_path: str

    def __repr__(self) -> str:
        return f"PageImage(page={self.page_number}, path={self.storage_path!r}, size={len(self.data)})"


@dataclass(frozen=True)
class StorageObject:
    """
    An entry returned by a blob store listing.

    Leaf files have a non-null ``id``; folders (common prefixes) have ``id=None``.
    """

    name: str
    path: str
    id: Optional[str] = None
    size: Optional[int] = None

    @property
    def is_folder(self) -> bool:
        return self.id is None


@dataclass(frozen=True)
class UploadOptions:
    """Per-upload object settings."""

    content_type: str = "image/webp"
    cache_control: str = "3600"
    upsert: bool = True

# tests/conftest.py
"""
Pytest configuration and shared fixtures
"""
import io
from datetime import date
from typing import Dict, List, Optional, Tuple

import fitz
import pytest
from PIL import Image

from core.config import Settings
from exceptions import DatabaseError, StorageError
from metadata.memory import MemoryIssueStore
from models.issue import IssueCreate
from models.storage import SourceFile, UploadOptions
from processors.base import BaseProcessor
from storage.memory import MemoryBlobStore
from utils.retry import RetryPolicy

PUBLIC_URL = "https://cdn.example.com/magazines"


def make_pdf(page_count: int = 3, width: float = 100, height: float = 200) -> bytes:
    """Build a PDF with numbered pages"""
    document = fitz.open()
    for number in range(1, page_count + 1):
        page = document.new_page(width=width, height=height)
        page.insert_text((10, 20), f"Page {number}")
    data = document.tobytes()
    document.close()
    return data


def make_image(fmt: str = "PNG", size: Tuple[int, int] = (40, 60), mode: str = "RGB") -> bytes:
    """Build a solid-colour image in the given format"""
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def webp_size(data: bytes) -> Tuple[int, int]:
    """Decode WebP bytes and return (width, height)"""
    with Image.open(io.BytesIO(data)) as image:
        assert image.format == "WEBP"
        return image.size


class FlakyBlobStore(MemoryBlobStore):
    """Memory blob store that fails chosen operations on chosen paths"""

    def __init__(self):
        super().__init__(PUBLIC_URL)
        self.plans: Dict[Tuple[str, str], List] = {}
        self.calls: List[Tuple[str, str]] = []

    def fail(self, operation: str, path: str, times: Optional[int] = None,
             code: str = "NETWORK_CONNECTION_FAILED") -> None:
        """Fail ``operation`` on ``path`` ``times`` times (always when None)"""
        self.plans[(operation, path)] = [times, code]

    def calls_for(self, operation: str, path: str) -> int:
        return self.calls.count((operation, path))

    def _maybe_fail(self, operation: str, path: str) -> None:
        self.calls.append((operation, path))
        plan = self.plans.get((operation, path))
        if plan is None:
            return
        times, code = plan
        if times is not None:
            if times <= 0:
                return
            plan[0] = times - 1
        raise StorageError(f"injected {operation} failure", operation=operation, path=path, code=code)

    async def upload(self, path: str, data: bytes, options: Optional[UploadOptions] = None) -> None:
        self._maybe_fail("upload", path)
        await super().upload(path, data, options)

    async def delete(self, paths: List[str]) -> None:
        for path in paths:
            self._maybe_fail("delete", path)
        await super().delete(paths)

    async def copy(self, source: str, destination: str) -> None:
        self._maybe_fail("copy", source)
        await super().copy(source, destination)

    async def move(self, source: str, destination: str) -> None:
        self._maybe_fail("move", source)
        await super().move(source, destination)

    async def list(self, prefix: str, limit: int = 1000, offset: int = 0):
        self._maybe_fail("list", prefix)
        return await super().list(prefix, limit, offset)


class EmptyProcessor(BaseProcessor):
    """Processor that claims PDFs but produces nothing"""

    media_types = ("application/pdf",)

    async def render(self, source, target_height=None, quality=None):
        return
        yield

    async def convert(self, source, quality=None):
        return b""


class FailingIssueStore(MemoryIssueStore):
    """Memory issue store whose chosen operations raise DatabaseError"""

    def __init__(self):
        super().__init__()
        self.fail_on = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise DatabaseError("connection lost", operation=operation, code="DATABASE_CONNECTION_FAILED")

    async def create(self, data):
        self._check("create")
        return await super().create(data)

    async def update(self, issue_id, data):
        self._check("update")
        return await super().update(issue_id, data)

    async def delete(self, issue_id):
        self._check("delete")
        return await super().delete(issue_id)


@pytest.fixture
def settings(tmp_path):
    """Settings for fast tests: memory backends, small pages, no retry delays"""
    return Settings(
        _env_file=None,
        STORAGE_BACKEND="memory",
        METADATA_BACKEND="memory",
        STORAGE_PATH=tmp_path,
        PUBLIC_BASE_URL=PUBLIC_URL,
        PAGE_TARGET_HEIGHT=400,
        RETRY_INITIAL_DELAY=0,
        RETRY_MAX_DELAY=0,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def fast_policy():
    """Three attempts without waiting"""
    return RetryPolicy(max_attempts=3, initial_delay=0, max_delay=0, retry_unknown_errors=True)


@pytest.fixture
def blob_store():
    return FlakyBlobStore()


@pytest.fixture
def issue_store():
    return FailingIssueStore()


@pytest.fixture
def pdf_file():
    """A three page PDF upload"""
    return SourceFile(name="issue.pdf", media_type="application/pdf", data=make_pdf(3))


@pytest.fixture
def cover_file():
    return SourceFile(name="cover.png", media_type="image/png", data=make_image("PNG", (300, 400)))


@pytest.fixture
def issue_data():
    return IssueCreate(
        title="Spring Issue",
        issue_number=12,
        publication_date=date(2024, 3, 1),
        cover_image_url=f"{PUBLIC_URL}/12/kapak.webp",
        page_count=3,
    )

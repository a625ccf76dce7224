"""
Local filesystem blob store implementation.
"""

import os
import shutil
import uuid
from pathlib import Path
from typing import List, Optional

from loguru import logger

from storage.base import BaseBlobStore, DEFAULT_LIST_LIMIT
from models.storage import StorageObject, UploadOptions
from exceptions import StorageError
from utils.timing import timed

TEMP_PREFIX = ".upload-"


class LocalBlobStore(BaseBlobStore):
    """
    Local filesystem-based blob store.

    Object paths map directly onto files below ``base_path``:
    {base_path}/
        - 12/
            - kapak.webp
            - pages/
                - sayfa_001.webp
                - ...
    """

    def __init__(self, base_path: Path, public_base_url: str):
        """
        Initialize local blob store.

        Args:
            base_path: Root directory of the store.
            public_base_url: URL prefix under which ``base_path`` is served.
        """
        self.base_path = Path(base_path)
        self.public_base_url = public_base_url.rstrip("/")
        self._ensure_base_directory()
        logger.info(f"Initialized LocalBlobStore at {self.base_path}")

    def _ensure_base_directory(self) -> None:
        """Create the root directory if it doesn't exist."""
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to create base directory: {e}",
                operation="init",
                path=str(self.base_path),
                retryable=False,
            ) from e

    def _get_object_path(self, path: str) -> Path:
        """Get the file backing an object path."""
        return self.base_path.joinpath(*self._normalize(path).split("/"))

    async def upload(self, path: str, data: bytes, options: Optional[UploadOptions] = None) -> None:
        """
        Write an object to disk.

        The content is written to a temporary file first and renamed into
        place, so readers never see a partial object.

        Raises:
            StorageError: If writing fails or the object exists and ``upsert``
                is False.
        """
        options = options or UploadOptions()
        target = self._get_object_path(path)
        if not options.upsert and target.exists():
            raise StorageError("Object already exists", operation="upload", path=path,
                               code="STORAGE_ALREADY_EXISTS", retryable=False)

        temp = target.with_name(f"{TEMP_PREFIX}{uuid.uuid4().hex}")
        try:
            with timed(f"upload {path}"):
                target.parent.mkdir(parents=True, exist_ok=True)
                temp.write_bytes(data)
                os.replace(temp, target)
            logger.debug(f"Stored object: {path} ({len(data)} bytes)")
        except OSError as e:
            temp.unlink(missing_ok=True)
            raise StorageError.from_exception(e, "upload", path) from e

    async def delete(self, paths: List[str]) -> None:
        """
        Delete objects and prune folders left empty.

        Raises:
            StorageError: If a file cannot be removed.
        """
        for path in paths:
            target = self._get_object_path(path)
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError.from_exception(e, "delete", path) from e
            self._prune_empty_parents(target.parent)
        logger.debug(f"Deleted {len(paths)} objects")

    async def copy(self, source: str, destination: str) -> None:
        source_path = self._get_object_path(source)
        destination_path = self._get_object_path(destination)
        try:
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source_path, destination_path)
        except OSError as e:
            raise StorageError.from_exception(e, "copy", source) from e

    async def move(self, source: str, destination: str) -> None:
        """Native move via an atomic rename."""
        source_path = self._get_object_path(source)
        destination_path = self._get_object_path(destination)
        try:
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source_path, destination_path)
        except OSError as e:
            raise StorageError.from_exception(e, "move", source) from e
        self._prune_empty_parents(source_path.parent)

    async def list(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT, offset: int = 0) -> List[StorageObject]:
        """
        List the files and folders directly below ``prefix``.

        Raises:
            StorageError: If the folder cannot be read.
        """
        prefix = prefix.strip("/")
        folder = self._get_object_path(prefix) if prefix else self.base_path
        if not folder.is_dir():
            return []

        lead = f"{prefix}/" if prefix else ""
        try:
            entries = sorted(
                (entry for entry in folder.iterdir() if not entry.name.startswith(TEMP_PREFIX)),
                key=lambda entry: entry.name,
            )
            objects = []
            for entry in entries[offset:offset + limit]:
                if entry.is_dir():
                    objects.append(StorageObject(name=entry.name, path=f"{lead}{entry.name}"))
                else:
                    stat = entry.stat()
                    objects.append(StorageObject(
                        name=entry.name,
                        path=f"{lead}{entry.name}",
                        id=f"{stat.st_ino:x}-{stat.st_mtime_ns:x}",
                        size=stat.st_size,
                    ))
        except OSError as e:
            raise StorageError.from_exception(e, "list", prefix) from e
        return objects

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.strip('/')}"

    def _prune_empty_parents(self, folder: Path) -> None:
        """Remove empty folders between ``folder`` and the store root."""
        while folder != self.base_path and self.base_path in folder.parents:
            try:
                folder.rmdir()
            except OSError:
                return
            folder = folder.parent

    def __repr__(self) -> str:
        return f"LocalBlobStore(base_path={self.base_path})"

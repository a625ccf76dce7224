"""
In-memory blob store implementation for testing.
"""

from typing import Dict, List, Optional
import hashlib

from loguru import logger

from storage.base import BaseBlobStore, DEFAULT_LIST_LIMIT
from models.storage import StorageObject, UploadOptions
from exceptions import StorageError


class MemoryBlobStore(BaseBlobStore):
    """
    In-memory blob store.

    All objects live in a dictionary keyed by path. Data is lost when the
    process ends.
    """

    def __init__(self, public_base_url: str = "memory://magazines"):
        """Initialize in-memory blob store."""
        self.public_base_url = public_base_url.rstrip("/")
        self._objects: Dict[str, bytes] = {}
        self._options: Dict[str, UploadOptions] = {}
        logger.debug("Initialized MemoryBlobStore")

    async def upload(self, path: str, data: bytes, options: Optional[UploadOptions] = None) -> None:
        """
        Store an object in memory.

        Raises:
            StorageError: If the object exists and ``upsert`` is False.
        """
        options = options or UploadOptions()
        path = self._normalize(path)
        if not options.upsert and path in self._objects:
            raise StorageError("Object already exists", operation="upload", path=path,
                               code="STORAGE_ALREADY_EXISTS", retryable=False)
        self._objects[path] = bytes(data)
        self._options[path] = options
        logger.debug(f"Stored object in memory: {path} ({len(data)} bytes)")

    async def delete(self, paths: List[str]) -> None:
        for path in paths:
            path = self._normalize(path)
            self._objects.pop(path, None)
            self._options.pop(path, None)
        logger.debug(f"Deleted {len(paths)} objects from memory")

    async def copy(self, source: str, destination: str) -> None:
        source, destination = self._normalize(source), self._normalize(destination)
        if source not in self._objects:
            raise StorageError("Object not found", operation="copy", path=source,
                               code="STORAGE_FILE_NOT_FOUND")
        self._objects[destination] = self._objects[source]
        self._options[destination] = self._options.get(source, UploadOptions())

    async def move(self, source: str, destination: str) -> None:
        """Native move: re-key the object."""
        source, destination = self._normalize(source), self._normalize(destination)
        if source not in self._objects:
            raise StorageError("Object not found", operation="move", path=source,
                               code="STORAGE_FILE_NOT_FOUND")
        self._objects[destination] = self._objects.pop(source)
        self._options[destination] = self._options.pop(source, UploadOptions())

    async def list(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT, offset: int = 0) -> List[StorageObject]:
        """List the files and folders directly below ``prefix``."""
        prefix = prefix.strip("/")
        lead = f"{prefix}/" if prefix else ""
        entries: Dict[str, StorageObject] = {}
        for path, data in self._objects.items():
            if not path.startswith(lead):
                continue
            name, _, rest = path[len(lead):].partition("/")
            child = f"{lead}{name}"
            if rest:
                entries.setdefault(name, StorageObject(name=name, path=child))
            else:
                entries[name] = StorageObject(
                    name=name,
                    path=child,
                    id=hashlib.md5(child.encode("utf-8")).hexdigest(),
                    size=len(data),
                )
        ordered = [entries[name] for name in sorted(entries)]
        return ordered[offset:offset + limit]

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.strip('/')}"

    # Test helpers

    def get(self, path: str) -> bytes:
        """Return an object's content, raising StorageError if missing."""
        path = self._normalize(path)
        if path not in self._objects:
            raise StorageError("Object not found", operation="get", path=path, code="STORAGE_FILE_NOT_FOUND")
        return self._objects[path]

    def options_for(self, path: str) -> UploadOptions:
        return self._options[self._normalize(path)]

    def paths(self, prefix: str = "") -> List[str]:
        """All stored paths under ``prefix``, sorted."""
        prefix = prefix.strip("/")
        lead = f"{prefix}/" if prefix else ""
        return sorted(path for path in self._objects if path.startswith(lead))

    def clear(self) -> None:
        """Clear all stored objects."""
        self._objects.clear()
        self._options.clear()
        logger.debug("Cleared MemoryBlobStore")

    def __repr__(self) -> str:
        return f"MemoryBlobStore(objects={len(self._objects)})"

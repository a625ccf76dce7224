"""Blob store implementations."""

from storage.base import BaseBlobStore
from storage.local import LocalBlobStore
from storage.memory import MemoryBlobStore

__all__ = ['BaseBlobStore', 'LocalBlobStore', 'MemoryBlobStore']

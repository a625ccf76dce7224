"""Issue record stores."""

from metadata.base import BaseIssueStore
from metadata.local import LocalIssueStore
from metadata.memory import MemoryIssueStore

__all__ = ['BaseIssueStore', 'LocalIssueStore', 'MemoryIssueStore']

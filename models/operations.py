"""
Result models for multi-item storage operations.
"""

from dataclasses import dataclass, field
from typing import Generic, List, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class BatchFailure(Generic[T]):
    """An item that still failed after retries, with its final error."""

    item: T
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass(frozen=True)
class BatchOperationResult(Generic[T]):
    """
    Outcome of running one operation over many items.

    Every input item appears exactly once, either in ``successes`` or in
    ``failures``.
    """

    successes: Tuple[T, ...] = ()
    failures: Tuple[BatchFailure[T], ...] = ()

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def all_succeeded(self) -> bool:
        return not self.failures

    @property
    def failed_items(self) -> List[T]:
        return [failure.item for failure in self.failures]


@dataclass(frozen=True)
class MoveTask:
    """Move of one object from ``source`` to ``destination``."""

    source: str
    destination: str

    def __str__(self) -> str:
        return f"{self.source} -> {self.destination}"


@dataclass
class MoveReport:
    """Aggregate outcome of the move tasks of a rename."""

    successes: List[MoveTask] = field(default_factory=list)
    failures: List[BatchFailure[MoveTask]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)


@dataclass(frozen=True)
class FailedDirectory:
    """A folder that could not be enumerated, and why."""

    path: str
    reason: str


@dataclass
class FileListing:
    """Every file found under an issue prefix, plus the folders that could not be walked."""

    files: List[str] = field(default_factory=list)
    failed_directories: List[FailedDirectory] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_directories

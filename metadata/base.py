"""
Abstract base class for issue record stores.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from models.issue import Issue, IssueCreate, IssueUpdate


class BaseIssueStore(ABC):
    """
    Abstract base class for the metadata store holding issue records.

    Issue numbers are unique across records. Every method raises
    ``DatabaseError`` (or a subclass) on failure.
    """

    @abstractmethod
    async def create(self, data: IssueCreate) -> Issue:
        """
        Create an issue record, replacing any record with the same issue number.

        Args:
            data: Validated create payload.

        Returns:
            Issue: The stored record with its assigned id.

        Raises:
            DatabaseError: If the write fails.
        """

    @abstractmethod
    async def update(self, issue_id: str, data: IssueUpdate) -> Issue:
        """
        Apply a partial update.

        Args:
            issue_id: Record id.
            data: Fields to change.

        Returns:
            Issue: The updated record.

        Raises:
            IssueNotFoundError: If the record does not exist.
            DatabaseError: If the new issue number belongs to another record
                or the write fails.
        """

    @abstractmethod
    async def delete(self, issue_id: str) -> None:
        """
        Delete an issue record.

        Raises:
            IssueNotFoundError: If the record does not exist.
            DatabaseError: If the delete fails.
        """

    @abstractmethod
    async def find_by_issue(self, issue_number: int) -> Optional[Issue]:
        """Return the record with this issue number, or None."""

    @abstractmethod
    async def find_by_id(self, issue_id: str) -> Optional[Issue]:
        """Return the record with this id, or None."""

    @abstractmethod
    async def find_all(self) -> List[Issue]:
        """Return every record, newest issue number first."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

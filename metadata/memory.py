"""
In-memory issue store implementation for testing.
"""

from copy import deepcopy
from typing import Dict, List, Optional

from loguru import logger

from metadata.base import BaseIssueStore
from models.issue import Issue, IssueCreate, IssueUpdate
from exceptions import DatabaseError, IssueNotFoundError


class MemoryIssueStore(BaseIssueStore):
    """
    In-memory issue store.

    Records are deep-copied in and out so callers cannot mutate stored state.
    """

    def __init__(self):
        self._issues: Dict[str, Issue] = {}
        logger.debug("Initialized MemoryIssueStore")

    async def create(self, data: IssueCreate) -> Issue:
        existing = self._by_number(data.issue_number)
        issue = Issue.from_create(data, issue_id=existing.id if existing else None)
        if existing:
            issue.created_at = existing.created_at
        self._issues[issue.id] = issue
        logger.debug(f"Saved issue to memory: {issue.id} (#{issue.issue_number})")
        return deepcopy(issue)

    async def update(self, issue_id: str, data: IssueUpdate) -> Issue:
        if issue_id not in self._issues:
            raise IssueNotFoundError(issue_id)
        if data.issue_number is not None:
            owner = self._by_number(data.issue_number)
            if owner and owner.id != issue_id:
                raise DatabaseError(
                    f"Issue number {data.issue_number} is already used by {owner.id}",
                    operation="update",
                    code="DATABASE_DUPLICATE_ENTRY",
                )
        issue = self._issues[issue_id]
        issue.apply(data)
        return deepcopy(issue)

    async def delete(self, issue_id: str) -> None:
        if self._issues.pop(issue_id, None) is None:
            raise IssueNotFoundError(issue_id)
        logger.debug(f"Deleted issue from memory: {issue_id}")

    async def find_by_issue(self, issue_number: int) -> Optional[Issue]:
        issue = self._by_number(issue_number)
        return deepcopy(issue) if issue else None

    async def find_by_id(self, issue_id: str) -> Optional[Issue]:
        issue = self._issues.get(issue_id)
        return deepcopy(issue) if issue else None

    async def find_all(self) -> List[Issue]:
        return [deepcopy(issue) for issue in sorted(self._issues.values(), key=lambda i: -i.issue_number)]

    def _by_number(self, issue_number: int) -> Optional[Issue]:
        for issue in self._issues.values():
            if issue.issue_number == issue_number:
                return issue
        return None

    def clear(self) -> None:
        """Clear all stored records."""
        self._issues.clear()

    def __repr__(self) -> str:
        return f"MemoryIssueStore(issues={len(self._issues)})"

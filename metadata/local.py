"""
Local JSON file issue store.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from metadata.base import BaseIssueStore
from models.issue import Issue, IssueCreate, IssueUpdate
from exceptions import DatabaseError, IssueNotFoundError


class LocalIssueStore(BaseIssueStore):
    """
    Issue store persisted as a single JSON index file.

    The index is rewritten atomically (temporary file + rename) on every
    change and guarded by an asyncio lock, so one process can use it safely.
    """

    def __init__(self, index_path: Path):
        """
        Initialize the store.

        Args:
            index_path: JSON file holding all issue records.
        """
        self.index_path = Path(index_path)
        self._lock = asyncio.Lock()
        logger.info(f"Initialized LocalIssueStore at {self.index_path}")

    def _load_index(self) -> Dict[str, Issue]:
        """Read all records from disk."""
        if not self.index_path.exists():
            return {}
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                raw: List[Dict[str, Any]] = json.load(f)
            return {item["id"]: Issue.from_dict(item) for item in raw}
        except (OSError, ValueError, KeyError) as e:
            raise DatabaseError(
                f"Failed to read issue index: {e}",
                operation="load",
                code="DATABASE_ERROR",
            ) from e

    def _save_index(self, issues: Dict[str, Issue]) -> None:
        """Write all records to disk atomically."""
        temp = self.index_path.with_suffix(".tmp")
        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            records = [issue.to_dict() for issue in sorted(issues.values(), key=lambda i: i.issue_number)]
            with open(temp, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(temp, self.index_path)
        except OSError as e:
            raise DatabaseError(
                f"Failed to write issue index: {e}",
                operation="save",
                code="DATABASE_ERROR",
            ) from e

    async def create(self, data: IssueCreate) -> Issue:
        async with self._lock:
            issues = self._load_index()
            existing = _find_number(issues, data.issue_number)
            issue = Issue.from_create(data, issue_id=existing.id if existing else None)
            if existing:
                issue.created_at = existing.created_at
                logger.info(f"Replacing issue record #{data.issue_number} ({existing.id})")
            issues[issue.id] = issue
            self._save_index(issues)
        logger.debug(f"Saved issue: {issue.id} (#{issue.issue_number})")
        return issue

    async def update(self, issue_id: str, data: IssueUpdate) -> Issue:
        async with self._lock:
            issues = self._load_index()
            issue = issues.get(issue_id)
            if issue is None:
                raise IssueNotFoundError(issue_id)
            if data.issue_number is not None:
                owner = _find_number(issues, data.issue_number)
                if owner and owner.id != issue_id:
                    raise DatabaseError(
                        f"Issue number {data.issue_number} is already used by {owner.id}",
                        operation="update",
                        code="DATABASE_DUPLICATE_ENTRY",
                    )
            issue.apply(data)
            self._save_index(issues)
        logger.debug(f"Updated issue: {issue_id} ({', '.join(data.changes())})")
        return issue

    async def delete(self, issue_id: str) -> None:
        async with self._lock:
            issues = self._load_index()
            if issues.pop(issue_id, None) is None:
                raise IssueNotFoundError(issue_id)
            self._save_index(issues)
        logger.debug(f"Deleted issue: {issue_id}")

    async def find_by_issue(self, issue_number: int) -> Optional[Issue]:
        return _find_number(self._load_index(), issue_number)

    async def find_by_id(self, issue_id: str) -> Optional[Issue]:
        return self._load_index().get(issue_id)

    async def find_all(self) -> List[Issue]:
        return sorted(self._load_index().values(), key=lambda i: -i.issue_number)

    def __repr__(self) -> str:
        return f"LocalIssueStore(index_path={self.index_path})"


def _find_number(issues: Dict[str, Issue], issue_number: int) -> Optional[Issue]:
    for issue in issues.values():
        if issue.issue_number == issue_number:
            return issue
    return None

"""
Issue lifecycle across the blob store and the issue store: listing files,
deleting and renumbering issues.
"""

import asyncio
from collections import deque
from typing import Deque, List, Optional, Tuple

from loguru import logger as default_logger

from core.config import Settings, get_settings
from core.paths import StoragePaths
from exceptions import (
    DatabaseError,
    InconsistentStateError,
    MagazineError,
    PartialFailureError,
    StorageError,
)
from metadata.base import BaseIssueStore
from models.issue import Issue, IssueCreate, IssueUpdate, validate_issue_number
from models.operations import BatchFailure, FailedDirectory, FileListing, MoveReport, MoveTask
from storage.base import BaseBlobStore
from utils.retry import RetryPolicy, with_partial_retry


class IssueService:
    """
    Keeps the blob store and the issue store consistent for whole issues.

    Deletes are storage-first: the record is removed only after every file is
    gone, so a failed delete can simply be retried. Renames move files first
    and update the record only when every move succeeded.
    """

    def __init__(
        self,
        issue_store: BaseIssueStore,
        blob_store: BaseBlobStore,
        settings: Optional[Settings] = None,
        delete_policy: Optional[RetryPolicy] = None,
        logger=None,
    ):
        settings = settings or get_settings()
        self.issue_store = issue_store
        self.blob_store = blob_store
        self.max_depth = settings.LIST_MAX_DEPTH
        self.page_size = settings.LIST_PAGE_SIZE
        self.delete_policy = delete_policy or RetryPolicy(
            max_attempts=3,
            initial_delay=settings.RETRY_INITIAL_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )
        self.logger = logger or default_logger.bind(component="issues")

    # Reads and plain writes

    async def get_all_issues(self) -> List[Issue]:
        return await self.issue_store.find_all()

    async def get_issue_by_number(self, issue_number: int) -> Optional[Issue]:
        return await self.issue_store.find_by_issue(validate_issue_number(issue_number))

    async def create_issue(self, data: IssueCreate) -> Issue:
        return await self.issue_store.create(data)

    # Listing

    async def list_issue_files(self, issue_number: int, max_depth: Optional[int] = None) -> FileListing:
        """
        Enumerate every file stored under an issue folder.

        Folders are walked breadth-first from an explicit queue. Folders
        deeper than ``max_depth`` and folders whose listing fails are recorded
        in ``failed_directories`` and skipped; the walk always finishes.

        Args:
            issue_number: Issue whose folder is walked.
            max_depth: Deepest folder level visited; the issue folder is level 0.

        Returns:
            FileListing: File paths and failed folders.
        """
        max_depth = self.max_depth if max_depth is None else max_depth
        listing = FileListing()
        queue: Deque[Tuple[str, int]] = deque([(StoragePaths.issue_folder(issue_number), 0)])

        while queue:
            folder, depth = queue.popleft()
            if depth > max_depth:
                self.logger.warning(f"Not listing {folder}: deeper than {max_depth} levels")
                listing.failed_directories.append(
                    FailedDirectory(path=folder, reason=f"maximum depth {max_depth} exceeded")
                )
                continue

            try:
                entries = await self._list_folder(folder)
            except Exception as e:
                self.logger.warning(f"Could not list {folder}: {e}")
                listing.failed_directories.append(FailedDirectory(path=folder, reason=str(e)))
                continue

            for entry in entries:
                if entry.is_folder:
                    queue.append((entry.path, depth + 1))
                else:
                    listing.files.append(entry.path)

        self.logger.debug(
            f"Issue #{issue_number}: {len(listing.files)} files, "
            f"{len(listing.failed_directories)} failed folders"
        )
        return listing

    async def _list_folder(self, folder: str):
        """Read a whole folder, one page of ``page_size`` entries at a time."""
        entries = []
        offset = 0
        while True:
            page = await self.blob_store.list(folder, limit=self.page_size, offset=offset)
            entries.extend(page)
            if len(page) < self.page_size:
                return entries
            offset += len(page)

    # Delete

    async def delete_issue(self, issue_id: str, issue_number: int) -> None:
        """
        Delete an issue's files, then its record.

        Args:
            issue_id: Record id.
            issue_number: Issue number whose folder is removed.

        Raises:
            PartialFailureError: If some files could not be deleted or listed;
                the record is left in place so the delete can be retried.
            InconsistentStateError: If all files were deleted but the record
                could not be removed.
        """
        issue_number = validate_issue_number(issue_number)
        self.logger.info(f"Deleting issue #{issue_number} ({issue_id})")

        deleted = await self._delete_issue_files(issue_number)

        try:
            await self.issue_store.delete(issue_id)
        except Exception as e:
            self.logger.critical(
                f"Inconsistent state: files of issue #{issue_number} were deleted "
                f"but record {issue_id} could not be removed: {e}"
            )
            raise InconsistentStateError(
                f"Files of issue #{issue_number} were deleted but record {issue_id} remains: {e}",
                affected_paths=deleted,
                operation="delete",
            ) from e

        self.logger.info(f"Issue #{issue_number} deleted ({len(deleted)} files)")

    async def _delete_issue_files(self, issue_number: int) -> List[str]:
        """
        Delete everything under an issue folder.

        Returns:
            List[str]: The deleted paths.

        Raises:
            PartialFailureError: If any file or folder was left behind.
        """
        listing = await self.list_issue_files(issue_number)
        result = await self.blob_store.delete_with_partial_retry(listing.files, self.delete_policy)

        failures: List[BatchFailure[str]] = list(result.failures)
        failures.extend(
            BatchFailure(
                item=failed.path,
                error=StorageError(failed.reason, operation="list", path=failed.path,
                                   code="STORAGE_LIST_FAILED"),
            )
            for failed in listing.failed_directories
        )
        if not failures:
            return list(result.successes)

        total = len(listing.files) + len(listing.failed_directories)
        completed = len(result.successes)
        failed_paths = [f.item for f in failures]
        self.logger.error(
            f"Issue #{issue_number}: {completed}/{total} deleted, left behind: {', '.join(failed_paths)}"
        )
        if completed == 0:
            message = f"Could not delete any files of issue #{issue_number} (0/{total} completed)"
            code = "STORAGE_DELETE_FAILED"
        else:
            message = (
                f"Deleted {completed} of {total} files of issue #{issue_number} "
                f"({completed}/{total} completed); failed: {', '.join(failed_paths)}"
            )
            code = "OPERATION_DELETE_PARTIAL_FAILURE"
        raise PartialFailureError(
            message,
            total=total,
            completed=completed,
            failures=failures,
            operation="delete",
            code=code,
            user_message=(
                f"Deletion partially completed: {completed} files deleted, "
                f"{len(failures)} could not be deleted ({completed}/{total} completed)."
            ),
        )

    # Rename

    async def rename_issue(
        self,
        issue_id: str,
        old_issue_number: int,
        new_issue_number: int,
        new_title: Optional[str] = None,
    ) -> Issue:
        """
        Renumber an issue, moving its files to the new folder.

        Args:
            issue_id: Record id.
            old_issue_number: Current issue number.
            new_issue_number: Target issue number.
            new_title: Optional new title, applied with the number.

        Returns:
            Issue: The updated record.

        Raises:
            DatabaseError: If another record already has the new number.
            PartialFailureError: If some or all moves failed; the record is
                not changed.
            InconsistentStateError: If every file moved but the record could
                not be updated.
        """
        old_issue_number = validate_issue_number(old_issue_number)
        new_issue_number = validate_issue_number(new_issue_number)
        update = IssueUpdate(issue_number=new_issue_number, title=new_title)

        if old_issue_number == new_issue_number:
            self.logger.debug(f"Issue #{old_issue_number} keeps its number; no files to move")
            return await self.issue_store.update(issue_id, update)

        owner = await self.issue_store.find_by_issue(new_issue_number)
        if owner is not None and owner.id != issue_id:
            raise DatabaseError(
                f"Issue number {new_issue_number} is already used by {owner.id}",
                operation="rename",
                code="DATABASE_DUPLICATE_ENTRY",
            )

        self.logger.info(f"Renaming issue #{old_issue_number} -> #{new_issue_number} ({issue_id})")
        report = await self._move_issue_files(old_issue_number, new_issue_number)

        if report.failures:
            self._raise_move_failure(report, old_issue_number, new_issue_number)

        try:
            issue = await self.issue_store.update(issue_id, update)
        except Exception as e:
            self.logger.critical(
                f"Inconsistent state: files moved to #{new_issue_number} "
                f"but record {issue_id} still says #{old_issue_number}: {e}"
            )
            raise InconsistentStateError(
                f"Files of issue #{old_issue_number} were moved to #{new_issue_number} "
                f"but record {issue_id} could not be updated: {e}",
                affected_paths=[task.destination for task in report.successes],
                operation="rename",
            ) from e

        self.logger.info(f"Issue renamed to #{new_issue_number} ({report.total} files moved)")
        return issue

    async def _move_issue_files(self, old_issue_number: int, new_issue_number: int) -> MoveReport:
        """Clear the destination folder, then move the cover and every page in parallel."""
        try:
            await self._delete_issue_files(new_issue_number)
        except MagazineError as e:
            self.logger.debug(f"Ignoring leftovers under #{new_issue_number}: {e}")

        pages_folder = StoragePaths.pages_folder(old_issue_number)
        entries = await self._list_folder(pages_folder)
        tasks = [
            MoveTask(
                source=StoragePaths.cover_path(old_issue_number),
                destination=StoragePaths.cover_path(new_issue_number),
            )
        ]
        tasks.extend(
            MoveTask(
                source=entry.path,
                destination=StoragePaths.rebase(entry.path, old_issue_number, new_issue_number),
            )
            for entry in entries
            if not entry.is_folder
        )

        results = await asyncio.gather(*(self._move_with_fallback(task) for task in tasks), return_exceptions=True)

        report = MoveReport()
        for task, result in zip(tasks, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                report.failures.append(BatchFailure(item=task, error=result))
            else:
                report.successes.append(task)
        return report

    async def _move_with_fallback(self, task: MoveTask) -> None:
        """Move natively; if that fails, copy to the destination and delete the source."""
        try:
            await self.blob_store.move(task.source, task.destination)
            return
        except Exception as e:
            self.logger.debug(f"Move {task} failed ({e}); falling back to copy + delete")

        await self.blob_store.copy(task.source, task.destination)
        await self.blob_store.delete([task.source])

    def _raise_move_failure(self, report: MoveReport, old_issue_number: int, new_issue_number: int) -> None:
        total = report.total
        completed = len(report.successes)
        pairs = ", ".join(f"{f.item} ({f.message})" for f in report.failures)
        self.logger.error(
            f"Rename #{old_issue_number} -> #{new_issue_number}: {completed}/{total} moved; failed: {pairs}"
        )
        if completed == 0:
            raise PartialFailureError(
                f"Could not move any files of issue #{old_issue_number} (0/{total} completed)",
                total=total,
                completed=0,
                failures=report.failures,
                operation="rename",
                code="STORAGE_MOVE_FAILED",
                user_message=f"Files could not be moved (0/{total} completed). Please try again.",
            )
        raise PartialFailureError(
            f"Moved {completed} of {total} files of issue #{old_issue_number} to #{new_issue_number} "
            f"({completed}/{total} completed); failed: {pairs}",
            total=total,
            completed=completed,
            failures=report.failures,
            operation="rename",
            code="OPERATION_RENAME_PARTIAL_FAILURE",
            user_message=(
                f"Rename partially completed ({completed}/{total} completed). "
                f"{len(report.failures)} files could not be moved."
            ),
        )

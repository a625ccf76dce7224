"""
Custom exceptions for the magazine issue pipeline.

Every error carries a machine readable ``code``, a ``retryable`` flag used by
the retry helpers, and a ``user_message`` that is safe to show to an editor.
"""

from typing import Any, Dict, List, Optional


# Transient storage failures. "Not found" and permission codes are never here.
STORAGE_RETRYABLE_CODES = frozenset({
    "STORAGE_UPLOAD_FAILED",
    "STORAGE_DELETE_FAILED",
    "STORAGE_LIST_FAILED",
    "STORAGE_MOVE_FAILED",
    "STORAGE_COPY_FAILED",
    "NETWORK_CONNECTION_FAILED",
    "NETWORK_TIMEOUT",
    "NETWORK_RATE_LIMIT",
})

# Transient metadata store failures (connection loss, timeouts, overload).
DATABASE_RETRYABLE_CODES = frozenset({
    "DATABASE_CONNECTION_FAILED",
    "DATABASE_QUERY_TIMEOUT",
    "PGRST301",
    "PGRST504",
    "08000",
    "08003",
    "08006",
    "57P03",
})

NOT_FOUND_CODES = frozenset({"STORAGE_FILE_NOT_FOUND", "DATABASE_NOT_FOUND", "PGRST116"})

USER_MESSAGES: Dict[str, str] = {
    "FILE_INVALID_TYPE": "Unsupported file type.",
    "FILE_TOO_LARGE": "The file is too large.",
    "FILE_CORRUPTED": "The file appears to be corrupted.",
    "FILE_TOO_MANY_PAGES": "The PDF has too many pages.",
    "FILE_NOT_READABLE": "The file could not be read.",
    "PROCESSING_PDF_FAILED": "The PDF could not be processed.",
    "PROCESSING_IMAGE_FAILED": "The image could not be processed.",
    "STORAGE_UPLOAD_FAILED": "The file could not be uploaded. Please try again.",
    "STORAGE_DELETE_FAILED": "The file could not be deleted. Please try again.",
    "STORAGE_LIST_FAILED": "Files could not be listed. Please try again.",
    "STORAGE_MOVE_FAILED": "Files could not be moved. Please try again.",
    "STORAGE_COPY_FAILED": "The file could not be copied. Please try again.",
    "STORAGE_FILE_NOT_FOUND": "The file was not found.",
    "STORAGE_PERMISSION_DENIED": "You do not have permission for this operation.",
    "STORAGE_QUOTA_EXCEEDED": "Storage quota exceeded.",
    "NETWORK_CONNECTION_FAILED": "Connection failed. Check your network and try again.",
    "NETWORK_TIMEOUT": "The operation timed out. Please try again.",
    "NETWORK_RATE_LIMIT": "Too many requests. Please wait a moment.",
    "DATABASE_CONNECTION_FAILED": "Database connection failed. Please try again.",
    "DATABASE_QUERY_TIMEOUT": "The database query timed out. Please try again.",
    "DATABASE_DUPLICATE_ENTRY": "This issue number is already in use.",
    "DATABASE_NOT_FOUND": "The issue was not found.",
    "DATABASE_ERROR": "A database error occurred.",
    "VALIDATION_ERROR": "Please check the entered values.",
}

GENERIC_USER_MESSAGE = "An unexpected error occurred. Please try again."


class MagazineError(Exception):
    """Base exception for all pipeline errors."""

    kind = "general"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        user_message: Optional[str] = None,
        retryable: bool = False,
        details: Any = None,
    ):
        self.message = message
        self.code = code or "UNKNOWN_ERROR"
        self.user_message = user_message or USER_MESSAGES.get(self.code, GENERIC_USER_MESSAGE)
        self.retryable = retryable
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, code={self.code!r})"


class ValidationError(MagazineError):
    """Raised when issue fields (title, issue number, date) are invalid."""

    kind = "validation"

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        self.field = field
        kwargs.setdefault("code", "VALIDATION_ERROR")
        super().__init__(message, **kwargs)

    def __repr__(self) -> str:
        return f"ValidationError(message={self.message!r}, field={self.field!r})"


class ProcessingError(MagazineError):
    """
    Raised when an input file cannot be validated, rendered or converted.

    ``kind`` is one of ``file_validation``, ``pdf_processing`` or
    ``image_processing``. Processing errors are never retried.
    """

    KINDS = ("file_validation", "pdf_processing", "image_processing")

    _DEFAULT_CODES = {
        "file_validation": "FILE_INVALID_TYPE",
        "pdf_processing": "PROCESSING_PDF_FAILED",
        "image_processing": "PROCESSING_IMAGE_FAILED",
    }

    def __init__(
        self,
        message: str,
        kind: str = "pdf_processing",
        page_number: Optional[int] = None,
        **kwargs,
    ):
        if kind not in self.KINDS:
            raise ValueError(f"Invalid processing error kind: {kind}")
        self.kind = kind
        self.page_number = page_number
        kwargs.setdefault("code", self._DEFAULT_CODES[kind])
        full_message = message
        if page_number is not None:
            full_message = f"[page {page_number}] {message}"
        super().__init__(full_message, **kwargs)

    def __repr__(self) -> str:
        return f"ProcessingError(message={self.message!r}, kind={self.kind!r}, code={self.code!r})"


class StorageError(MagazineError):
    """Raised when a blob store operation fails."""

    kind = "storage_error"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: Optional[str] = None,
        retryable: Optional[bool] = None,
        **kwargs,
    ):
        self.operation = operation
        self.path = path
        code = code or "STORAGE_ERROR"
        if retryable is None:
            retryable = code in STORAGE_RETRYABLE_CODES
        full_message = message
        if operation:
            full_message = f"[{operation}] {message}"
        if path:
            full_message = f"{full_message} (path: {path})"
        super().__init__(full_message, code=code, retryable=retryable, **kwargs)

    def __repr__(self) -> str:
        return (f"StorageError(message={self.message!r}, operation={self.operation!r}, "
                f"path={self.path!r}, code={self.code!r})")

    @classmethod
    def from_exception(
        cls,
        error: BaseException,
        operation: str,
        path: Optional[str] = None,
    ) -> "StorageError":
        """
        Classify an arbitrary backend exception into a catalogued storage error.

        Args:
            error: The exception raised by the backend or SDK.
            operation: Storage operation that failed (upload, delete, list, ...).
            path: Object path involved, if any.

        Returns:
            StorageError: The classified error, chained to ``error`` by the caller.
        """
        if isinstance(error, StorageError):
            return error
        code = classify_storage_message(str(error), operation)
        if isinstance(error, FileNotFoundError):
            code = "STORAGE_FILE_NOT_FOUND"
        elif isinstance(error, PermissionError):
            code = "STORAGE_PERMISSION_DENIED"
        elif isinstance(error, (TimeoutError, ConnectionError)):
            code = "NETWORK_TIMEOUT" if isinstance(error, TimeoutError) else "NETWORK_CONNECTION_FAILED"
        return cls(f"Storage {operation} failed: {error}", operation=operation, path=path, code=code)


def classify_storage_message(message: str, operation: str) -> str:
    """Map an error message to a storage error code by keyword."""
    text = message.lower()
    if "not found" in text or "does not exist" in text or "nosuchkey" in text:
        return "STORAGE_FILE_NOT_FOUND"
    if "permission" in text or "unauthorized" in text or "access denied" in text:
        return "STORAGE_PERMISSION_DENIED"
    if "quota" in text or "exceeded" in text:
        return "STORAGE_QUOTA_EXCEEDED"
    if "timeout" in text or "timed out" in text:
        return "NETWORK_TIMEOUT"
    if "network" in text or "connection" in text:
        return "NETWORK_CONNECTION_FAILED"
    if "rate limit" in text or "too many requests" in text or "slowdown" in text:
        return "NETWORK_RATE_LIMIT"
    return f"STORAGE_{operation.upper()}_FAILED"


class PartialFailureError(StorageError):
    """
    Raised when a multi-item storage operation finished only partly.

    Carries ``total`` / ``completed`` / ``failed`` counts and the itemised
    ``failures`` so that callers can resume or report the exact leftovers.
    """

    kind = "partial_failure"

    def __init__(
        self,
        message: str,
        total: int,
        completed: int,
        failures: Optional[List[Any]] = None,
        operation: Optional[str] = None,
        code: str = "OPERATION_PARTIAL_FAILURE",
        user_message: Optional[str] = None,
    ):
        self.total = total
        self.completed = completed
        self.failed = total - completed
        self.failures = list(failures or [])
        user_message = user_message or f"Operation partially completed ({completed}/{total} completed)."
        super().__init__(
            message,
            operation=operation,
            code=code,
            retryable=False,
            user_message=user_message,
            details=self.progress,
        )

    @property
    def progress(self) -> Dict[str, int]:
        return {"total": self.total, "completed": self.completed, "failed": self.failed}

    def __repr__(self) -> str:
        return (f"PartialFailureError(message={self.message!r}, code={self.code!r}, "
                f"completed={self.completed}, total={self.total})")


class DatabaseError(MagazineError):
    """Raised when an issue store operation fails."""

    kind = "database_error"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: Optional[str] = None,
        retryable: Optional[bool] = None,
        **kwargs,
    ):
        self.operation = operation
        code = code or "DATABASE_ERROR"
        if retryable is None:
            retryable = code in DATABASE_RETRYABLE_CODES
        full_message = message
        if operation:
            full_message = f"[{operation}] {message}"
        super().__init__(full_message, code=code, retryable=retryable, **kwargs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, operation={self.operation!r}, code={self.code!r})"


class IssueNotFoundError(DatabaseError):
    """Raised when a requested issue record does not exist."""

    def __init__(self, issue_id: str):
        self.issue_id = issue_id
        super().__init__(f"Issue not found: {issue_id}", code="DATABASE_NOT_FOUND", retryable=False)


class MetadataCommitError(DatabaseError):
    """
    Raised when every file of an issue was stored but the issue record could
    not be created. ``issue_data`` holds the payload to commit again.
    """

    def __init__(self, message: str, issue_data: Any = None, **kwargs):
        self.issue_data = issue_data
        kwargs.setdefault(
            "user_message",
            "Files were uploaded but the issue record could not be saved. Save the record again.",
        )
        super().__init__(message, operation="create", **kwargs)


class InconsistentStateError(DatabaseError):
    """
    Raised when the blob store was changed but the matching metadata change
    failed, leaving the two stores disagreeing. Requires operator attention.
    """

    def __init__(self, message: str, affected_paths: Optional[List[str]] = None, **kwargs):
        self.affected_paths = list(affected_paths or [])
        kwargs.setdefault("code", "INCONSISTENT_STATE")
        kwargs.setdefault(
            "user_message",
            "Files were changed but the issue record could not be updated. Contact an administrator.",
        )
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)


class ConfigurationError(MagazineError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        full_message = message
        if config_key:
            full_message = f"{message} (key: {config_key})"
        super().__init__(full_message, code="CONFIGURATION_ERROR")

    def __repr__(self) -> str:
        return f"ConfigurationError(message={self.message!r}, config_key={self.config_key!r})"

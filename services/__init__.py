"""Issue upload and lifecycle services."""

from services.issues import IssueService
from services.upload import UploadService

__all__ = ['IssueService', 'UploadService']

"""Data models for the magazine pipeline."""

from models.issue import Issue, IssueCreate, IssueUpdate
from models.operations import (
    BatchFailure,
    BatchOperationResult,
    FailedDirectory,
    FileListing,
    MoveReport,
    MoveTask,
)
from models.storage import PageImage, RenderedPage, SourceFile, StorageObject, UploadOptions

__all__ = [
    'Issue', 'IssueCreate', 'IssueUpdate',
    'BatchFailure', 'BatchOperationResult', 'FailedDirectory', 'FileListing', 'MoveReport', 'MoveTask',
    'PageImage', 'RenderedPage', 'SourceFile', 'StorageObject', 'UploadOptions',
]

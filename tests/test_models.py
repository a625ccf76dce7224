# tests/test_models.py
"""
Unit tests for issue models, storage paths and settings
"""
from datetime import date

import pytest
from pydantic import ValidationError as SettingsValidationError

from core.config import Settings
from core.paths import StoragePaths
from exceptions import ProcessingError, ValidationError
from models.issue import Issue, IssueCreate, IssueUpdate, validate_issue_number
from models.storage import SourceFile


class TestStoragePaths:
    """Test storage path conventions"""

    def test_cover_path(self):
        """Test cover path"""
        assert StoragePaths.cover_path(12) == "12/kapak.webp"

    def test_page_paths_are_zero_padded(self):
        """Test 3-digit page numbers"""
        assert StoragePaths.page_path(12, 1) == "12/pages/sayfa_001.webp"
        assert StoragePaths.page_path(12, 42) == "12/pages/sayfa_042.webp"
        assert StoragePaths.page_path(12, 1000) == "12/pages/sayfa_1000.webp"

    def test_pages_folder(self):
        """Test pages folder"""
        assert StoragePaths.pages_folder(7) == "7/pages"

    def test_page_number_from_path(self):
        """Test parsing a page number back"""
        assert StoragePaths.page_number_from_path("7/pages/sayfa_009.webp") == 9
        with pytest.raises(ValueError):
            StoragePaths.page_number_from_path("7/kapak.webp")

    def test_rebase(self):
        """Test moving a path between issue folders"""
        assert StoragePaths.rebase("7/pages/sayfa_001.webp", 7, 8) == "8/pages/sayfa_001.webp"
        with pytest.raises(ValueError):
            StoragePaths.rebase("70/kapak.webp", 7, 8)

    def test_invalid_issue_number(self):
        """Test that paths require a valid issue number"""
        with pytest.raises(ValidationError):
            StoragePaths.cover_path(0)


class TestIssueValidation:
    """Test issue field validation"""

    @pytest.mark.parametrize("value", [1, 500, 9999])
    def test_valid_issue_numbers(self, value):
        """Test accepted range"""
        assert validate_issue_number(value) == value

    @pytest.mark.parametrize("value", [0, -1, 10000, True, "12", 1.5])
    def test_invalid_issue_numbers(self, value):
        """Test rejected values"""
        with pytest.raises(ValidationError) as exc_info:
            validate_issue_number(value)
        assert exc_info.value.field == "issue_number"

    def test_title_is_stripped_and_bounded(self):
        """Test title rules"""
        data = IssueCreate(title="  Spring  ", issue_number=1, publication_date="2024-03-01")
        assert data.title == "Spring"
        assert data.publication_date == date(2024, 3, 1)

        with pytest.raises(ValidationError):
            IssueCreate(title="   ", issue_number=1, publication_date="2024-03-01")
        with pytest.raises(ValidationError):
            IssueCreate(title="x" * 201, issue_number=1, publication_date="2024-03-01")

    def test_invalid_date(self):
        """Test date parsing"""
        with pytest.raises(ValidationError):
            IssueCreate(title="Spring", issue_number=1, publication_date="01/03/2024")

    def test_update_changes_only_set_fields(self):
        """Test partial updates"""
        update = IssueUpdate(issue_number=13)
        assert update.changes() == {"issue_number": 13}


class TestIssue:
    """Test Issue model"""

    def test_from_create_and_serialization(self, issue_data):
        """Test to_dict / from_dict"""
        issue = Issue.from_create(issue_data)

        data = issue.to_dict()
        assert issue.id.startswith("issue_")
        assert data["publication_date"] == "2024-03-01"

        restored = Issue.from_dict(data)
        assert restored.issue_number == 12
        assert restored.created_at == issue.created_at

    def test_apply_update(self, issue_data):
        """Test in-place update"""
        issue = Issue.from_create(issue_data)
        issue.apply(IssueUpdate(title="Summer"))

        assert issue.title == "Summer"
        assert issue.issue_number == 12


class TestSourceFile:
    """Test SourceFile"""

    def test_from_path_guesses_media_type(self, tmp_path):
        """Test media type detection"""
        path = tmp_path / "issue.pdf"
        path.write_bytes(b"%PDF-1.7")

        source = SourceFile.from_path(path)

        assert source.media_type == "application/pdf"
        assert source.size == 8

    def test_from_path_missing_file(self, tmp_path):
        """Test that an unreadable path is a file validation error"""
        with pytest.raises(ProcessingError) as exc_info:
            SourceFile.from_path(tmp_path / "missing.pdf")

        assert exc_info.value.kind == "file_validation"
        assert exc_info.value.code == "FILE_NOT_READABLE"


class TestSettings:
    """Test settings"""

    def test_defaults(self, tmp_path, monkeypatch):
        """Test documented defaults"""
        monkeypatch.chdir(tmp_path)
        settings = Settings(_env_file=None)

        assert settings.PAGE_TARGET_HEIGHT == 2400
        assert settings.IMAGE_QUALITY == 0.9
        assert settings.CONCURRENT_UPLOADS == 5
        assert settings.UPLOAD_MAX_ATTEMPTS == 3
        assert settings.LIST_MAX_DEPTH == 10
        assert settings.MAX_PDF_PAGES == 500
        assert settings.CACHE_CONTROL == "3600"
        assert settings.STORAGE_PATH.is_absolute()

    def test_environment_overrides(self, monkeypatch):
        """Test reading environment variables"""
        monkeypatch.setenv("STORAGE_BACKEND", "S3")
        monkeypatch.setenv("S3_BUCKET_NAME", "magazines")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)

        assert settings.STORAGE_BACKEND == "s3"
        assert settings.LOG_LEVEL == "DEBUG"
        settings.validate_backend()

    def test_invalid_quality(self):
        """Test quality bounds"""
        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None, IMAGE_QUALITY=1.5)

    def test_s3_requires_bucket(self):
        """Test backend validation"""
        settings = Settings(_env_file=None, STORAGE_BACKEND="s3")

        with pytest.raises(ValueError):
            settings.validate_backend()

"""
Issue data models for the magazine pipeline.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional
import uuid

from exceptions import ValidationError

MIN_ISSUE_NUMBER = 1
MAX_ISSUE_NUMBER = 9999
MAX_TITLE_LENGTH = 200


def validate_issue_number(value: Any) -> int:
    """
    Check that an issue number is an integer within 1..9999.

    Raises:
        ValidationError: If the value is not a valid issue number.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Issue number must be an integer, got {value!r}", field="issue_number")
    if not MIN_ISSUE_NUMBER <= value <= MAX_ISSUE_NUMBER:
        raise ValidationError(
            f"Issue number must be between {MIN_ISSUE_NUMBER} and {MAX_ISSUE_NUMBER}, got {value}",
            field="issue_number",
        )
    return value


def validate_title(value: Any) -> str:
    """Check that a title is non-empty and at most 200 characters; returns it stripped."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Title is required", field="title")
    value = value.strip()
    if len(value) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters", field="title")
    return value


def parse_date(value: Any) -> date:
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid publication date: {value!r}", field="publication_date")


def generate_id() -> str:
    """Generate a unique issue id."""
    return f"issue_{uuid.uuid4().hex[:12]}"


@dataclass
class IssueCreate:
    """Payload for creating an issue record. Validated on construction."""

    title: str
    issue_number: int
    publication_date: date
    cover_image_url: Optional[str] = None
    page_count: int = 0
    published: bool = True

    def __post_init__(self):
        self.title = validate_title(self.title)
        self.issue_number = validate_issue_number(self.issue_number)
        self.publication_date = parse_date(self.publication_date)
        if self.page_count < 0:
            raise ValidationError("Page count cannot be negative", field="page_count")


@dataclass
class IssueUpdate:
    """Partial update of an issue record; ``None`` fields are left unchanged."""

    title: Optional[str] = None
    issue_number: Optional[int] = None
    publication_date: Optional[date] = None
    cover_image_url: Optional[str] = None
    page_count: Optional[int] = None
    published: Optional[bool] = None

    def __post_init__(self):
        if self.title is not None:
            self.title = validate_title(self.title)
        if self.issue_number is not None:
            self.issue_number = validate_issue_number(self.issue_number)
        if self.publication_date is not None:
            self.publication_date = parse_date(self.publication_date)

    def changes(self) -> Dict[str, Any]:
        """Return only the fields that are set."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass
class Issue:
    """A stored issue record."""

    id: str
    issue_number: int
    title: str
    publication_date: date
    cover_image_url: Optional[str] = None
    page_count: int = 0
    published: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_create(cls, data: IssueCreate, issue_id: Optional[str] = None) -> 'Issue':
        return cls(
            id=issue_id or generate_id(),
            issue_number=data.issue_number,
            title=data.title,
            publication_date=data.publication_date,
            cover_image_url=data.cover_image_url,
            page_count=data.page_count,
            published=data.published,
        )

    def apply(self, update: IssueUpdate) -> None:
        """Apply a partial update in place and bump ``updated_at``."""
        for name, value in update.changes().items():
            setattr(self, name, value)
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert Issue instance to dictionary.
        """
        return {
            "id": self.id,
            "issue_number": self.issue_number,
            "title": self.title,
            "publication_date": self.publication_date.isoformat(),
            "cover_image_url": self.cover_image_url,
            "page_count": self.page_count,
            "published": self.published,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Issue':
        """
        Create Issue instance from dictionary.
        """
        now = datetime.now(timezone.utc)
        return cls(
            id=data["id"],
            issue_number=data["issue_number"],
            title=data["title"],
            publication_date=parse_date(data["publication_date"]),
            cover_image_url=data.get("cover_image_url"),
            page_count=data.get("page_count", 0),
            published=data.get("published", True),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else now,
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else now,
        )

    def __repr__(self) -> str:
        return f"Issue(id={self.id}, number={self.issue_number}, title={self.title!r}, pages={self.page_count})"

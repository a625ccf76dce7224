"""
Storage path conventions for issue files.

Layout under the blob store root::

    {issue}/kapak.webp
    {issue}/pages/sayfa_001.webp
    {issue}/pages/sayfa_002.webp
"""

from models.issue import validate_issue_number

COVER_FILENAME = "kapak.webp"
PAGES_FOLDER = "pages"
PAGE_FILENAME_PREFIX = "sayfa_"
PAGE_NUMBER_PADDING = 3
IMAGE_EXTENSION = ".webp"
IMAGE_CONTENT_TYPE = "image/webp"


class StoragePaths:
    """Builds the blob store paths of an issue."""

    @staticmethod
    def issue_folder(issue_number: int) -> str:
        return str(validate_issue_number(issue_number))

    @staticmethod
    def pages_folder(issue_number: int) -> str:
        return f"{StoragePaths.issue_folder(issue_number)}/{PAGES_FOLDER}"

    @staticmethod
    def cover_path(issue_number: int) -> str:
        return f"{StoragePaths.issue_folder(issue_number)}/{COVER_FILENAME}"

    @staticmethod
    def page_filename(page_number: int) -> str:
        if page_number < 1:
            raise ValueError(f"Page numbers start at 1, got {page_number}")
        return f"{PAGE_FILENAME_PREFIX}{page_number:0{PAGE_NUMBER_PADDING}d}{IMAGE_EXTENSION}"

    @staticmethod
    def page_path(issue_number: int, page_number: int) -> str:
        return f"{StoragePaths.pages_folder(issue_number)}/{StoragePaths.page_filename(page_number)}"

    @staticmethod
    def page_number_from_path(path: str) -> int:
        """Recover the page number from a page path or file name."""
        name = path.rsplit("/", 1)[-1]
        if not (name.startswith(PAGE_FILENAME_PREFIX) and name.endswith(IMAGE_EXTENSION)):
            raise ValueError(f"Not a page file: {path}")
        return int(name[len(PAGE_FILENAME_PREFIX):-len(IMAGE_EXTENSION)])

    @staticmethod
    def rebase(path: str, old_issue_number: int, new_issue_number: int) -> str:
        """Move a path from one issue folder to another, keeping the rest."""
        old_prefix = f"{StoragePaths.issue_folder(old_issue_number)}/"
        if not path.startswith(old_prefix):
            raise ValueError(f"Path {path} is not under issue {old_issue_number}")
        return f"{StoragePaths.issue_folder(new_issue_number)}/{path[len(old_prefix):]}"

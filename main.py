# main.py
"""
Command line entry point: upload, delete, rename and list magazine issues.
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from core.config import get_settings
from core.log import configure_logging
from exceptions import MagazineError, MetadataCommitError
from models.storage import SourceFile
from services.factory import ServiceFactory


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="magazine-pipeline",
        description="Convert magazine PDFs to WebP pages and manage stored issues.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="Upload a new issue from a PDF")
    upload.add_argument("pdf", help="Path to the issue PDF")
    upload.add_argument("--issue", type=int, required=True, help="Issue number (1-9999)")
    upload.add_argument("--title", required=True, help="Issue title")
    upload.add_argument("--date", required=True, help="Publication date (YYYY-MM-DD)")
    upload.add_argument("--cover", default=None, help="Optional cover image (page 1 is used otherwise)")

    delete = commands.add_parser("delete", help="Delete an issue and all of its files")
    delete.add_argument("--issue", type=int, required=True, help="Issue number")

    rename = commands.add_parser("rename", help="Change an issue's number (and optionally title)")
    rename.add_argument("--issue", type=int, required=True, help="Current issue number")
    rename.add_argument("--to", type=int, required=True, dest="new_issue", help="New issue number")
    rename.add_argument("--title", default=None, help="New title")

    commands.add_parser("list", help="List stored issues")

    return parser.parse_args(argv)


def _print_progress(label: str):
    def report(done: int, total: Optional[int] = None) -> None:
        suffix = f"{done}/{total}" if total is not None else f"{done}%"
        print(f"  {label}: {suffix}", flush=True)
    return report


async def run(args: argparse.Namespace, factory: Optional[ServiceFactory] = None) -> int:
    """Execute a parsed command. Returns the process exit code."""
    factory = factory or ServiceFactory()

    if args.command == "upload":
        service = factory.upload_service()
        issue = await service.upload_issue(
            document=SourceFile.from_path(args.pdf),
            title=args.title,
            issue_number=args.issue,
            publication_date=args.date,
            cover=SourceFile.from_path(args.cover) if args.cover else None,
            on_pdf_processing=_print_progress("rendered"),
            on_page_progress=_print_progress("uploaded"),
            on_cover_progress=_print_progress("cover"),
        )
        print(f"✅ Issue #{issue.issue_number} uploaded: {issue.page_count} pages, cover {issue.cover_image_url}")
        return 0

    service = factory.issue_service()

    if args.command == "list":
        for issue in await service.get_all_issues():
            print(f"#{issue.issue_number:<5} {issue.publication_date.isoformat()}  "
                  f"{issue.page_count:>4} pages  {issue.title}")
        return 0

    issue = await service.get_issue_by_number(args.issue)
    if issue is None:
        print(f"❌ Issue #{args.issue} not found", file=sys.stderr)
        return 1

    if args.command == "delete":
        await service.delete_issue(issue.id, issue.issue_number)
        print(f"✅ Issue #{args.issue} deleted")
    elif args.command == "rename":
        updated = await service.rename_issue(issue.id, issue.issue_number, args.new_issue, args.title)
        print(f"✅ Issue #{args.issue} is now #{updated.issue_number}: {updated.title}")
    return 0


def main(argv: Optional[List[str]] = None, factory: Optional[ServiceFactory] = None) -> int:
    """Entry point: load .env, configure logging and run the command."""
    load_dotenv()
    args = parse_args(argv)
    settings = factory.settings if factory else get_settings()
    configure_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_FILE)

    try:
        return asyncio.run(run(args, factory))
    except MetadataCommitError as e:
        logger.error(f"{e!r}")
        print(f"❌ {e.user_message}", file=sys.stderr)
        return 3
    except MagazineError as e:
        logger.error(f"{e!r}: {e}")
        print(f"❌ {e.user_message}", file=sys.stderr)
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()

# tests/test_main.py
"""
Tests for the command line entry point
"""
import pytest

from conftest import make_image, make_pdf
from main import main, parse_args, run
from models.issue import IssueCreate
from services.factory import ServiceFactory


@pytest.fixture
def factory(settings, blob_store, issue_store):
    return ServiceFactory(settings=settings, blob_store=blob_store, issue_store=issue_store)


@pytest.fixture
def pdf_path(tmp_path):
    path = tmp_path / "issue.pdf"
    path.write_bytes(make_pdf(2))
    return path


def test_parse_upload():
    """Test upload arguments"""
    args = parse_args(["upload", "issue.pdf", "--issue", "12", "--title", "Spring", "--date", "2024-03-01"])

    assert args.command == "upload"
    assert args.issue == 12
    assert args.cover is None


def test_parse_rename():
    """Test rename arguments"""
    args = parse_args(["--log-level", "DEBUG", "rename", "--issue", "7", "--to", "8"])

    assert (args.issue, args.new_issue, args.title) == (7, 8, None)
    assert args.log_level == "DEBUG"


def test_command_is_required():
    with pytest.raises(SystemExit):
        parse_args([])


class TestRun:
    """Test command execution over memory stores"""

    @pytest.mark.asyncio
    async def test_upload_then_list(self, factory, blob_store, pdf_path, tmp_path, capsys):
        """Test upload with a cover file and the issue listing"""
        cover = tmp_path / "cover.png"
        cover.write_bytes(make_image("PNG"))
        args = parse_args(["upload", str(pdf_path), "--issue", "12", "--title", "Spring",
                           "--date", "2024-03-01", "--cover", str(cover)])

        assert await run(args, factory) == 0
        assert len(blob_store.paths("12")) == 3

        assert await run(parse_args(["list"]), factory) == 0
        output = capsys.readouterr().out
        assert "Issue #12 uploaded: 2 pages" in output
        assert "Spring" in output.splitlines()[-1]

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, factory, blob_store, issue_store, capsys):
        """Test rename then delete of a stored issue"""
        await blob_store.upload("7/kapak.webp", b"cover")
        await issue_store.create(IssueCreate(title="Old", issue_number=7, publication_date="2024-01-01"))

        assert await run(parse_args(["rename", "--issue", "7", "--to", "8", "--title", "New"]), factory) == 0
        assert blob_store.paths() == ["8/kapak.webp"]

        assert await run(parse_args(["delete", "--issue", "8"]), factory) == 0
        assert blob_store.paths() == []
        assert await issue_store.find_all() == []
        assert "is now #8: New" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_missing_issue(self, factory, capsys):
        """Test delete of an unknown issue number"""
        assert await run(parse_args(["delete", "--issue", "99"]), factory) == 1
        assert "not found" in capsys.readouterr().err


class TestMain:
    """Test exit codes"""

    def test_success(self, factory, pdf_path):
        argv = ["upload", str(pdf_path), "--issue", "3", "--title", "Spring", "--date", "2024-03-01"]

        assert main(argv, factory) == 0

    def test_validation_error_exit_code(self, factory, pdf_path, capsys):
        """Test that a library error becomes exit code 1"""
        argv = ["upload", str(pdf_path), "--issue", "0", "--title", "Spring", "--date", "2024-03-01"]

        assert main(argv, factory) == 1
        assert "❌ Please check the entered values." in capsys.readouterr().err

    def test_metadata_failure_exit_code(self, factory, issue_store, blob_store, pdf_path):
        """Test that stored files without a record exit with 3"""
        issue_store.fail_on.add("create")
        argv = ["upload", str(pdf_path), "--issue", "3", "--title", "Spring", "--date", "2024-03-01"]

        assert main(argv, factory) == 3
        assert len(blob_store.paths("3")) == 3

    def test_missing_input_file_exit_code(self, factory, blob_store, tmp_path, capsys):
        """Test that an unreadable PDF path is reported, not raised"""
        argv = ["upload", str(tmp_path / "missing.pdf"), "--issue", "3", "--title", "Spring",
                "--date", "2024-03-01"]

        assert main(argv, factory) == 1
        assert "❌ The file could not be read." in capsys.readouterr().err
        assert blob_store.calls == []

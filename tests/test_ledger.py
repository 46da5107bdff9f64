"""
Tests for the revision ledger.

Tests cover:
- Parsing single records
- Reading ledger files (missing, corrupt, unreadable)
- Writing ledger files
- Lookups with non-canonical URLs
"""

import pytest

from svntag.exit_codes import LedgerUnreadableError, LEDGER_ERROR
from svntag.ledger import RevisionLedger, parse_ledger, parse_ledger_line, write_ledger


class TestParseLedgerLine:
    """Tests for parse_ledger_line."""

    def test_simple_record(self):
        assert parse_ledger_line("http://host/repo/trunk/5") == ("http://host/repo/trunk", 5)

    def test_surrounding_whitespace(self):
        assert parse_ledger_line("  http://host/repo/trunk/12 \n") == ("http://host/repo/trunk", 12)

    def test_url_is_canonicalized(self):
        url, revision = parse_ledger_line("HTTP://Host/repo/my%20module/3")
        assert url == "http://host/repo/my%20module"
        assert revision == 3

    @pytest.mark.parametrize("line", [
        "",
        "garbage",
        "http://host/repo/trunk/abc",
        "http://host/repo/trunk/-5",
        "http://host/repo/trunk/",
        "/5",
        "no-scheme/path/5",
    ])
    def test_invalid_lines(self, line):
        assert parse_ledger_line(line) is None

    def test_non_ascii_digits_rejected(self):
        assert parse_ledger_line("http://host/repo/trunk/٥") is None


class TestParseLedger:
    """Tests for parse_ledger."""

    def test_missing_file_is_empty(self, tmp_path):
        ledger = parse_ledger(tmp_path / "revision.txt")
        assert len(ledger) == 0

    def test_reads_all_valid_lines(self, tmp_path):
        path = tmp_path / "revision.txt"
        path.write_text(
            "http://host/repo/trunk/5\n"
            "http://host/repo/lib/trunk/7\n"
        )

        ledger = parse_ledger(path)

        assert len(ledger) == 2
        assert ledger["http://host/repo/trunk"] == 5
        assert ledger["http://host/repo/lib/trunk"] == 7

    def test_corrupt_lines_are_skipped(self, tmp_path):
        path = tmp_path / "revision.txt"
        path.write_text(
            "http://host/repo/trunk/5\n"
            "this is not a record\n"
            "\n"
            "http://host/repo/branch/xyz\n"
            "http://host/repo/lib/9\n"
        )

        ledger = parse_ledger(path)

        assert len(ledger) == 2
        assert set(ledger) == {"http://host/repo/trunk", "http://host/repo/lib"}

    def test_later_duplicate_wins(self, tmp_path):
        path = tmp_path / "revision.txt"
        path.write_text("http://host/repo/trunk/5\nhttp://host/repo/trunk/8\n")

        assert parse_ledger(path)["http://host/repo/trunk"] == 8

    def test_unreadable_file_raises(self, tmp_path):
        # A directory exists but cannot be read as a file
        path = tmp_path / "revision.txt"
        path.mkdir()

        with pytest.raises(LedgerUnreadableError) as exc_info:
            parse_ledger(path)

        assert exc_info.value.exit_code == LEDGER_ERROR
        assert "revision.txt" in str(exc_info.value)

    def test_invalid_utf8_does_not_abort(self, tmp_path):
        path = tmp_path / "revision.txt"
        path.write_bytes(b"\xff\xfe garbage\nhttp://host/repo/trunk/5\n")

        ledger = parse_ledger(path)

        assert ledger["http://host/repo/trunk"] == 5


class TestRevisionLedger:
    """Tests for RevisionLedger lookups."""

    def test_revision_for_canonicalizes(self):
        ledger = RevisionLedger({"http://host/repo/trunk": 5})

        assert ledger.revision_for("http://host/repo/trunk") == 5
        assert ledger.revision_for("http://host/repo/trunk/") == 5
        assert ledger.revision_for("HTTP://HOST/repo/trunk") == 5

    def test_revision_for_missing(self):
        ledger = RevisionLedger({"http://host/repo/trunk": 5})
        assert ledger.revision_for("http://host/repo/branches/b1") is None

    def test_revision_for_invalid_url(self):
        ledger = RevisionLedger({"http://host/repo/trunk": 5})
        assert ledger.revision_for("not a url") is None

    def test_spaces_match_encoded_form(self, tmp_path):
        path = tmp_path / "revision.txt"
        path.write_text("http://host/repo/my module/4\n")

        ledger = parse_ledger(path)

        assert ledger.revision_for("http://host/repo/my%20module") == 4

    def test_is_read_only(self):
        ledger = RevisionLedger({"http://host/repo/trunk": 5})
        with pytest.raises(TypeError):
            ledger["http://host/repo/trunk"] = 6


class TestWriteLedger:
    """Tests for write_ledger."""

    def test_write_then_read(self, tmp_path):
        path = tmp_path / "build" / "revision.txt"

        written = write_ledger(path, {
            "http://host/repo/trunk/": 5,
            "http://host/repo/lib": 7,
        })

        assert written == path
        assert path.read_text() == "http://host/repo/lib/7\nhttp://host/repo/trunk/5\n"
        assert dict(parse_ledger(path)) == {
            "http://host/repo/trunk": 5,
            "http://host/repo/lib": 7,
        }

    def test_negative_revision_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            write_ledger(tmp_path / "revision.txt", {"http://host/repo/trunk": -1})

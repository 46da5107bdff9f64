"""
Revision ledger for svntag.

A ledger records which revision of each repository URL a build actually
checked out. It is a plain text file with one record per line:

    http://svn.example.com/repo/trunk/1234

Everything up to the last '/' is the repository URL, the rest is the
revision number.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Union

from .exit_codes import LedgerUnreadableError
from .urls import InvalidURLError, canonicalize_url

logger = logging.getLogger(__name__)


class RevisionLedger(Mapping):
    """
    Immutable mapping of canonical repository URL -> revision number.

    Example:
        ledger = parse_ledger("build/revision.txt")
        ledger.revision_for("http://host/repo/trunk/")  # 5
    """

    def __init__(self, revisions: Optional[Mapping[str, int]] = None):
        self._revisions: Dict[str, int] = dict(revisions or {})

    def __getitem__(self, url: str) -> int:
        return self._revisions[url]

    def __iter__(self) -> Iterator[str]:
        return iter(self._revisions)

    def __len__(self) -> int:
        return len(self._revisions)

    def __repr__(self) -> str:
        return f"RevisionLedger({self._revisions!r})"

    def revision_for(self, url: str) -> Optional[int]:
        """Look up a revision, canonicalizing url first. None if absent."""
        try:
            return self._revisions.get(canonicalize_url(url))
        except InvalidURLError:
            return None


def parse_ledger_line(line: str) -> Optional[tuple]:
    """
    Parse one ledger record.

    Returns:
        (canonical_url, revision) or None if the line is not a valid record
    """
    line = line.strip()
    index = line.rfind('/')
    if index < 0:
        return None

    revision_str = line[index + 1:].strip()
    if not (revision_str.isascii() and revision_str.isdigit()):
        return None

    try:
        url = canonicalize_url(line[:index])
    except InvalidURLError:
        return None

    return url, int(revision_str)


def parse_ledger(path: Union[str, Path]) -> RevisionLedger:
    """
    Read a ledger file.

    Corrupt lines are skipped. A missing file yields an empty ledger,
    which is the normal state before a first build.

    Raises:
        LedgerUnreadableError: if the file exists but cannot be read
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No ledger at {path}; nothing recorded yet")
        return RevisionLedger()

    revisions: Dict[str, int] = {}
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                record = parse_ledger_line(line)
                if record is None:
                    if line.strip():
                        logger.debug(f"Ignoring ledger line: {line.rstrip()}")
                    continue
                url, revision = record
                revisions[url] = revision
    except OSError as e:
        raise LedgerUnreadableError(f"Failed to read revision ledger {path}: {e}") from e

    return RevisionLedger(revisions)


def write_ledger(path: Union[str, Path], revisions: Mapping[str, int]) -> Path:
    """
    Write a ledger file, one canonical record per line sorted by URL.

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = []
    for url, revision in revisions.items():
        if int(revision) < 0:
            raise ValueError(f"Negative revision for {url}: {revision}")
        lines.append(f"{canonicalize_url(url)}/{int(revision)}")

    with open(path, 'w', encoding='utf-8') as f:
        for line in sorted(lines):
            f.write(line + '\n')

    logger.debug(f"Wrote {len(lines)} ledger records to {path}")
    return path

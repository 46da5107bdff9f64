"""
Subversion client infrastructure for svntag.

Provides a clean abstraction over the svn command line client.
All repository operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from the tagging logic
"""

import logging
import os
import re
import subprocess
import tempfile
import xml.etree.ElementTree as ET
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..exit_codes import SvnError
from ..externals import ExternalsPolicy, parse_externals, pin_externals, render_externals

logger = logging.getLogger(__name__)

EXTERNALS_PROPERTY = 'svn:externals'

_COMMITTED_PATTERN = re.compile(r'Committed revision (\d+)\.')


def peg_safe(target: str) -> str:
    """
    Return target as svn should read it on the command line.

    svn takes the last '@' of a target as a peg revision, so a target
    containing '@' gets an empty peg revision appended.
    """
    return f"{target}@" if '@' in target else target


@dataclass
class CommitInfo:
    """Result of a committing svn operation."""
    new_revision: Optional[int] = None
    error_message: Optional[str] = None
    output: str = ""


@dataclass(frozen=True)
class CopySource:
    """A repository URL at a revision, used as a copy source."""
    url: str
    revision: Optional[int] = None
    peg_revision: Optional[int] = None

    def target(self) -> str:
        if self.peg_revision is not None:
            return f"{self.url}@{self.peg_revision}"
        return peg_safe(self.url)


@dataclass(frozen=True)
class WorkingCopySource:
    """A local working copy directory, used as a copy source."""
    path: str


@dataclass(frozen=True)
class SvnInfo:
    """Subset of `svn info` for a path or URL."""
    url: str
    revision: Optional[int] = None
    repository_root: Optional[str] = None
    kind: str = "dir"


@dataclass(frozen=True)
class SvnAuth:
    """
    Credentials handed to every svn invocation.

    An SvnAuth with no username relies on svn's own credential cache.
    """
    username: Optional[str] = None
    password: Optional[str] = None
    config_dir: Optional[str] = None
    non_interactive: bool = True
    no_auth_cache: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any], username: Optional[str] = None) -> 'SvnAuth':
        """Build credentials from the svn section of the configuration."""
        svn = config.get('svn', {}) or {}
        password = svn.get('password')
        return cls(
            username=username or str(svn.get('username') or '') or None,
            password=str(password) if password not in (None, '') else None,
            config_dir=svn.get('config_dir') or None,
            non_interactive=bool(svn.get('non_interactive', True)),
            no_auth_cache=bool(svn.get('no_auth_cache', False)),
        )

    def args(self) -> List[str]:
        args = []
        if self.non_interactive:
            args.append('--non-interactive')
        if self.no_auth_cache:
            args.append('--no-auth-cache')
        if self.config_dir:
            args.extend(['--config-dir', os.path.expanduser(self.config_dir)])
        if self.username:
            args.extend(['--username', self.username])
        if self.password is not None:
            args.append('--password-from-stdin')
        return args

    def __repr__(self) -> str:
        masked = '***' if self.password else None
        return f"SvnAuth(username={self.username!r}, password={masked!r}, config_dir={self.config_dir!r})"


class SvnClient:
    """
    Abstraction over svn commands.

    Provides methods for the operations tagging needs with consistent
    error handling and return types. Failing commands raise SvnError.

    Example:
        client = SvnClient(auth=SvnAuth(username="builder"))
        info = client.copy(
            [CopySource("http://host/repo/trunk", 5, 5)],
            "http://host/repo/tags/trunk",
            message="Tag build 5",
        )
        print(info.new_revision)
    """

    def __init__(
        self,
        auth: Optional[SvnAuth] = None,
        executable: str = "svn",
        timeout: Optional[float] = None,
        externals_policy: Optional[ExternalsPolicy] = None,
    ):
        """
        Initialize SvnClient.

        Args:
            auth: Credentials (defaults to svn's cached credentials)
            executable: svn binary to run
            timeout: Command timeout in seconds (default: no timeout)
            externals_policy: Pegging policy applied when copying a
                working copy; see with_externals_policy()
        """
        self.auth = auth or SvnAuth()
        self.executable = executable
        self.timeout = timeout
        self.externals_policy = externals_policy

    @classmethod
    def from_config(cls, config: Mapping[str, Any], auth: Optional[SvnAuth] = None) -> 'SvnClient':
        """Create a client from the svn section of the configuration."""
        svn = config.get('svn', {}) or {}
        return cls(
            auth=auth if auth is not None else SvnAuth.from_config(config),
            executable=svn.get('executable') or 'svn',
            timeout=svn.get('timeout') or None,
        )

    def with_externals_policy(self, policy: ExternalsPolicy) -> 'SvnClient':
        """Return a client whose working copy copies pin externals with policy."""
        return SvnClient(
            auth=self.auth,
            executable=self.executable,
            timeout=self.timeout,
            externals_policy=policy,
        )

    def _run(
        self,
        args: Sequence[str],
        cwd: Optional[str] = None,
        check: bool = True,
    ) -> Tuple[str, str, int]:
        """
        Run an svn command.

        Args:
            args: Subcommand and arguments (without the executable)
            cwd: Working directory
            check: Raise SvnError on non-zero exit

        Returns:
            Tuple of (stdout, stderr, returncode)
        """
        cmd = [self.executable, *args, *self.auth.args()]
        stdin = self.auth.password if self.auth.password is not None else None
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise SvnError(f"svn {args[0]} timed out after {self.timeout}s") from e
        except FileNotFoundError as e:
            raise SvnError(f"svn executable not found: {self.executable}") from e

        stdout = result.stdout or ""
        stderr = result.stderr or ""
        if check and result.returncode != 0:
            message = stderr.strip() or stdout.strip() or f"svn {args[0]} failed"
            raise SvnError(message, returncode=result.returncode)

        return stdout, stderr, result.returncode

    @staticmethod
    def _commit_info(stdout: str) -> CommitInfo:
        match = _COMMITTED_PATTERN.search(stdout)
        if match:
            return CommitInfo(new_revision=int(match.group(1)), output=stdout.strip())
        return CommitInfo(output=stdout.strip())

    def info(self, target: str) -> SvnInfo:
        """
        Get `svn info` for a working copy path or URL.

        Raises:
            SvnError: if target is not under version control
        """
        stdout, _, _ = self._run(['info', '--xml', peg_safe(target)])
        try:
            root = ET.fromstring(stdout)
        except ET.ParseError as e:
            raise SvnError(f"Unparsable svn info output for {target}: {e}") from e

        entry = root.find('entry')
        if entry is None:
            raise SvnError(f"No svn info entry for {target}")

        revision = entry.get('revision')
        return SvnInfo(
            url=(entry.findtext('url') or '').strip(),
            revision=int(revision) if revision and revision.isdigit() else None,
            repository_root=(entry.findtext('repository/root') or '').strip() or None,
            kind=entry.get('kind', 'dir'),
        )

    def exists(self, url: str) -> bool:
        _, _, code = self._run(['info', '--depth', 'empty', peg_safe(url)], check=False)
        return code == 0

    def working_revision(self, path: str) -> Optional[int]:
        """Revision a working copy path is checked out at, None if unknown."""
        try:
            stdout, _, _ = self._run(['info', '--show-item', 'revision', peg_safe(path)])
        except SvnError as e:
            logger.debug(f"No working revision for {path}: {e}")
            return None
        value = stdout.strip()
        return int(value) if value.isdigit() else None

    def delete(self, urls: Sequence[str], message: str) -> CommitInfo:
        """
        Delete URLs from the repository in one commit.

        Raises:
            SvnError: if nothing could be deleted or the commit failed
        """
        stdout, _, _ = self._run(['delete', '-m', message, *map(peg_safe, urls)])
        return self._commit_info(stdout)

    def copy(
        self,
        sources: Union[Sequence[CopySource], WorkingCopySource],
        destination: str,
        make_parents: bool = True,
        fail_if_exists: bool = False,
        message: str = "",
    ) -> CommitInfo:
        """
        Copy repository sources, or a working copy, to a URL in one commit.

        Copying a working copy must happen on the machine holding it.
        With an externals policy installed, the working copy's externals
        are pinned for the duration of the copy and restored afterwards.

        Raises:
            SvnError: if the copy failed, or if fail_if_exists is set and
                the destination already exists
        """
        if fail_if_exists and self.exists(destination):
            raise SvnError(f"Destination already exists: {destination}")

        args = ['copy', '-m', message]
        if make_parents:
            args.append('--parents')

        if isinstance(sources, WorkingCopySource):
            args.extend([peg_safe(sources.path), peg_safe(destination)])
            if self.externals_policy is None:
                stdout, _, _ = self._run(args)
            else:
                with self._pinned_externals(sources.path):
                    stdout, _, _ = self._run(args)
            return self._commit_info(stdout)

        sources = list(sources)
        if not sources:
            raise SvnError("Nothing to copy")
        if len(sources) == 1 and sources[0].revision is not None \
                and sources[0].revision != sources[0].peg_revision:
            args.extend(['-r', str(sources[0].revision)])
        args.extend(source.target() for source in sources)
        args.append(peg_safe(destination))

        stdout, _, _ = self._run(args)
        return self._commit_info(stdout)

    def import_empty_dir(self, url: str, message: str) -> CommitInfo:
        """
        Create url (and any missing parents) by importing an empty directory.

        The temporary directory is removed whether or not the import succeeds.
        """
        with tempfile.TemporaryDirectory(prefix='svntag-') as empty_dir:
            stdout, _, _ = self._run(['import', '-m', message, empty_dir, peg_safe(url)])
        return self._commit_info(stdout)

    def externals_properties(self, path: str) -> Dict[str, str]:
        """Map of directory -> svn:externals value under a working copy."""
        stdout, _, _ = self._run(['propget', EXTERNALS_PROPERTY, '-R', '--xml', peg_safe(path)])
        try:
            root = ET.fromstring(stdout)
        except ET.ParseError as e:
            raise SvnError(f"Unparsable svn propget output for {path}: {e}") from e

        properties = {}
        for target in root.iter('target'):
            prop = target.find('property')
            if prop is not None and prop.text:
                properties[target.get('path', path)] = prop.text
        return properties

    def propset(self, name: str, value: str, path: str) -> None:
        self._run(['propset', name, value, peg_safe(path)])

    @contextmanager
    def _pinned_externals(self, path: str) -> Iterator[Dict[str, str]]:
        """Rewrite svn:externals under path with the policy, restoring on exit."""
        originals: Dict[str, str] = {}
        try:
            for directory, value in self.externals_properties(path).items():
                items = parse_externals(value)
                working = {}
                for item in items:
                    if isinstance(item, str):
                        continue
                    revision = self.working_revision(os.path.join(directory, item.local_path))
                    if revision is not None:
                        working[item.local_path] = revision

                pinned = render_externals(
                    pin_externals(items, working, self.externals_policy, base_path=directory)
                )
                if pinned.strip() != value.strip():
                    originals[directory] = value
                    self.propset(EXTERNALS_PROPERTY, pinned, directory)
                    logger.info(f"Pinned externals of {directory}")
            yield originals
        finally:
            for directory, value in originals.items():
                try:
                    self.propset(EXTERNALS_PROPERTY, value, directory)
                except SvnError as e:
                    logger.error(f"Failed to restore svn:externals on {directory}: {e}")


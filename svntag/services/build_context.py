"""
Build context for svntag.

The tagging service only needs a handful of facts about the build it
tags, expressed by the TaggableBuildContext protocol. LocalBuildContext
implements it from local checkouts, a ledger file and the process
environment, which is how the command line tool runs after a build.
"""

import getpass
import logging
import os
import platform
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from ..domain.module import ModuleLocation
from ..infra.svn_client import SvnClient
from ..ledger import RevisionLedger, parse_ledger
from ..urls import canonicalize_url

logger = logging.getLogger(__name__)

BUILD_RESULTS = ('SUCCESS', 'UNSTABLE', 'FAILURE', 'ABORTED')


class TaggableBuildContext(Protocol):
    """What the tagging service needs to know about a build."""

    def module_locations(self) -> List[ModuleLocation]:
        """Modules the build checked out, in checkout order."""

    def revision_ledger(self) -> RevisionLedger:
        """Revisions the build checked out. May raise LedgerUnreadableError."""

    def environment(self) -> Mapping[str, str]:
        """Build environment, visible to templates as env."""

    def system_properties(self) -> Mapping[str, str]:
        """Values visible to templates as sys."""

    def build_succeeded(self) -> bool:
        """Only successful builds are tagged."""

    def auth_provider(self) -> Optional[Any]:
        """Opaque credentials handle for the client, None if unavailable."""


def default_system_properties(extra: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """
    System properties visible to templates as ${sys['name']}.

    Names follow the usual dotted convention (user.name, os.name, ...);
    extra values from configuration or the command line win.
    """
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = os.environ.get('USER', '')

    properties = {
        'os.name': platform.system(),
        'os.arch': platform.machine(),
        'os.version': platform.release(),
        'user.name': user,
        'user.home': str(Path.home()),
        'user.dir': os.getcwd(),
        'file.separator': os.sep,
        'path.separator': os.pathsep,
        'line.separator': os.linesep,
        'python.version': platform.python_version(),
        'python.executable': sys.executable,
    }
    for key, value in (extra or {}).items():
        properties[str(key)] = str(value)
    return properties


class LocalBuildContext:
    """
    A build described by local files.

    Example:
        context = LocalBuildContext(
            locations=[ModuleLocation("http://host/repo/trunk", "/ws/trunk")],
            ledger_path="/ws/revision.txt",
            environment=os.environ,
            auth=SvnAuth(),
        )
    """

    def __init__(
        self,
        locations: Iterable[ModuleLocation],
        ledger_path: Union[str, Path],
        environment: Optional[Mapping[str, str]] = None,
        properties: Optional[Mapping[str, str]] = None,
        auth: Optional[Any] = None,
        build_result: str = 'SUCCESS',
    ):
        self._locations = list(locations)
        self.ledger_path = Path(ledger_path)
        self._environment = dict(os.environ if environment is None else environment)
        self._properties = dict(properties if properties is not None else default_system_properties())
        self._auth = auth
        self.build_result = build_result.upper()

    @classmethod
    def from_checkouts(
        cls,
        paths: Iterable[Union[str, Path]],
        client: SvnClient,
        **kwargs: Any,
    ) -> 'LocalBuildContext':
        """
        Build a context from working copy directories, asking svn for
        each one's repository URL.

        Raises:
            SvnError: if a path is not a working copy
        """
        return cls(locations_from_checkouts(paths, client), **kwargs)

    def module_locations(self) -> List[ModuleLocation]:
        return list(self._locations)

    def revision_ledger(self) -> RevisionLedger:
        return parse_ledger(self.ledger_path)

    def environment(self) -> Mapping[str, str]:
        return self._environment

    def system_properties(self) -> Mapping[str, str]:
        return self._properties

    def build_succeeded(self) -> bool:
        return self.build_result == 'SUCCESS'

    def auth_provider(self) -> Optional[Any]:
        return self._auth


def record_revisions(paths: Iterable[Union[str, Path]], client: SvnClient) -> Dict[str, int]:
    """
    Collect canonical repository URL -> checked-out revision for working copies.

    Used to write the ledger at the end of a checkout.
    """
    revisions: Dict[str, int] = {}
    for path in paths:
        info = client.info(str(Path(path).expanduser()))
        if info.revision is None:
            logger.warning(f"No revision reported for {path}; not recorded")
            continue
        revisions[canonicalize_url(info.url)] = info.revision
    return revisions


def locations_from_checkouts(paths: Iterable[Union[str, Path]], client: SvnClient) -> List[ModuleLocation]:
    """
    Module locations for working copy directories, in the order given.

    Raises:
        SvnError: if a path is not a working copy
    """
    locations = []
    for path in paths:
        local_path = str(Path(path).expanduser().resolve())
        info = client.info(local_path)
        logger.debug(f"Working copy {local_path} is {info.url}@{info.revision}")
        locations.append(ModuleLocation(repository_url=info.url, local_path=local_path))
    return locations

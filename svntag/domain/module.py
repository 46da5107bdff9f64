"""
Module location domain object for svntag.

A module location is one unit of source a build checked out: the
repository URL it came from and the local directory it was checked out to.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from ..urls import canonicalize_url, path_segments


@dataclass(frozen=True)
class ModuleLocation:
    """A tracked module: repository URL plus local checkout path."""
    repository_url: str
    local_path: str = "."

    @property
    def canonical_url(self) -> str:
        """Repository URL in canonical form. Raises InvalidURLError."""
        return canonicalize_url(self.repository_url)

    @property
    def path_segments(self) -> List[str]:
        return path_segments(self.canonical_url)

    @property
    def name(self) -> str:
        """Last path segment of the repository URL, for display."""
        segments = path_segments(self.repository_url)
        return segments[-1] if segments else self.repository_url

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repository_url': self.repository_url,
            'local_path': self.local_path,
        }

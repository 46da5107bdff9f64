"""
Infrastructure layer for svntag.

Contains abstractions for external systems:
- SvnClient: svn command execution (delete, copy, import, info)

These provide clean interfaces that can be mocked for testing.
"""

from .svn_client import (
    SvnClient,
    SvnAuth,
    SvnInfo,
    CommitInfo,
    CopySource,
    WorkingCopySource,
)

__all__ = [
    'SvnClient',
    'SvnAuth',
    'SvnInfo',
    'CommitInfo',
    'CopySource',
    'WorkingCopySource',
]

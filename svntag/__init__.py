"""
svntag - Tag Subversion modules after a successful build.

For every module a build checked out, svntag copies the exact revision
that was built to a templated tag location, replacing any tag already
there.

Quick Start:
    import svntag

    spec = svntag.TagSpec(
        tag_url_template="../tags/${env['BUILD_TAG']}",
        tag_comment_template="Tagged build ${env['BUILD_NUMBER']}",
    )
    context = svntag.LocalBuildContext(
        locations=[svntag.ModuleLocation("http://svn.example.com/repo/trunk", "trunk")],
        ledger_path="revision.txt",
        auth=svntag.SvnAuth(),
    )

    service = svntag.TagService()
    for line in service.tag_modules(context, spec):
        print(line)
    print(service.last_result.success)

Templates:
    ${env['NAME']}    build environment variable
    ${sys['NAME']}    system property
    ${repoURL[i]}     segment i of the module URL split on '/'

Ledger:
    One "<repository URL>/<revision>" record per line, as written by
    `svntag record`.
"""

__version__ = "1.11.0"

# Domain objects
from .domain import (
    ModuleLocation,
    TagSpec,
    TemplateContext,
    TagStatus,
    TagOutcome,
    TagSummary,
)

# Core operations
from .ledger import RevisionLedger, parse_ledger, write_ledger
from .template import evaluate, check_template
from .urls import canonicalize_url, resolve_url
from .externals import pin_to_working_revision

# Infrastructure and services
from .infra import SvnClient, SvnAuth, CommitInfo, CopySource, WorkingCopySource
from .services import TagService, LocalBuildContext, TaggableBuildContext

# Errors
from .exit_codes import (
    CommandError,
    ConfigError,
    LedgerUnreadableError,
    TemplateError,
    AuthUnavailableError,
    SvnError,
    CopyFailedError,
)

# Configuration
from .config import load_config, save_config

__all__ = [
    # Version
    "__version__",
    # Domain objects
    "ModuleLocation",
    "TagSpec",
    "TemplateContext",
    "TagStatus",
    "TagOutcome",
    "TagSummary",
    # Core operations
    "RevisionLedger",
    "parse_ledger",
    "write_ledger",
    "evaluate",
    "check_template",
    "canonicalize_url",
    "resolve_url",
    "pin_to_working_revision",
    # Infrastructure and services
    "SvnClient",
    "SvnAuth",
    "CommitInfo",
    "CopySource",
    "WorkingCopySource",
    "TagService",
    "LocalBuildContext",
    "TaggableBuildContext",
    # Errors
    "CommandError",
    "ConfigError",
    "LedgerUnreadableError",
    "TemplateError",
    "AuthUnavailableError",
    "SvnError",
    "CopyFailedError",
    # Configuration
    "load_config",
    "save_config",
]

"""
Operation result domain objects for svntag.

Provides standardized result types for a tag run: one TagOutcome per
module and a TagSummary for the whole run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .module import ModuleLocation


class TagStatus(Enum):
    """Status of tagging one module."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    DRY_RUN = "dry_run"


# Reasons attached to skipped outcomes
REVISION_NOT_AVAILABLE = "revision_not_available"


@dataclass
class TagOutcome:
    """
    What happened to one module during a tag run.

    SUCCESS carries new_revision, SKIPPED carries reason, FAILED carries
    error. Non-fatal problems (such as failing to delete an old tag) are
    collected in warnings.
    """
    module: ModuleLocation
    status: TagStatus
    revision: Optional[int] = None       # Revision that was (or would be) tagged
    new_revision: Optional[int] = None   # Revision committed by the copy
    tag_url: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.module.name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'repository_url': self.module.repository_url,
            'local_path': self.module.local_path,
            'status': self.status.value,
        }
        if self.revision is not None:
            result['revision'] = self.revision
        if self.new_revision is not None:
            result['new_revision'] = self.new_revision
        if self.tag_url:
            result['tag_url'] = self.tag_url
        if self.reason:
            result['reason'] = self.reason
        if self.error:
            result['error'] = self.error
        if self.warnings:
            result['warnings'] = list(self.warnings)
        return result


@dataclass
class TagSummary:
    """
    Summary of a tag run across all modules.

    A run succeeds only if every module was tagged or skipped. Modules
    tagged before a failure keep their tags; fatal_error records a
    failure that stopped the run before any module was processed.
    """
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    dry_run: bool = False
    details: List[TagOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0 and self.fatal_error is None

    def add_outcome(self, outcome: TagOutcome) -> None:
        """Add a module outcome and update counts."""
        self.details.append(outcome)
        self.total += 1

        if outcome.status == TagStatus.SUCCESS:
            self.successful += 1
        elif outcome.status == TagStatus.SKIPPED:
            self.skipped += 1
        elif outcome.status == TagStatus.FAILED:
            self.failed += 1
            if outcome.error:
                self.errors.append(f"{outcome.name}: {outcome.error}")
        elif outcome.status == TagStatus.DRY_RUN:
            self.successful += 1  # Count dry-run as successful

    def fail(self, error: str) -> None:
        """Record a failure that stopped the run before any module."""
        self.fatal_error = error
        self.errors.append(error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'type': 'summary',
            'success': self.success,
            'total': self.total,
            'successful': self.successful,
            'skipped': self.skipped,
            'failed': self.failed,
            'dry_run': self.dry_run,
            'errors': self.errors,
        }
        if self.fatal_error:
            result['fatal_error'] = self.fatal_error
        return result

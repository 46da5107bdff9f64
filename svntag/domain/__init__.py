"""
Domain layer for svntag.

Contains pure domain objects with no I/O or side effects:
- ModuleLocation: A repository URL and where it was checked out
- TagSpec: Templates and flags for a tag run
- TemplateContext: Variables visible to templates
- TagOutcome / TagSummary: Results of a tag run

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .module import ModuleLocation
from .tagging import TagSpec, TemplateContext
from .operation import TagStatus, TagOutcome, TagSummary, REVISION_NOT_AVAILABLE

__all__ = [
    'ModuleLocation',
    'TagSpec',
    'TemplateContext',
    'TagStatus',
    'TagOutcome',
    'TagSummary',
    'REVISION_NOT_AVAILABLE',
]

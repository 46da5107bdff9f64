"""
Service layer for svntag.

Contains business logic that orchestrates domain objects and infrastructure:
- TagService: Delete-then-copy tagging of every module of a build
- LocalBuildContext: A build described by local checkouts and a ledger

Services are the primary API for commands to use.
They handle coordination between infrastructure and domain layers.
"""

from .build_context import (
    TaggableBuildContext,
    LocalBuildContext,
    default_system_properties,
    record_revisions,
    locations_from_checkouts,
)
from .tag_service import TagService

__all__ = [
    'TaggableBuildContext',
    'LocalBuildContext',
    'default_system_properties',
    'record_revisions',
    'locations_from_checkouts',
    'TagService',
]

"""
Tagging inputs for svntag.

TagSpec holds the templates and flags for one tag operation; it is built
once (from configuration and command line options) and shared by every
module. TemplateContext holds the variables a template may reference.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

DEFAULT_TAG_COMMENT = "Tagged by svntag"
DEFAULT_DELETE_COMMENT = "Deleted old tag by svntag"


@dataclass(frozen=True)
class TagSpec:
    """
    Immutable description of how to tag every module.

    Attributes:
        tag_url_template: Destination template, absolute or relative to
            the module URL (e.g. "../tags/${env['BUILD_TAG']}")
        tag_comment_template: Commit message for the copy
        delete_comment_template: Commit message for deleting an old tag
        peg_externals: Copy from the working copy, freezing externals
        wait_seconds: Pause once before the first copy of a run
        mkdir_comment_template: When set, create the tag's parent
            directory by importing an empty directory instead of
            letting the copy create parents
        dry_run: Report what would be done without touching the repository
    """
    tag_url_template: str
    tag_comment_template: str = DEFAULT_TAG_COMMENT
    delete_comment_template: str = DEFAULT_DELETE_COMMENT
    peg_externals: bool = False
    wait_seconds: float = 0
    mkdir_comment_template: Optional[str] = None
    dry_run: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **overrides: Any) -> 'TagSpec':
        """
        Build a TagSpec from the 'tag' section of a configuration dict.

        Keyword overrides that are None are ignored, so CLI options can be
        passed straight through.
        """
        section = dict(config.get('tag', {}) or {})
        values = {
            'tag_url_template': section.get('tag_url') or '',
            'tag_comment_template': section.get('comment', DEFAULT_TAG_COMMENT),
            'delete_comment_template': section.get('delete_comment', DEFAULT_DELETE_COMMENT),
            'peg_externals': bool(section.get('peg_externals', False)),
            'wait_seconds': float(section.get('wait_seconds', 0) or 0),
            'mkdir_comment_template': section.get('mkdir_comment') or None,
        }
        for key, value in overrides.items():
            if value is not None:
                values[key] = value
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tag_url': self.tag_url_template,
            'comment': self.tag_comment_template,
            'delete_comment': self.delete_comment_template,
            'peg_externals': self.peg_externals,
            'wait_seconds': self.wait_seconds,
            'mkdir_comment': self.mkdir_comment_template,
            'dry_run': self.dry_run,
        }


@dataclass(frozen=True)
class TemplateContext:
    """
    Variables visible to a template.

    environment and system_properties are shared across modules;
    path_segments is the module URL split on '/'.
    """
    environment: Mapping[str, str] = field(default_factory=dict)
    system_properties: Mapping[str, str] = field(default_factory=dict)
    path_segments: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'environment', MappingProxyType(dict(self.environment)))
        object.__setattr__(self, 'system_properties', MappingProxyType(dict(self.system_properties)))
        object.__setattr__(self, 'path_segments', tuple(self.path_segments))

    def for_segments(self, segments: List[str]) -> 'TemplateContext':
        """Return a copy of this context for another module's URL."""
        return TemplateContext(
            environment=self.environment,
            system_properties=self.system_properties,
            path_segments=tuple(segments),
        )

"""
svn:externals definitions and pegging policies.

When a working copy is tagged with pegged externals, every external
definition is rewritten so that both its operative and peg revision point
at a fixed revision chosen by a policy. The default policy freezes each
external at the revision currently checked out, instead of letting the
tag follow the external's HEAD.

A policy is a plain function:

    policy(external_path, declared_revision, working_revision)
        -> (revision, peg_revision)
"""

import logging
import shlex
from dataclasses import dataclass, replace
from typing import Callable, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

ExternalsPolicy = Callable[
    [str, Optional[int], Optional[int]],
    Tuple[Optional[int], Optional[int]],
]

_URL_PREFIXES = ('^/', '//', '/', '../')


def pin_to_working_revision(external_path: str,
                            declared_revision: Optional[int],
                            working_revision: Optional[int]) -> Tuple[Optional[int], Optional[int]]:
    """Freeze an external at the revision it is checked out at."""
    return working_revision, working_revision


@dataclass(frozen=True)
class ExternalDefinition:
    """One line of an svn:externals property."""
    local_path: str
    url: str
    revision: Optional[str] = None
    peg_revision: Optional[str] = None

    @property
    def declared_revision(self) -> Optional[int]:
        """Declared revision as a number, None for HEAD/dates/unset."""
        for value in (self.revision, self.peg_revision):
            if value and value.isdigit():
                return int(value)
        return None

    def render(self) -> str:
        """Render in the svn 1.5+ format: [-rREV] URL[@PEG] PATH."""
        parts = []
        if self.revision:
            parts.append(f"-r{self.revision}")
        url = self.url
        if self.peg_revision:
            url = f"{url}@{self.peg_revision}"
        parts.append(_quote(url))
        parts.append(_quote(self.local_path))
        return ' '.join(parts)


def _quote(token: str) -> str:
    if any(ch.isspace() for ch in token) or '"' in token:
        escaped = token.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    return token


def _looks_like_url(token: str) -> bool:
    return '://' in token or token.startswith(_URL_PREFIXES)


def _split_peg(token: str) -> Tuple[str, Optional[str]]:
    at = token.rfind('@')
    if at < 0:
        return token, None
    peg = token[at + 1:]
    if '/' in peg:
        return token, None
    if '://' in token and '/' not in token[token.index('://') + 3:at]:
        # user@host in the authority is not a peg revision
        return token, None
    return token[:at], peg or None


def _take_revision(tokens: List[str], i: int) -> Tuple[Optional[str], int]:
    token = tokens[i]
    if token == '-r':
        if i + 1 >= len(tokens):
            raise ValueError("'-r' without a revision")
        return tokens[i + 1], i + 2
    if token.startswith('-r'):
        return token[2:], i + 1
    return None, i


def parse_definition(line: str) -> ExternalDefinition:
    """
    Parse one externals line, in either the pre-1.5 or the 1.5+ format.

    Raises:
        ValueError: if the line is not a valid definition
    """
    tokens = shlex.split(line, comments=False, posix=True)
    if len(tokens) < 2:
        raise ValueError(f"Not an externals definition: {line!r}")

    if tokens[0].startswith('-r') or _looks_like_url(tokens[0]):
        # [-r REV] URL[@PEG] PATH
        revision, i = _take_revision(tokens, 0)
        if len(tokens) != i + 2:
            raise ValueError(f"Not an externals definition: {line!r}")
        url, peg = _split_peg(tokens[i])
        return ExternalDefinition(local_path=tokens[i + 1], url=url,
                                  revision=revision, peg_revision=peg)

    # PATH [-r REV] URL
    revision, i = _take_revision(tokens, 1)
    if len(tokens) != i + 1:
        raise ValueError(f"Not an externals definition: {line!r}")
    return ExternalDefinition(local_path=tokens[0], url=tokens[i], revision=revision)


def parse_externals(text: str) -> List[Union[str, ExternalDefinition]]:
    """
    Parse an svn:externals property value.

    Comments, blank lines and lines that do not parse are kept as raw
    strings so the property can be written back unchanged.
    """
    items: List[Union[str, ExternalDefinition]] = []
    for line in (text or '').splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            items.append(line)
            continue
        try:
            items.append(parse_definition(stripped))
        except ValueError as e:
            logger.warning(f"Leaving externals line unchanged: {e}")
            items.append(line)
    return items


def render_externals(items: List[Union[str, ExternalDefinition]]) -> str:
    lines = [item if isinstance(item, str) else item.render() for item in items]
    return '\n'.join(lines) + '\n'


def pin_externals(items: List[Union[str, ExternalDefinition]],
                  working_revisions: Mapping[str, int],
                  policy: ExternalsPolicy,
                  base_path: str = '') -> List[Union[str, ExternalDefinition]]:
    """
    Apply a pegging policy to every definition.

    Args:
        items: Parsed property value
        working_revisions: local_path -> checked-out revision
        policy: Pegging policy
        base_path: Directory holding the property, prefixed to the
            external path given to the policy

    Returns:
        New list of items; definitions without a known working revision
        are left as declared
    """
    pinned: List[Union[str, ExternalDefinition]] = []
    for item in items:
        if isinstance(item, str):
            pinned.append(item)
            continue

        working = working_revisions.get(item.local_path)
        external_path = f"{base_path}/{item.local_path}" if base_path else item.local_path
        if working is None:
            logger.warning(f"No working revision for external {external_path}; left as declared")
            pinned.append(item)
            continue

        revision, peg = policy(external_path, item.declared_revision, working)
        logger.debug(f"Pegging external {external_path} to -r{revision} @{peg}")
        pinned.append(replace(
            item,
            revision=str(revision) if revision is not None else None,
            peg_revision=str(peg) if peg is not None else None,
        ))
    return pinned

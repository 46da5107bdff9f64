"""
Repository URL helpers for svntag.

Ledger keys and module locations are compared as strings, so both sides
go through canonicalize_url() before any lookup.
"""

import posixpath
from typing import List
from urllib.parse import quote, unquote, urlsplit, urlunsplit

# Characters left unescaped in a canonical path (RFC 3986 pchar + '/')
_PATH_SAFE = "/:@!$&'()*+,;=~"

# Characters a tag reference keeps as typed; '%' preserves existing escapes
_REFERENCE_SAFE = _PATH_SAFE + "%[]"


class InvalidURLError(ValueError):
    """Raised when a string cannot be used as a repository URL."""


def canonicalize_url(url: str) -> str:
    """
    Return the canonical string form of a repository URL.

    - scheme and host are lower-cased
    - the path is percent-decoded then re-encoded, so 'a b' and 'a%20b'
      compare equal
    - trailing slashes, query and fragment are dropped

    Raises:
        InvalidURLError: if the URL has no scheme, or no host for a
            non-file scheme
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("Empty repository URL")

    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    if not scheme:
        raise InvalidURLError(f"Repository URL has no scheme: {url}")
    if scheme != 'file' and not parts.netloc:
        raise InvalidURLError(f"Repository URL has no host: {url}")

    netloc = parts.netloc
    if '@' in netloc:
        userinfo, host = netloc.rsplit('@', 1)
        netloc = f"{userinfo}@{host.lower()}"
    else:
        netloc = netloc.lower()

    path = quote(unquote(parts.path), safe=_PATH_SAFE).rstrip('/')
    return urlunsplit((scheme, netloc, path, '', ''))


def path_segments(url: str) -> List[str]:
    """
    Split a URL on '/' dropping empty segments.

    'http://host/repo/trunk' -> ['http:', 'host', 'repo', 'trunk']
    """
    return [segment for segment in url.split('/') if segment]


def resolve_url(base_url: str, reference: str) -> str:
    """
    Resolve a tag location against a module's repository URL.

    Absolute references are only canonicalized. Relative references are
    resolved against the module URL taken as a directory, so '../tags/x'
    from 'http://host/repo/trunk' gives 'http://host/repo/tags/x'.
    Works for any scheme (svn://, svn+ssh://, ...) since urljoin only
    handles the schemes it knows about.

    The reference is a path, never a query or fragment: '?' and '#' are
    percent-encoded, so '../tags/build#5' gives '.../tags/build%235'.
    """
    reference = quote(reference.strip(), safe=_REFERENCE_SAFE)
    if urlsplit(reference).scheme:
        return canonicalize_url(reference)

    base = urlsplit(canonicalize_url(base_url))
    if reference.startswith('//'):
        return canonicalize_url(f"{base.scheme}:{reference}")

    if reference.startswith('/'):
        path = reference
    else:
        path = f"{base.path}/{reference}" if reference else base.path
    path = posixpath.normpath(path) if path else ''
    if path == '.':
        path = ''
    if path.startswith('//'):
        # normpath keeps a leading double slash
        path = '/' + path.lstrip('/')

    return canonicalize_url(urlunsplit((base.scheme, base.netloc, path, '', '')))


def parent_url(url: str) -> str:
    """Return the URL of the directory containing url."""
    canonical = canonicalize_url(url)
    parts = urlsplit(canonical)
    parent = posixpath.dirname(parts.path)
    if parent == '/':
        parent = ''
    return urlunsplit((parts.scheme, parts.netloc, parent, '', ''))

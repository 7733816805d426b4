"""Source providers and source-reference parsing."""
import os
import re
from urllib.parse import urlparse

from ..core.errors import MalformedSource
from ..core.models import Config, LocalPath, RemoteRepo, SourceReference
from .base import Listing, SourceProvider
from .github import GitHubProvider
from .local import LocalFilesystemProvider

_SHORTHAND = re.compile(r'^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+(/tree/[^/]+(/.*)?)?/?$')


def _parse_github_path(path: str, original: str) -> RemoteRepo:
    """Turn 'owner/repo[/tree/ref[/subpath...]]' into a RemoteRepo."""
    segments = [s for s in path.strip('/').split('/') if s]
    if len(segments) < 2:
        raise MalformedSource(f"Invalid GitHub reference: {original}", original)

    owner = segments[0]
    repo = segments[1]
    if repo.endswith('.git'):
        repo = repo[:-4]
    if not repo:
        raise MalformedSource(f"Invalid GitHub reference: {original}", original)

    ref = None
    subpath = ""
    remaining = segments[2:]
    if len(remaining) >= 2 and remaining[0] in ('tree', 'blob'):
        ref = remaining[1]
        subpath = '/'.join(remaining[2:])
    return RemoteRepo(owner, repo, ref, subpath)


def parse_source(text: str) -> SourceReference:
    """
    Parse user input into a source reference.

    Accepted forms:
    - GitHub URL: https://github.com/owner/repo[/tree/ref[/subpath]]
    - URL without scheme: github.com/owner/repo...
    - Shorthand: owner/repo[/tree/ref[/subpath]] (when no such local path exists)
    - Anything else is a local path

    Raises:
        MalformedSource: For empty input or URLs that are not GitHub references.
    """
    value = text.strip()
    if not value:
        raise MalformedSource("Source reference is empty", text)

    if re.match(r'^[A-Za-z][A-Za-z0-9+.-]*://', value):
        parsed = urlparse(value)
        if parsed.scheme not in ('http', 'https') or parsed.hostname not in ('github.com', 'www.github.com'):
            raise MalformedSource(f"Unsupported URL (expected github.com): {value}", value)
        return _parse_github_path(parsed.path, value)

    if value.startswith(('github.com/', 'www.github.com/')):
        return _parse_github_path(value.split('/', 1)[1], value)

    looks_local = value.startswith(('.', '/', '~')) or '\\' in value
    if not looks_local and _SHORTHAND.match(value) and not os.path.lexists(value):
        return _parse_github_path(value, value)

    return LocalPath(value)


def create_provider(source: SourceReference, config: Config) -> SourceProvider:
    """
    Create the provider matching a source reference.

    Args:
        source: Parsed source reference
        config: Configuration object

    Returns:
        Appropriate SourceProvider instance
    """
    if isinstance(source, RemoteRepo):
        return GitHubProvider(config)
    return LocalFilesystemProvider(config)


__all__ = [
    'Listing', 'SourceProvider', 'GitHubProvider', 'LocalFilesystemProvider',
    'create_provider', 'parse_source',
]

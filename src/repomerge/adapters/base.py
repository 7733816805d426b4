"""
Base source provider interface.

This module defines the abstract interface that all source providers
must implement, ensuring consistent behavior across local trees and
remote repositories.
"""

import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from ..core.errors import FetchError, SourceError
from ..core.ignore import IgnoreMatcher
from ..core.models import Config, FileEntry, SourceReference

logger = logging.getLogger(__name__)


@dataclass
class Listing:
    """Result of listing a source: entries plus the ignore rules found with them."""

    source: SourceReference
    name: str
    entries: List[FileEntry]
    ignore_matcher: IgnoreMatcher
    pruned_dirs: List[str] = field(default_factory=list)
    notices: List[SourceError] = field(default_factory=list)


class SourceProvider(ABC):
    """
    Abstract base class for source providers.

    A provider turns a source reference into a flat, ordered list of file
    entries and later fetches the bytes behind an entry's retrieval handle.
    Providers never touch selection state.
    """

    def __init__(self, config: Config):
        """Initialize provider with configuration."""
        self.config = config

    @abstractmethod
    def list(self, source: SourceReference) -> Listing:
        """
        List candidate files for a source.

        Returns:
            Listing whose entries have unique, '/'-separated relative paths
            in discovery order.

        Raises:
            SourceError: If the source cannot be listed.
        """
        pass

    @abstractmethod
    def fetch(self, entry: FileEntry) -> bytes:
        """
        Fetch the full content of an entry.

        Raises:
            FetchError: If the content cannot be retrieved.
        """
        pass

    def read_sample(self, entry: FileEntry, size: int) -> Optional[bytes]:
        """
        Return the first ``size`` bytes if that is cheap, else None.

        Providers that would need a download return None so that
        classification waits until the content is actually fetched.
        """
        return None

    def fetch_many(self, entries: Sequence[FileEntry]) -> Dict[str, Union[bytes, FetchError]]:
        """Fetch several entries; failures are returned in place of content."""
        results: Dict[str, Union[bytes, FetchError]] = {}
        for entry in entries:
            try:
                results[entry.path] = self.fetch(entry)
            except FetchError as e:
                results[entry.path] = e
        return results

    def _ignore_file_names(self) -> set:
        return set(self.config.ignore_filenames)

    def _compile_ignore_files(self, entries: Sequence[FileEntry]) -> IgnoreMatcher:
        """Build a matcher from the ignore files present among ``entries``."""
        matcher = IgnoreMatcher.for_config(self.config)
        names = self._ignore_file_names()
        ignore_entries = [e for e in entries if e.name in names]
        if not ignore_entries:
            return matcher

        for path, content in self.fetch_many(ignore_entries).items():
            if isinstance(content, FetchError):
                logger.warning(f"Could not read ignore file {path}: {content}")
                continue
            matcher.add_file(posixpath.dirname(path),
                             content.decode('utf-8', errors='replace'), path)
        return matcher

    def _sanitize_error(self, error: str, sensitive_data: Optional[List[str]] = None) -> str:
        """Remove sensitive data from error messages."""
        if not sensitive_data:
            return error

        sanitized = error
        for sensitive in sensitive_data:
            if sensitive:
                sanitized = sanitized.replace(str(sensitive), "[REDACTED]")
        return sanitized

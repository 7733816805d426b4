"""
Filtering of listed entries into the navigable, selectable file set.

Ignored and binary entries are dropped from the selectable set but kept
in the result so the front end can report how many files were hidden.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .ignore import IgnoreMatcher
from .models import BinaryState, Config, FileEntry
from .text_detector import TextDetector

logger = logging.getLogger(__name__)

Sampler = Callable[[FileEntry, int], Optional[bytes]]


class ExtensionFilter:
    """Extension -> included-by-default flag; '' stands for extensionless files."""

    def __init__(self, flags: Optional[Dict[str, bool]] = None):
        self._flags: Dict[str, bool] = dict(flags or {})

    @classmethod
    def from_entries(cls, entries: Iterable[FileEntry], denied: Set[str] = frozenset()) -> 'ExtensionFilter':
        """Every observed extension starts enabled unless it is denied."""
        flags: Dict[str, bool] = {}
        for entry in entries:
            if entry.extension not in flags:
                flags[entry.extension] = entry.extension not in denied
        return cls(dict(sorted(flags.items())))

    def is_enabled(self, extension: str) -> bool:
        return self._flags.get(extension, True)

    def set(self, extension: str, enabled: bool) -> None:
        self._flags[extension] = enabled

    def toggle(self, extension: str) -> bool:
        """Flip an extension and return its new value."""
        value = not self.is_enabled(extension)
        self._flags[extension] = value
        return value

    def all_enabled(self) -> bool:
        return all(self._flags.values())

    def extensions(self) -> List[str]:
        return list(self._flags)

    def items(self) -> List[Tuple[str, bool]]:
        return list(self._flags.items())

    def __contains__(self, extension: str) -> bool:
        return extension in self._flags

    def __iter__(self) -> Iterator[str]:
        return iter(self._flags)

    def __len__(self) -> int:
        return len(self._flags)

    def __eq__(self, other) -> bool:
        return isinstance(other, ExtensionFilter) and self._flags == other._flags

    def __repr__(self) -> str:
        return f"ExtensionFilter({self._flags!r})"


@dataclass
class FilterResult:
    """Selectable entries plus what was hidden and why."""

    visible: List[FileEntry]
    extension_filter: ExtensionFilter
    hidden_ignored: List[str] = field(default_factory=list)
    hidden_binary: List[str] = field(default_factory=list)

    @property
    def hidden_count(self) -> int:
        return len(self.hidden_ignored) + len(self.hidden_binary)


class FilterEngine:
    """Applies ignore rules, binary detection and the extension filter."""

    def __init__(self, config: Config, detector: Optional[TextDetector] = None,
                 sampler: Optional[Sampler] = None):
        self.config = config
        self.detector = detector or TextDetector(config.binary_sample_size)
        self.sampler = sampler

    def apply(self, entries: Iterable[FileEntry],
              extension_filter: Optional[ExtensionFilter],
              ignore_matcher: IgnoreMatcher) -> FilterResult:
        """
        Narrow ``entries`` to the selectable set, keeping discovery order.

        Args:
            entries: Listed entries in discovery order.
            extension_filter: Filter to apply; when None, a default one is
                derived from the entries that survive ignore and binary checks.
            ignore_matcher: Compiled ignore rules of the listing.

        Returns:
            FilterResult with ``included`` set on every visible entry.
        """
        visible: List[FileEntry] = []
        ignored: List[str] = []
        binary: List[str] = []

        for entry in entries:
            if ignore_matcher.is_ignored(entry.path):
                ignored.append(entry.path)
                continue
            if self.is_binary(entry):
                binary.append(entry.path)
                continue
            visible.append(entry)

        if extension_filter is None:
            extension_filter = ExtensionFilter.from_entries(visible, self.config.denied_extensions)

        for entry in visible:
            entry.included = extension_filter.is_enabled(entry.extension)

        logger.debug(f"Filter: {len(visible)} visible, {len(ignored)} ignored, {len(binary)} binary")
        return FilterResult(visible, extension_filter, ignored, binary)

    def is_binary(self, entry: FileEntry) -> bool:
        """Classify from a cheap sample when the provider offers one."""
        if entry.is_binary is BinaryState.UNKNOWN and self.sampler is not None:
            sample = self.sampler(entry, self.detector.sample_size)
            if sample is not None:
                self.detector.classify_entry(entry, sample)
        return entry.is_binary is BinaryState.BINARY

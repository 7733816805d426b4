"""
Approximate ignore-file matching.

Patterns from every ignore file in the tree are kept per directory scope.
A path is checked against the scopes that contain it, most specific first;
inside a scope the last matching rule wins and a ``!`` rule re-includes.
The first scope with any matching rule decides.

Known limitation: a negated pattern can re-include a file whose parent
directory is excluded, which git itself would not do.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from pathspec.patterns.gitwildmatch import GitWildMatchPattern, GitWildMatchPatternError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IgnoreRule:
    """One compiled pattern line."""
    text: str
    pattern: GitWildMatchPattern

    @property
    def negated(self) -> bool:
        return self.pattern.include is False

    def matches(self, relative_path: str) -> bool:
        return self.pattern.match_file(relative_path) is not None


@dataclass
class IgnoreScope:
    """Rules declared by a single ignore file, relative to its directory."""
    base: str
    rules: List[IgnoreRule] = field(default_factory=list)
    source: str = ""
    is_default: bool = False

    @property
    def depth(self) -> int:
        return self.base.count('/') + 1 if self.base else 0

    def contains(self, path: str) -> bool:
        return not self.base or path.startswith(self.base + '/')

    def relative(self, path: str) -> str:
        return path[len(self.base) + 1:] if self.base else path

    def decide(self, path: str, is_dir: bool = False) -> Optional[bool]:
        """Last-match-wins verdict of this scope, or None if nothing matched."""
        target = self.relative(path)
        if is_dir:
            target += '/'
        verdict = None
        for rule in self.rules:
            if rule.matches(target):
                verdict = not rule.negated
        return verdict


def compile_rules(lines: Iterable[str], source: str = "") -> List[IgnoreRule]:
    """Compile ignore-file lines, skipping blanks, comments and bad patterns."""
    rules = []
    for line in lines:
        line = line.rstrip('\r\n')
        if not line.strip() or line.startswith('#'):
            continue
        try:
            pattern = GitWildMatchPattern(line)
        except (GitWildMatchPatternError, re.error) as e:
            logger.warning(f"Skipping invalid ignore pattern {line!r} in {source or 'defaults'}: {e}")
            continue
        if pattern.include is None:
            continue
        rules.append(IgnoreRule(line, pattern))
    return rules


def match_path(path: str, scopes: Sequence[IgnoreScope], is_dir: bool = False) -> bool:
    """Return True if ``path`` is ignored by ``scopes`` (most specific first)."""
    for scope in scopes:
        if not scope.contains(path):
            continue
        verdict = scope.decide(path, is_dir)
        if verdict is not None:
            return verdict
    return False


class IgnoreMatcher:
    """Layered ignore predicate compiled from the ignore files of one listing."""

    def __init__(self, default_patterns: Iterable[str] = ()):
        self._scopes: List[IgnoreScope] = []
        defaults = compile_rules(default_patterns)
        if defaults:
            self._scopes.append(IgnoreScope('', defaults, is_default=True))

    @classmethod
    def for_config(cls, config) -> 'IgnoreMatcher':
        """Matcher seeded with the configured default patterns."""
        patterns = list(config.default_ignore_patterns)
        if not config.show_hidden:
            patterns.insert(0, '.*')
        return cls(patterns)

    def add_file(self, base: str, content: str, source: str = "") -> None:
        """Register the patterns of an ignore file located in directory ``base``."""
        base = base.strip('/')
        rules = compile_rules(content.splitlines(), source)
        if not rules:
            return
        self._scopes.append(IgnoreScope(base, rules, source))
        self._scopes.sort(key=lambda s: (-s.depth, s.is_default))
        logger.debug(f"Loaded {len(rules)} ignore rules from {source or base or '.'}")

    @property
    def scopes(self) -> Tuple[IgnoreScope, ...]:
        return tuple(self._scopes)

    def is_ignored(self, path: str, is_dir: bool = False) -> bool:
        return match_path(path, self._scopes, is_dir)

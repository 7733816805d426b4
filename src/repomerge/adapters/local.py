"""Local filesystem source provider implementation."""
import logging
import os
import stat
from typing import List, Optional

from ..core.errors import NotReadable, PathNotDirectory, PathNotFound, TooManyFiles
from ..core.ignore import IgnoreMatcher
from ..core.models import Config, FileEntry, LocalPath, Origin
from ..utils.path_utils import PathUtils
from .base import Listing, SourceProvider

logger = logging.getLogger(__name__)


class LocalFilesystemProvider(SourceProvider):
    """Provider for directory trees on the local filesystem."""

    def __init__(self, config: Config):
        super().__init__(config)
        self.root: Optional[str] = None

    def list(self, source: LocalPath) -> Listing:
        """Walk the tree under ``source.path`` without following symlinks."""
        root = os.path.abspath(os.path.expanduser(source.path))

        if not os.path.lexists(root):
            raise PathNotFound(f"Path not found: {source.path}", source.path)

        if not os.path.isdir(root):
            # A single file is still listed, with the problem reported alongside.
            self.root = os.path.dirname(root)
            entry = self._make_entry(root)
            notice = PathNotDirectory(f"Path is not a directory: {source.path}", source.path)
            return Listing(
                source=source,
                name=os.path.basename(root),
                entries=[entry] if entry else [],
                ignore_matcher=IgnoreMatcher.for_config(self.config),
                notices=[notice],
            )

        self.root = root
        matcher = IgnoreMatcher.for_config(self.config)
        entries: List[FileEntry] = []
        pruned: List[str] = []

        def on_walk_error(error: OSError) -> None:
            logger.warning(f"Skipping unreadable directory {error.filename}: {error.strerror}")

        for dirpath, dirnames, filenames in os.walk(root, topdown=True,
                                                    onerror=on_walk_error,
                                                    followlinks=False):
            rel_dir = PathUtils.relative_to(dirpath, root)

            # Ignore files must be known before this directory's children are judged
            for ignore_name in self.config.ignore_filenames:
                if ignore_name in filenames:
                    self._load_ignore_file(matcher, dirpath, rel_dir, ignore_name)

            for name in sorted(filenames):
                entry = self._make_entry(os.path.join(dirpath, name))
                if entry is None:
                    continue
                entries.append(entry)
                if len(entries) > self.config.max_files:
                    raise TooManyFiles(
                        f"Directory has too many files ({len(entries)}+). "
                        f"Maximum: {self.config.max_files}",
                        source.path,
                    )

            kept = []
            for name in sorted(dirnames):
                if os.path.islink(os.path.join(dirpath, name)):
                    continue
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if matcher.is_ignored(rel, is_dir=True):
                    pruned.append(rel)
                    continue
                kept.append(name)
            dirnames[:] = kept

        logger.info(f"Listed {len(entries)} files under {root} ({len(pruned)} directories pruned)")
        return Listing(
            source=source,
            name=os.path.basename(root) or root,
            entries=entries,
            ignore_matcher=matcher,
            pruned_dirs=pruned,
        )

    def _make_entry(self, full_path: str) -> Optional[FileEntry]:
        """Entry for a regular file, or None for symlinks, sockets and vanished files."""
        try:
            st = os.lstat(full_path)
        except OSError as e:
            logger.warning(f"Cannot stat {full_path}: {e}")
            return None
        if not stat.S_ISREG(st.st_mode):
            return None
        return FileEntry(
            path=PathUtils.relative_to(full_path, self.root),
            size_bytes=st.st_size,
            origin=Origin.LOCAL,
            retrieval=full_path,
        )

    def _load_ignore_file(self, matcher: IgnoreMatcher, dirpath: str,
                          rel_dir: str, name: str) -> None:
        full_path = os.path.join(dirpath, name)
        if os.path.islink(full_path):
            return
        try:
            with open(full_path, 'r', encoding='utf-8', errors='replace') as f:
                content = f.read()
        except OSError as e:
            logger.warning(f"Could not read ignore file {full_path}: {e}")
            return
        matcher.add_file(rel_dir, content, f"{rel_dir}/{name}" if rel_dir else name)

    def _check_handle(self, entry: FileEntry) -> str:
        """Resolve an entry's handle, refusing anything outside the listed root."""
        full_path = entry.retrieval
        if not isinstance(full_path, str):
            raise NotReadable(entry.path, "Not a local file")
        if self.root is not None and not PathUtils.is_within(full_path, self.root):
            raise NotReadable(entry.path, "Invalid path: outside of the source root")
        return full_path

    def read_sample(self, entry: FileEntry, size: int) -> Optional[bytes]:
        full_path = self._check_handle(entry)
        try:
            with open(full_path, 'rb') as f:
                return f.read(size)
        except OSError as e:
            logger.debug(f"Cannot sample {entry.path}: {e}")
            return None

    def fetch(self, entry: FileEntry) -> bytes:
        full_path = self._check_handle(entry)
        try:
            with open(full_path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            raise NotReadable(entry.path, "File no longer exists")
        except PermissionError:
            raise NotReadable(entry.path, "Permission denied")
        except OSError as e:
            raise NotReadable(entry.path, f"Error reading file: {e}")

"""Path normalization utilities for cross-platform compatibility."""

import os


class PathUtils:
    """Utilities for consistent path handling across platforms."""

    @staticmethod
    def normalize_path(path: str) -> str:
        """
        Normalize path separators to forward slashes.

        Args:
            path: File path with potentially mixed separators

        Returns:
            Path with forward slashes only and no leading './' or '/'
        """
        path = path.replace('\\', '/')
        while path.startswith('./'):
            path = path[2:]
        return path.strip('/') if path != '.' else ''

    @staticmethod
    def relative_to(path: str, root: str) -> str:
        """Relative, forward-slash form of ``path`` under ``root``."""
        rel = os.path.relpath(path, root)
        return PathUtils.normalize_path('' if rel == os.curdir else rel)

    @staticmethod
    def is_within(path: str, root: str) -> bool:
        """True if the absolute form of ``path`` lies inside ``root``."""
        abs_root = os.path.abspath(root)
        abs_path = os.path.abspath(path)
        return abs_path == abs_root or abs_path.startswith(abs_root.rstrip(os.sep) + os.sep)

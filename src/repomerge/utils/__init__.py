"""Utility modules for repomerge."""

from .path_utils import PathUtils

__all__ = ["PathUtils"]

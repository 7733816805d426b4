"""Core components for repomerge."""

from .models import Config, FileEntry, MergeOutcome, MergeRequest
from .errors import RepoMergeError
from .filter_engine import ExtensionFilter, FilterEngine
from .ignore import IgnoreMatcher
from .text_detector import TextDetector
from .tokenizer import TokenCounter

__all__ = [
    "Config",
    "FileEntry",
    "MergeOutcome",
    "MergeRequest",
    "RepoMergeError",
    "ExtensionFilter",
    "FilterEngine",
    "IgnoreMatcher",
    "TextDetector",
    "TokenCounter",
]

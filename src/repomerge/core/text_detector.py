"""
Binary/text classification for repomerge.

Only a bounded prefix of each file is inspected, so classifying a large
tree costs one small read per file.
"""

import codecs
import logging

from .models import BinaryState, FileEntry

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 8192


class TextDetector:
    """Classifies byte samples as UTF-8 text or binary."""

    def __init__(self, sample_size: int = DEFAULT_SAMPLE_SIZE):
        self.sample_size = sample_size

    def classify(self, sample: bytes) -> BinaryState:
        """
        Classify a content prefix.

        A NUL byte or malformed UTF-8 means binary. A multi-byte character
        cut off by the end of the sample is not counted as malformed.
        """
        sample = sample[:self.sample_size]
        if b'\x00' in sample:
            return BinaryState.BINARY

        decoder = codecs.getincrementaldecoder('utf-8')()
        try:
            decoder.decode(sample, final=False)
        except UnicodeDecodeError:
            return BinaryState.BINARY
        return BinaryState.TEXT

    def classify_entry(self, entry: FileEntry, sample: bytes) -> BinaryState:
        """Classify an entry once and cache the verdict on it."""
        if entry.is_binary is BinaryState.UNKNOWN:
            entry.is_binary = self.classify(sample)
            if entry.is_binary is BinaryState.BINARY:
                logger.debug(f"Classified {entry.path} as binary")
        return entry.is_binary

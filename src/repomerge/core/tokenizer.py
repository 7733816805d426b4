"""
Token counting functionality for repomerge.

This module provides token counting using OpenAI's tiktoken library.
The vocabulary is loaded once when the counter is built; a missing
vocabulary is a startup failure rather than a per-call error.
"""

import logging

import tiktoken

from .errors import TokenizerUnavailable

logger = logging.getLogger(__name__)


class TokenCounter:
    """
    Counts BPE tokens for file contents.

    Counting is a pure function of the content, so counts computed once
    can be added to and subtracted from running totals without rework.
    """

    def __init__(self, encoding_name: str = "o200k_base"):
        """
        Initialize the token counter.

        Args:
            encoding_name: The name of the tiktoken encoding to use.

        Raises:
            TokenizerUnavailable: If the encoding cannot be loaded.
        """
        self.encoding_name = encoding_name
        try:
            self.encoder = tiktoken.get_encoding(encoding_name)
        except Exception as e:
            raise TokenizerUnavailable(
                f"Failed to load token encoding '{encoding_name}': {e}"
            ) from e
        logger.debug(f"Loaded token encoding {encoding_name}")

    def count_text(self, text: str) -> int:
        """Count tokens in decoded text. Special-token markers count as plain text."""
        if not text:
            return 0
        return len(self.encoder.encode(text, disallowed_special=()))

    def count(self, content: bytes) -> int:
        """
        Count tokens in raw file content.

        Args:
            content: UTF-8 encoded bytes.

        Returns:
            Number of tokens.

        Raises:
            UnicodeDecodeError: If the content is not valid UTF-8.
        """
        return self.count_text(content.decode('utf-8'))

"""Output collaborators: file writes and the system clipboard."""

import logging
import os

import pyperclip

from ..core.errors import ClipboardError, OutputIOError

logger = logging.getLogger(__name__)


def write_output(path: str, text: str) -> None:
    """Write merged text as UTF-8, creating parent directories as needed."""
    try:
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            f.write(text)
    except OSError as e:
        raise OutputIOError(path, e) from e
    logger.info(f"Wrote {len(text):,} characters to {path}")


def copy_to_clipboard(text: str) -> None:
    """Copy text to the platform clipboard (best effort)."""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ClipboardError(f"Clipboard unavailable: {e}") from e
    logger.info(f"Copied {len(text):,} characters to clipboard")

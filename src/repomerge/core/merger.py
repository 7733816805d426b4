"""
Merging of selected files into one delimited text artifact.

A merge is all-or-nothing: the first file that cannot be read aborts it
and nothing is dispatched. Destinations are independent of each other,
so a failed clipboard write does not undo a successful file write.
"""

import logging
from typing import Callable, List, Optional

from .errors import EncodingError, FetchError, MergeError, RepoMergeError
from .models import (
    BinaryState, Config, Destination, DestinationResult, FileEntry,
    MergeOutcome, MergeRequest, ToClipboard, ToFile,
)
from .text_detector import TextDetector
from ..utils.destinations import copy_to_clipboard, write_output

logger = logging.getLogger(__name__)

Fetcher = Callable[[FileEntry], bytes]


def format_file_section(path: str, content: str, output_format: str = 'delimited') -> str:
    """Render one file with a header naming its path."""
    if output_format == 'xml':
        return f'<file path="{path}">\n{content}\n</file>\n'
    if output_format == 'markdown':
        return f'```{path}\n{content}\n```\n\n'
    return f'--- START FILE: {path} ---\n{content}\n--- END FILE: {path} ---\n\n'


class MergeEngine:
    """Builds merged text from a merge request and dispatches it."""

    def __init__(self, config: Config,
                 file_writer: Callable[[str, str], None] = write_output,
                 clipboard_writer: Callable[[str], None] = copy_to_clipboard,
                 detector: Optional[TextDetector] = None):
        self.config = config
        self.file_writer = file_writer
        self.clipboard_writer = clipboard_writer
        self.detector = detector or TextDetector(config.binary_sample_size)

    def render(self, request: MergeRequest, fetch: Fetcher) -> str:
        """
        Concatenate the requested files in their stable order.

        Raises:
            MergeError: On the first file that cannot be fetched or decoded.
        """
        sections: List[str] = []
        for entry in request.entries:
            try:
                content = fetch(entry)
                if self.detector.classify(content) is BinaryState.BINARY:
                    raise EncodingError(entry.path, "Binary content")
                try:
                    text = content.decode('utf-8')
                except UnicodeDecodeError as e:
                    raise EncodingError(entry.path, f"Not valid UTF-8 text ({e.reason} at byte {e.start})")
            except FetchError as e:
                logger.warning(f"Merge aborted: {e}")
                raise MergeError(entry.path, e) from e
            sections.append(format_file_section(entry.path, text, self.config.output_format))
        return ''.join(sections)

    def merge(self, request: MergeRequest, fetch: Fetcher) -> MergeOutcome:
        """Render the request, then send the text to every destination."""
        return self.deliver(request, self.render(request, fetch))

    def deliver(self, request: MergeRequest, text: str) -> MergeOutcome:
        """Send rendered text to each destination of ``request`` independently."""
        outcome = MergeOutcome(text=text, file_count=len(request.entries))
        for destination in request.destinations:
            outcome.results.append(self._dispatch(destination, text))
        return outcome

    def _dispatch(self, destination: Destination, text: str) -> DestinationResult:
        try:
            if isinstance(destination, ToFile):
                self.file_writer(destination.path, text)
            elif isinstance(destination, ToClipboard):
                self.clipboard_writer(text)
            else:
                raise TypeError(f"Unknown destination: {destination!r}")
        except RepoMergeError as e:
            logger.error(f"Destination {destination} failed: {e}")
            return DestinationResult(destination, e)
        return DestinationResult(destination)

"""
Error taxonomy for repomerge.

Source errors stop the current stage, fetch errors are raised per file, and
destination errors are reported one destination at a time. None of them is
meant to crash the process: the session records them and the front end
shows them to the user.
"""

from typing import Optional


class RepoMergeError(Exception):
    """Base class for all repomerge errors."""


class TokenizerUnavailable(RepoMergeError):
    """The BPE vocabulary could not be loaded at startup."""


class InvalidTransition(RepoMergeError):
    """A stage transition was requested whose input is not valid."""


class WorkerError(RepoMergeError):
    """A background job failed with an exception outside this taxonomy."""

    def __init__(self, kind: str, cause: BaseException):
        super().__init__(f"Unexpected error while {kind}: {cause}")
        self.kind = kind
        self.cause = cause


# Source errors

class SourceError(RepoMergeError):
    """A source reference could not be resolved into a file listing."""

    def __init__(self, message: str, reference: Optional[str] = None):
        super().__init__(message)
        self.reference = reference


class MalformedSource(SourceError):
    """The source string is neither a local path nor a GitHub reference."""


class PathNotFound(SourceError):
    """The local root does not exist."""


class PathNotDirectory(SourceError):
    """The local root is a plain file; it is listed as the only entry."""


class RepoNotFound(SourceError):
    """The repository, ref or subpath does not exist (HTTP 404)."""


class RateLimited(SourceError):
    """The GitHub API refused the request because of rate limiting."""


class NetworkError(SourceError):
    """Transport failure or unexpected API response while listing."""


class TooManyFiles(SourceError):
    """The tree holds more files than the configured limit."""


# Fetch errors

class FetchError(RepoMergeError):
    """The content of one entry could not be retrieved."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class NotReadable(FetchError):
    """Missing file, permission problem or remote 404."""


class EncodingError(FetchError):
    """Content is not valid UTF-8 text."""


class FetchNetworkError(FetchError):
    """Transport failure or rate limit while downloading a blob."""


# Merge and output errors

class MergeError(RepoMergeError):
    """A merge was aborted because one of its files could not be read."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"Merge aborted at {path}: {cause}")
        self.path = path
        self.cause = cause


class MergeInProgress(RepoMergeError):
    """A second merge was requested while one is still running."""


class OutputIOError(RepoMergeError):
    """Writing the merged output file failed."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"Error writing {path}: {cause}")
        self.path = path
        self.cause = cause


class ClipboardError(RepoMergeError):
    """The platform clipboard rejected the merged text."""

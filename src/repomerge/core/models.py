"""
Core data models for repomerge.

This module contains the fundamental data structures used throughout
the application for configuration, source references, file entries
and merge requests.
"""

import os
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple, Union, Literal
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class Config:
    """Configuration settings for repomerge."""

    github_token: str = field(default_factory=lambda: os.getenv('GITHUB_TOKEN', ''))
    github_api_url: str = field(default_factory=lambda: os.getenv('GITHUB_API_URL', 'https://api.github.com'))

    # Names of ignore-pattern files honoured in every directory
    ignore_filenames: Tuple[str, ...] = ('.gitignore',)

    # Lowest-precedence ignore rules, applied beneath every ignore file
    default_ignore_patterns: List[str] = field(default_factory=lambda: [
        '*~',
        '.git/', '.hg/', '.svn/',
        '__pycache__/', 'node_modules/', '.pytest_cache/', '.mypy_cache/',
        '.tox/', '.venv/', 'venv/',
    ])
    show_hidden: bool = False

    # Extensions that start deselected in the extension filter
    denied_extensions: Set[str] = field(default_factory=lambda: {
        # Executables & Libraries
        'exe', 'dll', 'so', 'dylib', 'bin', 'app', 'msi', 'sys', 'com',
        'o', 'obj', 'class', 'lib', 'a', 'pdb',
        # Archives
        'zip', 'rar', '7z', 'tar', 'gz', 'bz2', 'xz', 'iso', 'dmg', 'img',
        'tgz', 'jar', 'war', 'deb', 'rpm', 'whl',
        # Media
        'jpg', 'jpeg', 'png', 'gif', 'bmp', 'tiff', 'webp', 'ico', 'svg',
        'eps', 'raw', 'cr2', 'nef', 'heic',
        'mp3', 'wav', 'ogg', 'flac', 'm4a', 'wma', 'aac', 'mid', 'midi', 'aiff',
        'mp4', 'avi', 'mkv', 'mov', 'wmv', 'flv', 'webm', 'm4v', 'mpg', 'mpeg', '3gp',
        # Documents
        'pdf', 'doc', 'docx', 'xls', 'xlsx', 'ppt', 'pptx', 'pages',
        'numbers', 'key', 'indd', 'psd', 'ai',
        # Data
        'db', 'sqlite', 'mdb', 'accdb', 'dbf', 'dat', 'mdf', 'sdf',
        # Fonts
        'ttf', 'otf', 'woff', 'woff2', 'eot',
        # Other
        'pyc', 'pyo', 'pyd', 'pak', 'cache', 'idx', 'mo', 'gmo',
    })

    binary_sample_size: int = 8192
    token_encoding: str = "o200k_base"
    output_format: Literal['delimited', 'markdown', 'xml'] = 'delimited'
    default_output_path: str = "merged.txt"

    # Security limits
    max_files: int = 20000

    # Worker and network settings
    worker_threads: int = 4
    max_concurrent_fetches: int = 20
    request_timeout: float = 30.0


class Origin(Enum):
    """Where a file entry was discovered."""
    LOCAL = "local"
    REMOTE = "remote"


class BinaryState(Enum):
    """Lazily resolved text/binary classification of an entry."""
    UNKNOWN = "unknown"
    TEXT = "text"
    BINARY = "binary"


@dataclass(frozen=True)
class LocalPath:
    """A directory (or single file) on the local filesystem."""
    path: str

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class RemoteRepo:
    """A subtree of a GitHub repository at a given ref."""
    owner: str
    repo: str
    ref: Optional[str] = None
    subpath: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        url = f"https://github.com/{self.full_name}"
        if self.ref:
            url += f"/tree/{self.ref}"
            if self.subpath:
                url += f"/{self.subpath}"
        return url


SourceReference = Union[LocalPath, RemoteRepo]


@dataclass(frozen=True)
class RemoteBlob:
    """Everything needed to download one blob later."""
    owner: str
    repo: str
    ref: str
    path: str
    sha: Optional[str] = None


def extension_of(path: str) -> str:
    """Lower-case extension without the dot, or '' for extensionless files."""
    _, ext = posixpath.splitext(posixpath.basename(path))
    return ext[1:].lower()


@dataclass
class FileEntry:
    """One candidate file of a listing."""

    path: str
    size_bytes: int
    origin: Origin
    retrieval: Union[str, RemoteBlob]
    is_binary: BinaryState = BinaryState.UNKNOWN
    included: bool = True
    token_count: Optional[int] = None
    extension: str = field(init=False)

    def __post_init__(self):
        self.extension = extension_of(self.path)

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)


@dataclass(frozen=True)
class ToFile:
    """Write the merged text to a file."""
    path: str


@dataclass(frozen=True)
class ToClipboard:
    """Copy the merged text to the system clipboard."""


Destination = Union[ToFile, ToClipboard]


@dataclass(frozen=True)
class MergeRequest:
    """Immutable snapshot of what to merge and where to send it."""

    entries: Tuple[FileEntry, ...]
    destinations: Tuple[Destination, ...]

    def __post_init__(self):
        if not self.destinations:
            raise ValueError("A merge request needs at least one destination")
        for destination in self.destinations:
            if isinstance(destination, ToFile) and not destination.path.strip():
                raise ValueError("Output file path must not be empty")


@dataclass
class DestinationResult:
    """Result of dispatching merged text to one destination."""
    destination: Destination
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class MergeOutcome:
    """Merged text plus what happened at each destination."""

    text: str
    file_count: int
    results: List[DestinationResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def partial(self) -> bool:
        """True when some, but not all, destinations failed."""
        failures = sum(1 for r in self.results if not r.success)
        return 0 < failures < len(self.results)

    def errors(self) -> List[Exception]:
        return [r.error for r in self.results if r.error is not None]

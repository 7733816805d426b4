"""GitHub repository source provider implementation."""
import asyncio
import logging
import posixpath
from typing import Dict, List, Optional, Sequence, Union
from urllib.parse import quote

import aiohttp
import requests
from github import Auth, Github, GithubException, RateLimitExceededException

from ..core.errors import (
    FetchError, FetchNetworkError, NetworkError, NotReadable, RateLimited,
    RepoNotFound, TooManyFiles,
)
from ..core.models import Config, FileEntry, Origin, RemoteBlob, RemoteRepo
from .base import Listing, SourceProvider

logger = logging.getLogger(__name__)

RAW_CONTENT_URL = "https://raw.githubusercontent.com/{owner}/{repo}/{ref}/{path}"


class AsyncGitHubClient:
    """Async blob downloader with bounded concurrency and proper session cleanup."""

    def __init__(self, token: str, config: Config):
        self.token = token
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None
        self.semaphore = asyncio.Semaphore(config.max_concurrent_fetches)

    async def __aenter__(self):
        """Async context manager entry with session setup."""
        headers = {'User-Agent': 'repomerge'}
        if self.token:
            headers['Authorization'] = f'token {self.token}'
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        connector = aiohttp.TCPConnector(limit=self.config.max_concurrent_fetches)
        self.session = aiohttp.ClientSession(headers=headers, timeout=timeout,
                                             connector=connector)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit with guaranteed cleanup."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def fetch_blob(self, entry: FileEntry) -> bytes:
        """Download one blob's raw bytes."""
        blob = entry.retrieval
        if not isinstance(blob, RemoteBlob):
            raise NotReadable(entry.path, "Not a remote blob")

        url = RAW_CONTENT_URL.format(owner=blob.owner, repo=blob.repo,
                                     ref=quote(blob.ref, safe=''),
                                     path=quote(blob.path))
        async with self.semaphore:
            try:
                async with self.session.get(url) as response:
                    if response.status == 200:
                        return await response.read()
                    if response.status == 404:
                        raise NotReadable(entry.path, "Not found on remote")
                    if response.status in (403, 429):
                        raise FetchNetworkError(entry.path, "GitHub rate limit exceeded, retry later")
                    raise FetchNetworkError(entry.path, f"HTTP {response.status}")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                # prevent token exposure
                safe_error = str(e) or type(e).__name__
                if self.token:
                    safe_error = safe_error.replace(self.token, "[REDACTED]")
                raise FetchNetworkError(entry.path, f"Network error: {safe_error}") from e

    async def fetch_all(self, entries: Sequence[FileEntry]) -> Dict[str, Union[bytes, FetchError]]:
        """Fetch blobs concurrently; failures are returned in place of content."""
        tasks = [self.fetch_blob(entry) for entry in entries]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        contents: Dict[str, Union[bytes, FetchError]] = {}
        for entry, result in zip(entries, results):
            if isinstance(result, FetchError):
                contents[entry.path] = result
            elif isinstance(result, BaseException):
                contents[entry.path] = FetchNetworkError(entry.path, str(result))
            else:
                contents[entry.path] = result
        return contents


class GitHubProvider(SourceProvider):
    """Provider for subtrees of GitHub repositories."""

    def __init__(self, config: Config):
        super().__init__(config)
        # No retries: a rate limit must surface at once, retry is a user reload
        options = dict(base_url=config.github_api_url, timeout=int(config.request_timeout), retry=None)
        if config.github_token:
            self.github = Github(auth=Auth.Token(config.github_token), **options)
        else:
            self.github = Github(**options)

    def list(self, source: RemoteRepo) -> Listing:
        """List blob metadata under ``source.subpath``; no content is downloaded."""
        try:
            repo = self.github.get_repo(source.full_name)
            ref = source.ref or repo.default_branch
            logger.info(f"Listing {source.full_name}@{ref} {source.subpath or '/'}")
            elements = self._list_tree(repo, ref, source.subpath)
        except GithubException as e:
            raise self._translate_error(e, source)
        except requests.exceptions.RequestException as e:
            message = self._sanitize_error(str(e), [self.config.github_token])
            raise NetworkError(f"Network error: {message}", str(source)) from e

        if source.subpath and not elements:
            raise RepoNotFound(f"Path not found in repository: {source}", str(source))

        entries = self._make_entries(source, ref, elements)
        matcher = self._compile_ignore_files(entries)
        return Listing(
            source=source,
            name=posixpath.basename(source.subpath) if source.subpath else source.repo,
            entries=entries,
            ignore_matcher=matcher,
        )

    def _list_tree(self, repo, ref: str, subpath: str) -> List:
        """Blob elements of the tree, walking sub-trees when the recursive listing is truncated."""
        tree = repo.get_git_tree(ref, recursive=True)
        if not tree.raw_data.get('truncated', False):
            return [e for e in tree.tree if e.type == 'blob' and self._under(e.path, subpath)]

        logger.info("Recursive tree listing truncated, walking sub-trees")
        blobs = []
        pending = [('', ref)]
        while pending:
            prefix, sha = pending.pop()
            children = []
            for element in repo.get_git_tree(sha).tree:
                path = f"{prefix}/{element.path}" if prefix else element.path
                if element.type == 'blob' and self._under(path, subpath):
                    blobs.append(_Blob(path, element.size, element.sha))
                elif element.type == 'tree' and self._may_contain(path, subpath):
                    children.append((path, element.sha))
                if len(blobs) > self.config.max_files:
                    raise TooManyFiles(f"Repository has too many files ({len(blobs)}+). "
                                       f"Maximum: {self.config.max_files}")
            # depth-first, in listing order
            pending.extend(reversed(children))
        return blobs

    @staticmethod
    def _under(path: str, subpath: str) -> bool:
        return not subpath or path == subpath or path.startswith(subpath + '/')

    @staticmethod
    def _may_contain(path: str, subpath: str) -> bool:
        return not subpath or GitHubProvider._under(path, subpath) or subpath.startswith(path + '/')

    def _make_entries(self, source: RemoteRepo, ref: str, elements) -> List[FileEntry]:
        entries = []
        for element in elements:
            if source.subpath and element.path == source.subpath:
                # the subpath names a single file
                rel = posixpath.basename(element.path)
            elif source.subpath:
                rel = element.path[len(source.subpath) + 1:]
            else:
                rel = element.path
            entries.append(FileEntry(
                path=rel,
                size_bytes=element.size or 0,
                origin=Origin.REMOTE,
                retrieval=RemoteBlob(source.owner, source.repo, ref, element.path, element.sha),
            ))
        if len(entries) > self.config.max_files:
            raise TooManyFiles(f"Repository has too many files ({len(entries)}). "
                               f"Maximum: {self.config.max_files}", str(source))
        return entries

    def _translate_error(self, error: GithubException, source: RemoteRepo):
        message = self._sanitize_error(str(error.data or error), [self.config.github_token])
        if isinstance(error, RateLimitExceededException) or error.status in (403, 429):
            return RateLimited("GitHub rate limit exceeded, retry later", str(source))
        if error.status == 404:
            return RepoNotFound(f"Repository or path not found: {source}", str(source))
        if error.status == 401:
            return NetworkError("GitHub rejected the access token", str(source))
        return NetworkError(f"GitHub API error {error.status}: {message}", str(source))

    def fetch(self, entry: FileEntry) -> bytes:
        result = self.fetch_many([entry])[entry.path]
        if isinstance(result, FetchError):
            raise result
        return result

    def fetch_many(self, entries: Sequence[FileEntry]) -> Dict[str, Union[bytes, FetchError]]:
        if not entries:
            return {}
        return asyncio.run(self._fetch_many_async(entries))

    async def _fetch_many_async(self, entries: Sequence[FileEntry]) -> Dict[str, Union[bytes, FetchError]]:
        async with AsyncGitHubClient(self.config.github_token, self.config) as client:
            return await client.fetch_all(entries)


class _Blob:
    """Blob element collected while walking sub-trees."""

    __slots__ = ('path', 'size', 'sha')

    def __init__(self, path: str, size: Optional[int], sha: str):
        self.path = path
        self.size = size
        self.sha = sha

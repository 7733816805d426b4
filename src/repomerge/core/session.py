"""
Session state machine for repomerge.

The session owns the only mutable selection state of a run. Front ends
turn user input into calls on it (toggle, advance, retreat, merge) and
call ``drain()`` from their own thread to apply the results of work that
was off-loaded to worker threads.

Every off-loaded job carries a ``Ticket``. A result is applied only if
its ticket still matches the session: changing or reloading the source
bumps the generation, and retreating past the stage that started a job
bumps that stage's epoch. Stale results are dropped.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..adapters import create_provider, parse_source
from ..adapters.base import Listing, SourceProvider
from .errors import (
    EncodingError, FetchError, InvalidTransition, MergeInProgress, RepoMergeError,
    SourceError, WorkerError,
)
from .filter_engine import ExtensionFilter, FilterEngine, FilterResult
from .merger import MergeEngine
from .models import (
    BinaryState, Config, Destination, FileEntry, MergeOutcome, MergeRequest,
    SourceReference, ToClipboard, ToFile,
)
from .text_detector import TextDetector
from .tokenizer import TokenCounter

logger = logging.getLogger(__name__)


class Stage(Enum):
    """Workflow stages, in forward order."""
    ENTERING_SOURCE = 0
    CONFIGURING_FILTERS = 1
    SELECTING_FILES = 2
    CHOOSING_DESTINATION = 3
    NAMING_OUTPUT_FILE = 4
    MERGED = 5
    ABORTED = 6

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.MERGED, Stage.ABORTED)


EDITABLE_STAGES = (Stage.CONFIGURING_FILTERS, Stage.SELECTING_FILES)


@dataclass(frozen=True)
class Ticket:
    """Identifies the session state a job was issued under."""
    generation: int
    stage: Stage
    epoch: int


@dataclass
class CountResult:
    """Outcome of fetching and counting one entry on a worker."""
    path: str
    content: Optional[bytes] = None
    binary: bool = False
    tokens: Optional[int] = None
    error: Optional[FetchError] = None


@dataclass
class SelectionState:
    """Extension filter, per-file flags and running totals of one entry set."""

    extension_filter: ExtensionFilter
    file_flags: Dict[str, bool] = field(default_factory=dict)
    total_tokens: int = 0
    hidden_ignored: List[str] = field(default_factory=list)
    hidden_binary: List[str] = field(default_factory=list)

    @classmethod
    def from_filter_result(cls, result: FilterResult) -> 'SelectionState':
        return cls(
            extension_filter=result.extension_filter,
            file_flags={entry.path: True for entry in result.visible},
            hidden_ignored=list(result.hidden_ignored),
            hidden_binary=list(result.hidden_binary),
        )

    def is_included(self, entry: FileEntry) -> bool:
        return (self.extension_filter.is_enabled(entry.extension)
                and self.file_flags.get(entry.path, True))

    @property
    def hidden_count(self) -> int:
        return len(self.hidden_ignored) + len(self.hidden_binary)


@dataclass
class _Job:
    ticket: Ticket
    kind: str
    apply: Callable[[Ticket, Any, Optional[BaseException]], None]


class SessionStateMachine:
    """Drives one selection-and-merge workflow."""

    def __init__(self, config: Config, token_counter: TokenCounter,
                 source_text: str = "",
                 provider_factory: Callable[[SourceReference, Config], SourceProvider] = create_provider,
                 merge_engine: Optional[MergeEngine] = None,
                 executor: Optional[Executor] = None):
        self.config = config
        self.token_counter = token_counter
        self.provider_factory = provider_factory
        self.merge_engine = merge_engine or MergeEngine(config)
        self.detector = TextDetector(config.binary_sample_size)
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.worker_threads, thread_name_prefix='repomerge')

        self.stage = Stage.ENTERING_SOURCE
        self.source_text = source_text
        self.source: Optional[SourceReference] = None
        self.provider: Optional[SourceProvider] = None
        self.listing: Optional[Listing] = None
        self.entries: List[FileEntry] = []
        self.selection: Optional[SelectionState] = None

        self.to_file = True
        self.to_clipboard = True
        self.output_path = config.default_output_path

        self.last_error: Optional[RepoMergeError] = None
        self.notices: List[SourceError] = []
        self.fetch_errors: Dict[str, FetchError] = {}
        self.outcome: Optional[MergeOutcome] = None
        self.merging = False

        self._generation = 0
        self._epochs: Dict[Stage, int] = {stage: 0 for stage in Stage}
        self._jobs: Dict[Future, _Job] = {}
        self._content_cache: Dict[str, bytes] = {}
        self._counting: set = set()
        self._listing_pending: Optional[SourceReference] = None

    # ------------------------------------------------------------------
    # Read-only views for front ends

    @property
    def total_tokens(self) -> int:
        return self.selection.total_tokens if self.selection else 0

    @property
    def hidden_count(self) -> int:
        return self.selection.hidden_count if self.selection else 0

    @property
    def skipped_dirs(self) -> List[str]:
        """Ignored directories whose contents were never listed."""
        return list(self.listing.pruned_dirs) if self.listing else []

    @property
    def is_busy(self) -> bool:
        return bool(self._jobs)

    @property
    def is_listing(self) -> bool:
        return self._listing_pending is not None

    @property
    def extension_filter(self) -> Optional[ExtensionFilter]:
        return self.selection.extension_filter if self.selection else None

    def visible_entries(self) -> List[FileEntry]:
        return list(self.entries)

    def included_entries(self) -> List[FileEntry]:
        return [entry for entry in self.entries if entry.included]

    def entry(self, path: str) -> FileEntry:
        for entry in self.entries:
            if entry.path == path:
                return entry
        raise KeyError(path)

    def destinations(self) -> Tuple[Destination, ...]:
        destinations: List[Destination] = []
        if self.to_file:
            destinations.append(ToFile(self.output_path))
        if self.to_clipboard:
            destinations.append(ToClipboard())
        return tuple(destinations)

    # ------------------------------------------------------------------
    # Stage transitions

    def set_source_text(self, text: str) -> None:
        self._require_stage(Stage.ENTERING_SOURCE)
        if text != self.source_text and self._listing_pending is not None:
            logger.debug("Source edited while listing; discarding pending listing")
            self._new_generation()
        self.source_text = text

    def advance(self) -> Stage:
        """Validate the current stage and move forward (or start the work that will)."""
        self._require_live()
        self._require_not_merging()

        if self.stage is Stage.ENTERING_SOURCE:
            if not self.source_text.strip():
                raise self._fail(InvalidTransition("Enter a local path or GitHub URL first"))
            try:
                reference = parse_source(self.source_text)
            except SourceError as e:
                raise self._fail(e)
            if reference == self.source and self.listing is not None and self._listing_pending is None:
                self.stage = Stage.CONFIGURING_FILTERS
            elif reference != self._listing_pending:
                self._submit_listing(reference, advance_on_success=True)

        elif self.stage is Stage.CONFIGURING_FILTERS:
            if self.listing is None:
                raise self._fail(InvalidTransition("No files loaded yet"))
            self.stage = Stage.SELECTING_FILES

        elif self.stage is Stage.SELECTING_FILES:
            included = self.included_entries()
            if not included:
                raise self._fail(InvalidTransition("Select at least one file"))
            self._submit_counts([e for e in included
                                 if e.token_count is None and e.path not in self._counting])
            self.stage = Stage.CHOOSING_DESTINATION

        elif self.stage is Stage.CHOOSING_DESTINATION:
            if not self.destinations():
                raise self._fail(InvalidTransition("Choose at least one destination"))
            if self.to_file:
                self.stage = Stage.NAMING_OUTPUT_FILE
            else:
                self.request_merge()

        elif self.stage is Stage.NAMING_OUTPUT_FILE:
            self.request_merge()

        return self.stage

    def retreat(self) -> Stage:
        """Go back one stage, keeping entered data and dropping work started past it."""
        self._require_live()
        self._require_not_merging()
        if self.stage is Stage.ENTERING_SOURCE:
            return self.stage

        self.stage = Stage(self.stage.value - 1)
        for stage in Stage:
            if self.stage.value < stage.value <= Stage.NAMING_OUTPUT_FILE.value:
                self._epochs[stage] += 1
        self._cancel_stale_jobs()
        return self.stage

    def abort(self) -> Stage:
        """Leave the workflow from any non-terminal stage."""
        self._require_live()
        if self.merging:
            logger.warning("Aborting while a merge is running; its result will be ignored")
        self._new_generation()
        self.merging = False
        self.stage = Stage.ABORTED
        return self.stage

    def reload(self) -> None:
        """Re-list the current source; on success the entry set is rebuilt wholesale."""
        self._require_live()
        self._require_not_merging()
        reference = self.source
        if reference is None or self.stage is Stage.ENTERING_SOURCE:
            try:
                reference = parse_source(self.source_text)
            except SourceError as e:
                raise self._fail(e)
        self._submit_listing(reference, advance_on_success=False)

    # ------------------------------------------------------------------
    # Selection updates

    def toggle_extension(self, extension: str) -> bool:
        """Flip an extension for every entry that has it; returns the new flag."""
        self._require_editable()
        if extension not in self.selection.extension_filter:
            raise KeyError(extension)
        enabled = self.selection.extension_filter.toggle(extension)
        self._refresh(e for e in self.entries if e.extension == extension)
        return enabled

    def toggle_all_extensions(self) -> bool:
        """Enable every extension, or disable all of them if they already are."""
        self._require_editable()
        target = not self.selection.extension_filter.all_enabled()
        for extension in self.selection.extension_filter.extensions():
            self.selection.extension_filter.set(extension, target)
        self._refresh(self.entries)
        return target

    def toggle_path(self, path: str) -> bool:
        """
        Flip one file.

        Selecting a file whose extension is switched off switches the
        extension back on with only that file selected.
        """
        self._require_editable()
        entry = self.entry(path)
        flags = self.selection.file_flags
        ext_filter = self.selection.extension_filter

        if ext_filter.is_enabled(entry.extension):
            flags[path] = not flags.get(path, True)
        else:
            ext_filter.set(entry.extension, True)
            for other in self.entries:
                if other.extension == entry.extension:
                    flags[other.path] = other.path == path
        self._refresh(e for e in self.entries if e.extension == entry.extension)
        return entry.included

    def set_destinations(self, to_file: bool, to_clipboard: bool) -> None:
        self._require_live()
        self._require_not_merging()
        self.to_file = to_file
        self.to_clipboard = to_clipboard

    def set_output_path(self, path: str) -> None:
        self._require_live()
        self._require_not_merging()
        self.output_path = path

    def _refresh(self, entries) -> None:
        """Recompute ``included`` and keep the running total additive."""
        for entry in entries:
            included = self.selection.is_included(entry)
            if included == entry.included:
                continue
            if entry.token_count is not None:
                delta = entry.token_count if included else -entry.token_count
                self.selection.total_tokens += delta
            entry.included = included

    # ------------------------------------------------------------------
    # Merge

    def request_merge(self) -> None:
        """Snapshot the selection and merge it on a worker."""
        self._require_live()
        if self.merging:
            raise MergeInProgress("A merge is already running")
        if self.stage not in (Stage.CHOOSING_DESTINATION, Stage.NAMING_OUTPUT_FILE):
            raise self._fail(InvalidTransition("Finish selecting files before merging"))
        if self.to_file and not self.output_path.strip():
            raise self._fail(InvalidTransition("Output file path must not be empty"))
        if self.stage is Stage.CHOOSING_DESTINATION and self.to_file:
            raise self._fail(InvalidTransition("Name the output file first"))

        try:
            request = MergeRequest(tuple(self.included_entries()), self.destinations())
        except ValueError as e:
            raise self._fail(InvalidTransition(str(e)))
        if not request.entries:
            raise self._fail(InvalidTransition("Nothing selected to merge"))

        self.merging = True
        self.last_error = None
        cached = dict(self._content_cache)
        provider = self.provider
        engine = self.merge_engine

        def run_merge() -> str:
            missing = [e for e in request.entries if e.path not in cached]
            fetched = provider.fetch_many(missing) if missing else {}

            def fetch(entry: FileEntry) -> bytes:
                content = cached.get(entry.path)
                if content is None:
                    content = fetched[entry.path]
                    if isinstance(content, FetchError):
                        raise content
                return content

            return engine.render(request, fetch)

        def apply(ticket: Ticket, text: Optional[str], error: Optional[BaseException]) -> None:
            self.merging = False
            if error is not None:
                self._record_error(error, 'merging')
                return
            # stale or aborted merges never reach a destination
            self._finish_merge(engine.deliver(request, text))

        self._submit('merge', run_merge, apply)

    def _finish_merge(self, outcome: MergeOutcome) -> None:
        self.outcome = outcome
        self.stage = Stage.MERGED
        for failure in outcome.errors():
            self.last_error = failure
        logger.info(f"Merged {outcome.file_count} files ({len(outcome.text):,} characters)")

    # ------------------------------------------------------------------
    # Off-loaded work

    def _submit_listing(self, reference: SourceReference, advance_on_success: bool) -> None:
        self._new_generation()
        self._listing_pending = reference
        config = self.config
        factory = self.provider_factory

        def run_listing() -> Tuple[SourceProvider, Listing, FilterResult]:
            provider = factory(reference, config)
            listing = provider.list(reference)
            engine = FilterEngine(config, TextDetector(config.binary_sample_size),
                                  sampler=provider.read_sample)
            result = engine.apply(listing.entries, None, listing.ignore_matcher)
            return provider, listing, result

        def apply(ticket: Ticket, value, error: Optional[BaseException]) -> None:
            self._listing_pending = None
            if error is not None:
                # previous entry set stays as it was
                self._record_error(error, 'listing files')
                return
            self._install_listing(reference, *value)
            if advance_on_success and self.stage is Stage.ENTERING_SOURCE:
                self.stage = Stage.CONFIGURING_FILTERS
            elif self.stage.value > Stage.SELECTING_FILES.value:
                self.stage = Stage.SELECTING_FILES

        self._submit('listing', run_listing, apply)

    def _install_listing(self, reference: SourceReference, provider: SourceProvider,
                         listing: Listing, result: FilterResult) -> None:
        self.source = reference
        self.provider = provider
        self.listing = listing
        self.entries = result.visible
        self.selection = SelectionState.from_filter_result(result)
        self.notices = list(listing.notices)
        self.fetch_errors = {}
        self.outcome = None
        self.last_error = None
        self._content_cache = {}
        self._counting = set()
        logger.info(f"Loaded {len(self.entries)} files from {reference} "
                    f"({self.selection.hidden_count} hidden)")

    def _submit_counts(self, entries: Sequence[FileEntry]) -> None:
        if not entries:
            return
        provider = self.provider
        counter = self.token_counter
        detector = self.detector
        targets = list(entries)
        self._counting.update(e.path for e in targets)

        def run_counts() -> List[CountResult]:
            contents = provider.fetch_many(targets)
            results = []
            for entry in targets:
                content = contents[entry.path]
                if isinstance(content, FetchError):
                    results.append(CountResult(entry.path, error=content))
                elif detector.classify(content) is BinaryState.BINARY:
                    results.append(CountResult(entry.path, binary=True))
                else:
                    try:
                        tokens = counter.count(content)
                    except UnicodeDecodeError as e:
                        results.append(CountResult(entry.path, error=EncodingError(entry.path, str(e))))
                        continue
                    results.append(CountResult(entry.path, content, tokens=tokens))
            return results

        def apply(ticket: Ticket, results: Optional[List[CountResult]],
                  error: Optional[BaseException]) -> None:
            self._counting.difference_update(e.path for e in targets)
            if error is not None:
                self._record_error(error, 'counting tokens')
                return
            for result in results:
                self._apply_count(result)

        self._submit('count', run_counts, apply)

    def _apply_count(self, result: CountResult) -> None:
        try:
            entry = self.entry(result.path)
        except KeyError:
            return
        if result.error is not None:
            self.fetch_errors[result.path] = result.error
            logger.warning(f"Could not count tokens: {result.error}")
            return
        if result.binary:
            entry.is_binary = BinaryState.BINARY
            entry.included = False
            self.entries.remove(entry)
            self.selection.hidden_binary.append(entry.path)
            return
        entry.is_binary = BinaryState.TEXT
        self._content_cache[entry.path] = result.content
        previous = entry.token_count
        entry.token_count = result.tokens
        if entry.included:
            self.selection.total_tokens += result.tokens - (previous or 0)

    def _submit(self, kind: str, fn: Callable[[], Any], apply) -> Future:
        ticket = Ticket(self._generation, self.stage, self._epochs[self.stage])
        future = self.executor.submit(fn)
        self._jobs[future] = _Job(ticket, kind, apply)
        logger.debug(f"Submitted {kind} job under {ticket}")
        return future

    def drain(self, wait_for_jobs: bool = False, timeout: Optional[float] = None) -> int:
        """
        Apply finished jobs in submission order on the calling thread.

        Args:
            wait_for_jobs: Block until every pending job has finished.
            timeout: Upper bound for the wait, in seconds.

        Returns:
            Number of results applied (stale ones are not counted).
        """
        if wait_for_jobs and self._jobs:
            wait(list(self._jobs), timeout=timeout)

        applied = 0
        for future in list(self._jobs):
            if not future.done():
                continue
            job = self._jobs.pop(future)
            if future.cancelled():
                continue
            if not self._is_current(job.ticket):
                logger.debug(f"Discarding stale {job.kind} result issued under {job.ticket}")
                if job.kind == 'merge':
                    self.merging = False
                continue
            error = future.exception()
            value = None if error is not None else future.result()
            job.apply(job.ticket, value, error)
            applied += 1
        return applied

    def _is_current(self, ticket: Ticket) -> bool:
        return (not self.stage.is_terminal
                and ticket.generation == self._generation
                and ticket.epoch == self._epochs[ticket.stage])

    def _cancel_stale_jobs(self) -> None:
        for future, job in self._jobs.items():
            if not self._is_current(job.ticket):
                future.cancel()
                if job.kind == 'count':
                    self._counting.clear()
                elif job.kind == 'listing':
                    self._listing_pending = None

    def _new_generation(self) -> None:
        self._generation += 1
        self._listing_pending = None
        self._counting = set()
        self._cancel_stale_jobs()

    def close(self) -> None:
        """Stop worker threads owned by the session."""
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Guards

    def _record_error(self, error: BaseException, activity: str) -> None:
        if not isinstance(error, RepoMergeError):
            logger.debug(f"Unexpected failure while {activity}", exc_info=error)
            error = WorkerError(activity, error)
        self.last_error = error
        logger.warning(f"{type(error).__name__}: {error}")

    def _fail(self, error: RepoMergeError) -> RepoMergeError:
        self.last_error = error
        return error

    def _require_live(self) -> None:
        if self.stage.is_terminal:
            raise InvalidTransition(f"Session already {self.stage.name.lower()}")

    def _require_not_merging(self) -> None:
        if self.merging:
            raise MergeInProgress("A merge is running")

    def _require_stage(self, stage: Stage) -> None:
        self._require_live()
        if self.stage is not stage:
            raise InvalidTransition(f"Not allowed while {self.stage.name.lower()}")

    def _require_editable(self) -> None:
        self._require_live()
        self._require_not_merging()
        if self.stage not in EDITABLE_STAGES or self.selection is None:
            raise InvalidTransition("Selections can only change while filtering or selecting files")

"""
Prompt-driven front end over the session state machine.

Each stage is rendered with rich, one line of input is read, and the
input is turned into an intent on the session. Background work is waited
for behind a spinner; Ctrl+C while waiting aborts the session.
"""

import logging
from typing import Callable, List, Optional

from rich.markup import escape
from rich.table import Table

from ..core.errors import RepoMergeError
from ..core.models import ToClipboard, ToFile
from ..core.session import SessionStateMachine, Stage
from .console import ConsoleManager

logger = logging.getLogger(__name__)

DESTINATION_CHOICES = [
    ("File + clipboard", True, True),
    ("File only", True, False),
    ("Clipboard only", False, True),
]


def parse_range(range_str: str, upper: int) -> List[int]:
    """
    Parse a range string like '1-3,5,7-9' into sorted 1-based indices.

    Returns an empty list if any part is malformed or out of ``1..upper``.
    """
    if not range_str.strip() or len(range_str) > 1000:
        return []

    indices = set()
    try:
        for part in range_str.split(','):
            part = part.strip()
            if '-' in part:
                start, end = map(int, part.split('-', 1))
                if start > end:
                    return []
                indices.update(range(start, end + 1))
            else:
                indices.add(int(part))
    except ValueError:
        return []

    if not indices or min(indices) < 1 or max(indices) > upper:
        return []
    return sorted(indices)


class InteractiveApp:
    """Renders the session and feeds user input back into it."""

    def __init__(self, session: SessionStateMachine, console: ConsoleManager,
                 read_line: Optional[Callable[[str], str]] = None):
        self.session = session
        self.console = console
        self.read_line = read_line or console.input

    def run(self) -> Stage:
        """Loop until the session reaches a terminal stage."""
        while not self.session.stage.is_terminal:
            self._render()
            try:
                line = self.read_line("[?] Your choice: ")
            except EOFError:
                line = 'q'
            try:
                self._handle(line.strip())
                self._wait()
            except RepoMergeError as e:
                self.console.print_error(str(e))
            except KeyError as e:
                self.console.print_error(f"Unknown item: {e}")
        self._render_result()
        return self.session.stage

    def _wait(self) -> None:
        session = self.session
        if not session.is_busy:
            return
        previous_error = session.last_error
        try:
            with self.console.status("Working..."):
                while session.is_busy:
                    session.drain(wait_for_jobs=True, timeout=0.1)
        except KeyboardInterrupt:
            self.console.print_warning("Interrupted")
            session.abort()
            return
        error = session.last_error
        if error is not None and error is not previous_error and not session.stage.is_terminal:
            self.console.print_error(str(error))

    # ------------------------------------------------------------------
    # Input handling

    def _handle(self, line: str) -> None:
        session = self.session
        command = line.lower()

        if command == 'q':
            session.abort()
            return
        if command == 'b':
            session.retreat()
            return
        if command == 'r' and session.stage is not Stage.ENTERING_SOURCE:
            session.reload()
            return

        stage = session.stage
        if stage is Stage.ENTERING_SOURCE:
            if line:
                session.set_source_text(line)
            session.advance()
        elif stage in (Stage.CONFIGURING_FILTERS, Stage.SELECTING_FILES):
            self._handle_toggles(line)
        elif stage is Stage.CHOOSING_DESTINATION:
            if line:
                choice = parse_range(line, len(DESTINATION_CHOICES))
                if len(choice) != 1:
                    self.console.print_error("Pick one destination number")
                    return
                _, to_file, to_clipboard = DESTINATION_CHOICES[choice[0] - 1]
                session.set_destinations(to_file, to_clipboard)
            else:
                session.advance()
        elif stage is Stage.NAMING_OUTPUT_FILE:
            if line:
                session.set_output_path(line)
            session.advance()

    def _handle_toggles(self, line: str) -> None:
        session = self.session
        if not line:
            session.advance()
            return
        if line.lower() == 'a':
            session.toggle_all_extensions()
            return

        if session.stage is Stage.CONFIGURING_FILTERS:
            items = session.extension_filter.extensions()
            toggle = session.toggle_extension
        else:
            items = [entry.path for entry in session.visible_entries()]
            toggle = session.toggle_path

        indices = parse_range(line, len(items))
        if not indices:
            self.console.print_error("Invalid input. Enter numbers like 1-3,5")
            return
        for index in indices:
            toggle(items[index - 1])

    # ------------------------------------------------------------------
    # Rendering

    def _render(self) -> None:
        session = self.session
        console = self.console
        console.print()
        console.print(f"[header] {session.stage.name.replace('_', ' ')} [/header]")

        for notice in session.notices:
            console.print_info(str(notice))

        stage = session.stage
        if stage is Stage.ENTERING_SOURCE:
            current = session.source_text or "(none)"
            console.print_info_with_heading("SOURCE:", current)
            console.print("[dim]Enter a local path or GitHub URL, Enter to load, 'q' to quit[/dim]")
        elif stage is Stage.CONFIGURING_FILTERS:
            self._render_extensions()
            self._render_totals()
            console.print("[dim]Numbers toggle extensions, 'a' all, Enter continue, "
                          "'b' back, 'r' reload, 'q' quit[/dim]")
        elif stage is Stage.SELECTING_FILES:
            self._render_files()
            self._render_totals()
            console.print("[dim]Numbers toggle files, 'a' all, Enter continue, "
                          "'b' back, 'r' reload, 'q' quit[/dim]")
        elif stage is Stage.CHOOSING_DESTINATION:
            self._render_totals()
            for i, (label, to_file, to_clipboard) in enumerate(DESTINATION_CHOICES, start=1):
                marker = "●" if (to_file, to_clipboard) == (session.to_file, session.to_clipboard) else "○"
                console.print(f"  [number]{i}[/number]. {marker} {label}")
            console.print("[dim]Number picks a destination, Enter continue, 'b' back, 'q' quit[/dim]")
        elif stage is Stage.NAMING_OUTPUT_FILE:
            console.print_info_with_heading("OUTPUT FILE:", session.output_path)
            console.print("[dim]Type a path or press Enter to keep it, 'b' back, 'q' quit[/dim]")

    def _render_extensions(self) -> None:
        table = Table(show_header=True, header_style="heading", box=None)
        table.add_column("#", style="number", justify="right")
        table.add_column("Extension")
        table.add_column("Files", justify="right")
        entries = self.session.visible_entries()
        for i, (extension, enabled) in enumerate(self.session.extension_filter.items(), start=1):
            count = sum(1 for entry in entries if entry.extension == extension)
            style = "selection_active" if enabled else "selection_inactive"
            mark = "\\[x]" if enabled else "[ ]"
            table.add_row(str(i), f"[{style}]{mark} .{escape(extension) or '(none)'}[/{style}]", str(count))
        self.console.print(table)

    def _render_files(self) -> None:
        table = Table(show_header=True, header_style="heading", box=None)
        table.add_column("#", style="number", justify="right")
        table.add_column("File")
        table.add_column("Tokens", style="token_count", justify="right")
        for i, entry in enumerate(self.session.visible_entries(), start=1):
            style = "selection_active" if entry.included else "selection_inactive"
            mark = "\\[x]" if entry.included else "[ ]"
            tokens = f"{entry.token_count:,}" if entry.token_count is not None else "-"
            table.add_row(str(i), f"[{style}]{mark} {escape(entry.path)}[/{style}]", tokens)
        self.console.print(table)

    def _render_totals(self) -> None:
        session = self.session
        included = len(session.included_entries())
        self.console.print(
            f"[info]Selected: {included}/{len(session.visible_entries())} files | "
            f"[token_count]{session.total_tokens:,}[/token_count] tokens | "
            f"{session.hidden_count} hidden, "
            f"{len(session.skipped_dirs)} directories skipped[/info]")

    def _render_result(self) -> None:
        session = self.session
        if session.stage is Stage.ABORTED:
            self.console.print_warning("Aborted, nothing was written")
            return

        outcome = session.outcome
        self.console.print_separator("═")
        self.console.print_success(
            f"Merged {outcome.file_count} files ({session.total_tokens:,} tokens)")
        for result in outcome.results:
            destination = result.destination
            if isinstance(destination, ToFile):
                label = f"file {destination.path}"
            elif isinstance(destination, ToClipboard):
                label = "clipboard"
            else:
                label = str(destination)
            if result.success:
                self.console.print_success(f"Sent to {label}")
            else:
                self.console.print_error(f"Could not send to {label}: {result.error}")

"""Themed console output for repomerge.

Wraps a rich ``Console`` with the retro terminal themes and the status
line helpers used by the CLI and the interactive front end.
"""

import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.text import Text
from rich.theme import Theme


class StatusType(Enum):
    """Standard status types with associated symbols."""
    SUCCESS = ("[✓]", "success", "green")
    ERROR = ("[x]", "error", "red")
    WARNING = ("[!]", "warning", "yellow")
    INFO = ("[!]", "info", "cyan")


@dataclass
class ThemeColors:
    """Color definitions for a theme."""
    info: str
    warning: str
    error: str
    success: str
    highlight: str
    header: str
    prompt: str
    path: str
    number: str
    dim: str
    selection_active: str   # included rows
    selection_inactive: str  # excluded rows
    token_count: str
    heading: str = "bright_yellow"


THEMES = {
    'manhattan': ThemeColors(
        info='cyan',
        warning='yellow',
        error='red',
        success='green',
        highlight='bright_cyan',
        header='bold bright_cyan on black',
        prompt='bright_cyan',
        path='white',
        number='bright_blue',
        dim='bright_black',
        selection_active='bold bright_white',
        selection_inactive='dim white',
        token_count='bright_blue',
        heading='bright_yellow',
    ),
    'green': ThemeColors(
        info='green',
        warning='yellow',
        error='red',
        success='bright_green',
        highlight='bold green',
        header='bold green on black',
        prompt='bright_green',
        path='bright_green',
        number='green',
        dim='green',
        selection_active='bold bright_green',
        selection_inactive='dim green',
        token_count='bright_white',
        heading='bright_cyan',
    ),
}


class ConsoleManager:
    """Console with theme support and status helpers."""

    def __init__(self, theme: str = "manhattan", file: Optional[Any] = None,
                 width: Optional[int] = None):
        self.theme_name = theme if theme in THEMES else 'manhattan'
        self.theme_colors = THEMES[self.theme_name]
        self.file = file or sys.stdout

        if width is None:
            try:
                width = max(80, os.get_terminal_size().columns)
            except (OSError, AttributeError):
                width = 80

        self.console = Console(
            theme=self._create_rich_theme(),
            file=self.file,
            width=width,
            highlight=False,
        )

    def _create_rich_theme(self) -> Theme:
        colors = self.theme_colors
        return Theme({
            'info': colors.info,
            'warning': colors.warning,
            'error': colors.error,
            'success': colors.success,
            'highlight': colors.highlight,
            'header': colors.header,
            'prompt': colors.prompt,
            'path': colors.path,
            'number': colors.number,
            'dim': colors.dim,
            'selection_active': colors.selection_active,
            'selection_inactive': colors.selection_inactive,
            'token_count': colors.token_count,
            'heading': colors.heading,
        })

    def print(self, *args, **kwargs):
        self.console.print(*args, **kwargs)

    def input(self, prompt: str = "") -> str:
        """Read a line of input with a styled prompt."""
        return self.console.input(f"[prompt]{prompt}[/prompt]")

    def print_status(self, status: StatusType, message: str, prefix: str = ""):
        """Print a status line with icon."""
        icon, _, color = status.value
        status_text = Text()
        if prefix:
            status_text.append(prefix + " ")
        status_text.append(f"{icon} ", style=color)
        status_text.append(message)
        self.console.print(status_text)

    def print_error(self, message: str):
        self.print_status(StatusType.ERROR, message)

    def print_success(self, message: str):
        self.print_status(StatusType.SUCCESS, message)

    def print_info(self, message: str):
        self.print_status(StatusType.INFO, message)

    def print_warning(self, message: str):
        self.print_status(StatusType.WARNING, message)

    def print_info_with_heading(self, heading: str, value: str):
        """Print an info line with a colored heading and regular value."""
        text = Text()
        text.append("i ", style=self.theme_colors.info)
        text.append(heading, style=self.theme_colors.heading)
        text.append(f" {value}", style=self.theme_colors.info)
        self.console.print(text)

    def print_separator(self, char: str = "─", width: int = 60):
        self.console.print(char * width, style="dim")

    def status(self, message: str):
        """Spinner shown while waiting on background work."""
        return self.console.status(f"[info]{message}[/info]", spinner="dots")

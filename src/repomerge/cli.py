"""Command-line interface for repomerge."""
import os
import sys
import logging

import click

from . import __version__
from .core.errors import RepoMergeError, TokenizerUnavailable
from .core.models import Config
from .core.session import SessionStateMachine, Stage
from .core.tokenizer import TokenCounter
from .utils.console import THEMES, ConsoleManager
from .utils.interactive import InteractiveApp


def setup_logging(debug: bool) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.WARNING
    format_string = '[%(levelname)s] %(name)s: %(message)s' if debug else '[%(levelname)s] %(message)s'

    logging.basicConfig(
        level=level,
        format=format_string,
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("github").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def print_banner(console: ConsoleManager) -> None:
    """Print retro terminal banner."""
    banner = f"""
╔══════════════════════════════════════════════════╗
║                                                  ║
║   R E P O M E R G E                              ║
║   select > filter > count > merge                ║
║                                                  ║
║                  FILE MERGE TERMINAL v{__version__:<11}║
╚══════════════════════════════════════════════════╝
"""
    console.print(banner, style="highlight")


@click.command()
@click.argument('source', required=False)
@click.option('--output', '-o', 'output_path', help='Output file path (default: merged.txt)')
@click.option('--format', '-f', 'output_format', type=click.Choice(['delimited', 'markdown', 'xml']),
              default='delimited', help='Section format for merged files')
@click.option('--show-hidden', is_flag=True, help='List dotfiles and dot-directories')
@click.option('--theme', '-t', type=click.Choice(sorted(THEMES)), default='manhattan',
              help='Terminal color theme')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.version_option(__version__)
def main(source: str, output_path: str, output_format: str, show_hidden: bool,
         theme: str, debug: bool) -> None:
    """
    Select files from a local directory or GitHub repository and merge them
    into one text file and/or the clipboard.

    SOURCE can be:
    - Local directory path: /path/to/project or . (default: current directory)
    - GitHub URL: https://github.com/owner/repo/tree/main/docs
    - GitHub shorthand: owner/repo

    Examples:

        repomerge

        repomerge ~/src/project -o context.txt

        repomerge https://github.com/pallets/click/tree/main/docs
    """
    console = ConsoleManager(theme=theme)
    setup_logging(debug)
    print_banner(console)

    config = Config(
        github_token=os.environ.get('GITHUB_TOKEN', ''),
        show_hidden=show_hidden,
        output_format=output_format,
    )
    if output_path:
        config.default_output_path = output_path

    try:
        console.print("[dim]LOADING TOKENIZER...[/dim]")
        counter = TokenCounter(config.token_encoding)
    except TokenizerUnavailable as e:
        console.print_error(str(e))
        sys.exit(1)

    source_text = source if source is not None else os.getcwd()

    try:
        with SessionStateMachine(config, counter, source_text=source_text) as session:
            app = InteractiveApp(session, console)
            final_stage = app.run()
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted by user[/warning]")
        sys.exit(130)
    except RepoMergeError as e:
        console.print_error(str(e))
        sys.exit(1)

    if final_stage is Stage.MERGED and not session.outcome.succeeded:
        sys.exit(2)


if __name__ == '__main__':
    main()

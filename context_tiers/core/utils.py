"""Console, logging and file helpers shared by the CLI and the services."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.status import Status
from rich.text import Text

if TYPE_CHECKING:
    from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def setup_logging(log_level: str, log_file: str | None = None, *, quiet: bool = False) -> None:
    """Configure the root logger with a Rich handler and an optional file handler.

    Args:
        log_level: Logging level name (debug, info, warning, error).
        log_file: Optional path of a file that receives the same records.
        quiet: Only show warnings and errors on the console.

    """
    level = getattr(logging, log_level.upper(), logging.WARNING)
    handlers: list[logging.Handler] = []

    rich_handler = RichHandler(
        console=err_console,
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setLevel(logging.WARNING if quiet else level)
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers.append(rich_handler)

    if log_file:
        file_handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"),
        )
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def atomic_write_text(path: Path, content: str) -> None:
    """Write text to ``path`` via a temporary file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        Path(tmp_name).replace(path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def print_error_message(message: str, suggestion: str | None = None) -> None:
    """Print an error panel with an optional suggestion."""
    error_text = Text(message)
    if suggestion:
        error_text.append("\n\n")
        error_text.append(suggestion, style="italic")
    err_console.print(
        Panel(error_text, title="[bold red]Error[/bold red]", border_style="red"),
    )


def print_output_panel(
    output: str,
    title: str = "Output",
    subtitle: str = "",
    style: str = "green",
) -> None:
    """Print text inside a titled panel."""
    console.print(
        Panel(output, title=f"[bold]{title}[/bold]", subtitle=subtitle, border_style=style),
    )


def print_with_style(message: str, style: str = "bold green") -> None:
    """Print a one-line message with a rich style."""
    console.print(Text(message, style=style))


def print_table(table: Table) -> None:
    """Print a rich table."""
    console.print(table)


def print_command_line_args(args: dict[str, Any]) -> None:
    """Print the arguments a command was invoked with."""
    console.print(Panel(str(args), title="[bold]Command Line Arguments[/bold]", border_style="blue"))


def create_status(message: str, style: str = "bold yellow") -> Status:
    """Create a spinner status context manager."""
    return console.status(f"[{style}]{message}[/{style}]")

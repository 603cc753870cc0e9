"""Terminal feedback for classmap commands, written to stderr with rich.

A build spends most of its time waiting on worker interpreters, so the CLI
shows one spinner for the whole run and prints the outcome as short marked
lines afterwards. While the spinner is live, structlog lines bound for the
console are held back (file outputs keep receiving them). On a non-TTY
stderr the spinner degrades to a single "message..." line.

    with spinner("Building class index"):
        report = pipeline.run()
    status(f"{pluralize(report.validated, 'class', 'classes')} validated", style="success")
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

_console = Console(stderr=True)

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

# Process-wide: parallel validation logs from pool threads while the main
# thread owns the spinner.
_console_suppressed = threading.Event()


def is_console_suppressed() -> bool:
    return _console_suppressed.is_set()


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Hold back console log lines while a live display owns the terminal."""
    _console_suppressed.set()
    try:
        yield
    finally:
        _console_suppressed.clear()


def _get_logger() -> BoundLogger:
    from classmap.core.logging import get_logger

    return get_logger("progress")


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    """Console shared by every command, so spinner and status lines interleave."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print one marked line (✓, ✗, ! or plain) and mirror it as a debug event."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)

    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """``pluralize(1, "class", "classes")`` gives "1 class"; the plural defaults to +s."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    """Show ``message`` with a spinner until the block exits."""
    padding = " " * indent
    if _is_tty():
        with (
            suppress_console_logs(),
            _console.status(f"{padding}[cyan]{message}[/cyan]", spinner="dots"),
        ):
            yield
    else:
        _console.print(f"{padding}{message}...")
        yield

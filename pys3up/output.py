"""Output formatting for the pys3up CLI."""

import threading
from typing import Optional

from rich.console import Console
from rich.markup import escape


class OutputFormatter:
    """Leveled user output.

    Three verbosity levels are supported: quiet (warnings and errors only),
    normal (one progress character per file event) and verbose (one line per
    file event).
    """

    def __init__(
        self,
        quiet: bool = False,
        verbose: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            quiet: Print only warnings and errors
            verbose: Print one line per file event
            console: Console for regular output (defaults to stdout)
            err_console: Console for warnings and errors (defaults to stderr)
        """
        # verbose wins when both are requested
        self.verbose = verbose
        self.quiet = quiet and not verbose
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )
        self._lock = threading.Lock()

    def message(self, verbose: str = "", normal: str = "", quiet: str = "") -> str:
        """Pick the message matching the current verbosity level.

        The verbose message gets a trailing newline, the other two are
        returned as given so that normal mode can print progress characters
        on a single line.

        Args:
            verbose: Message for verbose mode
            normal: Message for normal mode
            quiet: Message for quiet mode

        Returns:
            The selected message, possibly empty
        """
        if self.verbose:
            return f"{verbose}\n" if verbose else ""
        if self.quiet:
            return quiet
        return normal

    def say(self, verbose: str = "", normal: str = "", quiet: str = "") -> None:
        """Print the message matching the current verbosity level.

        Args:
            verbose: Message for verbose mode
            normal: Message for normal mode
            quiet: Message for quiet mode
        """
        msg = self.message(verbose, normal, quiet)
        if msg:
            with self._lock:
                self.console.print(msg, end="", markup=False)

    def info(self, message: str) -> None:
        """Print an informational message unless quiet."""
        if not self.quiet:
            with self._lock:
                self.console.print(message, markup=False)

    def warning(self, message: str) -> None:
        """Print a warning message (shown even when quiet)."""
        with self._lock:
            self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Print an error message (shown even when quiet)."""
        with self._lock:
            self.err_console.print(f"[red]Error:[/red] {escape(message)}")

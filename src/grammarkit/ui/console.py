"""Console output formatting utilities for grammarkit."""

from __future__ import annotations

import sys
from typing import Optional, Sequence, Tuple


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def notify(self, message: str) -> None:
        """Print a progress/info line."""
        print(message)

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        output: Optional[str] = None,
    ) -> None:
        """
        Print a failed step.

        Args:
            name: Parser name
            reason: Step error message
            exit_code: Optional exit code
            output: Captured stderr (or stdout) of the failing command
        """
        print(f"grammarkit[{name}]: {reason}", file=sys.stderr)
        if exit_code is not None:
            print(f"Exit code: {exit_code}", file=sys.stderr)
        if output:
            if self.debug:
                print(output.rstrip(), file=sys.stderr)
            else:
                # tail is usually where the compiler error is
                tail = output.rstrip().splitlines()[-20:]
                print("\n".join(tail), file=sys.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_parser_list(self, rows: Sequence[Tuple[str, str]]) -> None:
        """Print `info` output, one parser per line."""
        width = max((len(name) for name, _ in rows), default=0)
        for name, status in rows:
            mark = "[✓]" if status == "installed" else "[✗]"
            print(f"{name.ljust(width)} {mark} {status}")

    def print_summary(self, started: int, finished: int, failed: int) -> None:
        """Print final batch summary."""
        if started == 0:
            return
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        print(f"  finished: {finished}/{started}")
        if failed:
            print(f"  failed: {failed}")

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console

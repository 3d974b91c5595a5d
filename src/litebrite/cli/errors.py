"""
Standardized error handling and exit codes for the litebrite CLI.

Every command runs inside handle_errors(), which renders any
error as a single ``Error: <message>`` line on stderr and exits 1.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from litebrite.core.exceptions import GitError, LitebriteError

logger = logging.getLogger(__name__)

err_console = Console(stderr=True, soft_wrap=True)


class ExitCode(IntEnum):
    """Standard exit codes for litebrite CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Any surfaced error."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message to stderr.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "litebrite is not initialized",
        ...     solution="lb init",
        ... )
    """
    err_console.print(f"[red]Error:[/red] {escape(problem)}")

    if reason:
        err_console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        err_console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn any error into an error line on stderr and exit code 1."""
    try:
        yield
    except GitError as e:
        print_error(e.message, reason=e.stderr or None)
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except LitebriteError as e:
        print_error(e.message)
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except ValidationError as e:
        print_error("invalid configuration", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except KeyboardInterrupt:
        raise typer.Exit(ExitCode.SIGINT) from None
    except typer.Exit:
        raise
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print_error(f"unexpected {type(e).__name__}: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e

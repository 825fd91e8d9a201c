"""Regraft CLI error handling.

Maps CLI and upgrade exceptions to Rich panels and process exit codes.

Exit codes:
    0 - Success (including upgrades that left merge conflicts)
    1 - General error or failed external command
    2 - Configuration error
    3 - Missing or incompatible runtime / git
    4 - Uncommitted local changes
    5 - Registry lookup failure
    6 - No update available
  130 - Interrupted
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Generator

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from regraft.upgrade.exceptions import (
    EXIT_COMMAND_FAILED,
    EXIT_CONFIGURATION,
    CommandFailedError,
    DirtyWorkingTreeError,
    NoUpdateAvailableError,
    UpgradeError,
)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = EXIT_COMMAND_FAILED
EXIT_CONFIG_ERROR = EXIT_CONFIGURATION
EXIT_INTERRUPTED = 130

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CLIError(Exception):
    """Error raised by the CLI layer itself (bad arguments, unusable paths).

    Parameters
    ----------
    message:
        Human-readable error description.
    exit_code:
        Process exit code (default :data:`EXIT_GENERAL_ERROR`).
    """

    def __init__(self, message: str, exit_code: int = EXIT_GENERAL_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class ConfigError(CLIError):
    """The regraft configuration file or overrides are invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, exit_code=EXIT_CONFIG_ERROR)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_upgrade_error(exc: UpgradeError) -> str:
    """Render an :class:`UpgradeError` with its diagnostic context.

    Adds the failing phase, the external command with its exit code and
    captured stderr, or the pending changes of a dirty working tree.
    """
    lines = [f"[bold red]{escape(exc.message)}[/bold red]"]
    if exc.phase:
        lines.append(f"[dim]Failed during phase: {exc.phase}[/dim]")
    if isinstance(exc, CommandFailedError):
        lines.append(f"[dim]Command: {escape(' '.join(exc.command))} (exit code {exc.returncode})[/dim]")
        if exc.stderr.strip():
            lines.append(escape(exc.stderr.strip()))
    if isinstance(exc, DirtyWorkingTreeError):
        lines.append(escape(exc.status))
    return "\n".join(lines)


def _print_panel(out: Console, body: str, title: str, style: str) -> None:
    out.print(Panel(body, title=f"[{style}]{title}[/{style}]", border_style=style))


# ---------------------------------------------------------------------------
# Error handler context manager
# ---------------------------------------------------------------------------

_stderr = Console(stderr=True)


@contextmanager
def error_handler(console: Console | None = None) -> Generator[None, None, None]:
    """Turn exceptions raised inside the block into a panel and an exit code.

    "No update available" is reported as a notice, not a failure, but still
    exits non-zero so scripts can tell that nothing was regenerated.

    Raises
    ------
    SystemExit
        Always raised when an exception is caught.
    """
    out = console or _stderr
    try:
        yield
    except CLIError as exc:
        _print_panel(out, f"[bold red]{escape(exc.message)}[/bold red]", "Error", "red")
        sys.exit(exc.exit_code)
    except NoUpdateAvailableError as exc:
        _print_panel(out, f"[green]{escape(exc.message)}[/green]", "No update available", "yellow")
        sys.exit(exc.exit_code)
    except UpgradeError as exc:
        _print_panel(out, format_upgrade_error(exc), "Upgrade Failed", "red")
        sys.exit(exc.exit_code)
    except KeyboardInterrupt:
        out.print("\n[yellow]Interrupted. Run the upgrade again to resume.[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        _print_panel(out, f"[bold red]{escape(str(exc))}[/bold red]", "Unexpected Error", "red")
        sys.exit(EXIT_GENERAL_ERROR)

"""Regraft CLI upgrade summary.

Renders the outcome of an upgrade as a Rich panel: the version change, what
happened to the dependency install, and a table of files left with merge
conflicts.
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from regraft.upgrade.orchestrator import UpgradeReport

# ---------------------------------------------------------------------------
# StatusDisplay
# ---------------------------------------------------------------------------


class StatusDisplay:
    """Print upgrade summaries.

    Parameters
    ----------
    console:
        Rich console to use.  Defaults to stderr.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def report(self, report: UpgradeReport) -> None:
        """Summarise a finished upgrade, listing conflicts when there are any."""
        session = report.session
        lines = [
            f"Upgraded from {escape(session.current_generator_version)} "
            f"to {escape(session.target_label)}"
        ]
        if session.plugins:
            lines.append(
                "Blueprints: "
                + ", ".join(
                    f"{escape(p.name)} {escape(p.current_version)} -> {escape(p.target_version)}"
                    for p in session.plugins
                )
            )
        if report.installed:
            lines.append(f"Dependencies installed with {escape(session.package_manager)}")
        elif session.skip_dependency_install:
            lines.append(f"Run '{escape(session.package_manager)} install' once the project is ready")

        if not report.has_conflicts:
            lines.append("[green]Upgraded successfully.[/green]")
            self.console.print(Panel("\n".join(lines), title="Success", border_style="green"))
            return

        lines.append("[yellow]Please fix conflicts listed below and commit![/yellow]")
        table = Table(show_header=True, header_style="bold yellow")
        table.add_column("Conflicted file")
        for path in report.conflicted_files:
            table.add_row(escape(path))
        self.console.print(
            Panel(Group("\n".join(lines), table), title="Merge conflicts", border_style="yellow")
        )

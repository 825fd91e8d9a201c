"""Regraft CLI application entry point.

Built with `Typer <https://typer.tiangolo.com/>`_ and
`Rich <https://rich.readthedocs.io/>`_.
"""

from __future__ import annotations

import logging
import shlex
import tomllib
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from regraft.cli.display import StatusDisplay
from regraft.cli.errors import ConfigError, error_handler
from regraft.cli.init_cmd import has_project_metadata, run_init
from regraft.cli.logging_setup import setup_logging
from regraft.config import RegraftConfig, load_config
from regraft.upgrade.orchestrator import UpgradeOptions, UpgradeSessionOrchestrator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="regraft",
    help="Regraft – upgrade a generated application while keeping your changes.",
    add_completion=False,
    no_args_is_help=True,
)

_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Version callback
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from regraft import __version__

        _console.print(f"regraft {__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Main callback (global options)
# ---------------------------------------------------------------------------


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) output.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration TOML file.",
    ),
) -> None:
    """Global options for Regraft CLI."""
    setup_logging("DEBUG" if verbose else "INFO", console=_console)
    ctx.obj = {"verbose": verbose, "config_path": config}


def _load_config(ctx: typer.Context, project_dir: Path) -> RegraftConfig:
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return load_config(config_path, project_dir)
    except (ValidationError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# ---------------------------------------------------------------------------
# Init command
# ---------------------------------------------------------------------------


@app.command()
def init(
    path: Optional[Path] = typer.Argument(
        None,
        help="Project directory. Defaults to current directory.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing configuration file.",
    ),
) -> None:
    """Write a default ``.regraft/config.toml`` into a project."""
    with error_handler(_console):
        config_path = run_init(path, force=force)
        project_dir = config_path.parent.parent
        if not has_project_metadata(project_dir):
            logger.warning("No generator metadata found in %s", project_dir)
        _console.print(f"[green]Wrote configuration to {config_path}[/green]")
        # An untracked file would make the next upgrade refuse the dirty tree.
        _console.print("Commit it before running [bold]regraft upgrade[/bold].")


# ---------------------------------------------------------------------------
# Upgrade command
# ---------------------------------------------------------------------------


@app.command()
def upgrade(
    ctx: typer.Context,
    path: Optional[Path] = typer.Argument(
        None,
        help="Project directory. Defaults to current directory.",
    ),
    target_version: Optional[str] = typer.Option(
        None,
        "--target-version",
        help="Upgrade to a specific version instead of the latest. "
        "Use 'global' for the globally installed generator.",
    ),
    target_blueprint_versions: Optional[str] = typer.Option(
        None,
        "--target-blueprint-versions",
        help="Upgrade to specific blueprint versions instead of the latest, "
        "e.g. foo@0.0.1,bar@1.0.2",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Regenerate even when no newer version is available.",
    ),
    skip_install: bool = typer.Option(
        False,
        "--skip-install",
        help="Do not install dependencies after merging.",
    ),
    silent: bool = typer.Option(
        False,
        "--silent",
        "-s",
        help="Hide the output of the generation process.",
    ),
    regenerate_executable: Optional[str] = typer.Option(
        None,
        "--regenerate-executable",
        help="Command used to regenerate the application instead of the generator.",
    ),
) -> None:
    """Upgrade the application to a newer generator version.

    The project is regenerated on an isolation branch at its current and
    target versions, and the difference is merged into the current branch.
    Conflicts are listed for manual resolution.

    Example::

        regraft upgrade
        regraft upgrade --target-version 8.1.0
        regraft upgrade --target-blueprint-versions generator-jhipster-vuejs@2.0.0
    """
    with error_handler(_console):
        project_dir = (path or Path.cwd()).resolve()
        if not project_dir.is_dir():
            raise ConfigError(f"Not a directory: {project_dir}")

        config = _load_config(ctx, project_dir)
        if regenerate_executable:
            config = config.model_copy(
                update={"regenerate_executable": shlex.split(regenerate_executable)}
            )

        verbose = (ctx.obj or {}).get("verbose", False)
        level = "DEBUG" if verbose else ("WARNING" if silent else config.log_level)
        setup_logging(level, config.log_file, console=_console)

        options = UpgradeOptions(
            target_version=target_version,
            target_plugin_versions=target_blueprint_versions,
            force=force,
            skip_install=skip_install,
            silent=silent,
        )
        logger.info("Upgrading %s", project_dir)
        report = UpgradeSessionOrchestrator(project_dir, config, options).run()

        if not silent or report.has_conflicts:
            StatusDisplay(_console).report(report)

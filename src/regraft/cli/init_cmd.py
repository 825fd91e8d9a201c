"""Regraft ``init`` command.

Writes ``.regraft/config.toml`` into a generated project so its regraft
settings can be edited and committed alongside the code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from regraft.cli.errors import CLIError
from regraft.config import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    RegraftConfig,
    default_config_toml,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def config_file_path(project_dir: Path) -> Path:
    """Location of the project configuration file."""
    return project_dir / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE


def has_project_metadata(project_dir: Path) -> bool:
    """Return True if *project_dir* holds the generator's metadata file."""
    return (project_dir / RegraftConfig.model_fields["metadata_file"].default).is_file()


# ---------------------------------------------------------------------------
# Command implementation (called from app.py)
# ---------------------------------------------------------------------------


def run_init(path: Optional[Path] = None, *, force: bool = False) -> Path:
    """Write the default configuration into a project.

    Parameters
    ----------
    path:
        Project directory.  Defaults to the current working directory.
    force:
        Overwrite an existing configuration file.

    Returns
    -------
    Path
        The configuration file that was written.

    Raises
    ------
    CLIError
        If the directory is unusable or a configuration exists and *force*
        is not set.
    """
    project_dir = (path or Path.cwd()).resolve()
    if not project_dir.exists():
        raise CLIError(f"Directory does not exist: {project_dir}")
    if not project_dir.is_dir():
        raise CLIError(f"Not a directory: {project_dir}")

    config_path = config_file_path(project_dir)
    if config_path.exists() and not force:
        raise CLIError(f"Configuration already exists: {config_path}\nUse --force to overwrite.")

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(default_config_toml(), encoding="utf-8")
    return config_path

"""Regraft configuration management.

Loads configuration from TOML files with environment variable overrides
(``REGRAFT_`` prefix).  Uses :mod:`tomllib` on Python 3.11+.

The defaults describe a JHipster application: the generator package, its
executable, the ``.yo-rc.json`` metadata file and the npm toolchain.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_DIR = ".regraft"
DEFAULT_CONFIG_FILE = "config.toml"

# ---------------------------------------------------------------------------
# Configuration model
# ---------------------------------------------------------------------------


class FileMigration(BaseModel):
    """Rename applied before the target regeneration.

    Applies when the project's current generator version is lower than
    ``before``.
    """

    source: str
    target: str
    before: str


class RegraftConfig(BaseModel):
    """Application configuration with sensible defaults.

    Scalar fields can be overridden via environment variables with the
    ``REGRAFT_`` prefix, for example ``REGRAFT_ISOLATION_BRANCH=upgrade``.
    List fields take a whitespace-separated value.
    """

    project_dir: Path = Field(default_factory=lambda: Path.cwd())

    # Generator
    generator_package: str = "generator-jhipster"
    generator_executable: str = "jhipster"
    legacy_frontend: list[str] = Field(default_factory=lambda: ["yo", "jhipster"])
    first_cli_version: str = "4.5.1"
    regenerate_executable: Optional[list[str]] = None
    entity_migration_range: str = ">=7.0.0,<8.0.0"
    skip_checks_versions: list[str] = Field(default_factory=lambda: ["7.9.3"])

    # Project layout
    metadata_file: str = ".yo-rc.json"
    metadata_key: str = "generator-jhipster"
    dependency_manifest: str = "package.json"
    dependency_cache: str = "node_modules"
    always_retained: list[str] = Field(
        default_factory=lambda: [".jhipster", ".git", ".idea", ".mvn", DEFAULT_CONFIG_DIR]
    )
    non_reproducible_artifacts: list[str] = Field(
        default_factory=lambda: ["src/main/resources/config/tls/keystore.p12"]
    )
    migrations: list[FileMigration] = Field(default_factory=list)

    # Version control
    isolation_branch: str = "jhipster_upgrade"
    unrelated_histories_git_version: str = "2.9.0"

    # Toolchain
    installer: str = "npm"
    runtime_executable: str = "node"
    runtime_requirement: str = ">=18.13"
    command_timeout: Optional[float] = None

    # Registry
    registry_url: str = "https://registry.npmjs.org"
    registry_timeout: float = 30.0
    lookup_workers: int = Field(default=4, ge=1)

    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = {"extra": "ignore"}


_LIST_FIELDS = {
    "legacy_frontend",
    "regenerate_executable",
    "skip_checks_versions",
    "always_retained",
    "non_reproducible_artifacts",
}

# ---------------------------------------------------------------------------
# Loader helpers
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: dict) -> dict:
    """Apply REGRAFT_ environment variable overrides to *data*."""
    prefix = "REGRAFT_"
    field_names = set(RegraftConfig.model_fields.keys()) - {"migrations"}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            field = key[len(prefix):].lower()
            if field in field_names:
                data[field] = value.split() if field in _LIST_FIELDS else value
    return data


def load_config(config_path: Path | None = None, project_dir: Path | None = None) -> RegraftConfig:
    """Load configuration from a TOML file with env-var overrides.

    Parameters
    ----------
    config_path:
        Explicit path to a TOML file.  When *None*, looks for
        ``<project_dir>/.regraft/config.toml``.
    project_dir:
        Project root directory.  Defaults to :func:`Path.cwd`.

    Returns
    -------
    RegraftConfig
        Parsed and validated configuration.
    """
    project = project_dir or Path.cwd()
    path = config_path or (project / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE)

    data: dict = {}
    if path.exists():
        with open(path, "rb") as fh:
            data = tomllib.load(fh)

    # Flatten nested TOML sections; arrays of tables stay as lists
    flat: dict = {}
    for k, v in data.items():
        if isinstance(v, dict):
            flat.update(v)
        else:
            flat[k] = v

    # Always set project_dir from argument / cwd
    flat["project_dir"] = str(project)

    flat = _apply_env_overrides(flat)
    return RegraftConfig(**flat)


def default_config_toml() -> str:
    """Return default configuration as a TOML string."""
    return """\
# Regraft configuration

[generator]
generator_package = "generator-jhipster"
generator_executable = "jhipster"
# regenerate_executable = ["./node_modules/.bin/jhipster"]

[project]
metadata_file = ".yo-rc.json"
dependency_manifest = "package.json"
isolation_branch = "jhipster_upgrade"

[toolchain]
installer = "npm"
runtime_requirement = ">=18.13"

[general]
log_level = "INFO"

# [[migrations]]
# source = "src/main/webapp/i18n/en"
# target = "src/main/webapp/i18n/en-us"
# before = "7.0.0"
"""

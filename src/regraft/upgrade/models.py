"""Data models threaded through an upgrade session.

Versions are kept as strings as they appear in project metadata and the
registry; comparisons go through :func:`parse_version`, which follows
semantic-version precedence (pre-releases sort below the release, build
metadata is ignored).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import semver
from pydantic import BaseModel, ConfigDict, Field, field_validator

from regraft.upgrade.exceptions import ConfigurationError

GLOBAL_VERSION = "global"
"""Sentinel target meaning "use the globally installed generator"."""

LATEST_VERSION = "latest"
"""Sentinel target meaning "look up the latest published version"."""


# ---------------------------------------------------------------------------
# Version helpers
# ---------------------------------------------------------------------------


def parse_version(raw: str) -> semver.Version:
    """Parse *raw* into a comparable semantic version.

    Raises:
        ConfigurationError: If *raw* is not a valid semantic version.
    """
    try:
        return semver.Version.parse(raw.strip())
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid version '{raw}'") from exc


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as *left* sorts before, equal to or after *right*."""
    return parse_version(left).compare(parse_version(right))


def is_newer(candidate: str, current: str) -> bool:
    """Return True if *candidate* is strictly newer than *current*."""
    return compare_versions(candidate, current) > 0


def satisfies(raw: str, requirement: str) -> bool:
    """Return True if *raw* meets every comma-separated clause of *requirement*.

    Clauses use semver comparison operators, e.g. ``">=7.0.0,<8.0.0"``.
    An empty requirement matches everything.
    """
    version = parse_version(raw)
    clauses = [c.strip() for c in requirement.split(",") if c.strip()]
    try:
        return all(version.match(clause) for clause in clauses)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid version requirement '{requirement}'") from exc


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------


class Plugin(BaseModel):
    """A blueprint package declared by the project.

    ``target_version`` stays :data:`LATEST_VERSION` until the resolver
    fills it in from a pin or a registry lookup.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    name: str = Field(..., min_length=1, description="Registry package name")
    current_version: str = Field(..., description="Version the project was generated with")
    target_version: str = Field(default=LATEST_VERSION, description="Version to upgrade to")
    pinned: bool = Field(default=False, description="Target supplied explicitly by the user")

    @field_validator("current_version")
    @classmethod
    def _check_current_version(cls, value: str) -> str:
        if not semver.Version.is_valid(value.strip()):
            raise ValueError(f"invalid version '{value}'")
        return value

    @property
    def resolved(self) -> bool:
        return self.target_version != LATEST_VERSION

    @property
    def has_update(self) -> bool:
        """Whether the resolved target is strictly newer than the current version."""
        return self.resolved and is_newer(self.target_version, self.current_version)


def describe_plugins(plugins: list[Plugin], *, target: bool) -> str:
    """Build the plugin suffix used in log lines and commit messages.

    Returns an empty string when there are no plugins, otherwise
    ``" and foo 1.0.0, bar 2.0.0"`` with either the current or target
    versions.
    """
    if not plugins:
        return ""
    parts = [
        f"{p.name} {p.target_version if target else p.current_version}"
        for p in sorted(plugins, key=lambda p: p.name)
    ]
    return " and " + ", ".join(parts)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


class BranchState(str, Enum):
    """Position of the repository in the upgrade state machine."""

    NO_REPO = "no_repo"
    REPO_CLEAN = "repo_clean"
    ISOLATION_ESTABLISHED = "isolation_established"
    ON_ISOLATION_BRANCH = "on_isolation_branch"
    ON_SOURCE_BRANCH = "on_source_branch"
    MERGED_CLEAN = "merged_clean"
    MERGED_CONFLICTED = "merged_conflicted"


@dataclass
class UpgradeSession:
    """Mutable state filled in by successive orchestrator phases.

    Attributes:
        source_branch_name: Branch the user was on when the upgrade started.
        current_generator_version: Version recorded in project metadata.
        target_generator_version: Concrete version to regenerate with.
        plugins: Declared plugins with their resolved targets.
        force_regeneration: Bypass the "no update available" check.
        skip_dependency_install: Skip the final dependency install.
        using_global_install: Target run uses the globally installed generator.
        package_manager: Package manager named in project metadata.
        isolation_created: The isolation branch was created by this session.
        conflicted_files: Files left with unresolved conflicts after merge-back.
        completed_phases: Names of phases that finished, in order.
        failed_phase: Name of the phase that raised, if any.
    """

    source_branch_name: str = ""
    current_generator_version: str = ""
    target_generator_version: str = ""
    plugins: list[Plugin] = field(default_factory=list)
    force_regeneration: bool = False
    skip_dependency_install: bool = False
    using_global_install: bool = False
    package_manager: str = "npm"
    isolation_created: bool = False
    conflicted_files: list[str] = field(default_factory=list)
    completed_phases: list[str] = field(default_factory=list)
    failed_phase: Optional[str] = None

    @property
    def target_label(self) -> str:
        """Target version as shown to the user (``global 8.1.0`` for global runs)."""
        if self.using_global_install:
            return f"{GLOBAL_VERSION} {self.target_generator_version}"
        return self.target_generator_version


@dataclass(frozen=True)
class RegenerationRequest:
    """Input for a single regeneration run.

    Attributes:
        version: Generator version to regenerate with.
        plugin_info: Plugin suffix for messages (see :func:`describe_plugins`).
        is_target_run: True for the target-version run, False for the baseline.
        origin_version: Version the project was originally generated with.
        use_global: Regenerate with the globally installed generator.
    """

    version: str
    plugin_info: str = ""
    is_target_run: bool = False
    origin_version: str = ""
    use_global: bool = False

    @property
    def label(self) -> str:
        prefix = f"{GLOBAL_VERSION} " if self.use_global else ""
        return f"{prefix}{self.version}{self.plugin_info}"


@dataclass
class MergeResult:
    """Outcome of merging the isolation branch into the source branch."""

    branch: str
    conflicted_files: list[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicted_files)

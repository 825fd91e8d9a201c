"""Environment preconditions: git and a compatible JavaScript runtime."""

from __future__ import annotations

import logging
import re

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import CommandFailedError, UpgradeEnvironmentError
from regraft.upgrade.runner import ProcessRunner

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+\.\d+\.\d+)")


def _reported_version(runner: ProcessRunner, executable: str) -> str:
    try:
        result = runner.run([executable, "--version"])
    except CommandFailedError as exc:
        raise UpgradeEnvironmentError(
            f"{executable} is not available: {exc.message}"
        ) from exc
    match = _VERSION_RE.search(result.stdout)
    if match is None:
        raise UpgradeEnvironmentError(
            f"Unable to parse the version reported by '{executable} --version': {result.stdout.strip()!r}"
        )
    return match.group(1)


def check_git(runner: ProcessRunner) -> str:
    """Verify git is installed and return its version.

    Raises:
        UpgradeEnvironmentError: If git cannot be run.
    """
    try:
        version = _reported_version(runner, "git")
    except UpgradeEnvironmentError as exc:
        raise UpgradeEnvironmentError(
            "git is not found on your computer. Install git: https://git-scm.com/"
        ) from exc
    logger.debug("git %s detected", version)
    return version


def check_runtime(runner: ProcessRunner, config: RegraftConfig) -> str | None:
    """Verify the runtime satisfies ``config.runtime_requirement``.

    Returns:
        The detected runtime version, or None when no requirement is set.

    Raises:
        UpgradeEnvironmentError: If the runtime is missing or too old.
    """
    requirement = config.runtime_requirement.strip()
    if not requirement:
        return None

    try:
        specifier = SpecifierSet(requirement)
    except InvalidSpecifier as exc:
        raise UpgradeEnvironmentError(f"Invalid runtime requirement '{requirement}'") from exc

    executable = config.runtime_executable
    version = _reported_version(runner, executable)
    try:
        compatible = Version(version) in specifier
    except InvalidVersion as exc:
        raise UpgradeEnvironmentError(f"Invalid {executable} version '{version}'") from exc
    if not compatible:
        raise UpgradeEnvironmentError(
            f"You are running {executable} version {version}. "
            f"Version {requirement} is required; please update {executable}."
        )
    logger.debug("%s %s satisfies %s", executable, version, requirement)
    return version


def check_environment(runner: ProcessRunner, config: RegraftConfig) -> None:
    """Run all environment precondition checks."""
    check_runtime(runner, config)
    check_git(runner)

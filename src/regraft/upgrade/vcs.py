"""Version-control primitives used by the upgrade workflow.

:class:`VersionControl` is the seam the branch lifecycle works against;
:class:`GitClient` implements it on top of the ``git`` executable through a
:class:`~regraft.upgrade.runner.ProcessRunner`.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

from regraft.upgrade.exceptions import CommandFailedError, UpgradeEnvironmentError
from regraft.upgrade.runner import CommandResult, ProcessRunner

_VERSION_RE = re.compile(r"(\d+\.\d+\.\d+)")

STRATEGY_OURS = "ours"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class VersionControl(Protocol):
    """Protocol for the version-control operations the upgrade needs."""

    def is_repository(self) -> bool:
        """Return True if the working directory is inside a repository."""
        ...  # pragma: no cover

    def init(self) -> None:
        ...  # pragma: no cover

    def version(self) -> str:
        """Return the installed tool version as ``X.Y.Z``."""
        ...  # pragma: no cover

    def current_branch(self) -> str:
        ...  # pragma: no cover

    def branch_exists(self, name: str) -> bool:
        ...  # pragma: no cover

    def has_common_ancestor(self, first: str, second: str) -> bool:
        """Return True if the two branches share history."""
        ...  # pragma: no cover

    def checkout(self, branch: str, *, force: bool = False) -> None:
        ...  # pragma: no cover

    def checkout_orphan(self, branch: str) -> None:
        ...  # pragma: no cover

    def add_all(self) -> None:
        ...  # pragma: no cover

    def commit(self, message: str) -> None:
        """Commit all changes, allowing an empty commit."""
        ...  # pragma: no cover

    def merge(
        self,
        branch: str,
        *,
        strategy: Optional[str] = None,
        allow_unrelated_histories: bool = False,
        check: bool = True,
    ) -> CommandResult:
        ...  # pragma: no cover

    def conflicted_files(self, *paths: str) -> list[str]:
        """Return files with unresolved conflicts, optionally limited to *paths*."""
        ...  # pragma: no cover

    def status(self) -> str:
        """Return machine-readable status; empty when the tree is clean."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Git implementation
# ---------------------------------------------------------------------------


class GitClient:
    """Git implementation of :class:`VersionControl`.

    Args:
        runner: Runner bound to the project directory.
    """

    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    def _git(self, *args: str, check: bool = True) -> CommandResult:
        return self._runner.run(["git", *args], check=check)

    def is_repository(self) -> bool:
        result = self._git("rev-parse", "-q", "--is-inside-work-tree", check=False)
        return result.ok and result.stdout.strip() == "true"

    def init(self) -> None:
        self._git("init", "-q")

    def version(self) -> str:
        result = self._git("--version")
        match = _VERSION_RE.search(result.stdout)
        if match is None:
            raise UpgradeEnvironmentError(
                f"Unable to parse the version reported by 'git --version': {result.stdout.strip()!r}"
            )
        return match.group(1)

    def current_branch(self) -> str:
        return self._git("rev-parse", "-q", "--abbrev-ref", "HEAD").stdout.strip()

    def branch_exists(self, name: str) -> bool:
        return self._git("rev-parse", "-q", "--verify", name, check=False).ok

    def has_common_ancestor(self, first: str, second: str) -> bool:
        result = self._git("merge-base", first, second, check=False)
        if result.ok:
            return True
        # merge-base exits 1 when there is no common ancestor.
        if result.exit_code == 1:
            return False
        raise CommandFailedError(result.command, result.exit_code, result.stdout, result.stderr)

    def checkout(self, branch: str, *, force: bool = False) -> None:
        args = ["checkout", "-q"]
        if force:
            args.append("-f")
        self._git(*args, branch)

    def checkout_orphan(self, branch: str) -> None:
        self._git("checkout", "-q", "--orphan", branch)

    def add_all(self) -> None:
        self._git("add", "-A")

    def commit(self, message: str) -> None:
        self._git("commit", "-q", "-m", message, "-a", "--allow-empty", "--no-verify")

    def merge(
        self,
        branch: str,
        *,
        strategy: Optional[str] = None,
        allow_unrelated_histories: bool = False,
        check: bool = True,
    ) -> CommandResult:
        args = ["merge", "-q", "--no-edit"]
        if strategy:
            args.append(f"--strategy={strategy}")
        if allow_unrelated_histories:
            args.append("--allow-unrelated-histories")
        args.append(branch)
        return self._git(*args, check=check)

    def conflicted_files(self, *paths: str) -> list[str]:
        args = ["diff", "--name-only", "--diff-filter=U"]
        if paths:
            args.extend(["--", *paths])
        output = self._git(*args).stdout
        return [line.strip() for line in output.splitlines() if line.strip()]

    def status(self) -> str:
        return self._git("status", "--porcelain").stdout.strip()

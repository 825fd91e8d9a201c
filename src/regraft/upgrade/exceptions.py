"""Custom exceptions for the upgrade workflow.

Every fatal condition raised while upgrading a project derives from
:class:`UpgradeError` and carries the process exit code the CLI uses.
Merge conflicts are not errors; they are reported through
:class:`~regraft.upgrade.models.MergeResult`.
"""

from __future__ import annotations

from typing import Mapping, Sequence

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_COMMAND_FAILED = 1
EXIT_CONFIGURATION = 2
EXIT_ENVIRONMENT = 3
EXIT_DIRTY_TREE = 4
EXIT_NETWORK = 5
EXIT_NO_UPDATE = 6


class UpgradeError(Exception):
    """Base exception for all upgrade errors.

    Attributes:
        message: Human-readable error description.
        phase: Name of the orchestrator phase that raised the error, set by
            :class:`~regraft.upgrade.phases.PhaseExecutor`.
    """

    exit_code: int = EXIT_COMMAND_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.phase: str | None = None


class ConfigurationError(UpgradeError):
    """Raised when no valid project configuration can be found."""

    exit_code = EXIT_CONFIGURATION


class UpgradeEnvironmentError(UpgradeError):
    """Raised when the runtime or git is missing or incompatible."""

    exit_code = EXIT_ENVIRONMENT


class DirtyWorkingTreeError(UpgradeError):
    """Raised when the working tree has uncommitted changes.

    Attributes:
        status: Porcelain status output listing the pending changes.
    """

    exit_code = EXIT_DIRTY_TREE

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(
            "Local changes found. Please commit or stash them before upgrading."
        )


class NetworkError(UpgradeError):
    """Raised when a registry lookup fails.

    Attributes:
        package: Name of the package whose lookup failed.
        reason: Underlying failure description.
    """

    exit_code = EXIT_NETWORK

    def __init__(self, package: str, reason: str) -> None:
        self.package = package
        self.reason = reason
        super().__init__(f"Unable to look up latest version of '{package}': {reason}")


class PluginResolutionError(NetworkError):
    """Raised when one or more plugin lookups fail.

    All lookups run to completion before this is raised, so ``failures``
    lists every plugin that could not be resolved.
    """

    def __init__(self, failures: Mapping[str, str]) -> None:
        self.failures = dict(sorted(failures.items()))
        names = ", ".join(self.failures)
        UpgradeError.__init__(
            self,
            f"Unable to resolve target versions for plugins: {names}\n"
            + "\n".join(f"  {name}: {reason}" for name, reason in self.failures.items()),
        )
        self.package = names
        self.reason = "; ".join(self.failures.values())


class NoUpdateAvailableError(UpgradeError):
    """Raised when neither the generator nor any plugin has a newer version."""

    exit_code = EXIT_NO_UPDATE

    def __init__(self, current_version: str) -> None:
        self.current_version = current_version
        super().__init__(
            "No update available. Application has already been generated "
            f"with the latest version ({current_version})."
        )


class CommandFailedError(UpgradeError):
    """Raised when an external command exits with a non-zero status.

    Attributes:
        command: The argument vector that was executed.
        returncode: The process exit status.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        message: str | None = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            message
            or f"Command '{' '.join(self.command)}' failed with exit code {returncode}"
        )


class RegenerationFailedError(CommandFailedError):
    """Raised when the external regeneration process exits non-zero."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        *,
        captured: bool = True,
    ) -> None:
        message = f"Something went wrong while generating project! Exit code {returncode}"
        if not captured:
            message += " (generator output was streamed to the terminal above)"
        self.captured = captured
        super().__init__(command, returncode, stdout, stderr, message=message)

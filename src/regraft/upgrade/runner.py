"""Synchronous execution of external commands.

Every git, installer and regeneration invocation goes through
:class:`ProcessRunner` so that failures surface uniformly as
:class:`~regraft.upgrade.exceptions.CommandFailedError`.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from regraft.upgrade.exceptions import CommandFailedError

logger = logging.getLogger(__name__)

# Exit status reported when the executable cannot be started at all.
EXIT_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Result of running an external command.

    Attributes:
        command: The argument vector that was executed.
        exit_code: Process exit code (0 = success).
        stdout: Captured standard output (empty when not captured).
        stderr: Captured standard error (empty when not captured).
        duration_ms: Wall-clock duration in milliseconds.
    """

    command: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner:
    """Run external commands in a fixed working directory.

    Args:
        cwd: Directory commands run in.
        timeout: Default timeout in seconds. ``None`` waits indefinitely.
    """

    def __init__(self, cwd: Path, timeout: Optional[float] = None) -> None:
        self.cwd = Path(cwd)
        self.timeout = timeout

    def run(
        self,
        command: Sequence[str],
        *,
        check: bool = True,
        capture_output: bool = True,
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """Execute *command* and return its result.

        Args:
            command: Executable followed by its arguments.
            check: Raise :class:`CommandFailedError` on a non-zero exit.
            capture_output: Capture stdout/stderr instead of inheriting the
                parent's streams.
            timeout: Per-call timeout overriding the runner default.
            env: Extra environment variables layered over ``os.environ``.

        Returns:
            The :class:`CommandResult` of the invocation.

        Raises:
            CommandFailedError: If the command cannot be started, times out,
                or exits non-zero while *check* is set.
        """
        argv = [str(part) for part in command]
        logger.debug("Running: %s (cwd=%s)", " ".join(argv), self.cwd)

        run_env = None
        if env:
            run_env = {**os.environ, **env}

        start = time.monotonic()
        try:
            completed = subprocess.run(
                argv,
                cwd=str(self.cwd),
                capture_output=capture_output,
                encoding="utf-8",
                errors="replace",
                timeout=timeout if timeout is not None else self.timeout,
                env=run_env,
            )
        except FileNotFoundError as exc:
            raise CommandFailedError(
                argv,
                EXIT_NOT_FOUND,
                stderr=str(exc),
                message=f"Command not found: {argv[0]}",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandFailedError(
                argv,
                -1,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr),
                message=f"Command '{' '.join(argv)}' timed out after {exc.timeout} seconds",
            ) from exc

        result = CommandResult(
            command=argv,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration_ms=(time.monotonic() - start) * 1000.0,
        )
        logger.debug("Exit code %d after %.0fms", result.exit_code, result.duration_ms)

        if check and not result.ok:
            raise CommandFailedError(argv, result.exit_code, result.stdout, result.stderr)
        return result


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value

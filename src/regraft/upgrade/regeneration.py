"""Regeneration of the project with a given generator version.

:class:`RegenerationEngine` runs the external generator with deterministic,
non-interactive flags, strips non-reproducible artifacts and commits the
resulting tree as one snapshot.  :func:`clean_working_tree` reduces the
project to the files the generator does not own, so each regeneration
commit reflects framework output only.
"""

from __future__ import annotations

import fnmatch
import logging
import shutil
from pathlib import Path

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import RegenerationFailedError
from regraft.upgrade.models import RegenerationRequest, compare_versions, satisfies
from regraft.upgrade.runner import ProcessRunner
from regraft.upgrade.vcs import VersionControl

logger = logging.getLogger(__name__)

IGNORE_FILE = ".gitignore"
VERSION_ENV_VAR = "REGRAFT_GENERATOR_VERSION"

# Always passed so regeneration never prompts and never stops on template errors.
BASE_FLAGS = ["--force", "--skip-install", "--skip-git", "--ignore-errors", "--no-insight"]
ENTITIES_FLAG = "--with-entities"
SKIP_CHECKS_FLAG = "--skip-checks"


# ---------------------------------------------------------------------------
# Working tree cleanup
# ---------------------------------------------------------------------------


def read_ignore_patterns(project_dir: Path) -> list[str]:
    """Return the patterns of the project's ignore file.

    Comments, blank lines and negations are skipped; leading and trailing
    slashes are stripped so patterns compare against top-level entry names.
    """
    path = project_dir / IGNORE_FILE
    if not path.is_file():
        return []
    patterns: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        line = line.strip("/")
        if line:
            patterns.append(line)
    return patterns


def retained_entries(project_dir: Path, config: RegraftConfig) -> set[str]:
    """Names and patterns of top-level entries that survive a cleanup."""
    # The ignore file itself is kept so a second cleanup sees the same patterns.
    keep = {IGNORE_FILE, config.metadata_file, config.dependency_cache, *config.always_retained}
    keep.update(read_ignore_patterns(project_dir))
    return keep


def _is_retained(name: str, keep: set[str]) -> bool:
    return name in keep or any(fnmatch.fnmatchcase(name, pattern) for pattern in keep)


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    logger.debug("Removing %s", path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def clean_working_tree(project_dir: Path, config: RegraftConfig) -> list[str]:
    """Remove every top-level entry that is not retained.

    Retained entries are the ignore file and its patterns plus project
    metadata, tool state, the dependency cache, the git directory and
    editor/build folders.  Running it twice gives the same result as running it once.

    Returns:
        Sorted names of the removed entries.
    """
    keep = retained_entries(project_dir, config)
    removed: list[str] = []
    for entry in sorted(project_dir.iterdir(), key=lambda p: p.name):
        if _is_retained(entry.name, keep):
            continue
        remove_path(entry)
        removed.append(entry.name)
    logger.info("Cleaned up project directory")
    return removed


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class RegenerationEngine:
    """Regenerate the project and commit the result.

    Args:
        project_dir: Root of the generated project.
        config: Regraft configuration.
        runner: Runner bound to *project_dir*.
        vcs: Version control used to commit the regenerated tree.
        capture_output: Capture generator output instead of streaming it.
    """

    def __init__(
        self,
        project_dir: Path,
        config: RegraftConfig,
        runner: ProcessRunner,
        vcs: VersionControl,
        *,
        capture_output: bool = False,
    ) -> None:
        self._project_dir = project_dir
        self._config = config
        self._runner = runner
        self._vcs = vcs
        self._capture = capture_output

    def clean_working_tree(self) -> list[str]:
        return clean_working_tree(self._project_dir, self._config)

    def generator_command(self, request: RegenerationRequest) -> list[str]:
        """Select how the generator is invoked for *request*.

        A configured custom executable wins.  Global runs drop the local
        dependency cache and use the executable on ``PATH``.  Versions that
        ship a dedicated executable use the project-local one (or
        ``npm exec``); older versions go through the legacy front-end.
        """
        config = self._config
        if config.regenerate_executable:
            return list(config.regenerate_executable)

        if request.use_global:
            remove_path(self._project_dir / config.dependency_cache)
            return [config.generator_executable]

        if compare_versions(request.version, config.first_cli_version) >= 0:
            local = self._project_dir / config.dependency_cache / ".bin" / config.generator_executable
            if local.exists():
                return [str(local)]
            return [config.installer, "exec", "--no", config.generator_executable, "--"]

        return list(config.legacy_frontend)

    def generator_flags(self, request: RegenerationRequest) -> list[str]:
        """Deterministic, non-interactive flags for *request*."""
        flags: list[str] = []
        if request.origin_version:
            if satisfies(request.origin_version, self._config.entity_migration_range):
                flags.append(ENTITIES_FLAG)
        flags.extend(BASE_FLAGS)
        if not request.is_target_run and request.origin_version in self._config.skip_checks_versions:
            flags.append(SKIP_CHECKS_FLAG)
        return flags

    def regenerate(self, request: RegenerationRequest) -> None:
        """Run the generator for *request* and commit the resulting tree.

        Raises:
            RegenerationFailedError: If the generator exits non-zero.
            CommandFailedError: If staging or committing fails.
        """
        logger.info("Regenerating application with %s...", request.label)
        command = self.generator_command(request) + self.generator_flags(request)
        result = self._runner.run(
            command,
            check=False,
            capture_output=self._capture,
            env={VERSION_ENV_VAR: request.version},
        )
        if not result.ok:
            raise RegenerationFailedError(
                result.command,
                result.exit_code,
                result.stdout,
                result.stderr,
                captured=self._capture,
            )
        logger.info("Successfully regenerated application with %s", request.label)

        self.remove_non_reproducible_artifacts()

        message = f"Generated with {self._config.generator_package} {request.label}"
        self._vcs.add_all()
        self._vcs.commit(message)
        logger.info('Committed with message "%s"', message)

    def remove_non_reproducible_artifacts(self) -> None:
        for relative in self._config.non_reproducible_artifacts:
            remove_path(self._project_dir / relative)

"""Package installation through the project's package manager."""

from __future__ import annotations

import logging
from pathlib import Path

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import CommandFailedError
from regraft.upgrade.regeneration import remove_path
from regraft.upgrade.runner import ProcessRunner

logger = logging.getLogger(__name__)


class PackageInstaller:
    """Install the generator, its plugins and the project dependencies.

    Args:
        project_dir: Root of the generated project.
        config: Regraft configuration.
        runner: Runner bound to *project_dir*.
        capture_output: Capture installer output instead of streaming it.
    """

    def __init__(
        self,
        project_dir: Path,
        config: RegraftConfig,
        runner: ProcessRunner,
        *,
        capture_output: bool = True,
    ) -> None:
        self._project_dir = project_dir
        self._config = config
        self._runner = runner
        self._capture = capture_output

    def install_locally(self, package: str, version: str) -> None:
        """Install ``package@version`` as a dev dependency without a lock file.

        Raises:
            CommandFailedError: If the installer exits non-zero.
        """
        logger.debug("Installing %s %s locally", package, version)
        command = [
            self._config.installer,
            "install",
            f"{package}@{version}",
            "--save-dev",
            "--no-package-lock",
            "--ignore-scripts",
            "--force",
        ]
        try:
            self._runner.run(command, capture_output=self._capture)
        except CommandFailedError as exc:
            raise CommandFailedError(
                exc.command,
                exc.returncode,
                exc.stdout,
                exc.stderr,
                message=f"Something went wrong while installing {package}! {exc.stdout} {exc.stderr}".rstrip(),
            ) from exc
        logger.info("Installed %s@%s", package, version)

    def install_dependencies(self, package_manager: str) -> None:
        """Reinstall all project dependencies from a clean dependency cache.

        Raises:
            CommandFailedError: If the install exits non-zero.
        """
        logger.info("Installing dependencies, please wait...")
        remove_path(self._project_dir / self._config.dependency_cache)
        command = [package_manager, "install"]
        try:
            self._runner.run(command, capture_output=self._capture)
        except CommandFailedError as exc:
            raise CommandFailedError(
                exc.command,
                exc.returncode,
                exc.stdout,
                exc.stderr,
                message=f"{' '.join(command)} failed.",
            ) from exc
        logger.info("Dependencies installed")

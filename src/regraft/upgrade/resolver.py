"""Version resolution for the generator and its blueprint plugins.

Resolution is read-only: it consults project metadata, explicit user
input and the package registry, and never touches the working tree.
Plugin lookups fan out over a thread pool and are joined before any
result is used.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import (
    CommandFailedError,
    ConfigurationError,
    NetworkError,
    NoUpdateAvailableError,
    PluginResolutionError,
    UpgradeEnvironmentError,
)
from regraft.upgrade.metadata import ProjectMetadata, load_project_metadata
from regraft.upgrade.models import (
    GLOBAL_VERSION,
    LATEST_VERSION,
    Plugin,
    is_newer,
    parse_version,
)
from regraft.upgrade.registry import VersionLookup
from regraft.upgrade.runner import ProcessRunner

logger = logging.getLogger(__name__)

_SEMVER_RE = re.compile(r"\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.-]+)?")


@dataclass(frozen=True)
class ResolvedTarget:
    """A concrete target version.

    Attributes:
        version: Version to regenerate with.
        using_global: The version is that of the globally installed generator.
    """

    version: str
    using_global: bool = False


# ---------------------------------------------------------------------------
# Plugin pins
# ---------------------------------------------------------------------------


def parse_plugin_pins(raw: Optional[str | Iterable[str]]) -> dict[str, str]:
    """Parse ``name@version`` pairs into a name-to-version mapping.

    Accepts a comma-separated string or an iterable of such strings.
    Scoped names (``@scope/name@1.0.0``) are supported.  A pair without a
    version, or with ``latest``, maps to :data:`LATEST_VERSION`.

    Example::

        >>> parse_plugin_pins("foo@0.2.0,@acme/bar")
        {'foo': '0.2.0', '@acme/bar': 'latest'}
    """
    if not raw:
        return {}
    chunks = [raw] if isinstance(raw, str) else list(raw)
    pins: dict[str, str] = {}
    for chunk in chunks:
        for item in chunk.split(","):
            item = item.strip()
            if not item:
                continue
            at = item.rfind("@")
            if at <= 0:
                name, version = item, LATEST_VERSION
            else:
                name, version = item[:at], item[at + 1:] or LATEST_VERSION
            pins[name] = version
    return pins


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class VersionResolver:
    """Resolve current and target versions for an upgrade.

    Args:
        project_dir: Root of the generated project.
        config: Regraft configuration.
        registry: Registry client used for "latest" lookups.
        runner: Runner used to query the globally installed generator.
        global_version_probe: Override for the global version query.
    """

    def __init__(
        self,
        project_dir: Path,
        config: RegraftConfig,
        registry: VersionLookup,
        runner: Optional[ProcessRunner] = None,
        global_version_probe: Optional[Callable[[], str]] = None,
    ) -> None:
        self._project_dir = project_dir
        self._config = config
        self._registry = registry
        self._runner = runner or ProcessRunner(project_dir, timeout=config.command_timeout)
        self._global_probe = global_version_probe or self._probe_global_version
        self._metadata: Optional[ProjectMetadata] = None

    @property
    def metadata(self) -> ProjectMetadata:
        """Project metadata, loaded on first access."""
        if self._metadata is None:
            self._metadata = load_project_metadata(self._project_dir, self._config)
        return self._metadata

    def resolve_current(self) -> str:
        """Return the generator version recorded in project metadata.

        Raises:
            ConfigurationError: If there is no valid project configuration or
                the recorded version cannot be parsed.
        """
        version = self.metadata.generator_version
        parse_version(version)
        return version

    def resolve_target(self, explicit: Optional[str] = None) -> ResolvedTarget:
        """Resolve the generator version to upgrade to.

        An explicit version is used verbatim; :data:`GLOBAL_VERSION` maps
        to the globally installed generator's version.  Without an explicit
        version (or with :data:`LATEST_VERSION`) the registry is queried.

        Raises:
            NetworkError: If the registry lookup fails.
            ConfigurationError: If the explicit version is not valid.
        """
        if explicit and explicit != LATEST_VERSION:
            if explicit == GLOBAL_VERSION:
                version = self._global_probe()
                logger.warning("Upgrading to the globally installed version: %s", version)
                return ResolvedTarget(version=version, using_global=True)
            parse_version(explicit)
            logger.warning("Upgrading to the target version: %s", explicit)
            return ResolvedTarget(version=explicit)

        package = self._config.generator_package
        logger.info("Looking for latest %s version...", package)
        version = self._registry.latest_version(package)
        parse_version(version)
        return ResolvedTarget(version=version)

    def resolve_plugins(
        self,
        declared: Iterable[Plugin],
        pins: Optional[dict[str, str]] = None,
    ) -> list[Plugin]:
        """Resolve target versions for all declared plugins.

        Pinned plugins skip the registry.  The remaining lookups run
        concurrently; every lookup completes before failures are reported.

        Returns:
            Plugins with ``target_version`` filled in, sorted by name.

        Raises:
            PluginResolutionError: If one or more lookups failed.
        """
        pins = pins or {}
        resolved: dict[str, Plugin] = {}
        pending: list[Plugin] = []

        for plugin in declared:
            pin = pins.get(plugin.name)
            if pin and pin != LATEST_VERSION:
                parse_version(pin)
                logger.warning("Blueprint %s will be upgraded to target version: %s", plugin.name, pin)
                resolved[plugin.name] = plugin.model_copy(update={"target_version": pin, "pinned": True})
            else:
                pending.append(plugin)

        if not resolved and not pending:
            logger.warning("No blueprints detected, skipping check of last blueprint version")
            return []

        failures: dict[str, str] = {}
        if pending:
            logger.info("Checking for new blueprint versions")
            workers = min(self._config.lookup_workers, len(pending))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    pool.submit(self._registry.latest_version, plugin.name): plugin
                    for plugin in pending
                }
                for future in as_completed(futures):
                    plugin = futures[future]
                    try:
                        latest = future.result()
                        parse_version(latest)
                    except NetworkError as exc:
                        failures[plugin.name] = exc.reason
                        continue
                    except ConfigurationError as exc:
                        failures[plugin.name] = exc.message
                        continue
                    resolved[plugin.name] = plugin.model_copy(update={"target_version": latest})

        if failures:
            raise PluginResolutionError(failures)

        plugins = sorted(resolved.values(), key=lambda p: p.name)
        for plugin in plugins:
            if plugin.has_update:
                logger.info("New %s version found: %s", plugin.name, plugin.target_version)
            else:
                logger.info(
                    "Application has already been generated with the latest version of blueprint %s",
                    plugin.name,
                )
        return plugins

    def _probe_global_version(self) -> str:
        executable = self._config.generator_executable
        try:
            result = self._runner.run([executable, "--version"])
        except CommandFailedError as exc:
            raise UpgradeEnvironmentError(
                f"Unable to determine the globally installed {executable} version: {exc.message}"
            ) from exc
        match = _SEMVER_RE.search(result.stdout)
        if match is None:
            raise UpgradeEnvironmentError(
                f"Unable to parse the version reported by '{executable} --version': {result.stdout.strip()!r}"
            )
        return match.group(0)


# ---------------------------------------------------------------------------
# Update policy
# ---------------------------------------------------------------------------


def check_update_available(
    current: str,
    target: str,
    plugins: Iterable[Plugin],
    *,
    force: bool = False,
) -> bool:
    """Apply the "no update available" rule.

    The upgrade proceeds when the generator target is strictly newer than
    the current version, when any plugin target is strictly newer than its
    current version, or when *force* is set.

    Returns:
        True if there is a genuine update, False if proceeding only because
        of *force*.

    Raises:
        NoUpdateAvailableError: If nothing is newer and *force* is not set.
    """
    primary = is_newer(target, current)
    plugin_update = any(p.has_update for p in plugins)

    if primary:
        logger.info("New version found: %s", target)
    if primary or plugin_update:
        return True
    if force:
        logger.warning("Forced re-generation")
        return False
    raise NoUpdateAvailableError(current)

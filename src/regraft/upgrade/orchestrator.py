"""Top-level upgrade workflow.

:class:`UpgradeSessionOrchestrator` sequences version resolution, the
isolation branch baseline, the target regeneration, merge-back and the
conflict report as an ordered list of phases run by
:class:`~regraft.upgrade.phases.PhaseExecutor`.

Working-tree mutations run strictly one after another; only the registry
lookups inside ``resolve_versions`` run concurrently, and they are joined
before any later phase starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from regraft.config import RegraftConfig
from regraft.upgrade.branches import BranchLifecycleManager
from regraft.upgrade.environment import check_environment
from regraft.upgrade.exceptions import UpgradeError
from regraft.upgrade.installer import PackageInstaller
from regraft.upgrade.migrations import apply_migrations
from regraft.upgrade.models import (
    MergeResult,
    RegenerationRequest,
    UpgradeSession,
    describe_plugins,
)
from regraft.upgrade.phases import Phase, PhaseExecutor
from regraft.upgrade.registry import RegistryClient, VersionLookup
from regraft.upgrade.regeneration import RegenerationEngine
from regraft.upgrade.resolver import (
    VersionResolver,
    check_update_available,
    parse_plugin_pins,
)
from regraft.upgrade.runner import ProcessRunner
from regraft.upgrade.vcs import GitClient, VersionControl

logger = logging.getLogger(__name__)

PREPARATION_COMMIT_MESSAGE = "Upgrade preparation."


# ---------------------------------------------------------------------------
# Options and results
# ---------------------------------------------------------------------------


@dataclass
class UpgradeOptions:
    """User-supplied options for one upgrade run.

    Attributes:
        target_version: Explicit version, ``latest`` or ``global``.
        target_plugin_versions: ``name@version`` pairs, comma separated.
        force: Proceed even when no newer version exists.
        skip_install: Skip the final dependency installation.
        silent: Capture generator and installer output.
    """

    target_version: Optional[str] = None
    target_plugin_versions: Optional[str] = None
    force: bool = False
    skip_install: bool = False
    silent: bool = False


@dataclass
class UpgradeReport:
    """Outcome of a completed upgrade."""

    session: UpgradeSession
    merge: Optional[MergeResult] = None
    installed: bool = False
    conflicted_files: list[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicted_files)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class UpgradeSessionOrchestrator:
    """Drive a generated project from its current generator version to a target.

    Args:
        project_dir: Root of the generated project.
        config: Regraft configuration.
        options: Options for this run.
        runner: External process runner (defaults to one bound to *project_dir*).
        vcs: Version control (defaults to :class:`GitClient`).
        registry: Registry client (defaults to :class:`RegistryClient`).
        regenerator: Regeneration engine.
        installer: Package installer.
        environment_check: Precondition check; defaults to
            :func:`~regraft.upgrade.environment.check_environment`.
        global_version_probe: Override for the global generator version query.
    """

    def __init__(
        self,
        project_dir: Path,
        config: RegraftConfig,
        options: UpgradeOptions | None = None,
        *,
        runner: ProcessRunner | None = None,
        vcs: VersionControl | None = None,
        registry: VersionLookup | None = None,
        regenerator: RegenerationEngine | None = None,
        installer: PackageInstaller | None = None,
        environment_check: Callable[[], None] | None = None,
        global_version_probe: Callable[[], str] | None = None,
    ) -> None:
        self._project_dir = project_dir
        self._config = config
        self._options = options or UpgradeOptions()
        capture = self._options.silent

        self._runner = runner or ProcessRunner(project_dir, timeout=config.command_timeout)
        self._vcs = vcs or GitClient(self._runner)
        self._owns_registry = registry is None
        self._registry = registry or RegistryClient(config.registry_url, config.registry_timeout)
        self._resolver = VersionResolver(
            project_dir,
            config,
            self._registry,
            runner=self._runner,
            global_version_probe=global_version_probe,
        )
        self._branches = BranchLifecycleManager(
            self._vcs,
            isolation_branch=config.isolation_branch,
            unrelated_histories_version=config.unrelated_histories_git_version,
        )
        self._regenerator = regenerator or RegenerationEngine(
            project_dir, config, self._runner, self._vcs, capture_output=capture
        )
        self._installer = installer or PackageInstaller(
            project_dir, config, self._runner, capture_output=capture
        )
        self._environment_check = environment_check or (
            lambda: check_environment(self._runner, self._config)
        )
        self._merge: Optional[MergeResult] = None
        self._installed = False

    @property
    def branches(self) -> BranchLifecycleManager:
        return self._branches

    @property
    def resolver(self) -> VersionResolver:
        return self._resolver

    def build_phases(self) -> list[Phase]:
        """Return the upgrade phases in execution order."""
        return [
            Phase("resolve_versions", self._resolve_versions),
            Phase("check_environment", self._check_environment),
            Phase("prepare_repository", self._prepare_repository),
            Phase("detect_source_branch", self._detect_source_branch),
            Phase("establish_baseline", self._establish_baseline),
            Phase("checkout_isolation_branch", self._checkout_isolation_branch),
            Phase("update_dependencies", self._update_dependencies),
            Phase("apply_migrations", self._apply_migrations),
            Phase("regenerate_target", self._regenerate_target),
            Phase("checkout_source_branch", self._checkout_source_branch),
            Phase("merge_back", self._merge_back),
            Phase("check_manifest_conflicts", self._check_manifest_conflicts),
            Phase("install_dependencies", self._install_dependencies),
            Phase("report_conflicts", self._report_conflicts),
        ]

    def run(self) -> UpgradeReport:
        """Run the full upgrade.

        Returns:
            The :class:`UpgradeReport`; conflicts are listed, not raised.

        Raises:
            UpgradeError: On any fatal condition, stamped with the failing phase.
        """
        session = UpgradeSession(
            force_regeneration=self._options.force,
            skip_dependency_install=self._options.skip_install,
        )
        try:
            PhaseExecutor(self.build_phases()).run(session)
        except UpgradeError as exc:
            logger.error("Upgrade failed during phase '%s'", exc.phase)
            raise
        finally:
            if self._owns_registry and isinstance(self._registry, RegistryClient):
                self._registry.close()

        return UpgradeReport(
            session=session,
            merge=self._merge,
            installed=self._installed,
            conflicted_files=list(session.conflicted_files),
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _resolve_versions(self, session: UpgradeSession) -> None:
        resolver = self._resolver
        session.current_generator_version = resolver.resolve_current()
        session.package_manager = resolver.metadata.package_manager

        pins = parse_plugin_pins(self._options.target_plugin_versions)
        declared = resolver.metadata.declared_plugins()
        unknown = sorted(set(pins) - {p.name for p in declared})
        if unknown:
            logger.warning("Ignoring target versions for undeclared blueprints: %s", ", ".join(unknown))
        session.plugins = resolver.resolve_plugins(declared, pins)

        target = resolver.resolve_target(self._options.target_version)
        session.target_generator_version = target.version
        session.using_global_install = target.using_global

        check_update_available(
            session.current_generator_version,
            session.target_generator_version,
            session.plugins,
            force=session.force_regeneration,
        )

    def _check_environment(self, session: UpgradeSession) -> None:
        self._environment_check()

    def _prepare_repository(self, session: UpgradeSession) -> None:
        self._branches.ensure_repository_exists()
        self._branches.assert_no_uncommitted_changes()

    def _detect_source_branch(self, session: UpgradeSession) -> None:
        branch = self._branches.current_branch_name()
        if branch == "HEAD":
            raise UpgradeError("HEAD is detached. Check out a branch before upgrading.")
        if branch == self._branches.isolation_branch:
            raise UpgradeError(
                f"Currently on {branch}. Check out the branch you want to upgrade before upgrading."
            )
        session.source_branch_name = branch
        logger.debug("Source branch is %s", branch)

    def _establish_baseline(self, session: UpgradeSession) -> None:
        session.isolation_created = self._branches.ensure_isolation_branch(
            session.current_generator_version,
            session.source_branch_name,
            regenerate=lambda version: self._regenerate_baseline(session, version),
            clean=self._regenerator.clean_working_tree,
        )

    def _regenerate_baseline(self, session: UpgradeSession, version: str) -> None:
        if not self._config.regenerate_executable:
            self._installer.install_locally(self._config.generator_package, version)
        self._install_plugins(session, target=False)
        request = RegenerationRequest(
            version=version,
            plugin_info=describe_plugins(session.plugins, target=False),
            is_target_run=False,
            origin_version=session.current_generator_version,
        )
        self._regenerator.regenerate(request)

    def _checkout_isolation_branch(self, session: UpgradeSession) -> None:
        self._branches.checkout_isolation()

    def _update_dependencies(self, session: UpgradeSession) -> None:
        if not (session.using_global_install or self._config.regenerate_executable):
            self._installer.install_locally(
                self._config.generator_package, session.target_generator_version
            )
        self._install_plugins(session, target=True)

    def _install_plugins(self, session: UpgradeSession, *, target: bool) -> None:
        if not session.plugins:
            logger.debug("Skipping blueprint installation since no blueprint has been detected")
            return
        for plugin in session.plugins:
            version = plugin.target_version if target else plugin.current_version
            self._installer.install_locally(plugin.name, version)
        logger.info("Done installing blueprints")

    def _apply_migrations(self, session: UpgradeSession) -> None:
        applied = apply_migrations(
            self._project_dir, self._config.migrations, session.current_generator_version
        )
        if applied:
            self._branches.commit_snapshot(PREPARATION_COMMIT_MESSAGE)
            logger.info("Upgrade preparation")

    def _regenerate_target(self, session: UpgradeSession) -> None:
        self._regenerator.clean_working_tree()
        request = RegenerationRequest(
            version=session.target_generator_version,
            plugin_info=describe_plugins(session.plugins, target=True),
            is_target_run=True,
            origin_version=session.current_generator_version,
            use_global=session.using_global_install,
        )
        self._regenerator.regenerate(request)

    def _checkout_source_branch(self, session: UpgradeSession) -> None:
        self._branches.checkout(session.source_branch_name, force=True)

    def _merge_back(self, session: UpgradeSession) -> None:
        self._merge = self._branches.merge_isolation_into_source()
        session.conflicted_files = list(self._merge.conflicted_files)

    def _check_manifest_conflicts(self, session: UpgradeSession) -> None:
        manifest = self._config.dependency_manifest
        if self._branches.conflicted_files(manifest):
            logger.warning(
                "There are conflicts in %s, please fix them and then run %s install",
                manifest,
                session.package_manager,
            )
            session.skip_dependency_install = True

    def _install_dependencies(self, session: UpgradeSession) -> None:
        if session.skip_dependency_install:
            logger.info(
                "Start your development server with: %s start", session.package_manager
            )
            return
        self._installer.install_dependencies(session.package_manager)
        self._installed = True

    def _report_conflicts(self, session: UpgradeSession) -> None:
        session.conflicted_files = self._branches.conflicted_files()
        logger.info("Upgraded successfully.")
        if session.conflicted_files:
            logger.warning(
                "Please fix conflicts listed below and commit!\n%s",
                "\n".join(session.conflicted_files),
            )

"""Shared fixtures and in-memory collaborators for the regraft test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import CommandFailedError, NetworkError
from regraft.upgrade.models import RegenerationRequest
from regraft.upgrade.orchestrator import UpgradeOptions, UpgradeSessionOrchestrator
from regraft.upgrade.runner import CommandResult


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeVersionControl:
    """In-memory stand-in for :class:`~regraft.upgrade.vcs.GitClient`.

    Branches are lists of commit messages.  A branch created with
    ``checkout_orphan`` only "exists" once it has a commit, as in git.
    """

    def __init__(
        self,
        *,
        repository: bool = True,
        branch: str = "main",
        git_version: str = "2.40.0",
    ) -> None:
        self.repository = repository
        self.branches: dict[str, list[str]] = {branch: ["Initial"]} if repository else {}
        self.head = branch
        self.git_version = git_version
        self.dirty = ""
        self.conflicts_on_merge: list[str] = []
        self.active_conflicts: list[str] = []
        self.merges: list[dict[str, Any]] = []
        self.joined: set[frozenset[str]] = set()
        self.calls: list[str] = []

    def is_repository(self) -> bool:
        self.calls.append("is_repository")
        return self.repository

    def init(self) -> None:
        self.calls.append("init")
        self.repository = True
        self.head = "master"
        self.branches.setdefault(self.head, [])

    def version(self) -> str:
        return self.git_version

    def current_branch(self) -> str:
        return self.head

    def branch_exists(self, name: str) -> bool:
        return bool(self.branches.get(name))

    def has_common_ancestor(self, first: str, second: str) -> bool:
        return frozenset((first, second)) in self.joined

    def join(self, first: str, second: str) -> None:
        """Mark two branches as sharing history, as a recorded merge would."""
        self.joined.add(frozenset((first, second)))

    def checkout(self, branch: str, *, force: bool = False) -> None:
        self.calls.append(f"checkout {branch}{' -f' if force else ''}")
        if not self.branches.get(branch):
            raise CommandFailedError(
                ["git", "checkout", "-q", branch],
                1,
                stderr=f"error: pathspec '{branch}' did not match any file(s) known to git",
            )
        self.head = branch

    def checkout_orphan(self, branch: str) -> None:
        self.calls.append(f"checkout --orphan {branch}")
        self.branches[branch] = []
        self.head = branch

    def add_all(self) -> None:
        self.calls.append("add")

    def commit(self, message: str) -> None:
        self.calls.append(f"commit {message}")
        self.branches.setdefault(self.head, []).append(message)

    def merge(
        self,
        branch: str,
        *,
        strategy: Optional[str] = None,
        allow_unrelated_histories: bool = False,
        check: bool = True,
    ) -> CommandResult:
        self.calls.append(f"merge {branch}" + (f" --strategy={strategy}" if strategy else ""))
        self.merges.append(
            {
                "branch": branch,
                "into": self.head,
                "strategy": strategy,
                "allow_unrelated_histories": allow_unrelated_histories,
            }
        )
        exit_code = 0
        if strategy is None and self.conflicts_on_merge:
            self.active_conflicts = list(self.conflicts_on_merge)
            exit_code = 1
        else:
            self.branches[self.head].append(f"Merge branch '{branch}'")
            self.join(self.head, branch)
        result = CommandResult(command=["git", "merge", branch], exit_code=exit_code)
        if check and exit_code:
            raise CommandFailedError(result.command, exit_code)
        return result

    def conflicted_files(self, *paths: str) -> list[str]:
        if paths:
            return [f for f in self.active_conflicts if f in paths]
        return list(self.active_conflicts)

    def status(self) -> str:
        return self.dirty


class FakeRegistry:
    """Registry returning canned versions and recording every lookup."""

    def __init__(self, versions: Optional[dict[str, str]] = None) -> None:
        self.versions = dict(versions or {})
        self.lookups: list[str] = []

    def latest_version(self, package: str) -> str:
        self.lookups.append(package)
        if package not in self.versions:
            raise NetworkError(package, "404 Not Found")
        return self.versions[package]


class FakeRegenerator:
    """Regeneration engine that commits a snapshot without running anything."""

    def __init__(self, vcs: FakeVersionControl, package: str = "generator-jhipster") -> None:
        self.vcs = vcs
        self.package = package
        self.requests: list[RegenerationRequest] = []
        self.cleanups = 0

    def clean_working_tree(self) -> list[str]:
        self.cleanups += 1
        return []

    def regenerate(self, request: RegenerationRequest) -> None:
        self.requests.append(request)
        self.vcs.add_all()
        self.vcs.commit(f"Generated with {self.package} {request.label}")


class FakeInstaller:
    """Installer recording what would have been installed."""

    def __init__(self) -> None:
        self.local_installs: list[tuple[str, str]] = []
        self.dependency_installs: list[str] = []

    def install_locally(self, package: str, version: str) -> None:
        self.local_installs.append((package, version))

    def install_dependencies(self, package_manager: str) -> None:
        self.dependency_installs.append(package_manager)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def write_metadata(
    project_dir: Path,
    version: str = "1.0.0",
    *,
    base_name: str = "store",
    blueprints: Optional[list[dict[str, str]]] = None,
    package_manager: str = "npm",
) -> Path:
    """Write a ``.yo-rc.json`` describing a generated project."""
    section: dict[str, Any] = {
        "jhipsterVersion": version,
        "baseName": base_name,
        "clientPackageManager": package_manager,
    }
    if blueprints is not None:
        section["blueprints"] = blueprints
    path = project_dir / ".yo-rc.json"
    path.write_text(json.dumps({"generator-jhipster": section}, indent=2), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory generated with version 1.0.0."""
    write_metadata(tmp_path)
    return tmp_path


@pytest.fixture
def config(project_dir: Path) -> RegraftConfig:
    return RegraftConfig(project_dir=project_dir)


@pytest.fixture
def fake_vcs() -> FakeVersionControl:
    return FakeVersionControl()


@pytest.fixture
def make_orchestrator(
    project_dir: Path, config: RegraftConfig, fake_vcs: FakeVersionControl
) -> Callable[..., tuple[UpgradeSessionOrchestrator, dict[str, Any]]]:
    """Build an orchestrator wired to in-memory collaborators.

    Returns the orchestrator and a dict of the fakes it uses.
    """

    def _make(
        options: Optional[UpgradeOptions] = None,
        *,
        registry_versions: Optional[dict[str, str]] = None,
        cfg: Optional[RegraftConfig] = None,
    ) -> tuple[UpgradeSessionOrchestrator, dict[str, Any]]:
        fakes: dict[str, Any] = {
            "vcs": fake_vcs,
            "registry": FakeRegistry(registry_versions or {"generator-jhipster": "1.1.0"}),
            "regenerator": FakeRegenerator(fake_vcs),
            "installer": FakeInstaller(),
        }
        orchestrator = UpgradeSessionOrchestrator(
            project_dir,
            cfg or config,
            options,
            vcs=fakes["vcs"],
            registry=fakes["registry"],
            regenerator=fakes["regenerator"],
            installer=fakes["installer"],
            environment_check=lambda: None,
            global_version_probe=lambda: "9.9.9",
        )
        return orchestrator, fakes

    return _make


@pytest.fixture
def metadata_writer() -> Callable[..., Path]:
    """Expose :func:`write_metadata` to test modules."""
    return write_metadata


@pytest.fixture
def vcs_factory() -> Callable[..., FakeVersionControl]:
    return FakeVersionControl

"""Unit tests for regraft.upgrade.regeneration."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import RegenerationFailedError
from regraft.upgrade.models import RegenerationRequest
from regraft.upgrade.regeneration import (
    BASE_FLAGS,
    ENTITIES_FLAG,
    SKIP_CHECKS_FLAG,
    VERSION_ENV_VAR,
    RegenerationEngine,
    clean_working_tree,
    read_ignore_patterns,
)
from regraft.upgrade.runner import CommandResult, ProcessRunner


def _populate(project_dir: Path) -> None:
    (project_dir / ".git").mkdir()
    (project_dir / ".jhipster").mkdir()
    (project_dir / "node_modules" / "pkg").mkdir(parents=True)
    (project_dir / "src" / "main").mkdir(parents=True)
    (project_dir / "src" / "main" / "App.java").write_text("class App {}\n")
    (project_dir / "package.json").write_text("{}\n")
    (project_dir / "README.md").write_text("# store\n")
    (project_dir / "target").mkdir()
    (project_dir / "app.log").write_text("log\n")
    (project_dir / ".gitignore").write_text("# build output\n/target/\n*.log\n!keep.log\n\n")


# ---------------------------------------------------------------------------
# Working tree cleanup
# ---------------------------------------------------------------------------


class TestReadIgnorePatterns:
    def test_skips_comments_and_negations(self, tmp_path: Path) -> None:
        _populate(tmp_path)
        assert read_ignore_patterns(tmp_path) == ["target", "*.log"]

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_ignore_patterns(tmp_path) == []


class TestCleanWorkingTree:
    def test_keeps_only_retained_entries(self, project_dir: Path, config: RegraftConfig) -> None:
        _populate(project_dir)
        removed = clean_working_tree(project_dir, config)

        assert removed == ["README.md", "package.json", "src"]
        remaining = sorted(p.name for p in project_dir.iterdir())
        assert remaining == [
            ".git",
            ".gitignore",
            ".jhipster",
            ".yo-rc.json",
            "app.log",
            "node_modules",
            "target",
        ]

    def test_is_idempotent(self, project_dir: Path, config: RegraftConfig) -> None:
        _populate(project_dir)
        clean_working_tree(project_dir, config)
        first = sorted(p.name for p in project_dir.iterdir())
        assert clean_working_tree(project_dir, config) == []
        assert sorted(p.name for p in project_dir.iterdir()) == first

    def test_configured_retention(self, project_dir: Path) -> None:
        (project_dir / "custom").mkdir()
        (project_dir / "other").mkdir()
        config = RegraftConfig(project_dir=project_dir, always_retained=[".git", "custom"])
        clean_working_tree(project_dir, config)
        assert not (project_dir / "other").exists()
        assert (project_dir / "custom").exists()


# ---------------------------------------------------------------------------
# Command selection and flags
# ---------------------------------------------------------------------------


class TestGeneratorCommand:
    def _engine(self, project_dir: Path, **overrides) -> RegenerationEngine:
        config = RegraftConfig(project_dir=project_dir, **overrides)
        return RegenerationEngine(project_dir, config, MagicMock(), MagicMock())

    def test_custom_executable_wins(self, project_dir: Path) -> None:
        engine = self._engine(project_dir, regenerate_executable=["./regen.sh", "--fast"])
        request = RegenerationRequest(version="8.0.0", use_global=True)
        assert engine.generator_command(request) == ["./regen.sh", "--fast"]

    def test_global_drops_dependency_cache(self, project_dir: Path) -> None:
        (project_dir / "node_modules").mkdir()
        engine = self._engine(project_dir)
        assert engine.generator_command(RegenerationRequest(version="8.0.0", use_global=True)) == ["jhipster"]
        assert not (project_dir / "node_modules").exists()

    def test_local_executable_when_installed(self, project_dir: Path) -> None:
        local = project_dir / "node_modules" / ".bin" / "jhipster"
        local.parent.mkdir(parents=True)
        local.write_text("#!/bin/sh\n")
        engine = self._engine(project_dir)
        assert engine.generator_command(RegenerationRequest(version="7.9.3")) == [str(local)]

    def test_installer_exec_fallback(self, project_dir: Path) -> None:
        engine = self._engine(project_dir)
        assert engine.generator_command(RegenerationRequest(version="4.5.1")) == [
            "npm",
            "exec",
            "--no",
            "jhipster",
            "--",
        ]

    def test_legacy_frontend_for_old_versions(self, project_dir: Path) -> None:
        engine = self._engine(project_dir)
        assert engine.generator_command(RegenerationRequest(version="4.5.0")) == ["yo", "jhipster"]


class TestGeneratorFlags:
    def _flags(self, project_dir: Path, request: RegenerationRequest) -> list[str]:
        config = RegraftConfig(project_dir=project_dir)
        return RegenerationEngine(project_dir, config, MagicMock(), MagicMock()).generator_flags(request)

    def test_base_flags(self, project_dir: Path) -> None:
        flags = self._flags(project_dir, RegenerationRequest(version="6.10.5", origin_version="6.10.5"))
        assert flags == BASE_FLAGS

    def test_entities_flag_for_v7_projects(self, project_dir: Path) -> None:
        flags = self._flags(
            project_dir, RegenerationRequest(version="8.0.0", is_target_run=True, origin_version="7.8.1")
        )
        assert flags[0] == ENTITIES_FLAG
        assert SKIP_CHECKS_FLAG not in flags

    def test_entities_flag_uses_semantic_precedence(self, project_dir: Path) -> None:
        prerelease = self._flags(
            project_dir, RegenerationRequest(version="8.0.0", is_target_run=True, origin_version="7.0.0-beta.1")
        )
        assert ENTITIES_FLAG not in prerelease
        build = self._flags(
            project_dir, RegenerationRequest(version="8.0.0", is_target_run=True, origin_version="7.9.3+build.4")
        )
        assert build[0] == ENTITIES_FLAG

    def test_skip_checks_only_on_baseline(self, project_dir: Path) -> None:
        baseline = self._flags(project_dir, RegenerationRequest(version="7.9.3", origin_version="7.9.3"))
        target = self._flags(
            project_dir, RegenerationRequest(version="8.0.0", is_target_run=True, origin_version="7.9.3")
        )
        assert baseline[-1] == SKIP_CHECKS_FLAG
        assert SKIP_CHECKS_FLAG not in target

    def test_non_interactive_flags_always_present(self, project_dir: Path) -> None:
        flags = self._flags(project_dir, RegenerationRequest(version="8.0.0"))
        for flag in ("--force", "--skip-install", "--skip-git", "--no-insight"):
            assert flag in flags


# ---------------------------------------------------------------------------
# Regeneration
# ---------------------------------------------------------------------------


class TestRegenerate:
    def test_runs_generator_and_commits(
        self, project_dir: Path, tmp_path_factory: pytest.TempPathFactory
    ) -> None:
        script = tmp_path_factory.mktemp("scripts") / "regen.py"
        script.write_text(
            "import os, pathlib\n"
            "pathlib.Path('version.txt').write_text(os.environ['" + VERSION_ENV_VAR + "'])\n"
            "tls = pathlib.Path('src/main/resources/config/tls')\n"
            "tls.mkdir(parents=True, exist_ok=True)\n"
            "(tls / 'keystore.p12').write_bytes(os.urandom(16))\n"
        )
        config = RegraftConfig(project_dir=project_dir, regenerate_executable=[sys.executable, str(script)])
        vcs = MagicMock()
        engine = RegenerationEngine(project_dir, config, ProcessRunner(project_dir), vcs, capture_output=True)

        engine.regenerate(RegenerationRequest(version="1.1.0", plugin_info=" and foo 2.0.0"))

        assert (project_dir / "version.txt").read_text() == "1.1.0"
        assert not (project_dir / "src/main/resources/config/tls/keystore.p12").exists()
        vcs.add_all.assert_called_once()
        vcs.commit.assert_called_once_with("Generated with generator-jhipster 1.1.0 and foo 2.0.0")

    def test_failure_raises_and_does_not_commit(self, project_dir: Path) -> None:
        runner = MagicMock()
        runner.run.return_value = CommandResult(command=["jhipster"], exit_code=2, stderr="boom")
        vcs = MagicMock()
        config = RegraftConfig(project_dir=project_dir)
        engine = RegenerationEngine(project_dir, config, runner, vcs)

        with pytest.raises(RegenerationFailedError, match="Exit code 2") as exc_info:
            engine.regenerate(RegenerationRequest(version="4.5.0"))
        vcs.commit.assert_not_called()
        assert not exc_info.value.captured
        assert "streamed to the terminal" in exc_info.value.message

    def test_captured_failure_carries_output(self, project_dir: Path) -> None:
        runner = MagicMock()
        runner.run.return_value = CommandResult(
            command=["jhipster"], exit_code=2, stdout="writing files", stderr="boom"
        )
        config = RegraftConfig(project_dir=project_dir)
        engine = RegenerationEngine(project_dir, config, runner, MagicMock(), capture_output=True)

        with pytest.raises(RegenerationFailedError) as exc_info:
            engine.regenerate(RegenerationRequest(version="8.0.0"))
        assert exc_info.value.captured
        assert exc_info.value.stderr == "boom"
        assert exc_info.value.stdout == "writing files"
        assert "terminal" not in exc_info.value.message

    def test_passes_version_environment(self, project_dir: Path) -> None:
        runner = MagicMock()
        runner.run.return_value = CommandResult(command=["yo"], exit_code=0)
        config = RegraftConfig(project_dir=project_dir)
        RegenerationEngine(project_dir, config, runner, MagicMock()).regenerate(
            RegenerationRequest(version="4.0.0")
        )
        kwargs = runner.run.call_args.kwargs
        assert kwargs["env"] == {VERSION_ENV_VAR: "4.0.0"}
        assert kwargs["check"] is False
        assert kwargs["capture_output"] is False
        assert runner.run.call_args.args[0][:2] == ["yo", "jhipster"]

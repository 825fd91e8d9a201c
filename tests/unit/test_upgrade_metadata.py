"""Unit tests for regraft.upgrade.metadata."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import ConfigurationError
from regraft.upgrade.metadata import ProjectMetadata, load_project_metadata


class TestLoadProjectMetadata:
    def test_reads_generator_section(self, tmp_path: Path, metadata_writer) -> None:
        metadata_writer(
            tmp_path,
            "7.9.3",
            blueprints=[{"name": "generator-jhipster-vuejs", "version": "1.0.0"}],
            package_manager="yarn",
        )
        metadata = load_project_metadata(tmp_path, RegraftConfig(project_dir=tmp_path))
        assert metadata.generator_version == "7.9.3"
        assert metadata.base_name == "store"
        assert metadata.package_manager == "yarn"
        assert [p.name for p in metadata.declared_plugins()] == ["generator-jhipster-vuejs"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="does not exist"):
            load_project_metadata(tmp_path, RegraftConfig(project_dir=tmp_path))

    def test_invalid_json(self, tmp_path: Path) -> None:
        (tmp_path / ".yo-rc.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_project_metadata(tmp_path, RegraftConfig(project_dir=tmp_path))

    def test_missing_generator_key(self, tmp_path: Path) -> None:
        (tmp_path / ".yo-rc.json").write_text(json.dumps({"other": {}}), encoding="utf-8")
        with pytest.raises(ConfigurationError, match="key is missing"):
            load_project_metadata(tmp_path, RegraftConfig(project_dir=tmp_path))

    def test_missing_base_name(self, tmp_path: Path) -> None:
        (tmp_path / ".yo-rc.json").write_text(
            json.dumps({"generator-jhipster": {"jhipsterVersion": "7.0.0"}}), encoding="utf-8"
        )
        with pytest.raises(ConfigurationError, match="does not contain a generated project"):
            load_project_metadata(tmp_path, RegraftConfig(project_dir=tmp_path))

    def test_missing_version(self, tmp_path: Path) -> None:
        (tmp_path / ".yo-rc.json").write_text(
            json.dumps({"generator-jhipster": {"baseName": "store"}}), encoding="utf-8"
        )
        with pytest.raises(ConfigurationError, match="Invalid project configuration"):
            load_project_metadata(tmp_path, RegraftConfig(project_dir=tmp_path))

    def test_custom_metadata_key(self, tmp_path: Path) -> None:
        (tmp_path / "meta.json").write_text(
            json.dumps({"my-gen": {"jhipsterVersion": "1.0.0", "baseName": "app"}}),
            encoding="utf-8",
        )
        config = RegraftConfig(project_dir=tmp_path, metadata_file="meta.json", metadata_key="my-gen")
        assert load_project_metadata(tmp_path, config).generator_version == "1.0.0"


class TestProjectMetadata:
    def test_package_manager_defaults_to_npm(self) -> None:
        metadata = ProjectMetadata.model_validate({"jhipsterVersion": "8.0.0", "baseName": "x"})
        assert metadata.package_manager == "npm"
        assert metadata.declared_plugins() == []

    def test_invalid_blueprint_version(self) -> None:
        metadata = ProjectMetadata.model_validate(
            {
                "jhipsterVersion": "8.0.0",
                "baseName": "x",
                "blueprints": [{"name": "foo", "version": "nope"}],
            }
        )
        with pytest.raises(ConfigurationError, match="Invalid blueprint declaration"):
            metadata.declared_plugins()

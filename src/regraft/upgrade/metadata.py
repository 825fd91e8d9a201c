"""Project metadata written by the generator.

The generator persists its answers in a JSON file (``.yo-rc.json``) under a
key named after the generator package::

    {
      "generator-jhipster": {
        "jhipsterVersion": "7.9.3",
        "baseName": "store",
        "clientPackageManager": "npm",
        "blueprints": [{"name": "generator-jhipster-vuejs", "version": "1.0.0"}]
      }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from regraft.config import RegraftConfig
from regraft.upgrade.exceptions import ConfigurationError
from regraft.upgrade.models import Plugin

logger = logging.getLogger(__name__)


class PluginDeclaration(BaseModel):
    """A blueprint entry as stored in project metadata."""

    name: str
    version: str


class ProjectMetadata(BaseModel):
    """The subset of generator metadata the upgrade relies on."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    generator_version: str = Field(..., alias="jhipsterVersion")
    base_name: str = Field(..., alias="baseName", min_length=1)
    package_manager: str = Field(default="npm", alias="clientPackageManager")
    blueprints: list[PluginDeclaration] = Field(default_factory=list)

    def declared_plugins(self) -> list[Plugin]:
        """Return the declared blueprints as unresolved :class:`Plugin` objects."""
        try:
            return [Plugin(name=bp.name, current_version=bp.version) for bp in self.blueprints]
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid blueprint declaration:\n{exc}") from exc


def load_project_metadata(project_dir: Path, config: RegraftConfig) -> ProjectMetadata:
    """Read and validate the project's generator metadata.

    Raises:
        ConfigurationError: If the metadata file or generator key is missing,
            or if the project has no ``baseName``.
    """
    path = project_dir / config.metadata_file
    if not path.is_file():
        raise ConfigurationError(
            f"Could not find a valid application configuration: '{config.metadata_file}' "
            f"does not exist in {project_dir}."
        )

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"'{config.metadata_file}' is not valid JSON: {exc}") from exc

    section = raw.get(config.metadata_key) if isinstance(raw, dict) else None
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"Could not find a valid application configuration: the "
            f"'{config.metadata_key}' key is missing from '{config.metadata_file}'."
        )
    if not section.get("baseName"):
        raise ConfigurationError("Current directory does not contain a generated project.")

    try:
        metadata = ProjectMetadata.model_validate(section)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid project configuration in '{config.metadata_file}':\n{exc}") from exc

    logger.debug(
        "Loaded metadata for %s (generated with %s)", metadata.base_name, metadata.generator_version
    )
    return metadata

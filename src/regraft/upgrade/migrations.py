"""Interim file migrations applied before the target regeneration.

Some generator releases move files around.  When a project generated with
an older version is upgraded, those files are renamed on the isolation
branch and committed as an "Upgrade preparation." snapshot before the
target regeneration runs.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable

from regraft.config import FileMigration
from regraft.upgrade.models import compare_versions

logger = logging.getLogger(__name__)


def applicable_migrations(
    migrations: Iterable[FileMigration], current_version: str
) -> list[FileMigration]:
    """Return migrations whose ``before`` bound is above *current_version*."""
    return [m for m in migrations if compare_versions(current_version, m.before) < 0]


def apply_migrations(
    project_dir: Path,
    migrations: Iterable[FileMigration],
    current_version: str,
) -> list[FileMigration]:
    """Apply the migrations relevant to *current_version*.

    A migration whose source is missing, or whose target already exists,
    is skipped.

    Returns:
        The migrations that changed the tree.
    """
    applied: list[FileMigration] = []
    for migration in applicable_migrations(migrations, current_version):
        source = project_dir / migration.source
        target = project_dir / migration.target
        if not source.exists():
            logger.debug("Skipping migration %s: source missing", migration.source)
            continue
        if target.exists():
            logger.warning(
                "Skipping migration %s -> %s: target already exists", migration.source, migration.target
            )
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(target))
        logger.info("Moved %s to %s", migration.source, migration.target)
        applied.append(migration)
    return applied

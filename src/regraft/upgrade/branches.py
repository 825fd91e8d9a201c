"""Branch lifecycle for the upgrade.

The isolation branch records framework-only output at two points in time:
the version the project was generated with and the target version.  Once
the source branch has recorded the first of those as merged (with a
strategy that keeps the source files), a plain merge of the second applies
only the framework's changes on top of the user's work.

The isolation branch is the durable recovery signal: its existence is
always checked against the repository, never cached, so an interrupted
run resumes without re-doing the baseline.
"""

from __future__ import annotations

import logging
from typing import Callable

from packaging.version import Version

from regraft.upgrade.exceptions import CommandFailedError, DirtyWorkingTreeError
from regraft.upgrade.models import BranchState, MergeResult
from regraft.upgrade.vcs import STRATEGY_OURS, VersionControl

logger = logging.getLogger(__name__)

DEFAULT_ISOLATION_BRANCH = "jhipster_upgrade"
UNRELATED_HISTORIES_GIT_VERSION = "2.9.0"


class BranchLifecycleManager:
    """Own all version-control state transitions of an upgrade.

    Args:
        vcs: Version-control implementation.
        isolation_branch: Name of the isolation branch.
        unrelated_histories_version: First git version that refuses to merge
            unrelated histories unless asked explicitly.
    """

    def __init__(
        self,
        vcs: VersionControl,
        isolation_branch: str = DEFAULT_ISOLATION_BRANCH,
        unrelated_histories_version: str = UNRELATED_HISTORIES_GIT_VERSION,
    ) -> None:
        self._vcs = vcs
        self._isolation_branch = isolation_branch
        self._unrelated_version = Version(unrelated_histories_version)
        self.state = BranchState.NO_REPO

    @property
    def isolation_branch(self) -> str:
        return self._isolation_branch

    # ------------------------------------------------------------------
    # Repository preconditions
    # ------------------------------------------------------------------

    def ensure_repository_exists(self) -> bool:
        """Initialise a repository with an initial commit if there is none.

        Returns:
            True if a repository was created.
        """
        if self._vcs.is_repository():
            logger.info("Git repository detected")
            return False

        self._vcs.init()
        logger.info("Initialized a new Git repository")
        self.commit_snapshot("Initial")
        return True

    def assert_no_uncommitted_changes(self) -> None:
        """Refuse to continue over pending local modifications.

        Raises:
            DirtyWorkingTreeError: If ``status`` reports anything.
        """
        status = self._vcs.status()
        if status:
            logger.warning("Uncommitted changes:\n%s", status)
            raise DirtyWorkingTreeError(status)
        self.state = BranchState.REPO_CLEAN

    def current_branch_name(self) -> str:
        return self._vcs.current_branch()

    def isolation_branch_exists(self) -> bool:
        return self._vcs.branch_exists(self._isolation_branch)

    # ------------------------------------------------------------------
    # Isolation branch
    # ------------------------------------------------------------------

    def ensure_isolation_branch(
        self,
        current_version: str,
        source_branch: str,
        regenerate: Callable[[str], None],
        clean: Callable[[], object],
    ) -> bool:
        """Create the isolation branch baseline unless it already exists.

        Args:
            current_version: Version the project was generated with.
            source_branch: Branch to return to after the baseline commit.
            regenerate: Regenerates at *current_version* and commits.
            clean: Reduces the working tree to the retained allow-list.

        An existing branch that the source branch never merged (a run stopped
        between the baseline commit and the joining merge) gets the joining
        merge recorded now.

        Returns:
            True if the branch was created, False if it already existed.
        """
        if self.isolation_branch_exists():
            logger.info(
                "Branch %s already exists, skipping baseline regeneration", self._isolation_branch
            )
            if not self._vcs.has_common_ancestor(source_branch, self._isolation_branch):
                logger.warning(
                    "Branch %s was never merged into %s, recording the baseline now",
                    self._isolation_branch,
                    source_branch,
                )
                self._record_generated(current_version)
            self.state = BranchState.ISOLATION_ESTABLISHED
            return False

        self._vcs.checkout_orphan(self._isolation_branch)
        logger.info("Created branch %s", self._isolation_branch)
        self.state = BranchState.ON_ISOLATION_BRANCH

        clean()
        regenerate(current_version)

        self.checkout(source_branch)
        self._record_generated(current_version)
        self.state = BranchState.ISOLATION_ESTABLISHED
        return True

    def _record_generated(self, current_version: str) -> None:
        """Merge the baseline into the source branch, keeping the source files."""
        git_version = Version(self._vcs.version())
        allow_unrelated = git_version >= self._unrelated_version
        try:
            self._vcs.merge(
                self._isolation_branch,
                strategy=STRATEGY_OURS,
                allow_unrelated_histories=allow_unrelated,
            )
        except CommandFailedError as exc:
            raise CommandFailedError(
                exc.command,
                exc.returncode,
                exc.stdout,
                exc.stderr,
                message=(
                    "Unable to record current code has been generated with version "
                    f"{current_version}:\n{exc.stdout} {exc.stderr}".rstrip()
                ),
            ) from exc
        logger.info("Current code has been generated with version %s", current_version)

    # ------------------------------------------------------------------
    # Checkout and merge-back
    # ------------------------------------------------------------------

    def checkout(self, branch: str, *, force: bool = False) -> None:
        """Check out *branch*, discarding stray working-tree state when *force* is set."""
        try:
            self._vcs.checkout(branch, force=force)
        except CommandFailedError as exc:
            raise CommandFailedError(
                exc.command,
                exc.returncode,
                exc.stdout,
                exc.stderr,
                message=f"Unable to checkout branch {branch}:\n{exc.stderr}".rstrip(),
            ) from exc
        logger.info('Checked out branch "%s"', branch)
        if branch == self._isolation_branch:
            self.state = BranchState.ON_ISOLATION_BRANCH
        else:
            self.state = BranchState.ON_SOURCE_BRANCH

    def checkout_isolation(self) -> None:
        self.checkout(self._isolation_branch)

    def merge_isolation_into_source(self) -> MergeResult:
        """Merge the isolation branch into the checked-out source branch.

        Conflicts are an expected outcome and are returned, not raised.
        """
        logger.debug("Merging changes back from %s...", self._isolation_branch)
        result = self._vcs.merge(self._isolation_branch, check=False)
        conflicts = self._vcs.conflicted_files()
        if not result.ok and not conflicts:
            raise CommandFailedError(
                result.command,
                result.exit_code,
                result.stdout,
                result.stderr,
                message=f"Unable to merge {self._isolation_branch}:\n{result.stderr}".rstrip(),
            )

        merge = MergeResult(branch=self._isolation_branch, conflicted_files=conflicts)
        self.state = BranchState.MERGED_CONFLICTED if merge.has_conflicts else BranchState.MERGED_CLEAN
        logger.info("Merge done!")
        return merge

    def commit_snapshot(self, message: str) -> None:
        """Stage everything and commit it on the current branch."""
        self._vcs.add_all()
        self._vcs.commit(message)
        logger.info('Committed with message "%s"', message)

    def conflicted_files(self, *paths: str) -> list[str]:
        """Return unresolved conflicts, optionally limited to *paths*."""
        return self._vcs.conflicted_files(*paths)

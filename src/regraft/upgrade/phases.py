"""Sequential phase execution.

An upgrade is an ordered list of named phases, each a function of the
:class:`~regraft.upgrade.models.UpgradeSession`.  The executor runs them in
order and stops at the first error, recording which phase failed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from regraft.upgrade.exceptions import UpgradeError
from regraft.upgrade.models import UpgradeSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Phase:
    """A named step of the upgrade.

    Attributes:
        name: Identifier used in logs and failure reports.
        run: Callable that reads and updates the session.
    """

    name: str
    run: Callable[[UpgradeSession], None]


class PhaseExecutor:
    """Run phases strictly in order, stopping at the first failure."""

    def __init__(self, phases: Sequence[Phase]) -> None:
        self._phases = list(phases)

    @property
    def phase_names(self) -> list[str]:
        return [phase.name for phase in self._phases]

    def run(self, session: UpgradeSession) -> UpgradeSession:
        """Execute every phase against *session*.

        On failure ``session.failed_phase`` is set, an :class:`UpgradeError`
        is stamped with the phase name, and the exception propagates.
        """
        for phase in self._phases:
            logger.debug("Phase %s started", phase.name)
            start = time.monotonic()
            try:
                phase.run(session)
            except BaseException as exc:
                session.failed_phase = phase.name
                if isinstance(exc, UpgradeError) and exc.phase is None:
                    exc.phase = phase.name
                logger.debug("Phase %s failed: %s", phase.name, exc)
                raise
            session.completed_phases.append(phase.name)
            logger.debug("Phase %s finished in %.0fms", phase.name, (time.monotonic() - start) * 1000.0)
        return session

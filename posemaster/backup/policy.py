from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from posemaster.models.utils import generate_id

logger = logging.getLogger(__name__)


class RunPolicy(ABC):
    """Controls when and whether a backup run should proceed."""

    @abstractmethod
    async def acquire(self) -> str | None:
        """Try to start a run.

        Returns a ``run_id`` if the run is allowed, ``None`` if rejected
        (another run is already active).
        """
        ...

    @abstractmethod
    async def release(self, run_id: str, *, success: bool) -> None:
        """Mark a run as finished (successfully or not)."""
        ...


class SingleFlightPolicy(RunPolicy):
    """Allows at most one active run per process.

    ``acquire`` never awaits between the check and the claim, so two
    callers on the same loop can never both win.
    """

    def __init__(self) -> None:
        self._active: str | None = None

    @property
    def active_run(self) -> str | None:
        return self._active

    async def acquire(self) -> str | None:
        if self._active is not None:
            return None
        self._active = generate_id()
        return self._active

    async def release(self, run_id: str, *, success: bool) -> None:
        if self._active != run_id:
            logger.warning("Release of unknown run %s ignored", run_id)
            return
        self._active = None
        logger.debug("Run %s released (success=%s)", run_id, success)

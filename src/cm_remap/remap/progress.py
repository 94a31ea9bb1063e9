"""Progress reporting and cooperative cancellation for remap runs."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from cm_remap.models import ObjectKind, ProgressPhase

LOGGER = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    def report(
        self,
        kind: ObjectKind,
        processed: int,
        total: int,
        phase: ProgressPhase,
        identity: str,
    ) -> None: ...


class LoggingProgressReporter:
    """Emit progress lines on a logger.

    ``Analyzing`` lines go to DEBUG; other phases are logged at INFO for every
    ``progress_every``-th object and for the last object of a category.
    """

    def __init__(self, logger: logging.Logger | None = None, progress_every: int = 1) -> None:
        self.logger = logger or LOGGER
        self.progress_every = max(1, progress_every)

    def report(
        self,
        kind: ObjectKind,
        processed: int,
        total: int,
        phase: ProgressPhase,
        identity: str,
    ) -> None:
        if phase == "Analyzing":
            self.logger.debug(
                "remap_category.progress kind=%s processed=%s/%s phase=%s identity=%s",
                kind,
                processed,
                total,
                phase,
                identity,
            )
            return
        if processed % self.progress_every == 0 or processed == total:
            self.logger.info(
                "remap_category.progress kind=%s processed=%s/%s phase=%s identity=%s",
                kind,
                processed,
                total,
                phase,
                identity,
            )


class CancellationToken:
    """Thread-safe flag checked by processors once per object."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

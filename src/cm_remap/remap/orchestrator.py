"""Run every category processor in order inside one working context."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Sequence

from cm_remap.config import AppSettings
from cm_remap.errors import ContextError
from cm_remap.models import DEFAULT_CATEGORY_ORDER, CategoryResult, ObjectKind, RunReport
from cm_remap.plane.base import ContextHandle, ManagementPlane
from cm_remap.remap.processor import CategoryProcessor, PathProbe, ProcessorOptions
from cm_remap.remap.progress import CancellationToken, LoggingProgressReporter, ProgressReporter
from cm_remap.transform.paths import normalize_term
from cm_remap.utils.time_utils import new_run_id, now_utc
from cm_remap.validate.target import path_exists

LOGGER = logging.getLogger(__name__)


@contextmanager
def working_context(
    plane: ManagementPlane,
    server: str,
    site_code: str,
    logger: logging.Logger | None = None,
) -> Iterator[ContextHandle]:
    """Establish the site working context and always restore the previous one."""

    effective_logger = logger or LOGGER
    previous = plane.current_context()
    try:
        try:
            handle = plane.establish_context(server, site_code)
        except Exception as exc:
            effective_logger.error(
                "remap_run.context_failed server=%s site_code=%s error=%s",
                server,
                site_code,
                exc,
            )
            raise ContextError(server, site_code, str(exc)) from exc
        yield handle
    finally:
        plane.restore_context(previous)


class RemapOrchestrator:
    """Remap content paths across every configured object category."""

    def __init__(
        self,
        plane: ManagementPlane,
        *,
        server: str,
        site_code: str,
        category_order: Sequence[ObjectKind] = DEFAULT_CATEGORY_ORDER,
        options: ProcessorOptions | None = None,
        path_probe: PathProbe = path_exists,
        reporter: ProgressReporter | None = None,
        cancellation: CancellationToken | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.plane = plane
        self.server = server
        self.site_code = site_code
        self.category_order = tuple(category_order)
        self.options = options or ProcessorOptions()
        self.path_probe = path_probe
        self.logger = logger or LOGGER
        self.reporter = reporter or LoggingProgressReporter(logger=self.logger)
        self.cancellation = cancellation

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        plane: ManagementPlane,
        *,
        dry_run: bool | None = None,
        abort_on_failure: bool | None = None,
        category_order: Sequence[ObjectKind] | None = None,
        cancellation: CancellationToken | None = None,
        logger: logging.Logger | None = None,
    ) -> "RemapOrchestrator":
        """Build an orchestrator from loaded settings with optional CLI overrides."""

        options = ProcessorOptions(
            dry_run=settings.remap.dry_run if dry_run is None else dry_run,
            abort_on_failure=(
                settings.remap.abort_category_on_failure if abort_on_failure is None else abort_on_failure
            ),
        )
        effective_logger = logger or LOGGER
        return cls(
            plane,
            server=settings.site.server,
            site_code=settings.site.site_code,
            category_order=category_order or settings.remap.category_order,
            options=options,
            reporter=LoggingProgressReporter(logger=effective_logger, progress_every=settings.remap.progress_every),
            cancellation=cancellation,
            logger=effective_logger,
        )

    def execute(self, pattern: str, replacement: str) -> RunReport:
        """Run all categories and return the aggregated report.

        Raises ``ContextError`` when the working context cannot be established;
        no category runs in that case.
        """

        if not pattern:
            raise ValueError("search pattern must not be empty")
        normalized_pattern = normalize_term(pattern)
        normalized_replacement = normalize_term(replacement)

        started_ts = now_utc()
        report = RunReport(
            run_id=new_run_id("remap-run", started_ts),
            pattern=normalized_pattern,
            replacement=normalized_replacement,
            server=self.server,
            site_code=self.site_code,
            dry_run=self.options.dry_run,
            started_ts=started_ts,
        )
        self.logger.info(
            "remap_run.start run_id=%s server=%s site_code=%s pattern=%s replacement=%s dry_run=%s categories=%s",
            report.run_id,
            self.server,
            self.site_code,
            normalized_pattern,
            normalized_replacement,
            self.options.dry_run,
            ",".join(self.category_order),
        )

        with working_context(self.plane, self.server, self.site_code, logger=self.logger):
            for kind in self.category_order:
                if self.cancellation is not None and self.cancellation.cancelled:
                    report.cancelled = True
                    break
                category_result = self._run_category(kind, normalized_pattern, normalized_replacement)
                report.categories.append(category_result)
                if category_result.cancelled:
                    report.cancelled = True
                    break

        report.finished_ts = now_utc()
        totals = report.totals()
        self.logger.info(
            "remap_run.complete run_id=%s updated=%s skipped=%s planned=%s failed=%s categories_failed=%s cancelled=%s",
            report.run_id,
            totals["updated"],
            totals["skipped"],
            totals["planned"],
            totals["failed"],
            totals["categories_failed"],
            report.cancelled,
        )
        return report

    def _run_category(self, kind: ObjectKind, pattern: str, replacement: str) -> CategoryResult:
        try:
            objects = list(self.plane.enumerate(kind))
        except Exception as exc:
            self.logger.exception("remap_category.enumerate_failed kind=%s", kind)
            return CategoryResult(kind=kind, error=f"{type(exc).__name__}: {exc}")

        self.logger.info("remap_category.start kind=%s objects=%s", kind, len(objects))
        processor = CategoryProcessor(
            kind,
            self.plane,
            path_probe=self.path_probe,
            reporter=self.reporter,
            options=self.options,
            cancellation=self.cancellation,
            logger=self.logger,
        )
        result = processor.run(objects, pattern, replacement)
        self.logger.info(
            "remap_category.complete kind=%s total=%s updated=%s skipped=%s planned=%s failed=%s aborted=%s",
            kind,
            result.total,
            result.updated,
            result.skipped,
            result.planned,
            len(result.failures),
            result.aborted,
        )
        return result

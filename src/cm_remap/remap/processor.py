"""Per-category transform, validate, and commit driver."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from cm_remap.errors import CommitError, DecodeError, PathValidationError
from cm_remap.models import (
    CategoryResult,
    ContentObject,
    ObjectKind,
    ObjectOutcome,
    PathChange,
    PathTransformResult,
    ProgressPhase,
)
from cm_remap.plane.base import ManagementPlane
from cm_remap.remap.progress import CancellationToken, ProgressReporter
from cm_remap.sdm.codec import build_replacement_descriptor, decode_document, encode_document
from cm_remap.transform.paths import transform_path
from cm_remap.validate.target import path_exists

LOGGER = logging.getLogger(__name__)

PathProbe = Callable[[str], bool]


@dataclass(frozen=True, slots=True)
class ProcessorOptions:
    """Runtime options shared by every category processor in a run."""

    dry_run: bool = False
    abort_on_failure: bool = False


class CategoryProcessor:
    """Drive one object kind through analyze, validate, and commit.

    Each object ends in exactly one terminal state: ``NoChangeNeeded``,
    ``Updated``, ``WouldUpdate`` (dry run) or ``UpdateFailed``. Object-level
    errors are recorded on the result and the loop moves on, unless
    ``abort_on_failure`` is set, in which case the category stops at the
    first failure.
    """

    def __init__(
        self,
        kind: ObjectKind,
        plane: ManagementPlane,
        *,
        path_probe: PathProbe = path_exists,
        reporter: ProgressReporter | None = None,
        options: ProcessorOptions | None = None,
        cancellation: CancellationToken | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.kind = kind
        self.plane = plane
        self.path_probe = path_probe
        self.reporter = reporter
        self.options = options or ProcessorOptions()
        self.cancellation = cancellation
        self.logger = logger or LOGGER

    def _report(self, processed: int, total: int, phase: ProgressPhase, identity: str) -> None:
        if self.reporter is not None:
            self.reporter.report(self.kind, processed, total, phase, identity)

    def run(self, objects: Sequence[ContentObject], pattern: str, replacement: str) -> CategoryResult:
        """Process every object of this kind and return the aggregated outcome."""

        result = CategoryResult(kind=self.kind, total=len(objects))
        for processed_idx, obj in enumerate(objects, start=1):
            if self.cancellation is not None and self.cancellation.cancelled:
                result.cancelled = True
                self.logger.warning(
                    "remap_category.cancelled kind=%s processed=%s/%s",
                    self.kind,
                    processed_idx - 1,
                    result.total,
                )
                break

            self._report(processed_idx, result.total, "Analyzing", obj.identity)
            try:
                if self.kind == "Application":
                    outcome = self._process_application(obj, pattern, replacement, processed_idx, result.total)
                else:
                    outcome = self._process_scalar(obj, pattern, replacement, processed_idx, result.total)
            except Exception as exc:
                # Any error raised while handling one object is confined to that object.
                outcome = ObjectOutcome(
                    kind=self.kind,
                    object_id=obj.object_id,
                    identity=obj.identity,
                    status="UpdateFailed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                self.logger.exception(
                    "remap_category.object_failed kind=%s identity=%s error_type=%s",
                    self.kind,
                    obj.identity,
                    type(exc).__name__,
                )
            result.outcomes.append(outcome)

            if outcome.failed and self.options.abort_on_failure:
                result.aborted = True
                self.logger.warning(
                    "remap_category.aborted kind=%s identity=%s not_processed=%s",
                    self.kind,
                    obj.identity,
                    result.not_processed,
                )
                break
        return result

    def _validate(self, obj: ContentObject, path: str) -> None:
        if not self.path_probe(path):
            raise PathValidationError(obj.identity, path)

    def _commit(self, obj: ContentObject, *, new_path: str | None = None, document: str | bytes | None = None) -> None:
        try:
            self.plane.persist(obj, new_path=new_path, document=document)
        except Exception as exc:
            raise CommitError(obj.identity, str(exc)) from exc

    def _finish(
        self,
        obj: ContentObject,
        changes: tuple[PathChange, ...],
        processed_idx: int,
        total: int,
    ) -> ObjectOutcome:
        status = "WouldUpdate" if self.options.dry_run else "Updated"
        if not self.options.dry_run:
            self._report(processed_idx, total, "Updated", obj.identity)
        return ObjectOutcome(
            kind=self.kind,
            object_id=obj.object_id,
            identity=obj.identity,
            status=status,
            changes=changes,
        )

    def _no_change(self, obj: ContentObject, processed_idx: int, total: int) -> ObjectOutcome:
        self._report(processed_idx, total, "No Update Needed", obj.identity)
        return ObjectOutcome(kind=self.kind, object_id=obj.object_id, identity=obj.identity, status="NoChangeNeeded")

    def _process_scalar(
        self,
        obj: ContentObject,
        pattern: str,
        replacement: str,
        processed_idx: int,
        total: int,
    ) -> ObjectOutcome:
        transformed = transform_path(obj.source_path or "", pattern, replacement)
        if not transformed.changed:
            return self._no_change(obj, processed_idx, total)

        self._report(processed_idx, total, "Update Needed", obj.identity)
        self._validate(obj, transformed.proposed)
        if not self.options.dry_run:
            self._commit(obj, new_path=transformed.proposed)
        change = PathChange(original=transformed.original, proposed=transformed.proposed)
        return self._finish(obj, (change,), processed_idx, total)

    def _process_application(
        self,
        obj: ContentObject,
        pattern: str,
        replacement: str,
        processed_idx: int,
        total: int,
    ) -> ObjectOutcome:
        decoded = decode_document(obj.document)
        if decoded.document is None:
            raise DecodeError(obj.identity, decoded.error or "unknown error")
        document = decoded.document

        planned: list[tuple[int, PathTransformResult]] = []
        for dt_index, location in document.primary_locations():
            transformed = transform_path(location, pattern, replacement)
            if transformed.changed:
                planned.append((dt_index, transformed))
        if not planned:
            return self._no_change(obj, processed_idx, total)

        self._report(processed_idx, total, "Update Needed", obj.identity)
        # Every changed deployment type must validate before any descriptor is replaced.
        for _, transformed in planned:
            self._validate(obj, transformed.proposed)

        for dt_index, transformed in planned:
            previous = document.deployment_types[dt_index].descriptors[0]
            document.replace_primary_descriptor(
                dt_index,
                build_replacement_descriptor(previous, transformed.proposed),
            )
            self.logger.debug(
                "remap_category.descriptor_replaced identity=%s deployment_type=%s location=%s",
                obj.identity,
                document.deployment_types[dt_index].logical_name,
                transformed.proposed,
            )

        try:
            encoded = encode_document(document)
        except (LookupError, ValueError) as exc:
            raise CommitError(obj.identity, f"installer document could not be encoded: {exc}") from exc
        if not self.options.dry_run:
            self._commit(obj, document=encoded)
        changes = tuple(PathChange(original=t.original, proposed=t.proposed) for _, t in planned)
        return self._finish(obj, changes, processed_idx, total)

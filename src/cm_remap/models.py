"""Typed records shared by the remap engine, adapters, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

ObjectKind = Literal[
    "Driver",
    "DriverPackage",
    "UpdatePackage",
    "StandardPackage",
    "Application",
    "OSImage",
]
OBJECT_KIND_VALUES: tuple[ObjectKind, ...] = (
    "Driver",
    "DriverPackage",
    "UpdatePackage",
    "StandardPackage",
    "Application",
    "OSImage",
)
DEFAULT_CATEGORY_ORDER: tuple[ObjectKind, ...] = OBJECT_KIND_VALUES

ObjectStatus = Literal["NoChangeNeeded", "Updated", "WouldUpdate", "UpdateFailed"]
ProgressPhase = Literal["Analyzing", "Update Needed", "Updated", "No Update Needed"]


@dataclass(frozen=True, slots=True)
class ContentObject:
    """One content-bearing object as enumerated from the management plane.

    Scalar kinds carry ``source_path``. Applications carry the raw installer
    content ``document`` instead and leave ``source_path`` empty.
    """

    kind: ObjectKind
    object_id: str
    identity: str
    source_path: str | None = None
    document: str | bytes | None = None


@dataclass(frozen=True, slots=True)
class PathTransformResult:
    """Candidate path produced by a case-insensitive substring replacement."""

    original: str
    proposed: str
    changed: bool


@dataclass(frozen=True, slots=True)
class PathChange:
    """Validated old/new path pair for one recorded location."""

    original: str
    proposed: str


@dataclass(frozen=True, slots=True)
class ObjectOutcome:
    """Terminal state reached by one object during a category run."""

    kind: ObjectKind
    object_id: str
    identity: str
    status: ObjectStatus
    changes: tuple[PathChange, ...] = ()
    error_type: str | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == "UpdateFailed"

    def as_row(self) -> dict[str, Any]:
        """Flatten to one object-results row; multiple paths are joined with ``|``."""

        return {
            "kind": self.kind,
            "object_id": self.object_id,
            "identity": self.identity,
            "status": self.status,
            "original_paths": "|".join(change.original for change in self.changes) or None,
            "proposed_paths": "|".join(change.proposed for change in self.changes) or None,
            "error_type": self.error_type,
            "error": self.error,
        }


@dataclass(slots=True)
class CategoryResult:
    """Aggregated outcome of one category run."""

    kind: ObjectKind
    total: int = 0
    outcomes: list[ObjectOutcome] = field(default_factory=list)
    error: str | None = None
    aborted: bool = False
    cancelled: bool = False

    def _count(self, status: ObjectStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def updated(self) -> int:
        return self._count("Updated")

    @property
    def skipped(self) -> int:
        return self._count("NoChangeNeeded")

    @property
    def planned(self) -> int:
        return self._count("WouldUpdate")

    @property
    def failures(self) -> list[ObjectOutcome]:
        return [outcome for outcome in self.outcomes if outcome.failed]

    @property
    def not_processed(self) -> int:
        """Objects skipped by a strict abort or cancellation."""

        return max(0, self.total - len(self.outcomes))

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "total": self.total,
            "updated": self.updated,
            "skipped": self.skipped,
            "planned": self.planned,
            "failed": len(self.failures),
            "not_processed": self.not_processed,
            "aborted": self.aborted,
            "cancelled": self.cancelled,
            "error": self.error,
            "failures": [
                {
                    "identity": outcome.identity,
                    "object_id": outcome.object_id,
                    "error_type": outcome.error_type,
                    "error": outcome.error,
                }
                for outcome in self.failures
            ],
        }


@dataclass(slots=True)
class RunReport:
    """Aggregate of every category outcome for one remap run."""

    run_id: str
    pattern: str
    replacement: str
    server: str
    site_code: str
    dry_run: bool
    started_ts: datetime
    finished_ts: datetime | None = None
    categories: list[CategoryResult] = field(default_factory=list)
    cancelled: bool = False

    def category(self, kind: ObjectKind) -> CategoryResult | None:
        for result in self.categories:
            if result.kind == kind:
                return result
        return None

    @property
    def outcomes(self) -> list[ObjectOutcome]:
        return [outcome for result in self.categories for outcome in result.outcomes]

    @property
    def has_failures(self) -> bool:
        """True when any object failed or any category could not be enumerated."""

        return any(result.failures or result.error for result in self.categories)

    def totals(self) -> dict[str, int]:
        """Return run-wide counters across all categories."""

        return {
            "objects_total": sum(result.total for result in self.categories),
            "updated": sum(result.updated for result in self.categories),
            "skipped": sum(result.skipped for result in self.categories),
            "planned": sum(result.planned for result in self.categories),
            "failed": sum(len(result.failures) for result in self.categories),
            "categories_failed": sum(1 for result in self.categories if result.error),
        }

    def as_dict(self) -> dict[str, Any]:
        duration_sec = None
        if self.finished_ts is not None:
            duration_sec = round((self.finished_ts - self.started_ts).total_seconds(), 3)
        return {
            "run_id": self.run_id,
            "pattern": self.pattern,
            "replacement": self.replacement,
            "server": self.server,
            "site_code": self.site_code,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "started_ts": self.started_ts.isoformat(),
            "finished_ts": self.finished_ts.isoformat() if self.finished_ts else None,
            "duration_sec": duration_sec,
            "totals": self.totals(),
            "categories": [result.as_dict() for result in self.categories],
        }

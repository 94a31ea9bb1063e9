"""Persist remap run reports as summary JSON and per-object parquet."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import polars as pl

from cm_remap.models import RunReport
from cm_remap.utils.paths import write_json_atomically, write_parquet_atomically

OBJECT_RESULTS_SCHEMA: dict[str, pl.DataType] = {
    "kind": pl.String,
    "object_id": pl.String,
    "identity": pl.String,
    "status": pl.String,
    "original_paths": pl.String,
    "proposed_paths": pl.String,
    "error_type": pl.String,
    "error": pl.String,
}


@dataclass(frozen=True, slots=True)
class RemapArtifacts:
    """Locations of the artifacts written for one run."""

    summary_path: Path
    object_results_path: Path


def object_results_frame(report: RunReport) -> pl.DataFrame:
    """Return one row per object outcome with a stable schema."""

    rows = [outcome.as_row() for outcome in report.outcomes]
    if not rows:
        return pl.DataFrame(schema=OBJECT_RESULTS_SCHEMA)
    return pl.DataFrame(rows, schema_overrides=OBJECT_RESULTS_SCHEMA)


def write_run_artifacts(report: RunReport, artifacts_root: Path) -> RemapArtifacts:
    """Write ``<run_id>_remap_summary.json`` and ``<run_id>_object_results.parquet``."""

    run_dir = artifacts_root / "remap_runs"
    summary_path = run_dir / f"{report.run_id}_remap_summary.json"
    results_path = run_dir / f"{report.run_id}_object_results.parquet"

    payload = report.as_dict()
    payload["outputs"] = {
        "summary_path": str(summary_path),
        "object_results_path": str(results_path),
    }
    write_json_atomically(payload, summary_path)
    write_parquet_atomically(object_results_frame(report), results_path)
    return RemapArtifacts(summary_path=summary_path, object_results_path=results_path)

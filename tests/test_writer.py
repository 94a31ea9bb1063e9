from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import polars as pl

from cm_remap.models import CategoryResult, ObjectOutcome, PathChange, RunReport
from cm_remap.remap import object_results_frame, write_run_artifacts


def _report() -> RunReport:
    started = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    packages = CategoryResult(
        kind="StandardPackage",
        total=3,
        outcomes=[
            ObjectOutcome(
                kind="StandardPackage",
                object_id="PS100001",
                identity="App 1",
                status="Updated",
                changes=(PathChange(original=r"\\old\share\app1", proposed=r"\\new\share\app1"),),
            ),
            ObjectOutcome(kind="StandardPackage", object_id="PS100002", identity="App 2", status="NoChangeNeeded"),
            ObjectOutcome(
                kind="StandardPackage",
                object_id="PS100003",
                identity="App 3",
                status="UpdateFailed",
                error_type="PathValidationError",
                error=r"App 3: target path does not exist: \\new\share\app3",
            ),
        ],
    )
    drivers = CategoryResult(kind="Driver", error="RuntimeError: enumeration failed")
    return RunReport(
        run_id="remap-run-20260301T120000-abcd1234",
        pattern=r"\\old\share",
        replacement=r"\\new\share",
        server="cm01.corp.local",
        site_code="PS1",
        dry_run=False,
        started_ts=started,
        finished_ts=datetime(2026, 3, 1, 12, 0, 30, tzinfo=timezone.utc),
        categories=[drivers, packages],
    )


def test_write_run_artifacts_round_trip(tmp_path: Path) -> None:
    report = _report()

    artifacts = write_run_artifacts(report, tmp_path)

    assert artifacts.summary_path.name == "remap-run-20260301T120000-abcd1234_remap_summary.json"
    assert artifacts.summary_path.parent == tmp_path / "remap_runs"

    summary = json.loads(artifacts.summary_path.read_text(encoding="utf-8"))
    assert summary["totals"] == {
        "objects_total": 3,
        "updated": 1,
        "skipped": 1,
        "planned": 0,
        "failed": 1,
        "categories_failed": 1,
    }
    assert summary["duration_sec"] == 30.0
    assert summary["categories"][0]["error"] == "RuntimeError: enumeration failed"
    assert summary["categories"][1]["failures"][0]["identity"] == "App 3"
    assert summary["outputs"]["object_results_path"] == str(artifacts.object_results_path)

    frame = pl.read_parquet(artifacts.object_results_path)
    assert frame.height == 3
    assert frame.get_column("status").to_list() == ["Updated", "NoChangeNeeded", "UpdateFailed"]
    assert frame.get_column("proposed_paths").to_list()[0] == r"\\new\share\app1"
    assert not list(artifacts.summary_path.parent.glob("*.tmp"))


def test_object_results_frame_keeps_schema_when_empty() -> None:
    report = _report()
    report.categories = []

    frame = object_results_frame(report)

    assert frame.height == 0
    assert frame.columns == [
        "kind",
        "object_id",
        "identity",
        "status",
        "original_paths",
        "proposed_paths",
        "error_type",
        "error",
    ]

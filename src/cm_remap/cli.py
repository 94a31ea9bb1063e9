"""Typer CLI entrypoint for cm_remap."""

from __future__ import annotations

import logging
import signal
from pathlib import Path
from typing import Any

import typer
import yaml

from cm_remap.config import AppSettings, load_settings
from cm_remap.errors import ContextError
from cm_remap.logging_utils import configure_logging
from cm_remap.models import OBJECT_KIND_VALUES, ObjectKind
from cm_remap.plane.admin_service import AdminServiceClient
from cm_remap.plane.base import ManagementPlane
from cm_remap.remap.orchestrator import RemapOrchestrator, working_context
from cm_remap.remap.progress import CancellationToken
from cm_remap.remap.writer import write_run_artifacts
from cm_remap.sdm.codec import decode_document
from cm_remap.transform.paths import transform_path
from cm_remap.validate.target import path_exists

app = typer.Typer(
    add_completion=False,
    help="cm_remap command line interface.",
    no_args_is_help=True,
)

ConfigFileOption = typer.Option(
    None,
    "--config-file",
    help="Optional settings YAML path.",
    exists=False,
    file_okay=True,
    dir_okay=False,
    readable=True,
)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
    verbose: bool = False,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if configure:
        level = logging.DEBUG if verbose else logging.INFO
        logger = configure_logging(settings.paths.logs_root / "remap.log", level=level)
    else:
        logger = logging.getLogger("cm_remap")
    return settings, logger


def _build_plane(settings: AppSettings) -> ManagementPlane:
    return AdminServiceClient(settings.site)


def _normalize_kind(value: str) -> ObjectKind:
    lookup = {kind.lower(): kind for kind in OBJECT_KIND_VALUES}
    normalized = lookup.get(value.strip().lower())
    if normalized is None:
        raise typer.BadParameter(f"kind must be one of: {','.join(OBJECT_KIND_VALUES)}")
    return normalized


def _category_order(settings: AppSettings, only_kind: list[str] | None) -> list[ObjectKind] | None:
    if not only_kind:
        return None
    selected = {_normalize_kind(value) for value in only_kind}
    # Keep the configured order for the selected subset.
    return [kind for kind in settings.remap.category_order if kind in selected] or sorted(
        selected, key=OBJECT_KIND_VALUES.index
    )


def _recorded_paths(kind: ObjectKind, source_path: str | None, document: Any) -> list[str]:
    if kind != "Application":
        return [source_path or ""]
    decoded = decode_document(document)
    if decoded.document is None:
        return [f"<undecodable: {decoded.error}>"]
    return [location for _, location in decoded.document.primary_locations()]


@app.command("show-config")
def show_config(config_file: Path | None = ConfigFileOption) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("remap")
def remap(
    search: str = typer.Option(..., "--search", help="Literal, case-insensitive text to find in recorded paths."),
    replace: str = typer.Option(..., "--replace", help="Replacement text."),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Analyze and validate without committing any change.",
    ),
    only_kind: list[str] | None = typer.Option(
        None,
        "--only-kind",
        help="Restrict the run to one or more object kinds (repeatable).",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Stop a category at its first failed object.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log per-object analysis at DEBUG level."),
    config_file: Path | None = ConfigFileOption,
) -> None:
    """Remap recorded content locations across every object category."""

    if not search.strip():
        raise typer.BadParameter("search must not be empty.")

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True, verbose=verbose)
    cancellation = CancellationToken()
    orchestrator = RemapOrchestrator.from_settings(
        settings,
        _build_plane(settings),
        dry_run=dry_run or None,
        abort_on_failure=strict or None,
        category_order=_category_order(settings, only_kind),
        cancellation=cancellation,
        logger=logger,
    )

    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancellation.cancel())
    try:
        report = orchestrator.execute(search, replace)
    except ContextError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    artifacts = write_run_artifacts(report, settings.paths.artifacts_root)

    totals = report.totals()
    typer.echo(f"run_id: {report.run_id}")
    typer.echo(f"dry_run: {report.dry_run}")
    for category in report.categories:
        typer.echo(
            f"{category.kind}: total={category.total} updated={category.updated} "
            f"skipped={category.skipped} planned={category.planned} failed={len(category.failures)}"
            + (f" error={category.error}" if category.error else "")
        )
        for failure in category.failures:
            typer.echo(f"  - {failure.identity}: {failure.error}")
    typer.echo(f"objects_total: {totals['objects_total']}")
    typer.echo(f"updated: {totals['updated']}")
    typer.echo(f"skipped: {totals['skipped']}")
    typer.echo(f"planned: {totals['planned']}")
    typer.echo(f"failed: {totals['failed']}")
    typer.echo(f"cancelled: {report.cancelled}")
    typer.echo(f"summary_path: {artifacts.summary_path}")
    typer.echo(f"object_results_path: {artifacts.object_results_path}")

    if report.has_failures:
        raise typer.Exit(code=1)


@app.command("inventory")
def inventory(
    kind: str = typer.Option(..., "--kind", help="Object kind to list."),
    search: str | None = typer.Option(
        None,
        "--search",
        help="Only list objects whose recorded path contains this text (case-insensitive).",
    ),
    config_file: Path | None = ConfigFileOption,
) -> None:
    """List objects of one kind with their recorded content locations."""

    normalized_kind = _normalize_kind(kind)
    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True)
    plane = _build_plane(settings)
    try:
        with working_context(plane, settings.site.server, settings.site.site_code, logger=logger):
            objects = list(plane.enumerate(normalized_kind))
    except ContextError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    listed = 0
    for obj in objects:
        paths = _recorded_paths(normalized_kind, obj.source_path, obj.document)
        if search and not any(transform_path(path, search, "").changed for path in paths):
            continue
        listed += 1
        typer.echo(f"{obj.object_id}\t{obj.identity}\t{' | '.join(paths)}")
    typer.echo(f"listed: {listed}/{len(objects)}")


@app.command("check-path")
def check_path(path: str = typer.Argument(..., help="Filesystem or UNC path to probe.")) -> None:
    """Report whether a proposed content location exists."""

    exists = path_exists(path)
    typer.echo(f"{path}: {'exists' if exists else 'not found'}")
    if not exists:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

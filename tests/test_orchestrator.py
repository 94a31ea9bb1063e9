from __future__ import annotations

import logging

import pytest

from cm_remap.errors import ContextError
from cm_remap.models import ContentObject
from cm_remap.remap import CancellationToken, ProcessorOptions, RemapOrchestrator, working_context


def _obj(kind: str, object_id: str, path: str) -> ContentObject:
    return ContentObject(kind=kind, object_id=object_id, identity=f"{kind} {object_id}", source_path=path)


def _orchestrator(plane, probe, **kwargs) -> RemapOrchestrator:
    return RemapOrchestrator(plane, server="cm01.corp.local", site_code="PS1", path_probe=probe, **kwargs)


def test_categories_run_in_configured_order_inside_one_context(fake_plane_factory, path_probe) -> None:
    plane = fake_plane_factory(
        {
            "Driver": [_obj("Driver", "16777300", r"\\old\share\drv\nic")],
            "StandardPackage": [_obj("StandardPackage", "PS100001", r"\\old\share\app1")],
        }
    )
    orchestrator = _orchestrator(
        plane,
        path_probe(r"\\new\share\drv\nic", r"\\new\share\app1"),
        category_order=("StandardPackage", "Driver", "OSImage"),
    )

    report = orchestrator.execute(r"\\OLD\Share", r"\\NEW\Share")

    assert plane.events == [
        "establish:cm01.corp.local:PS1",
        "enumerate:StandardPackage",
        "persist:PS100001",
        "enumerate:Driver",
        "persist:16777300",
        "enumerate:OSImage",
        "restore:PRV",
    ]
    assert [result.kind for result in report.categories] == ["StandardPackage", "Driver", "OSImage"]
    assert report.pattern == r"\\old\share"
    assert report.replacement == r"\\new\share"
    assert report.totals()["updated"] == 2
    assert report.has_failures is False
    assert report.finished_ts is not None
    assert report.run_id.startswith("remap-run-")
    assert plane.context.site_code == "PRV"


def test_context_failure_raises_and_nothing_is_enumerated(fake_plane_factory, path_probe) -> None:
    plane = fake_plane_factory(fail_establish=True)
    orchestrator = _orchestrator(plane, path_probe())

    with pytest.raises(ContextError) as excinfo:
        orchestrator.execute(r"\\old\share", r"\\new\share")

    assert "unreachable" in str(excinfo.value)
    assert excinfo.value.site_code == "PS1"
    assert not any(event.startswith("enumerate:") for event in plane.events)
    assert plane.events[-1] == "restore:PRV"


def test_previous_context_is_restored_when_a_category_raises(fake_plane_factory) -> None:
    plane = fake_plane_factory()

    with pytest.raises(RuntimeError):
        with working_context(plane, "cm01.corp.local", "PS1"):
            assert plane.context.site_code == "PS1"
            raise RuntimeError("boom")

    assert plane.context.site_code == "PRV"
    assert plane.events == ["establish:cm01.corp.local:PS1", "restore:PRV"]


def test_enumeration_failure_is_isolated_to_its_category(fake_plane_factory, path_probe) -> None:
    plane = fake_plane_factory(
        {"OSImage": [_obj("OSImage", "PS100050", r"\\old\share\wim")]},
        fail_enumerate={"Driver"},
    )
    orchestrator = _orchestrator(plane, path_probe(r"\\new\share\wim"), category_order=("Driver", "OSImage"))

    report = orchestrator.execute(r"\\old\share", r"\\new\share")

    driver = report.category("Driver")
    assert driver is not None
    assert driver.error is not None
    assert "enumeration of Driver failed" in driver.error
    assert report.category("OSImage").updated == 1
    assert report.has_failures is True
    assert report.totals()["categories_failed"] == 1


def test_strict_mode_aborts_one_category_but_later_categories_run(fake_plane_factory, path_probe) -> None:
    plane = fake_plane_factory(
        {
            "DriverPackage": [
                _obj("DriverPackage", "PS100010", r"\\old\share\missing"),
                _obj("DriverPackage", "PS100011", r"\\old\share\drv"),
            ],
            "UpdatePackage": [_obj("UpdatePackage", "PS100020", r"\\old\share\sum")],
        }
    )
    orchestrator = _orchestrator(
        plane,
        path_probe(r"\\new\share\drv", r"\\new\share\sum"),
        category_order=("DriverPackage", "UpdatePackage"),
        options=ProcessorOptions(abort_on_failure=True),
    )

    report = orchestrator.execute(r"\\old\share", r"\\new\share")

    assert report.category("DriverPackage").aborted is True
    assert report.category("DriverPackage").not_processed == 1
    assert report.category("UpdatePackage").updated == 1
    assert [obj.object_id for obj, _, _ in plane.persisted] == ["PS100020"]


def test_dry_run_reports_planned_changes_only(fake_plane_factory, path_probe) -> None:
    plane = fake_plane_factory({"StandardPackage": [_obj("StandardPackage", "PS100001", r"\\old\share\app1")]})
    orchestrator = _orchestrator(
        plane,
        path_probe(r"\\new\share\app1"),
        category_order=("StandardPackage",),
        options=ProcessorOptions(dry_run=True),
    )

    report = orchestrator.execute(r"\\old\share", r"\\new\share")

    assert report.dry_run is True
    assert report.totals()["planned"] == 1
    assert report.totals()["updated"] == 0
    assert plane.persisted == []


def test_cancelled_run_stops_before_remaining_categories(fake_plane_factory, path_probe) -> None:
    token = CancellationToken()
    token.cancel()
    plane = fake_plane_factory({"Driver": [_obj("Driver", "1", r"\\old\share\x")]})
    orchestrator = _orchestrator(plane, path_probe(), cancellation=token)

    report = orchestrator.execute(r"\\old\share", r"\\new\share")

    assert report.cancelled is True
    assert report.categories == []
    assert plane.events == ["establish:cm01.corp.local:PS1", "restore:PRV"]


def test_empty_pattern_is_rejected_before_touching_the_plane(fake_plane_factory, path_probe) -> None:
    plane = fake_plane_factory()
    with pytest.raises(ValueError):
        _orchestrator(plane, path_probe()).execute("", r"\\new\share")
    assert plane.events == []


def test_run_logs_start_and_complete(fake_plane_factory, path_probe, caplog: pytest.LogCaptureFixture) -> None:
    plane = fake_plane_factory()
    orchestrator = _orchestrator(plane, path_probe(), category_order=("OSImage",))

    with caplog.at_level(logging.INFO, logger="cm_remap"):
        orchestrator.execute(r"\\old\share", r"\\new\share")

    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("remap_run.start ") for message in messages)
    assert any(message.startswith("remap_run.complete ") for message in messages)


def test_unexpected_object_error_does_not_stop_later_categories(fake_plane_factory, sdm_document) -> None:
    plane = fake_plane_factory(
        {
            "Application": [
                ContentObject(
                    kind="Application",
                    object_id="16777220",
                    identity="Demo App",
                    document=sdm_document([[r"\\old\share\app"]]),
                )
            ],
            "OSImage": [_obj("OSImage", "PS100050", r"\\old\share\wim")],
        }
    )

    def _probe(path: str) -> bool:
        if path.endswith("app"):
            raise OSError("share offline")
        return True

    orchestrator = _orchestrator(plane, _probe, category_order=("Application", "OSImage"))

    report = orchestrator.execute(r"\\old\share", r"\\new\share")

    assert report.category("Application").failures[0].error_type == "OSError"
    assert report.category("OSImage").updated == 1
    assert "enumerate:OSImage" in plane.events
    assert plane.events[-1] == "restore:PRV"

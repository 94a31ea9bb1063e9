from __future__ import annotations

from typing import Callable, Iterable, Sequence

import pytest

from cm_remap.models import ContentObject, ObjectKind
from cm_remap.plane.base import ContextHandle

SDM_NAMESPACE = "http://schemas.microsoft.com/SystemCenterConfigurationManager/2009/AppMgmtDigest"


class FakePlane:
    """In-memory management plane that records every interaction."""

    def __init__(
        self,
        objects: dict[ObjectKind, Sequence[ContentObject]] | None = None,
        *,
        fail_establish: bool = False,
        fail_enumerate: Iterable[ObjectKind] = (),
        fail_persist_ids: Iterable[str] = (),
    ) -> None:
        self.objects = dict(objects or {})
        self.fail_establish = fail_establish
        self.fail_enumerate = set(fail_enumerate)
        self.fail_persist_ids = set(fail_persist_ids)
        self.context = ContextHandle(server="previous", site_code="PRV")
        self.events: list[str] = []
        self.persisted: list[tuple[ContentObject, str | None, str | bytes | None]] = []

    def current_context(self) -> ContextHandle:
        return self.context

    def establish_context(self, server: str, site_code: str) -> ContextHandle:
        self.events.append(f"establish:{server}:{site_code}")
        if self.fail_establish:
            raise RuntimeError("site server unreachable")
        self.context = ContextHandle(server=server, site_code=site_code)
        return self.context

    def restore_context(self, previous: ContextHandle) -> None:
        self.events.append(f"restore:{previous.site_code}")
        self.context = previous

    def enumerate(self, kind: ObjectKind) -> list[ContentObject]:
        self.events.append(f"enumerate:{kind}")
        if kind in self.fail_enumerate:
            raise RuntimeError(f"enumeration of {kind} failed")
        return list(self.objects.get(kind, ()))

    def persist(
        self,
        obj: ContentObject,
        *,
        new_path: str | None = None,
        document: str | bytes | None = None,
    ) -> None:
        self.events.append(f"persist:{obj.object_id}")
        if obj.object_id in self.fail_persist_ids:
            raise PermissionError("access denied")
        self.persisted.append((obj, new_path, document))


class RecordingReporter:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int, str, str]] = []

    def report(self, kind: str, processed: int, total: int, phase: str, identity: str) -> None:
        self.calls.append((kind, processed, total, phase, identity))


def _content_xml(content_id: str, location: str) -> str:
    return (
        f'<Content ContentId="{content_id}" Version="1">'
        '<File Name="setup.exe" Size="1024"/>'
        f"<Location>{location}</Location>"
        "<PeerCache>true</PeerCache>"
        "<OnFastNetwork>DoNothing</OnFastNetwork>"
        "<OnSlowNetwork>Download</OnSlowNetwork>"
        "<PinOnClient>true</PinOnClient>"
        "</Content>"
    )


def build_sdm_document(deployment_types: Sequence[Sequence[str]]) -> str:
    """Build an installer content document with one deployment type per entry."""

    parts = [
        '<?xml version="1.0" encoding="utf-16"?>',
        f'<AppMgmtDigest xmlns="{SDM_NAMESPACE}" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">',
        '<Application AuthoringScopeId="ScopeId_1" LogicalName="Application_1" Version="3">'
        "<Title>Demo App</Title></Application>",
    ]
    for index, locations in enumerate(deployment_types):
        contents = "".join(_content_xml(f"Content_{index}_{n}", location) for n, location in enumerate(locations))
        install_reference = (
            f'<Contents><Content ContentId="Content_{index}_0" Version="1"/></Contents>' if locations else ""
        )
        parts.append(
            f'<DeploymentType AuthoringScopeId="ScopeId_1" LogicalName="DeploymentType_{index}" Version="1">'
            f"<Title>Deployment {index}</Title>"
            "<Technology>Script</Technology>"
            '<Installer Technology="Script">'
            f"<Contents>{contents}</Contents>"
            f"<InstallAction><Provider>Script</Provider>{install_reference}</InstallAction>"
            "</Installer>"
            "</DeploymentType>"
        )
    parts.append("</AppMgmtDigest>")
    return "".join(parts)


@pytest.fixture
def sdm_document() -> Callable[[Sequence[Sequence[str]]], str]:
    return build_sdm_document


@pytest.fixture
def fake_plane_factory() -> Callable[..., FakePlane]:
    return FakePlane


@pytest.fixture
def recording_reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def path_probe() -> Callable[..., Callable[[str], bool]]:
    """Return a factory for probes that only accept the given paths."""

    def _factory(*existing: str) -> Callable[[str], bool]:
        known = set(existing)
        return lambda path: path in known

    return _factory

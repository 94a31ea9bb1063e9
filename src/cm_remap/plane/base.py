"""Management-plane contract consumed by the remap engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from cm_remap.models import ContentObject, ObjectKind


@dataclass(frozen=True, slots=True)
class ContextHandle:
    """Working context for one site; ``None`` fields mean no context is active."""

    server: str | None = None
    site_code: str | None = None


class ManagementPlane(Protocol):
    def current_context(self) -> ContextHandle: ...

    def establish_context(self, server: str, site_code: str) -> ContextHandle: ...

    def restore_context(self, previous: ContextHandle) -> None: ...

    def enumerate(self, kind: ObjectKind) -> Sequence[ContentObject]: ...

    def persist(
        self,
        obj: ContentObject,
        *,
        new_path: str | None = None,
        document: str | bytes | None = None,
    ) -> None: ...

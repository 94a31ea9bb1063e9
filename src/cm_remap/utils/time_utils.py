"""Time utility helpers for UTC-safe timestamps and run identifiers."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4


def now_utc() -> datetime:
    """Return current timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


def new_run_id(prefix: str, at: datetime | None = None) -> str:
    """Return a sortable run identifier such as ``remap-run-20260101T120000-1a2b3c4d``."""

    stamp = (at or now_utc()).strftime("%Y%m%dT%H%M%S")
    return f"{prefix}-{stamp}-{uuid4().hex[:8]}"

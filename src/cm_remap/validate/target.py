"""Filesystem existence probe for proposed content locations."""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)


def path_exists(path: str, logger: logging.Logger | None = None) -> bool:
    """Return whether ``path`` exists on the local filesystem or UNC namespace.

    Lookup errors (permissions, unreachable share, malformed path) count as
    "not found"; the caller decides whether that is fatal.
    """

    effective_logger = logger or LOGGER
    if not path:
        return False
    try:
        return Path(path).exists()
    except Exception as exc:
        effective_logger.debug("target.probe_failed path=%s error=%s", path, exc)
        return False

"""Exception hierarchy for remap runs."""

from __future__ import annotations


class RemapError(Exception):
    """Base class for every error raised by the remap engine."""


class ContextError(RemapError):
    """The management-plane working context could not be established."""

    def __init__(self, server: str, site_code: str, reason: str) -> None:
        super().__init__(f"Could not establish working context for site {site_code} on {server}: {reason}")
        self.server = server
        self.site_code = site_code
        self.reason = reason


class PathValidationError(RemapError):
    """A proposed content location does not exist or is unreachable."""

    def __init__(self, identity: str, path: str) -> None:
        super().__init__(f"{identity}: target path does not exist: {path}")
        self.identity = identity
        self.path = path


class CommitError(RemapError):
    """Persisting a mutated object back to the management plane failed."""

    summary = "commit failed"

    def __init__(self, identity: str, reason: str) -> None:
        super().__init__(f"{identity}: {self.summary}: {reason}")
        self.identity = identity
        self.reason = reason


class DecodeError(CommitError):
    """An application's installer content document could not be parsed."""

    summary = "installer document could not be decoded"

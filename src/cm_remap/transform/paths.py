"""Case-insensitive content path substitution."""

from __future__ import annotations

from cm_remap.models import PathTransformResult


def normalize_term(value: str) -> str:
    """Fold a path, pattern, or replacement for case-insensitive comparison."""

    return value.lower()


def transform_path(original: str, pattern: str, replacement: str) -> PathTransformResult:
    """Replace every occurrence of ``pattern`` in ``original``, ignoring case.

    The proposed path is always the lowercase-folded form of ``original``;
    ``changed`` is true only when the substitution altered it.
    """

    if not pattern:
        raise ValueError("search pattern must not be empty")

    normalized = normalize_term(original)
    proposed = normalized.replace(normalize_term(pattern), normalize_term(replacement))
    return PathTransformResult(original=original, proposed=proposed, changed=proposed != normalized)

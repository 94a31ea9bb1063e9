"""Path transformation package."""

from cm_remap.transform.paths import normalize_term, transform_path

__all__ = [
    "normalize_term",
    "transform_path",
]

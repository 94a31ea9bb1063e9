"""Target path validation package."""

from cm_remap.validate.target import path_exists

__all__ = [
    "path_exists",
]

"""Shared utility helpers."""

from cm_remap.utils.paths import write_json_atomically, write_parquet_atomically
from cm_remap.utils.time_utils import new_run_id, now_utc

__all__ = [
    "write_json_atomically",
    "write_parquet_atomically",
    "new_run_id",
    "now_utc",
]

"""Content path remapping engine."""

from cm_remap.remap.orchestrator import RemapOrchestrator, working_context
from cm_remap.remap.processor import CategoryProcessor, ProcessorOptions
from cm_remap.remap.progress import CancellationToken, LoggingProgressReporter, ProgressReporter
from cm_remap.remap.writer import RemapArtifacts, object_results_frame, write_run_artifacts

__all__ = [
    "RemapOrchestrator",
    "working_context",
    "CategoryProcessor",
    "ProcessorOptions",
    "CancellationToken",
    "LoggingProgressReporter",
    "ProgressReporter",
    "RemapArtifacts",
    "object_results_frame",
    "write_run_artifacts",
]

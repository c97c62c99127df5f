"""Core logic for clipweave: resolution, validation and export orchestration

Only dependency-free modules are re-exported here; import
core.export_pipeline / core.timeline_compiler directly.
"""

from .errors import (
    ExportCancelledError,
    FFmpegError,
    FilterGraphError,
    GapError,
    MediaNotFoundError,
    TimelineError,
    ValidationError,
)

__all__ = [
    "ExportCancelledError",
    "FFmpegError",
    "FilterGraphError",
    "GapError",
    "MediaNotFoundError",
    "TimelineError",
    "ValidationError",
]

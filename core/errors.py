"""Exception hierarchy for timeline compilation and export"""

from typing import Any, Dict, List, Optional


class TimelineError(Exception):
    """Base class for every error raised by the compiler or the export pipeline"""


class ValidationError(TimelineError):
    """
    Structural problems found before any subprocess runs.

    Always aggregated: `errors` lists every violation (as issue dicts with
    code/path/message/received) rather than only the first one.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        warnings: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.errors = errors or []
        self.warnings = warnings or []


class GapError(ValidationError):
    """The visual track is not contiguous"""

    @property
    def gaps(self) -> List[Dict[str, Any]]:
        return [e.get("received") for e in self.errors if e.get("code") == "TIMELINE_GAP"]


class FFmpegError(TimelineError):
    """The engine subprocess could not start or exited non-zero"""

    def __init__(
        self,
        message: str,
        stderr: str = "",
        command: Optional[List[str]] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.stderr = stderr
        self.command = command or []
        self.exit_code = exit_code


class MediaNotFoundError(TimelineError):
    """A referenced source or probe target does not exist"""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ExportCancelledError(TimelineError):
    """The cancel signal fired before or during engine execution"""

    def __init__(self, message: str = "Export was cancelled"):
        super().__init__(message)


class FilterGraphError(TimelineError):
    """Internal invariant violated while building the filter graph"""

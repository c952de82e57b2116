"""
Montage error taxonomy.

InvalidInputError fails a run before any stage executes. NoViableClipError is
only raised when the engine runs in strict mode; otherwise the offending
interval is filled with a degraded assignment and reported as an EditIssue.
"""

from typing import Any, Dict, Optional


class MontageError(Exception):
    """Base error carrying the stage and timeline position it came from."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        time: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.stage = stage
        self.time = time
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "stage": self.stage,
            "time": self.time,
            "context": self.context,
        }


class InvalidInputError(MontageError, ValueError):
    """Raised when analysis inputs or configuration values are unusable."""


class NoViableClipError(MontageError):
    """Raised in strict mode when no scene can cover an interval."""

    def __init__(
        self,
        message: str,
        window_start: float,
        window_end: float,
        stage: str = "clip_matcher",
    ):
        self.window_start = window_start
        self.window_end = window_end
        super().__init__(
            message,
            stage=stage,
            time=window_start,
            context={"window_start": window_start, "window_end": window_end},
        )

"""
Progress reporting for directory indexing.

Tracks files handled, chunks produced and an ETA, and hands a ProgressEvent
to an optional callback after every file.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class ProgressEvent:
    """
    Event emitted after each file of a directory pass.

    Attributes:
        current: Number of files handled so far
        total: Total number of files discovered
        filename: File just handled (relative path)
        chunks_indexed: Chunks stored so far in this pass
        elapsed_seconds: Time elapsed since start
        eta_seconds: Estimated time remaining (None if unknown)
    """
    current: int
    total: int
    filename: str
    chunks_indexed: int
    elapsed_seconds: float
    eta_seconds: Optional[float] = None

    @property
    def fraction(self) -> float:
        return self.current / self.total if self.total else 1.0


class ProgressReporter:
    """Counts files as they are handled and emits ProgressEvents."""

    def __init__(self, total_files: int, callback: Optional[Callable[[ProgressEvent], None]] = None):
        """
        Args:
            total_files: Number of files the pass will handle
            callback: Optional receiver for ProgressEvents
        """
        self.total_files = total_files
        self.current_file = 0
        self.chunks_indexed = 0
        self.start_time = time.monotonic()
        self.callback = callback

    def update(self, filename: str, chunks: int = 0) -> ProgressEvent:
        """
        Record one handled file.

        Args:
            filename: File just handled
            chunks: Chunks stored for it (0 if skipped or failed)

        Returns:
            ProgressEvent with current statistics
        """
        self.current_file += 1
        self.chunks_indexed += chunks
        elapsed = time.monotonic() - self.start_time

        rate = self.current_file / elapsed if elapsed > 0 else 0.0
        remaining = max(0, self.total_files - self.current_file)
        if remaining == 0:
            eta: Optional[float] = 0.0
        else:
            eta = remaining / rate if rate > 0 else None

        event = ProgressEvent(
            current=self.current_file,
            total=self.total_files,
            filename=filename,
            chunks_indexed=self.chunks_indexed,
            elapsed_seconds=elapsed,
            eta_seconds=eta,
        )

        if self.callback:
            self.callback(event)

        return event

    @staticmethod
    def format_eta(seconds: Optional[float]) -> str:
        """
        Format ETA in human-readable form.

        Returns:
            Formatted string like "2m 30s", "1h 15m", or "unknown"
        """
        if seconds is None:
            return "unknown"

        minutes, secs = divmod(int(seconds), 60)
        hours, minutes = divmod(minutes, 60)

        if hours > 0:
            return f"{hours}h {minutes}m"
        elif minutes > 0:
            return f"{minutes}m {secs}s"
        return f"{secs}s"

    def get_summary(self) -> str:
        """Human-readable summary of the pass so far."""
        elapsed = time.monotonic() - self.start_time
        return (
            f"Processed {self.current_file}/{self.total_files} files "
            f"({self.chunks_indexed} chunks) in {elapsed:.1f}s"
        )

"""Run logging for PhotoReturns.

Module-level diagnostics go through the standard logging module; this file
handles the user-facing files written next to the output.
"""

import os
import time
from typing import Any, List, Optional, TextIO


class BufferedLogger:
    """Buffered file logger with context manager support.

    Usage:
        with BufferedLogger("/path/to/logs") as logger:
            logger.log("Processing started")
            logger.log("File processed: photo.jpg")
        # File is automatically closed
    """

    def __init__(self, output_dir: str, filename: str = "verbose.txt"):
        """Initialize logger.

        Args:
            output_dir: Directory to write log file.
            filename: Name of log file (default: verbose.txt).
        """
        self.output_dir = output_dir
        self.filename = filename
        self.filepath = os.path.join(output_dir, filename)
        self._handle: Optional[TextIO] = None

    def _open(self) -> None:
        """Open the log file for writing (lazy initialization)."""
        if self._handle is None:
            os.makedirs(self.output_dir, exist_ok=True)
            self._handle = open(self.filepath, "a", encoding="utf-8")

    def log(self, message: str) -> None:
        """Write a timestamped message to the log."""
        self._open()
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        self._handle.write(f"{timestamp} - {message}\n")

    def flush(self) -> None:
        """Flush the log buffer to disk."""
        if self._handle:
            self._handle.flush()

    def close(self) -> None:
        """Close the log file."""
        if self._handle:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "BufferedLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        """Check if logger is open."""
        return self._handle is not None


class RunLogger:
    """Writes the per-run files into the _phr directory.

    - summary.txt: Concise summary (always generated)
    - verbose.txt: Every record's processing trail (only with verbose=True)
    """

    def __init__(self, meta_dir: str, verbose: bool = False):
        """Initialize run logger.

        Args:
            meta_dir: The _phr directory path.
            verbose: Whether to create verbose.txt.
        """
        self.meta_dir = meta_dir
        self.verbose = verbose
        self._verbose_logger: Optional[BufferedLogger] = None

        os.makedirs(meta_dir, exist_ok=True)

        if verbose:
            self._verbose_logger = BufferedLogger(meta_dir, filename="verbose.txt")

    def log(self, message: str) -> None:
        """Log a message to verbose.txt (if verbose mode enabled)."""
        if self._verbose_logger:
            self._verbose_logger.log(message)

    def log_record(self, record: Any) -> None:  # MediaRecord
        """Dump one record's trail to verbose.txt."""
        if not self._verbose_logger:
            return
        self._verbose_logger.log(f"{record.original_path} -> {record.status.value}")
        for entry in record.logs:
            self._verbose_logger.log(f"    [{entry.level.value}] {entry.message}")

    def close(self) -> None:
        """Close any open log files."""
        if self._verbose_logger:
            self._verbose_logger.close()

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def write_summary(
        self,
        input_dir: str,
        output_dir: str,
        result: Any,  # ProcessResult
        retried: int = 0,
        burst_groups: int = 0
    ) -> str:
        """Write concise summary.txt.

        Returns:
            Path to summary file.
        """
        filepath = os.path.join(self.meta_dir, "summary.txt")
        elapsed_time = result.elapsed_time

        if elapsed_time >= 60:
            minutes = int(elapsed_time // 60)
            seconds = int(elapsed_time % 60)
            duration = f"{minutes}m {seconds}s"
        else:
            duration = f"{elapsed_time:.1f}s"

        counts = _status_counts(result.media)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write("PhotoReturns - Processing Summary\n")
            f.write("=" * 40 + "\n\n")
            f.write(f"Input:     {input_dir}\n")
            f.write(f"Output:    {output_dir}\n")
            f.write(f"Started:   {result.start_time}\n")
            f.write(f"Completed: {result.end_time}\n")
            f.write(f"Duration:  {duration}\n\n")

            if retried:
                f.write(f"Retried:             {retried:,}\n")
            f.write(f"Total files:         {result.total_files:,}\n")
            f.write(f"  Completed:         {counts.get('completed', 0):,}\n")
            f.write(f"  Unchanged:         {counts.get('no_change', 0):,}\n")
            f.write(f"  Errors:            {counts.get('error', 0):,}\n")
            if burst_groups:
                f.write(f"Burst groups:        {burst_groups:,}\n")

            if result.errors:
                f.write("\nErrors:\n")
                for error in result.errors:
                    f.write(f"  {error}\n")

        return filepath


def _status_counts(records: List[Any]) -> dict:
    counts: dict = {}
    for record in records:
        key = record.status.value
        counts[key] = counts.get(key, 0) + 1
    return counts

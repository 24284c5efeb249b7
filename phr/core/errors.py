"""Exception hierarchy for PhotoReturns.

Per-file errors carry the path they concern and are recorded on the owning
MediaRecord by the orchestrator. Only DirectoryValidationError is allowed to
escape a processing run.
"""

from typing import Optional


class PhotoReturnsError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class ScanError(PhotoReturnsError):
    """A directory could not be read during scanning."""


class MetadataError(PhotoReturnsError):
    """A single embedded tag could not be decoded."""

    def __init__(self, message: str, path: Optional[str] = None, tag: Optional[str] = None):
        super().__init__(message, path)
        self.tag = tag


class DateResolutionError(PhotoReturnsError):
    """No candidate date was available for a file."""


class RotationError(PhotoReturnsError):
    """Pixel data could not be decoded, rotated or re-encoded."""


class WriteError(PhotoReturnsError):
    """The output (or backup) file could not be written."""


class DirectoryValidationError(PhotoReturnsError):
    """Input/output directories are unusable; raised before any processing."""

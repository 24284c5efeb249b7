"""PhotoReturns - Organize photos and videos into a dated folder tree.

High-level API:
    from phr import scan, process

    # Preview how files will be named
    records = scan("/path/to/photos")
    for record in records:
        print(record.file_name, record.date_source.value, record.date_taken)

    # Copy into /organized/YYYY/YYYY-MM/YYYY-MM-DD/
    result = process("/path/to/photos", "/organized")
    print(f"Processed {result.processed_files} of {result.total_files} files")

    # Try failed files again, now or in a later session
    if result.failed:
        result = RetryCommand.from_session("/organized").execute()
"""

__version__ = "1.0.0"

# Public API exports
from phr.core.orchestrator import MediaOrchestrator, RetryCommand, process, retry, scan
from phr.core.config import BurstConfig, EngineConfig, MediaDefaults
from phr.core.errors import PhotoReturnsError, DirectoryValidationError
from phr.core.models import (
    DateSource,
    MediaRecord,
    MediaType,
    ProcessOptions,
    ProcessResult,
    RecordStatus,
)

__all__ = [
    "scan",
    "process",
    "retry",
    "MediaOrchestrator",
    "RetryCommand",
    "EngineConfig",
    "MediaDefaults",
    "BurstConfig",
    "PhotoReturnsError",
    "DirectoryValidationError",
    "DateSource",
    "MediaRecord",
    "MediaType",
    "ProcessOptions",
    "ProcessResult",
    "RecordStatus",
    "__version__",
]

"""Core processing logic for PhotoReturns."""

from phr.core.models import (
    DateSource,
    LogEntry,
    LogLevel,
    MediaRecord,
    MediaType,
    ProcessOptions,
    ProcessResult,
    ProgressCallback,
    RecordStatus,
    with_date_source,
    with_rotation_mode,
    with_timezone_offset,
)

from phr.core.errors import (
    PhotoReturnsError,
    ScanError,
    MetadataError,
    DateResolutionError,
    RotationError,
    WriteError,
    DirectoryValidationError,
)

from phr.core.config import (
    BurstConfig,
    EngineConfig,
    MediaDefaults,
    Settings,
)

from phr.core.scanner import MediaScanner
from phr.core.metadata import MetadataExtractor
from phr.core.dates import DateResolver, parse_offset
from phr.core.burst import BurstGroup, BurstGrouper
from phr.core.naming import PathPlanner, build_name
from phr.core.orientation import OrientationCorrector
from phr.core.processor import FileProcessor
from phr.core.orchestrator import (
    MediaOrchestrator,
    RetryCommand,
    process,
    retry,
    scan,
)

__all__ = [
    # Models
    "DateSource",
    "LogEntry",
    "LogLevel",
    "MediaRecord",
    "MediaType",
    "ProcessOptions",
    "ProcessResult",
    "ProgressCallback",
    "RecordStatus",
    "with_date_source",
    "with_rotation_mode",
    "with_timezone_offset",
    # Errors
    "PhotoReturnsError",
    "ScanError",
    "MetadataError",
    "DateResolutionError",
    "RotationError",
    "WriteError",
    "DirectoryValidationError",
    # Config
    "BurstConfig",
    "EngineConfig",
    "MediaDefaults",
    "Settings",
    # Pipeline
    "MediaScanner",
    "MetadataExtractor",
    "DateResolver",
    "parse_offset",
    "BurstGroup",
    "BurstGrouper",
    "PathPlanner",
    "build_name",
    "OrientationCorrector",
    "FileProcessor",
    # Orchestrator
    "MediaOrchestrator",
    "RetryCommand",
    "process",
    "retry",
    "scan",
]

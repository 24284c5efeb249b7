"""Data models for PhotoReturns."""

import os
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class MediaType(str, Enum):
    PHOTO = "Photo"
    VIDEO = "Video"


class DateSource(str, Enum):
    """Where a record's resolved date came from."""
    EXIF = "Exif"
    FILENAME = "FileName"
    FILE_CREATED = "FileCreated"
    FILE_MODIFIED = "FileModified"
    NONE = "None"


class RecordStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    NO_CHANGE = "no_change"


class LogLevel(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


# Rotation modes as exposed to the UI
ROTATION_NONE = "none"
ROTATION_EXIF = "exif"
ROTATION_MODES = ("none", "exif", "90", "180", "270")

# Timezone correction modes (anything else must be an offset string)
TZ_NONE = "none"
TZ_EXIF = "exif"

# Sentinel stem used when no date could be resolved
UNKNOWN_DATE_NAME = "unknown_date"


@dataclass
class LogEntry:
    """A single line in a record's processing trail."""
    timestamp: str
    level: LogLevel
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"timestamp": self.timestamp, "level": self.level.value, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            timestamp=data.get("timestamp", ""),
            level=LogLevel(data.get("level", LogLevel.INFO.value)),
            message=data.get("message", ""),
        )


_DATE_FIELDS = (
    "exif_date", "filename_date", "file_created_date", "file_modified_date", "date_taken"
)


@dataclass
class MediaRecord:
    """One scanned media file and everything the engine learns about it.

    Created by the scanner with only the path, name, type and size set.
    Metadata extraction, date resolution and burst grouping enrich it before
    processing; the process phase only touches the destination, status and
    log fields.
    """
    original_path: str
    file_name: str
    media_type: MediaType
    file_size: int = 0

    # Candidate dates, each independently optional
    exif_date: Optional[datetime] = None
    filename_date: Optional[datetime] = None
    file_created_date: Optional[datetime] = None
    file_modified_date: Optional[datetime] = None

    # Resolution
    date_source: DateSource = DateSource.NONE
    selected_source: Optional[DateSource] = None
    date_taken: Optional[datetime] = None
    subsec_time: Optional[int] = None
    timezone: Optional[str] = None
    timezone_offset: str = TZ_NONE

    # Burst membership (both set or both None)
    burst_group_id: Optional[int] = None
    burst_index: Optional[int] = None

    width: Optional[int] = None
    height: Optional[int] = None

    # Orientation
    exif_orientation: Optional[int] = None
    rotation_mode: str = ROTATION_NONE
    rotation_applied: bool = False

    # Populated during processing
    new_name: str = ""
    new_path: str = ""
    status: RecordStatus = RecordStatus.PENDING
    progress: int = 0
    error_message: Optional[str] = None
    logs: List[LogEntry] = field(default_factory=list)

    # Subsecond EXIF value kept aside so it survives re-resolution
    exif_subsec: Optional[int] = field(default=None, repr=False)

    @property
    def is_photo(self) -> bool:
        return self.media_type == MediaType.PHOTO

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, e.g. '.jpg'."""
        return os.path.splitext(self.file_name)[1].lower()

    @property
    def in_burst(self) -> bool:
        return self.burst_group_id is not None

    def candidates(self) -> Dict[DateSource, Optional[datetime]]:
        """Map each candidate source to its (possibly absent) date."""
        return {
            DateSource.EXIF: self.exif_date,
            DateSource.FILENAME: self.filename_date,
            DateSource.FILE_CREATED: self.file_created_date,
            DateSource.FILE_MODIFIED: self.file_modified_date,
        }

    def add_log(self, level: LogLevel, message: str) -> None:
        """Append a timestamped entry to this record's log trail."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.logs.append(LogEntry(timestamp, level, message))

    def info(self, message: str) -> None:
        self.add_log(LogLevel.INFO, message)

    def warning(self, message: str) -> None:
        self.add_log(LogLevel.WARNING, message)

    def error(self, message: str) -> None:
        self.add_log(LogLevel.ERROR, message)

    def clear_destination(self) -> None:
        """Forget the computed destination so it is planned again."""
        self.new_name = ""
        self.new_path = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict."""
        data: Dict[str, Any] = {
            "original_path": self.original_path,
            "file_name": self.file_name,
            "media_type": self.media_type.value,
            "file_size": self.file_size,
            "date_source": self.date_source.value,
            "selected_source": self.selected_source.value if self.selected_source else None,
            "subsec_time": self.subsec_time,
            "timezone": self.timezone,
            "timezone_offset": self.timezone_offset,
            "burst_group_id": self.burst_group_id,
            "burst_index": self.burst_index,
            "width": self.width,
            "height": self.height,
            "exif_orientation": self.exif_orientation,
            "rotation_mode": self.rotation_mode,
            "rotation_applied": self.rotation_applied,
            "new_name": self.new_name,
            "new_path": self.new_path,
            "status": self.status.value,
            "progress": self.progress,
            "error_message": self.error_message,
            "logs": [entry.to_dict() for entry in self.logs],
            "exif_subsec": self.exif_subsec,
        }
        for name in _DATE_FIELDS:
            value = getattr(self, name)
            data[name] = value.isoformat() if value else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaRecord":
        """Rebuild a record from to_dict() output."""
        dates = {
            name: datetime.fromisoformat(data[name]) if data.get(name) else None
            for name in _DATE_FIELDS
        }
        selected = data.get("selected_source")
        return cls(
            original_path=data["original_path"],
            file_name=data["file_name"],
            media_type=MediaType(data["media_type"]),
            file_size=data.get("file_size", 0),
            date_source=DateSource(data.get("date_source", DateSource.NONE.value)),
            selected_source=DateSource(selected) if selected else None,
            subsec_time=data.get("subsec_time"),
            timezone=data.get("timezone"),
            timezone_offset=data.get("timezone_offset", TZ_NONE),
            burst_group_id=data.get("burst_group_id"),
            burst_index=data.get("burst_index"),
            width=data.get("width"),
            height=data.get("height"),
            exif_orientation=data.get("exif_orientation"),
            rotation_mode=data.get("rotation_mode", ROTATION_NONE),
            rotation_applied=data.get("rotation_applied", False),
            new_name=data.get("new_name", ""),
            new_path=data.get("new_path", ""),
            status=RecordStatus(data.get("status", RecordStatus.PENDING.value)),
            progress=data.get("progress", 0),
            error_message=data.get("error_message"),
            logs=[LogEntry.from_dict(entry) for entry in data.get("logs", [])],
            exif_subsec=data.get("exif_subsec"),
            **dates,
        )


def with_date_source(
    record: MediaRecord,
    source: Optional[DateSource],
    resolver: Any = None
) -> MediaRecord:
    """Return a copy of record using an explicit date source (None = automatic).

    The date is re-resolved and the destination cleared; the original record
    is left untouched. Burst membership is cleared; the next
    process_records() call recomputes it.

    Args:
        record: Record to copy.
        source: Source to force, or None to return to automatic priority.
        resolver: DateResolver to use (default: built-in priorities).
    """
    # Imported here to keep models free of an import cycle with dates
    from phr.core.dates import DateResolver

    updated = replace(record, selected_source=source, logs=list(record.logs))
    updated.clear_destination()
    updated.burst_group_id = None
    updated.burst_index = None
    (resolver or DateResolver()).apply(updated)
    return updated


def with_rotation_mode(record: MediaRecord, mode: str) -> MediaRecord:
    """Return a copy of record with a different rotation mode."""
    if mode not in ROTATION_MODES:
        raise ValueError(f"Unknown rotation mode: {mode!r}")
    updated = replace(record, rotation_mode=mode, logs=list(record.logs))
    updated.clear_destination()
    return updated


def with_timezone_offset(record: MediaRecord, offset: str) -> MediaRecord:
    """Return a copy of record with a different timezone correction."""
    from phr.core.dates import validate_timezone_offset

    updated = replace(
        record, timezone_offset=validate_timezone_offset(offset), logs=list(record.logs)
    )
    updated.clear_destination()
    return updated


@dataclass(frozen=True)
class ProcessOptions:
    """Options for a process or retry run.

    Attributes:
        input_dir: Directory that was scanned.
        output_dir: Root of the dated output tree. Equal to input_dir means
                    files are reorganized in place (moved, not copied).
        backup_dir: If set, originals are copied here before being written.
        include_videos: Scan video files too.
        parallel: Use the worker pool (False runs every record inline).
        timezone_offset: Overrides every record's timezone correction.
        cleanup_temp: Remove leftover temp files from the output afterwards.
        auto_correct_orientation: Rotate photos whose EXIF orientation says so.
        verbose: Write every record's trail to _phr/verbose.txt.
    """
    input_dir: str
    output_dir: str
    backup_dir: Optional[str] = None
    include_videos: bool = True
    parallel: bool = True
    timezone_offset: Optional[str] = None
    cleanup_temp: bool = False
    auto_correct_orientation: bool = False
    verbose: bool = False

    def __post_init__(self):
        if self.timezone_offset is not None:
            from phr.core.dates import validate_timezone_offset
            object.__setattr__(
                self, "timezone_offset", validate_timezone_offset(self.timezone_offset)
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_dir": self.input_dir,
            "output_dir": self.output_dir,
            "backup_dir": self.backup_dir,
            "include_videos": self.include_videos,
            "parallel": self.parallel,
            "timezone_offset": self.timezone_offset,
            "cleanup_temp": self.cleanup_temp,
            "auto_correct_orientation": self.auto_correct_orientation,
            "verbose": self.verbose,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessOptions":
        return cls(
            input_dir=data["input_dir"],
            output_dir=data["output_dir"],
            backup_dir=data.get("backup_dir"),
            include_videos=data.get("include_videos", True),
            parallel=data.get("parallel", True),
            timezone_offset=data.get("timezone_offset"),
            cleanup_temp=data.get("cleanup_temp", False),
            auto_correct_orientation=data.get("auto_correct_orientation", False),
            verbose=data.get("verbose", False),
        )


@dataclass
class ProcessResult:
    """Results from a process or retry run.

    Returned by MediaOrchestrator.process(), process_records() and retry().
    """
    success: bool = False
    total_files: int = 0
    processed_files: int = 0
    media: List[MediaRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    elapsed_time: float = 0.0
    start_time: str = ""
    end_time: str = ""
    summary_file: str = ""

    @property
    def failed(self) -> List[MediaRecord]:
        """Records that ended in error (candidates for retry)."""
        return [m for m in self.media if m.status == RecordStatus.ERROR]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "total_files": self.total_files,
            "processed_files": self.processed_files,
            "media": [m.to_dict() for m in self.media],
            "errors": list(self.errors),
        }


# (current_item, total_items, message) -> None
ProgressCallback = Callable[[int, int, str], None]

"""Media file discovery for PhotoReturns."""

import logging
import os
from typing import Iterator, List, Optional, Tuple

from phr.core.errors import ScanError
from phr.core.models import MediaRecord, MediaType, ProgressCallback

logger = logging.getLogger(__name__)

PHOTO_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp",
    ".heic", ".heif", ".webp", ".tif", ".tiff",
})

VIDEO_EXTENSIONS = frozenset({
    ".mp4", ".mov", ".avi", ".mkv", ".wmv", ".flv",
    ".webm", ".m4v", ".3gp", ".mpg", ".mpeg",
})

# Directory where the engine keeps run logs and session state
META_DIR_NAME = "_phr"


def media_type_for(filename: str, include_videos: bool = True) -> Optional[MediaType]:
    """Classify a file by extension, or None if it isn't supported media."""
    ext = os.path.splitext(filename)[1].lower()
    if ext in PHOTO_EXTENSIONS:
        return MediaType.PHOTO
    if include_videos and ext in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return None


def _fast_walk(
    path: str,
    errors: List[ScanError]
) -> Iterator[Tuple[str, List[os.DirEntry]]]:
    """Depth-first directory walker using os.scandir.

    Entries are sorted by name so scan order is deterministic. Directory
    symlinks are not followed.

    Args:
        path: Root directory to walk.
        errors: Receives a ScanError for every directory that can't be read.

    Yields:
        Tuples of (dirpath, file_entries).
    """
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.warning(f"Skipping unreadable directory {path}: {e}")
        errors.append(ScanError(f"Cannot read directory: {e.strerror or e}", path))
        return

    dirs = []
    files = []
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                if entry.name != META_DIR_NAME:
                    dirs.append(entry.path)
            elif entry.is_file():
                files.append(entry)
        except OSError as e:
            logger.debug(f"Cannot access entry {entry.path}: {e}")
            continue

    yield path, files
    for d in dirs:
        yield from _fast_walk(d, errors)


class MediaScanner:
    """Recursively finds supported photos and videos under a root directory.

    Usage:
        scanner = MediaScanner("/path/to/photos", include_videos=True)
        records = scanner.scan()

        print(f"Found {scanner.photo_count} photos, {scanner.video_count} videos")
        for warning in scanner.errors:
            print(warning)
    """

    def __init__(self, path: str, include_videos: bool = True):
        """Initialize scanner.

        Args:
            path: Root directory to scan.
            include_videos: Whether video extensions are accepted.
        """
        self.path = path
        self.include_videos = include_videos
        self.records: List[MediaRecord] = []
        self.errors: List[ScanError] = []
        self._scanned = False

    def scan(self, on_progress: Optional[ProgressCallback] = None) -> List[MediaRecord]:
        """Walk the directory tree and build the initial record list.

        Args:
            on_progress: Optional callback for progress updates.
                        Called with (files_found, files_found, message).

        Returns:
            Records with only path, name, media type and size populated.
        """
        self.records = []
        self.errors = []
        progress_interval = 100

        for dirpath, entries in _fast_walk(self.path, self.errors):
            for entry in entries:
                media_type = media_type_for(entry.name, self.include_videos)
                if media_type is None:
                    continue

                try:
                    size = entry.stat().st_size
                except OSError as e:
                    logger.debug(f"Cannot stat {entry.path}: {e}")
                    size = 0

                self.records.append(MediaRecord(
                    original_path=entry.path,
                    file_name=entry.name,
                    media_type=media_type,
                    file_size=size,
                ))

                if on_progress and len(self.records) % progress_interval == 0:
                    found = len(self.records)
                    on_progress(found, found, f"Found {found} files...")

        self._scanned = True
        logger.info(
            "Scanned %s: %d photos, %d videos, %d unreadable directories",
            self.path, self.photo_count, self.video_count, len(self.errors)
        )

        if on_progress:
            total = len(self.records)
            on_progress(total, total, "Scan complete")

        return self.records

    @property
    def photo_count(self) -> int:
        return sum(1 for r in self.records if r.media_type == MediaType.PHOTO)

    @property
    def video_count(self) -> int:
        return sum(1 for r in self.records if r.media_type == MediaType.VIDEO)

    @property
    def is_scanned(self) -> bool:
        """Whether scan() has been called."""
        return self._scanned

"""Candidate date and image metadata extraction.

Reads embedded EXIF tags with Pillow (HEIC/HEIF through pillow-heif),
parses dates encoded in filenames and reads filesystem timestamps with
filedate. Every tag is read independently: one failing tag never prevents
the others from being read.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, List, Optional

import filedate
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from phr.core.dates import parse_offset, format_offset
from phr.core.errors import MetadataError
from phr.core.models import MediaRecord, ProgressCallback

logger = logging.getLogger(__name__)

register_heif_opener()

# EXIF tag ids
TAG_ORIENTATION = 0x0112
TAG_DATETIME = 0x0132
TAG_EXIF_IFD = 0x8769
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004
TAG_OFFSET_TIME = 0x9010
TAG_OFFSET_TIME_ORIGINAL = 0x9011
TAG_SUBSEC_TIME_ORIGINAL = 0x9291

VALID_ORIENTATIONS = frozenset({1, 3, 6, 8})

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# Known filename date encodings, most specific first
_FILENAME_PATTERNS: List[re.Pattern] = [
    # 2025-01-01_12-00-00, 2025-01-01 12.00.00, 2025-01-01T12:00:00
    re.compile(
        r"(?<!\d)(\d{4})-(\d{2})-(\d{2})[ _T-](\d{2})[-.:](\d{2})[-.:](\d{2})"
    ),
    # IMG_20250101_120000, PXL_20250101_120000123, VID20250101120000
    re.compile(r"(?<!\d)(\d{4})(\d{2})(\d{2})[_-]?(\d{2})(\d{2})(\d{2})"),
    # 2025-01-01
    re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)"),
    # IMG-20250101-WA0001
    re.compile(r"(?<!\d)(\d{4})(\d{2})(\d{2})(?!\d)"),
]

_MIN_YEAR = 1900
_MAX_YEAR = 2099


def parse_filename_date(filename: str) -> Optional[datetime]:
    """Extract a capture time encoded in a filename.

    Patterns are tried in order and the first one that yields a real
    calendar date wins. Date-only matches resolve to midnight.

    Examples:
        >>> parse_filename_date("IMG_20250101_120000.jpg")
        datetime.datetime(2025, 1, 1, 12, 0)
        >>> parse_filename_date("holiday.jpg") is None
        True
    """
    for pattern in _FILENAME_PATTERNS:
        for match in pattern.finditer(filename):
            parts = [int(p) for p in match.groups()]
            if not _MIN_YEAR <= parts[0] <= _MAX_YEAR:
                continue
            try:
                return datetime(*parts)
            except ValueError:
                continue
    return None


def parse_exif_datetime(value) -> Optional[datetime]:
    """Parse an EXIF "YYYY:MM:DD HH:MM:SS" value, or None if unusable."""
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    text = value.strip().strip("\x00")
    if not text or text.startswith("0000"):
        return None
    return datetime.strptime(text[:19], EXIF_DATE_FORMAT)


def parse_subsec(value) -> Optional[int]:
    """Turn a SubsecTime string into milliseconds (0-999).

    "5" means 0.5 s, so digits are right-padded to three places.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    digits = re.sub(r"\D", "", str(value or ""))
    if not digits:
        return None
    return int(digits[:3].ljust(3, "0"))


class MetadataExtractor:
    """Fills candidate dates, timezone, orientation and size on records.

    Usage:
        extractor = MetadataExtractor()
        extractor.extract(record)

        # Or a whole scan, in parallel
        extractor.extract_all(records, parallel=True)
    """

    # Below this, thread pool overhead outweighs benefits
    _PARALLEL_THRESHOLD = 8

    def __init__(self, max_workers: int = 4):
        """Initialize extractor.

        Args:
            max_workers: Thread count for extract_all(parallel=True).
        """
        self.max_workers = max_workers

    def extract(self, record: MediaRecord) -> MediaRecord:
        """Populate every candidate the file offers. Never raises."""
        if record.is_photo:
            try:
                self._read_image_metadata(record)
            except Exception as e:
                # Filename and file dates are still read below
                self._report(record, MetadataError(f"Cannot read image metadata: {e}", record.original_path))

        record.filename_date = parse_filename_date(record.file_name)
        if record.filename_date:
            record.info(f"Filename date: {record.filename_date.isoformat()}")

        self._read_file_dates(record)
        return record

    def extract_all(
        self,
        records: List[MediaRecord],
        parallel: bool = True,
        on_progress: Optional[ProgressCallback] = None
    ) -> List[MediaRecord]:
        """Extract metadata for many records.

        Each task only touches its own record, so no locking is needed.

        Args:
            records: Records from the scanner.
            parallel: Use a thread pool instead of a sequential loop.
            on_progress: Optional callback, called with (done, total, message).

        Returns:
            The same records, enriched.
        """
        total = len(records)
        if not parallel or total < self._PARALLEL_THRESHOLD:
            for i, record in enumerate(records):
                self.extract(record)
                if on_progress:
                    on_progress(i + 1, total, f"Reading: {record.file_name}")
            return records

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.extract, r): r for r in records}
            done = 0
            for future in as_completed(futures):
                record = futures[future]
                try:
                    future.result()
                except Exception as e:
                    # extract() handles its own errors; this is a bug guard
                    logger.warning(f"Metadata extraction crashed for {record.original_path}: {e}")
                    record.warning(f"Metadata extraction failed: {e}")
                done += 1
                if on_progress:
                    on_progress(done, total, f"Reading: {record.file_name}")

        return records

    def _read_image_metadata(self, record: MediaRecord) -> None:
        """Read size and EXIF tags from a photo."""
        try:
            with Image.open(record.original_path) as img:
                record.width, record.height = img.size
                exif = img.getexif()
        except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
            self._report(record, MetadataError(f"Cannot decode image: {e}", record.original_path))
            return

        try:
            exif_ifd = exif.get_ifd(TAG_EXIF_IFD)
        except (KeyError, ValueError, TypeError) as e:
            self._report(record, MetadataError(f"Bad Exif IFD: {e}", record.original_path, "ExifIFD"))
            exif_ifd = {}

        self._read_tag(record, "DateTimeOriginal", lambda: self._capture_time(exif, exif_ifd), self._set_exif_date)
        self._read_tag(record, "SubsecTimeOriginal", lambda: parse_subsec(exif_ifd.get(TAG_SUBSEC_TIME_ORIGINAL)), self._set_subsec)
        self._read_tag(record, "OffsetTimeOriginal", lambda: self._timezone(exif_ifd), self._set_timezone)
        self._read_tag(record, "Orientation", lambda: exif.get(TAG_ORIENTATION), self._set_orientation)

    def _read_tag(
        self,
        record: MediaRecord,
        tag: str,
        read: Callable[[], object],
        store: Callable[[MediaRecord, object], None]
    ) -> None:
        try:
            value = read()
            if value is not None:
                store(record, value)
        except (ValueError, TypeError, KeyError, OSError) as e:
            self._report(record, MetadataError(f"Cannot decode {tag}: {e}", record.original_path, tag))

    @staticmethod
    def _capture_time(exif, exif_ifd) -> Optional[datetime]:
        for value in (
            exif_ifd.get(TAG_DATETIME_ORIGINAL),
            exif_ifd.get(TAG_DATETIME_DIGITIZED),
            exif.get(TAG_DATETIME),
        ):
            if value:
                parsed = parse_exif_datetime(value)
                if parsed:
                    return parsed
        return None

    @staticmethod
    def _timezone(exif_ifd) -> Optional[str]:
        for tag in (TAG_OFFSET_TIME_ORIGINAL, TAG_OFFSET_TIME):
            value = exif_ifd.get(tag)
            if value:
                if isinstance(value, bytes):
                    value = value.decode("ascii", errors="ignore")
                return format_offset(parse_offset(str(value).strip("\x00 ")))
        return None

    @staticmethod
    def _set_exif_date(record: MediaRecord, value) -> None:
        record.exif_date = value
        record.info(f"EXIF date: {value.isoformat()}")

    @staticmethod
    def _set_subsec(record: MediaRecord, value) -> None:
        record.exif_subsec = value

    @staticmethod
    def _set_timezone(record: MediaRecord, value) -> None:
        record.timezone = value

    @staticmethod
    def _set_orientation(record: MediaRecord, value) -> None:
        orientation = int(value)
        if orientation in VALID_ORIENTATIONS:
            record.exif_orientation = orientation
        else:
            logger.debug(f"Ignoring orientation {orientation} on {record.original_path}")

    def _read_file_dates(self, record: MediaRecord) -> None:
        """Read filesystem creation/modification times."""
        try:
            dates = filedate.File(record.original_path).get()
        except Exception as e:
            self._report(record, MetadataError(f"Cannot read file dates: {e}", record.original_path))
            return
        record.file_created_date = _strip_tz(dates.get("created"))
        record.file_modified_date = _strip_tz(dates.get("modified"))

    @staticmethod
    def _report(record: MediaRecord, error: MetadataError) -> None:
        logger.debug(str(error))
        record.warning(error.message)


def _strip_tz(value: Optional[datetime]) -> Optional[datetime]:
    """Drop tzinfo so filesystem dates compare with naive EXIF dates."""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


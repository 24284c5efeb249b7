"""Date resolution and timezone correction.

Everything here is pure: no filesystem access, no mutation beyond the record
handed to DateResolver.apply().
"""

import re
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence, Tuple

from phr.core.models import (
    DateSource, MediaRecord, MediaType, TZ_EXIF, TZ_NONE,
)

# Automatic priority per media type. Embedded video timestamps are not read,
# so Exif never appears for videos.
PHOTO_PRIORITY: Tuple[DateSource, ...] = (
    DateSource.EXIF,
    DateSource.FILENAME,
    DateSource.FILE_CREATED,
    DateSource.FILE_MODIFIED,
)
VIDEO_PRIORITY: Tuple[DateSource, ...] = (
    DateSource.FILE_MODIFIED,
    DateSource.FILENAME,
    DateSource.FILE_CREATED,
)

_OFFSET_RE = re.compile(r"^([+-])(\d{2})(?::?(\d{2}))?$")

# Real-world offsets span -12:00 .. +14:00
_MAX_OFFSET_HOURS = 14


def parse_offset(value: str) -> int:
    """Parse a UTC offset string into signed minutes.

    Accepts "+HH:MM", "+HHMM", "+HH", "Z" and "UTC".

    Examples:
        >>> parse_offset("+09:00")
        540
        >>> parse_offset("-05:00")
        -300
        >>> parse_offset("+05:30")
        330

    Raises:
        ValueError: If the string isn't a valid offset.
    """
    text = value.strip()
    if text.upper() in ("Z", "UTC"):
        return 0

    match = _OFFSET_RE.match(text)
    if not match:
        raise ValueError(f"Invalid UTC offset: {value!r}")

    sign, hours, minutes = match.groups()
    hours = int(hours)
    minutes = int(minutes or 0)
    if hours > _MAX_OFFSET_HOURS or minutes >= 60:
        raise ValueError(f"UTC offset out of range: {value!r}")

    total = hours * 60 + minutes
    return -total if sign == "-" else total


def format_offset(minutes: int) -> str:
    """Format signed minutes as "+HH:MM"."""
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def validate_timezone_offset(value: Optional[str]) -> str:
    """Normalize a timezone correction setting.

    Returns "none", "exif" or a canonical "+HH:MM" string.

    Raises:
        ValueError: If value is neither a mode nor a valid offset.
    """
    if value is None:
        return TZ_NONE
    text = value.strip()
    if text.lower() in (TZ_NONE, ""):
        return TZ_NONE
    if text.lower() == TZ_EXIF:
        return TZ_EXIF
    return format_offset(parse_offset(text))


def effective_offset(record: MediaRecord) -> Optional[int]:
    """Offset in minutes the record's timezone correction asks for.

    Returns None when no shift applies: mode "none", or mode "exif" without
    an embedded timezone.
    """
    mode = record.timezone_offset or TZ_NONE
    if mode == TZ_NONE:
        return None
    if mode == TZ_EXIF:
        if not record.timezone:
            return None
        try:
            return parse_offset(record.timezone)
        except ValueError:
            return None
    return parse_offset(mode)


def local_capture_time(record: MediaRecord) -> Optional[datetime]:
    """The wall-clock time to encode in the record's name and directory.

    date_taken is treated as a UTC-naive time and the effective offset is
    added to it directly, so "+09:00" turns 10:30 into 19:30.
    """
    if record.date_taken is None:
        return None
    offset = effective_offset(record)
    if offset is None:
        return record.date_taken
    return record.date_taken + timedelta(minutes=offset)


class DateResolver:
    """Chooses one authoritative date per record from its candidate dates.

    Usage:
        resolver = DateResolver()
        source, date = resolver.resolve(record.candidates(), MediaType.PHOTO)

        # Or update the record in place
        resolver.apply(record)
    """

    def __init__(
        self,
        photo_preferred: DateSource = DateSource.EXIF,
        video_preferred: DateSource = DateSource.FILE_MODIFIED
    ):
        """Initialize resolver.

        Args:
            photo_preferred: Source tried first for photos.
            video_preferred: Source tried first for videos.
        """
        self.photo_priority = self._with_preferred(PHOTO_PRIORITY, photo_preferred)
        self.video_priority = self._with_preferred(VIDEO_PRIORITY, video_preferred)

    @staticmethod
    def _with_preferred(
        base: Sequence[DateSource],
        preferred: DateSource
    ) -> Tuple[DateSource, ...]:
        if preferred == DateSource.NONE:
            return tuple(base)
        return (preferred,) + tuple(s for s in base if s != preferred)

    def priority_for(self, media_type: MediaType) -> Tuple[DateSource, ...]:
        if media_type == MediaType.PHOTO:
            return self.photo_priority
        return self.video_priority

    def resolve(
        self,
        candidates: Dict[DateSource, Optional[datetime]],
        media_type: MediaType,
        selected: Optional[DateSource] = None
    ) -> Tuple[DateSource, Optional[datetime]]:
        """Pick the first available candidate.

        Args:
            candidates: Candidate dates keyed by source.
            media_type: Decides the automatic priority.
            selected: Explicit user choice. When given, only that source is
                      consulted.

        Returns:
            (source, date), or (DateSource.NONE, None) if nothing is available.
        """
        if selected is not None and selected != DateSource.NONE:
            order: Sequence[DateSource] = (selected,)
        else:
            order = self.priority_for(media_type)

        for source in order:
            date = candidates.get(source)
            if date is not None:
                return source, date
        return DateSource.NONE, None

    def apply(self, record: MediaRecord) -> MediaRecord:
        """Resolve record's date and write date_source/date_taken/subsec_time."""
        source, date = self.resolve(
            record.candidates(), record.media_type, record.selected_source
        )
        record.date_source = source
        record.date_taken = date
        # Subseconds only come from the embedded tag
        record.subsec_time = record.exif_subsec if source == DateSource.EXIF else None
        return record

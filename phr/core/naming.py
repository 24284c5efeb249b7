"""Destination directory and filename computation.

Filename grammar:  YYYY-MM-DD_HH-MM-SS[-mmm][_NN].ext
Directory grammar: <root>/YYYY/YYYY-MM/YYYY-MM-DD/
"""

import logging
import os
from datetime import datetime
from typing import List, Optional, Set

from phr.core.dates import local_capture_time
from phr.core.errors import DateResolutionError
from phr.core.models import MediaRecord, TZ_EXIF, TZ_NONE, UNKNOWN_DATE_NAME
from phr.core.utils import get_unique_path

logger = logging.getLogger(__name__)


def format_stem(
    moment: datetime,
    subsec_time: Optional[int] = None,
    burst_index: Optional[int] = None
) -> str:
    """Build the filename stem for a capture time.

    Examples:
        >>> format_stem(datetime(2025, 1, 15, 10, 30))
        '2025-01-15_10-30-00'
        >>> format_stem(datetime(2025, 1, 15, 10, 30), subsec_time=42, burst_index=3)
        '2025-01-15_10-30-00-042_03'
    """
    stem = moment.strftime("%Y-%m-%d_%H-%M-%S")
    if subsec_time is not None:
        stem += f"-{subsec_time:03d}"
    if burst_index is not None:
        stem += f"_{burst_index:02d}"
    return stem


def date_directory(output_root: str, moment: datetime) -> str:
    """<output_root>/YYYY/YYYY-MM/YYYY-MM-DD"""
    return os.path.join(
        output_root,
        moment.strftime("%Y"),
        moment.strftime("%Y-%m"),
        moment.strftime("%Y-%m-%d"),
    )


def build_name(record: MediaRecord) -> str:
    """Destination filename for a record (no collision handling).

    Raises:
        DateResolutionError: If the record has no resolved date. The record's
            new_name is set to the unknown-date sentinel first.
    """
    moment = local_capture_time(record)
    if moment is None:
        record.new_name = UNKNOWN_DATE_NAME + record.extension
        raise DateResolutionError("No date available", record.original_path)
    return format_stem(moment, record.subsec_time, record.burst_index) + record.extension


class PathPlanner:
    """Assigns unique destination paths to a batch of records.

    Planning is sequential and in scan order so that collision suffixes are
    deterministic; the parallel write phase only consumes the plan.

    Usage:
        planner = PathPlanner("/output")
        for record in records:
            planner.plan(record)
    """

    def __init__(self, output_root: str, reserved: Optional[List[str]] = None):
        """Initialize planner.

        Args:
            output_root: Root of the dated directory tree.
            reserved: Destination paths already owned by other records (e.g.
                      completed records when retrying).
        """
        self.output_root = output_root
        self._reserved: Set[str] = {os.path.normpath(p) for p in (reserved or []) if p}

    def plan(self, record: MediaRecord) -> str:
        """Compute and store record.new_name and record.new_path.

        Raises:
            DateResolutionError: If the record has no resolved date.
        """
        name = build_name(record)
        moment = local_capture_time(record)
        directory = date_directory(self.output_root, moment)

        if record.timezone_offset == TZ_EXIF and not record.timezone:
            record.warning("EXIF timezone correction requested but no timezone is embedded")
        elif record.timezone_offset != TZ_NONE and moment != record.date_taken:
            record.info(f"Timezone correction {record.timezone_offset}: {moment.isoformat()}")

        desired = os.path.join(directory, name)
        path = get_unique_path(desired, self._reserved, own_path=record.original_path)
        if path != desired:
            record.warning(f"{name} already taken, using {os.path.basename(path)}")
            logger.debug(f"Collision on {desired}, using {path}")

        self._reserved.add(os.path.normpath(path))
        record.new_name = os.path.basename(path)
        record.new_path = path
        record.info(f"Destination: {path}")
        return path

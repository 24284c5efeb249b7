"""File writing for PhotoReturns.

Handles backup, rotation, copy/move into the dated tree and timestamping.
"""

import logging
import os
import shutil
from typing import List, Optional

import filedate

from phr.core.dates import local_capture_time
from phr.core.errors import RotationError, WriteError
from phr.core.models import MediaRecord, RecordStatus
from phr.core.orientation import OrientationCorrector, TEMP_PREFIX, TEMP_SUFFIX
from phr.core.utils import checkout_dir, relative_to, same_path

logger = logging.getLogger(__name__)


class FileProcessor:
    """Writes planned records to their destination.

    Every call only touches its own record and its own destination path
    (paths are made unique before processing starts), so process_record()
    can run on many worker threads at once.

    Usage:
        with FileProcessor(input_dir, output_dir, backup_dir=backup) as processor:
            status = processor.process_record(record)
    """

    def __init__(
        self,
        input_dir: str,
        output_dir: str,
        backup_dir: Optional[str] = None,
        corrector: Optional[OrientationCorrector] = None
    ):
        """Initialize processor.

        Args:
            input_dir: Scanned root, used to mirror paths under backup_dir.
            output_dir: Root of the dated output tree. When it is the same
                        directory as input_dir, files are moved instead of
                        copied.
            backup_dir: If set, each original is copied here before it is
                        written.
            corrector: Orientation corrector (default: a new one).
        """
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.backup_dir = backup_dir
        self.in_place = same_path(input_dir, output_dir)
        self.corrector = corrector or OrientationCorrector()

        # Cache for created directories (avoids redundant os.makedirs calls)
        self._created_dirs: set = set()

    def __enter__(self) -> "FileProcessor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._created_dirs.clear()

    def _get_dest_dir(self, dest_path: str) -> str:
        """Get the destination directory, creating it if needed.

        Raises:
            WriteError: If the directory can't be created.
        """
        dest_dir = os.path.dirname(dest_path)
        if dest_dir not in self._created_dirs:
            try:
                checkout_dir(dest_dir)
            except (OSError, ValueError) as e:
                raise WriteError(f"Cannot create directory: {e}", dest_dir) from e
            self._created_dirs.add(dest_dir)
        return dest_dir

    def process_record(self, record: MediaRecord) -> RecordStatus:
        """Write one record to record.new_path.

        Args:
            record: A record whose destination has been planned.

        Returns:
            RecordStatus.COMPLETED, or RecordStatus.NO_CHANGE when the file
            is already where it belongs and needs no rotation.

        Raises:
            WriteError: If backup, copy, move or directory creation fails.
            RotationError: If the image can't be rotated.
        """
        src = record.original_path
        dest = record.new_path
        if not dest:
            raise WriteError("No destination planned", src)

        try:
            degrees = self.corrector.degrees_for(record)
        except ValueError as e:
            raise RotationError(str(e), src) from e

        if degrees == 0 and same_path(src, dest):
            record.info("Already organized, nothing to do")
            return RecordStatus.NO_CHANGE

        if self.backup_dir:
            self._backup(record)

        self._get_dest_dir(dest)

        if degrees:
            self.corrector.write_rotated(src, dest, record)
            if self.in_place and not same_path(src, dest):
                self._remove_source(src)
        elif self.in_place:
            try:
                shutil.move(src, dest)
            except OSError as e:
                raise WriteError(f"Failed to move: {e}", src) from e
            record.info(f"Moved to {dest}")
        else:
            try:
                shutil.copy2(src, dest)
            except OSError as e:
                raise WriteError(f"Failed to copy: {e}", src) from e
            record.info(f"Copied to {dest}")

        self._set_file_dates(record)
        return RecordStatus.COMPLETED

    def _backup(self, record: MediaRecord) -> str:
        """Copy the original under backup_dir, mirroring its input path."""
        backup_path = os.path.join(
            self.backup_dir, relative_to(record.original_path, self.input_dir)
        )
        try:
            checkout_dir(os.path.dirname(backup_path))
            shutil.copy2(record.original_path, backup_path)
        except (OSError, ValueError) as e:
            raise WriteError(f"Backup failed: {e}", record.original_path) from e
        record.info(f"Backed up to {backup_path}")
        return backup_path

    def _remove_source(self, src: str) -> None:
        try:
            os.remove(src)
        except OSError as e:
            raise WriteError(f"Rotated copy written but source not removed: {e}", src) from e

    def _set_file_dates(self, record: MediaRecord) -> None:
        """Stamp the output with the capture time. Failure is non-fatal."""
        moment = local_capture_time(record)
        if moment is None:
            return
        try:
            filedate.File(record.new_path).set(created=moment, modified=moment)
        except Exception as e:
            logger.debug(f"Could not set file dates on {record.new_path}: {e}")
            record.warning(f"Could not set file dates: {e}")


def cleanup_temp_files(root: str) -> List[str]:
    """Delete leftover rotation temp files under root.

    These are only left behind when a previous run was killed mid-write.

    Returns:
        Paths that were removed.
    """
    removed = []
    for dirpath, dirnames, filenames in os.walk(root):
        for name in filenames:
            if name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX):
                path = os.path.join(dirpath, name)
                try:
                    os.remove(path)
                    removed.append(path)
                except OSError as e:
                    logger.warning(f"Could not remove temp file {path}: {e}")
    if removed:
        logger.info(f"Removed {len(removed)} leftover temp files from {root}")
    return removed

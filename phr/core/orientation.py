"""Pixel rotation and orientation tag normalization.

The rotated output always carries orientation 1 (or no orientation tag for
formats without EXIF), so running the corrector again on its own output in
"exif" mode is a no-op.
"""

import logging
import os
import tempfile
from typing import Optional

from PIL import Image, UnidentifiedImageError

from phr.core.errors import RotationError
from phr.core.metadata import TAG_ORIENTATION
from phr.core.models import MediaRecord, ROTATION_EXIF, ROTATION_NONE

logger = logging.getLogger(__name__)

# EXIF orientation value -> clockwise degrees needed to display upright
ORIENTATION_DEGREES = {1: 0, 3: 180, 6: 90, 8: 270}

NORMAL_ORIENTATION = 1

# Clockwise degrees -> Pillow transpose (Pillow's ROTATE_* are counter-clockwise)
_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}

# Formats Pillow can write an EXIF block into
_EXIF_FORMATS = frozenset({"JPEG", "PNG", "WEBP", "TIFF", "HEIF"})

TEMP_PREFIX = ".phr_"
TEMP_SUFFIX = ".tmp"


def rotation_degrees(rotation_mode: str, exif_orientation: Optional[int]) -> int:
    """Resolve a rotation mode to clockwise degrees.

    Examples:
        >>> rotation_degrees("exif", 6)
        90
        >>> rotation_degrees("exif", 1)
        0
        >>> rotation_degrees("180", None)
        180

    Raises:
        ValueError: If rotation_mode is not a known mode.
    """
    if rotation_mode == ROTATION_NONE:
        return 0
    if rotation_mode == ROTATION_EXIF:
        return ORIENTATION_DEGREES.get(exif_orientation, 0)
    degrees = int(rotation_mode)
    if degrees not in _TRANSPOSE:
        raise ValueError(f"Unknown rotation mode: {rotation_mode!r}")
    return degrees


class OrientationCorrector:
    """Writes an upright copy of a photo with a normalized orientation tag.

    Usage:
        corrector = OrientationCorrector()
        if corrector.needs_rotation(record):
            corrector.write_rotated(record.original_path, dest, record)
    """

    # JPEG re-encode quality for rotated output
    JPEG_QUALITY = 95

    def degrees_for(self, record: MediaRecord) -> int:
        """Clockwise degrees to apply to record (0 for videos)."""
        if not record.is_photo:
            return 0
        return rotation_degrees(record.rotation_mode, record.exif_orientation)

    def needs_rotation(self, record: MediaRecord) -> bool:
        return self.degrees_for(record) != 0

    def write_rotated(self, src: str, dest: str, record: MediaRecord) -> int:
        """Rotate src and write it to dest.

        The image is encoded to a temp file beside dest and moved into place
        with os.replace, so dest is never left half-written.

        Args:
            src: Source image path.
            dest: Destination path (its directory must exist).
            record: Supplies the rotation mode; rotation_applied is set on
                    success.

        Returns:
            Degrees rotated.

        Raises:
            RotationError: If the image can't be decoded, rotated or written.
        """
        degrees = self.degrees_for(record)
        if degrees == 0:
            return 0

        try:
            with Image.open(src) as img:
                # Multi-picture JPEGs are written back as plain JPEG
                fmt = "JPEG" if img.format == "MPO" else img.format
                exif = img.getexif()
                rotated = img.transpose(_TRANSPOSE[degrees])
        except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
            raise RotationError(f"Cannot decode image for rotation: {e}", src) from e

        save_kwargs = self._save_options(fmt, exif)

        fd, tmp_path = tempfile.mkstemp(
            dir=os.path.dirname(dest), prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX
        )
        os.close(fd)
        try:
            rotated.save(tmp_path, format=fmt, **save_kwargs)
            os.replace(tmp_path, dest)
        except (OSError, ValueError, KeyError) as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise RotationError(f"Cannot write rotated image: {e}", dest) from e

        logger.debug(f"Rotated {src} by {degrees} degrees into {dest}")
        record.rotation_applied = True
        record.info(f"Rotated {degrees} degrees, orientation reset to {NORMAL_ORIENTATION}")
        return degrees

    def _save_options(self, fmt: Optional[str], exif: Image.Exif) -> dict:
        options = {}
        if fmt in _EXIF_FORMATS:
            exif[TAG_ORIENTATION] = NORMAL_ORIENTATION
            options["exif"] = exif.tobytes()
        if fmt in ("JPEG", "WEBP", "HEIF"):
            options["quality"] = self.JPEG_QUALITY
        return options

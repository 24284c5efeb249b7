"""Tests for phr.core.metadata module."""

import os
from datetime import datetime
from unittest.mock import patch

import pytest

from phr.core.metadata import (
    MetadataExtractor,
    parse_exif_datetime,
    parse_filename_date,
    parse_subsec,
)
from phr.core.models import LogLevel, MediaRecord, MediaType


def _record_for(path: str) -> MediaRecord:
    name = os.path.basename(path)
    media_type = MediaType.VIDEO if name.lower().endswith(".mp4") else MediaType.PHOTO
    return MediaRecord(path, name, media_type)


class TestParseFilenameDate:
    """Tests for parse_filename_date()."""

    @pytest.mark.parametrize("name,expected", [
        ("2025-01-15_10-30-00.jpg", datetime(2025, 1, 15, 10, 30)),
        ("2025-01-15 10.30.00.jpg", datetime(2025, 1, 15, 10, 30)),
        ("IMG_20250115_103000.jpg", datetime(2025, 1, 15, 10, 30)),
        ("PXL_20250115_103000123.jpg", datetime(2025, 1, 15, 10, 30)),
        ("VID20250115103000.mp4", datetime(2025, 1, 15, 10, 30)),
        ("Screenshot 2025-01-15.png", datetime(2025, 1, 15)),
        ("IMG-20250115-WA0001.jpg", datetime(2025, 1, 15)),
    ])
    def test_known_patterns(self, name, expected):
        assert parse_filename_date(name) == expected

    @pytest.mark.parametrize("name", [
        "holiday.jpg",
        "IMG_1234.JPG",
        "2025-13-45.jpg",
        "18000101_120000.jpg",
    ])
    def test_no_date(self, name):
        assert parse_filename_date(name) is None


class TestExifValueParsing:
    """Tests for parse_exif_datetime() / parse_subsec()."""

    def test_exif_datetime(self):
        assert parse_exif_datetime("2025:01:15 10:30:00") == datetime(2025, 1, 15, 10, 30)

    def test_exif_datetime_bytes_with_nul(self):
        assert parse_exif_datetime(b"2025:01:15 10:30:00\x00") == datetime(2025, 1, 15, 10, 30)

    def test_exif_datetime_zeroed_is_none(self):
        assert parse_exif_datetime("0000:00:00 00:00:00") is None

    def test_exif_datetime_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_exif_datetime("yesterday")

    @pytest.mark.parametrize("value,expected", [
        ("123", 123),
        ("5", 500),
        ("04", 40),
        ("123456", 123),
        ("", None),
        (None, None),
    ])
    def test_subsec(self, value, expected):
        assert parse_subsec(value) == expected


class TestMetadataExtractor:
    """Tests for MetadataExtractor."""

    def test_reads_exif_fields(self, make_jpeg):
        path = make_jpeg(
            "a.jpg", taken="2025:01:15 10:30:00", offset="+09:00", subsec="042", orientation=6
        )
        record = MetadataExtractor().extract(_record_for(path))

        assert record.exif_date == datetime(2025, 1, 15, 10, 30)
        assert record.timezone == "+09:00"
        assert record.exif_subsec == 42
        assert record.exif_orientation == 6
        assert (record.width, record.height) == (40, 20)

    def test_file_dates_populated(self, make_jpeg):
        record = MetadataExtractor().extract(_record_for(make_jpeg("a.jpg")))

        assert record.exif_date is None
        assert record.file_modified_date is not None
        assert record.file_modified_date.tzinfo is None

    def test_filename_date(self, make_jpeg):
        path = make_jpeg("IMG_20240102_030405.jpg")
        record = MetadataExtractor().extract(_record_for(path))

        assert record.filename_date == datetime(2024, 1, 2, 3, 4, 5)

    def test_video_skips_image_decoding(self, make_file):
        path = make_file("VID_20240102_030405.mp4", mtime=datetime(2024, 3, 1, 12, 0))

        with patch("phr.core.metadata.Image.open") as mock_open:
            record = MetadataExtractor().extract(_record_for(path))

        mock_open.assert_not_called()
        assert record.filename_date == datetime(2024, 1, 2, 3, 4, 5)
        assert record.file_modified_date == datetime(2024, 3, 1, 12, 0)

    def test_corrupt_image_is_warning_not_error(self, make_file):
        path = make_file("broken.jpg", data=b"not really a jpeg")
        record = MetadataExtractor().extract(_record_for(path))

        assert record.exif_date is None
        assert record.width is None
        assert any(e.level == LogLevel.WARNING for e in record.logs)
        # Other candidates still read
        assert record.file_modified_date is not None

    def test_oversized_image_still_reads_other_candidates(self, make_oversized_png):
        path = make_oversized_png("IMG_20240102_030405.png", mtime=datetime(2024, 3, 1, 12, 0))

        record = MetadataExtractor().extract(_record_for(path))

        assert record.width is None
        assert any("Cannot decode image" in e.message for e in record.logs)
        assert record.filename_date == datetime(2024, 1, 2, 3, 4, 5)
        assert record.file_modified_date == datetime(2024, 3, 1, 12, 0)

    def test_sequential_extract_all_survives_unexpected_errors(self, make_jpeg):
        path = make_jpeg("IMG_20240102_030405.jpg")

        with patch("phr.core.metadata.Image.open", side_effect=RuntimeError("decoder bug")):
            records = MetadataExtractor().extract_all([_record_for(path)], parallel=False)

        assert records[0].filename_date == datetime(2024, 1, 2, 3, 4, 5)
        assert records[0].file_modified_date is not None
        assert any("decoder bug" in e.message for e in records[0].logs)

    def test_bad_tag_does_not_block_others(self, make_jpeg):
        path = make_jpeg("a.jpg", taken="2025:01:15 10:30:00", orientation=6)

        with patch("phr.core.metadata.parse_subsec", side_effect=ValueError("bad subsec")):
            record = MetadataExtractor().extract(_record_for(path))

        assert record.exif_date == datetime(2025, 1, 15, 10, 30)
        assert record.exif_orientation == 6
        assert any("SubsecTimeOriginal" in e.message for e in record.logs)

    def test_invalid_orientation_ignored(self, make_jpeg):
        path = make_jpeg("a.jpg", orientation=5)
        record = MetadataExtractor().extract(_record_for(path))

        assert record.exif_orientation is None

    def test_file_date_failure_is_warning(self, make_jpeg):
        path = make_jpeg("a.jpg")

        with patch("phr.core.metadata.filedate.File", side_effect=OSError("denied")):
            record = MetadataExtractor().extract(_record_for(path))

        assert record.file_created_date is None
        assert record.file_modified_date is None
        assert any("file dates" in e.message for e in record.logs)

    @pytest.mark.parametrize("parallel", [True, False])
    def test_extract_all(self, make_jpeg, parallel):
        records = [
            _record_for(make_jpeg(f"IMG_2025010{i}_120000.jpg")) for i in range(1, 10)
        ]
        calls = []

        MetadataExtractor(max_workers=3).extract_all(
            records, parallel=parallel, on_progress=lambda c, t, m: calls.append((c, t))
        )

        assert all(r.filename_date is not None for r in records)
        assert calls[-1] == (9, 9)

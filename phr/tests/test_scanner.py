"""Tests for phr.core.scanner module."""

import os
from unittest.mock import patch

from phr.core.errors import ScanError
from phr.core.models import MediaType
from phr.core.scanner import MediaScanner, media_type_for


class TestMediaTypeFor:
    """Tests for media_type_for()."""

    def test_photo_extensions_case_insensitive(self):
        assert media_type_for("a.JPG") == MediaType.PHOTO
        assert media_type_for("a.heic") == MediaType.PHOTO
        assert media_type_for("a.TIFF") == MediaType.PHOTO

    def test_video_extensions(self):
        assert media_type_for("a.MOV") == MediaType.VIDEO
        assert media_type_for("a.3gp") == MediaType.VIDEO

    def test_videos_excluded(self):
        assert media_type_for("a.mp4", include_videos=False) is None

    def test_unsupported(self):
        assert media_type_for("notes.txt") is None
        assert media_type_for("README") is None


class TestMediaScanner:
    """Tests for MediaScanner class."""

    def test_finds_media_recursively(self, input_dir, make_file):
        make_file("a.jpg")
        make_file("sub/b.PNG")
        make_file("sub/deeper/c.mp4")
        make_file("notes.txt")

        records = MediaScanner(input_dir).scan()

        names = sorted(r.file_name for r in records)
        assert names == ["a.jpg", "b.PNG", "c.mp4"]

    def test_records_start_minimal(self, input_dir, make_file):
        make_file("a.jpg", data=b"12345")

        record = MediaScanner(input_dir).scan()[0]

        assert record.original_path == os.path.join(input_dir, "a.jpg")
        assert record.media_type == MediaType.PHOTO
        assert record.file_size == 5
        assert record.date_taken is None
        assert record.new_path == ""

    def test_order_is_deterministic(self, input_dir, make_file):
        for name in ("c.jpg", "a.jpg", "b.jpg", "z/d.jpg"):
            make_file(name)

        records = MediaScanner(input_dir).scan()

        assert [r.file_name for r in records] == ["a.jpg", "b.jpg", "c.jpg", "d.jpg"]

    def test_exclude_videos(self, input_dir, make_file):
        make_file("a.jpg")
        make_file("b.mov")

        scanner = MediaScanner(input_dir, include_videos=False)
        records = scanner.scan()

        assert [r.file_name for r in records] == ["a.jpg"]
        assert scanner.video_count == 0

    def test_counts(self, input_dir, make_file):
        make_file("a.jpg")
        make_file("b.jpg")
        make_file("c.mov")

        scanner = MediaScanner(input_dir)
        assert not scanner.is_scanned
        scanner.scan()

        assert scanner.is_scanned
        assert scanner.photo_count == 2
        assert scanner.video_count == 1

    def test_skips_metadata_dir(self, input_dir, make_file):
        make_file("a.jpg")
        make_file("_phr/leftover.jpg")

        records = MediaScanner(input_dir).scan()

        assert [r.file_name for r in records] == ["a.jpg"]

    def test_empty_directory(self, input_dir):
        assert MediaScanner(input_dir).scan() == []

    def test_unreadable_directory_is_skipped(self, input_dir, make_file):
        make_file("a.jpg")
        make_file("locked/b.jpg")
        locked = os.path.join(input_dir, "locked")
        real_scandir = os.scandir

        def fake_scandir(path):
            if path == locked:
                raise PermissionError(13, "Permission denied")
            return real_scandir(path)

        scanner = MediaScanner(input_dir)
        with patch("phr.core.scanner.os.scandir", side_effect=fake_scandir):
            records = scanner.scan()

        assert [r.file_name for r in records] == ["a.jpg"]
        assert len(scanner.errors) == 1
        assert isinstance(scanner.errors[0], ScanError)
        assert scanner.errors[0].path == locked

    def test_progress_callback(self, input_dir, make_file):
        make_file("a.jpg")
        calls = []

        MediaScanner(input_dir).scan(on_progress=lambda c, t, m: calls.append((c, t, m)))

        assert calls[-1][0] == 1
        assert "complete" in calls[-1][2].lower()

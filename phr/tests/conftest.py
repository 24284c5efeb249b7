"""Pytest configuration and fixtures."""

import os
import shutil
import struct
import tempfile
import zlib
from datetime import datetime
from typing import Callable, Generator, Optional

import pytest
from PIL import Image


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir)


@pytest.fixture
def input_dir(temp_dir: str) -> str:
    """An empty input directory inside temp_dir."""
    path = os.path.join(temp_dir, "input")
    os.makedirs(path)
    return path


@pytest.fixture
def output_dir(temp_dir: str) -> str:
    """Output directory path (not created) next to the input directory."""
    return os.path.join(temp_dir, "output")


def write_jpeg(
    path: str,
    taken: Optional[str] = None,
    offset: Optional[str] = None,
    subsec: Optional[str] = None,
    orientation: Optional[int] = None,
    size: tuple = (40, 20)
) -> str:
    """Write a small JPEG with the given EXIF tags.

    Args:
        path: Where to write the file (parent directories are created).
        taken: DateTimeOriginal as "YYYY:MM:DD HH:MM:SS".
        offset: OffsetTimeOriginal, e.g. "+09:00".
        subsec: SubsecTimeOriginal, e.g. "123".
        orientation: EXIF orientation (1, 3, 6, 8).
        size: (width, height) of the image.
    """
    os.makedirs(os.path.dirname(path), exist_ok=True)
    img = Image.new("RGB", size, color=(200, 30, 30))
    # Left half dark so rotation is observable
    for x in range(size[0] // 2):
        for y in range(size[1]):
            img.putpixel((x, y), (0, 0, 0))

    exif = Image.Exif()
    if orientation is not None:
        exif[0x0112] = orientation
    if taken is not None:
        exif[0x0132] = taken
    sub_ifd = {}
    if taken is not None:
        sub_ifd[0x9003] = taken
    if offset is not None:
        sub_ifd[0x9011] = offset
    if subsec is not None:
        sub_ifd[0x9291] = subsec
    if sub_ifd:
        exif[0x8769] = sub_ifd

    img.save(path, "JPEG", exif=exif.tobytes())
    return path


def write_file(path: str, data: bytes = b"fake media data", mtime: Optional[datetime] = None) -> str:
    """Write a plain file, optionally with a fixed modification time."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    if mtime is not None:
        stamp = mtime.timestamp()
        os.utime(path, (stamp, stamp))
    return path


def png_header(width: int, height: int) -> bytes:
    """PNG signature and IHDR chunk for an RGB image of the given size (no pixel data)."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    chunk = b"IHDR" + ihdr
    return (
        b"\x89PNG\r\n\x1a\n"
        + struct.pack(">I", len(ihdr))
        + chunk
        + struct.pack(">I", zlib.crc32(chunk) & 0xFFFFFFFF)
    )


@pytest.fixture
def make_jpeg(input_dir: str) -> Callable[..., str]:
    """Factory writing EXIF JPEGs relative to input_dir."""
    def factory(name: str, **kwargs) -> str:
        return write_jpeg(os.path.join(input_dir, name), **kwargs)
    return factory


@pytest.fixture
def make_file(input_dir: str) -> Callable[..., str]:
    """Factory writing plain files relative to input_dir."""
    def factory(name: str, data: bytes = b"fake media data", mtime: Optional[datetime] = None) -> str:
        return write_file(os.path.join(input_dir, name), data, mtime)
    return factory


@pytest.fixture
def jpeg_writer() -> Callable[..., str]:
    """write_jpeg() for paths outside input_dir."""
    return write_jpeg


@pytest.fixture
def make_oversized_png(input_dir: str) -> Callable[..., str]:
    """Factory writing a PNG whose header claims more pixels than Pillow will decode."""
    def factory(name: str, mtime: Optional[datetime] = None) -> str:
        return write_file(os.path.join(input_dir, name), png_header(20000, 20000), mtime)
    return factory

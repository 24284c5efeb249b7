"""Utility functions for file and path operations."""

import os
from typing import Container, Optional


def exists(path: Optional[str]) -> bool:
    """Check if a path exists.

    Args:
        path: Path to check, or None.

    Returns:
        True if path exists, False if path is None or doesn't exist.
    """
    if path:
        return os.path.exists(path)
    return False


def normalize_path(path: str) -> str:
    """Normalize a path for consistent handling.

    Handles:
    - Trailing slashes
    - Mixed forward/backward slashes
    - User home directory (~)
    - Leading/trailing whitespace

    Args:
        path: Path to normalize.

    Returns:
        Normalized path.
    """
    return os.path.normpath(os.path.expanduser(path.strip()))


def same_path(a: str, b: str) -> bool:
    """Whether two paths point at the same location (resolved, case-normalized)."""
    return os.path.normcase(os.path.realpath(a)) == os.path.normcase(os.path.realpath(b))


def is_nested(child: str, parent: str) -> bool:
    """Whether child lies strictly inside parent.

    Example:
        >>> is_nested("/photos/out", "/photos")
        True
        >>> is_nested("/photos", "/photos")
        False
        >>> is_nested("/photos2", "/photos")
        False
    """
    child_real = os.path.normcase(os.path.realpath(child))
    parent_real = os.path.normcase(os.path.realpath(parent))
    if child_real == parent_real:
        return False
    try:
        return os.path.commonpath([child_real, parent_real]) == parent_real
    except ValueError:
        # On Windows, commonpath fails across drives
        return False


def checkout_dir(path: str) -> str:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path.

    Returns:
        The directory path.

    Raises:
        ValueError: If path exists as a file (not a directory).
    """
    if os.path.isfile(path):
        raise ValueError(f"Cannot create directory: {path} exists as a file")
    os.makedirs(path, exist_ok=True)
    return path


def get_unique_path(
    path: str,
    reserved: Container[str] = (),
    own_path: Optional[str] = None
) -> str:
    """Get a free destination path, appending _NN to the stem if taken.

    A path is taken when it is in `reserved` (claimed earlier in the same
    batch) or exists on disk. The record's own source file (`own_path`) does
    not count as taken on disk, so an already organized file keeps its name.

    Args:
        path: Desired path.
        reserved: Normalized paths already claimed by other records.
        own_path: Source path of the file being placed, if any.

    Returns:
        Original path if free, otherwise path with _01, _02, ... suffix.

    Examples:
        >>> get_unique_path("/out/2025-01-01_12-00-00.jpg")  # free
        '/out/2025-01-01_12-00-00.jpg'
        >>> get_unique_path("/out/2025-01-01_12-00-00.jpg")  # exists
        '/out/2025-01-01_12-00-00_01.jpg'
    """
    def taken(candidate: str) -> bool:
        if os.path.normpath(candidate) in reserved:
            return True
        if own_path and same_path(candidate, own_path):
            return False
        return os.path.exists(candidate)

    if not taken(path):
        return path

    base, ext = os.path.splitext(path)
    n = 1
    while True:
        candidate = f"{base}_{n:02d}{ext}"
        if not taken(candidate):
            return candidate
        n += 1


def relative_to(path: str, root: str) -> str:
    """Path of `path` relative to `root`, or its basename if not related."""
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        # On Windows, relpath fails across drives
        return os.path.basename(path)
    if rel.startswith(os.pardir):
        return os.path.basename(path)
    return rel

"""File handler module: encoding-aware read/write and timestamp helpers.

Provides the local-tree I/O used by the sync engine.  All functions are
plain synchronous calls with no side effects besides file I/O.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file, creating parent directories as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    path.write_bytes(encoded)
    return len(encoded)


# =============================================================================
# Timestamps
# =============================================================================


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def file_mtime(path: Path) -> datetime:
    """Return the modification time of *path* as an aware UTC datetime."""
    return _EPOCH + timedelta(microseconds=path.stat().st_mtime_ns // 1000)


def stamp_mtime(path: Path, moment: datetime) -> datetime:
    """Set the mtime of a file just written to exactly *moment*.

    The write itself lands a little after *moment* was taken, and *moment*
    may also lie ahead of the local clock.  Pinning the mtime keeps a fresh
    write from reading as a local edit, even with no timestamp tolerance.
    File systems with coarse timestamps may truncate the value, which only
    moves it earlier.

    Returns:
        The mtime observed after the adjustment.
    """
    micros = (moment - _EPOCH) // timedelta(microseconds=1)
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, micros * 1000))
    return file_mtime(path)

"""
File system utilities for Drive Backup.
"""

import hashlib
import os
from pathlib import Path
from typing import Optional

# Chunk size used when hashing local files
HASH_CHUNK_SIZE = 1024 * 1024


def file_md5(path: Path) -> Optional[str]:
    """
    Compute the MD5 hex digest of a local file.

    Returns None if the file can't be read (missing, permission denied).
    """
    digest = hashlib.md5()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError:
        return None
    return digest.hexdigest()


def file_matches_md5(path: Path, expected_md5: str) -> bool:
    """Check if file exists and its content hash matches expected_md5."""
    if not path.is_file():
        return False
    return file_md5(path) == expected_md5


def part_path(path: Path) -> Path:
    """Temporary sibling path a download is streamed into before it replaces path."""
    return path.with_name(path.name + ".part")


def replace_file(src_tmp: Path, dst: Path) -> None:
    """Atomically replace dst with src_tmp."""
    os.replace(src_tmp, dst)


def remove_quietly(path: Path) -> None:
    """Remove a leftover temp file; a missing file is fine."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass

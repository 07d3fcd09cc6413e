"""
Cache stream for Drive Backup.

The cache is a snapshot of the remote tree: one JSON record per line, in walk
order. The download pass replays it so the listing API isn't queried again.
"""

from pathlib import Path
from typing import IO, Iterator, Optional

from ..drive.models import RemoteFile

COUNT_CHUNK_SIZE = 1024 * 1024


def count_lines(path: Path) -> int:
    """
    Count newline-terminated lines without parsing them.

    This is the authoritative "total files" figure for progress reporting.
    """
    count = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(COUNT_CHUNK_SIZE), b""):
            count += chunk.count(b"\n")
    return count


class CacheWriter:
    """Writes RemoteFile records to a fresh cache file."""

    def __init__(self, path: Path):
        self.path = path
        self.records = 0
        self._file: Optional[IO[str]] = None

    def __enter__(self) -> "CacheWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w", encoding="utf-8", newline="\n")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def write(self, remote_file: RemoteFile):
        if self._file is None:
            raise ValueError(f"Cache file {self.path} is not open")
        self._file.write(remote_file.to_json() + "\n")
        self.records += 1

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None


class CacheReader:
    """
    Line cursor over a cache file.

    next_line() hands out raw lines one at a time; the reader closes itself
    once the file is exhausted.
    """

    def __init__(self, path: Path):
        self.path = path
        self._file: Optional[IO[str]] = None

    def __enter__(self) -> "CacheReader":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self._file is None:
            self._file = open(self.path, "r", encoding="utf-8")

    def next_line(self) -> Optional[str]:
        """Return the next raw line (without newline), or None at end of file."""
        if self._file is None:
            return None
        line = self._file.readline()
        if not line:
            self.close()
            return None
        return line.rstrip("\r\n")

    def __iter__(self) -> Iterator[RemoteFile]:
        """Iterate decoded records, skipping blank lines."""
        while True:
            line = self.next_line()
            if line is None:
                return
            if line.strip():
                yield RemoteFile.from_json(line)

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

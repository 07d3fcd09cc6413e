"""
Progress display for Drive Backup.

Renders backup events as terminal lines while a phase runs.
"""

import shutil
import threading
import time
from typing import Callable, Optional

from ..backup.events import BackupEvent, EventKind
from ..core.formatting import format_duration, format_percent, format_size


class ProgressTracker:
    """Base class for thread-safe progress output."""

    def __init__(self):
        self.lock = threading.Lock()
        self._closed = False

    def write(self, msg: str):
        """Write a message (thread-safe)."""
        with self.lock:
            if not self._closed:
                print(msg)

    def close(self):
        with self.lock:
            self._closed = True


def fit_line(core: str, item_name: str, term_width: Optional[int] = None) -> str:
    """Append item_name to core, truncated to the terminal width."""
    if term_width is None:
        term_width = shutil.get_terminal_size().columns
    remaining = term_width - len(core) - 5
    if remaining <= 10:
        return core
    if len(item_name) > remaining:
        item_name = item_name[:remaining - 3] + "..."
    return f"{core}  {item_name}"


class ProgressDisplay(ProgressTracker):
    """
    Prints one line per noteworthy event.

    Errors, warnings and deletions are always shown. Per-file progress is
    throttled to one line per progress_interval seconds.
    """

    def __init__(self, verbose: bool = False, progress_interval: float = 1.5, clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.verbose = verbose
        self.progress_interval = progress_interval
        self._clock = clock
        self._last_progress = 0.0
        self.start_time = clock()

        self.files_found = 0
        self.records_done = 0
        self.records_skipped = 0
        self.errors = 0
        self.deleted = 0
        self.delete_errors = 0

    def _progress_due(self) -> bool:
        now = self._clock()
        if now - self._last_progress < self.progress_interval:
            return False
        self._last_progress = now
        return True

    @staticmethod
    def _counter(event: BackupEvent) -> str:
        pct = (event.processed / event.total * 100) if event.total > 0 else 0
        return f"  {pct:5.1f}% ({event.processed}/{event.total})"

    def handle(self, event: BackupEvent):
        """Render a single event."""
        kind = event.kind

        if kind == EventKind.SYNC_STARTED:
            self.start_time = self._clock()
            self.write("Scanning Google Drive...")
        elif kind == EventKind.FILE_FOUND:
            self.files_found = event.total
            if self._progress_due():
                self.write(fit_line(f"  {event.total} files found", event.path))
        elif kind == EventKind.SYNC_FINISHED:
            self.write(f"  Found {event.total} files in {format_duration(self._clock() - self.start_time)}.")
            self.write("")

        elif kind == EventKind.DOWNLOAD_STARTED:
            self.start_time = self._clock()
            self.write(f"Backing up {event.total} files to {event.path}...")
        elif kind == EventKind.RECORD_SKIPPED:
            self.records_skipped += 1
            if self.verbose:
                self.write(fit_line(self._counter(event) + " skip", event.path))
        elif kind == EventKind.VARIANT_PROGRESS:
            if event.progress >= 1.0 or self._progress_due():
                core = f"{self._counter(event)} {format_percent(event.progress):>4}"
                if event.progress >= 1.0 and event.variant and event.variant.source_size:
                    core += f" {format_size(event.variant.source_size):>9}"
                self.write(fit_line(core, event.path))
        elif kind == EventKind.RECORD_DONE:
            self.records_done += 1
        elif kind == EventKind.VARIANT_ERROR:
            self.errors += 1
            self.write(f"  ERR: {event.path} - {event.error}")
        elif kind == EventKind.UNWANTED_REPO:
            self.write(f"  WARNING: {event.path} - {event.error}")
        elif kind == EventKind.DOWNLOAD_FINISHED:
            self.write(
                f"  Done in {format_duration(self._clock() - self.start_time)}: "
                f"{self.records_done} backed up, {self.records_skipped} up to date, {self.errors} errors."
            )
            self.write("")

        elif kind == EventKind.CLEAN_STARTED:
            self.write(f"Looking for stale files in {event.path}...")
        elif kind == EventKind.DELETE_CANDIDATE:
            if self.verbose:
                self.write(f"  stale: {event.path}")
        elif kind == EventKind.DELETED:
            self.deleted += 1
            self.write(fit_line(f"{self._counter(event)} deleted", event.path))
        elif kind == EventKind.DELETE_ERROR:
            self.delete_errors += 1
            self.write(f"  ERR: could not delete {event.path} - {event.error}")
        elif kind == EventKind.CLEAN_FINISHED:
            self.write(f"  Deleted {event.processed} of {event.total} stale paths.")

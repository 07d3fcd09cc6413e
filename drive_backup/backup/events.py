"""
Backup events.

Every phase reports what it does as a stream of BackupEvents; the caller
decides how to render them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .variants import BackupVariant


class EventKind(Enum):
    SYNC_STARTED = "sync_started"
    FILE_FOUND = "file_found"
    SYNC_FINISHED = "sync_finished"

    DOWNLOAD_STARTED = "download_started"
    RECORD_STARTED = "record_started"
    RECORD_SKIPPED = "record_skipped"
    VARIANT_PROGRESS = "variant_progress"
    VARIANT_ERROR = "variant_error"
    RECORD_DONE = "record_done"
    UNWANTED_REPO = "unwanted_repo"
    DOWNLOAD_FINISHED = "download_finished"

    CLEAN_STARTED = "clean_started"
    DELETE_CANDIDATE = "delete_candidate"
    DELETED = "deleted"
    DELETE_ERROR = "delete_error"
    CLEAN_FINISHED = "clean_finished"


@dataclass
class BackupEvent:
    """One step of a backup phase."""
    kind: EventKind
    path: str = ""
    variant: Optional[BackupVariant] = None
    progress: float = 0.0
    processed: int = 0
    total: int = 0
    worker: Optional[int] = None
    error: Optional[str] = None

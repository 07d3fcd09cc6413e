"""
Backup module.

Handles the cache stream, backup decisions, downloads and local cleanup.
"""

from .cache import CacheReader, CacheWriter, count_lines
from .cleaner import Cleaner, path_sort_key, walk_tree
from .downloader import FileDownloader
from .drive_backup import DriveBackup
from .events import BackupEvent, EventKind
from .planner import is_supported, needs_backup, variants_for
from .repo import RepoSyncer
from .scheduler import DownloadScheduler, UsedPaths
from .variants import BackupVariant, VariantKind

__all__ = [
    "CacheReader",
    "CacheWriter",
    "count_lines",
    "Cleaner",
    "path_sort_key",
    "walk_tree",
    "FileDownloader",
    "DriveBackup",
    "BackupEvent",
    "EventKind",
    "is_supported",
    "needs_backup",
    "variants_for",
    "RepoSyncer",
    "DownloadScheduler",
    "UsedPaths",
    "BackupVariant",
    "VariantKind",
]

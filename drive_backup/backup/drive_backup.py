"""
Backup orchestration for Drive Backup.

Runs the three phases in order: sync (walk the remote tree into the cache
stream), download (materialize stale records), cleanup (delete local paths
the download pass did not claim).
"""

import logging
from pathlib import Path
from typing import AsyncIterator, Generator, Optional

from ..config import BackupSettings
from ..drive.walker import TreeWalker
from .cache import CacheWriter
from .cleaner import Cleaner
from .events import BackupEvent, EventKind
from .planner import ExportFormats
from .repo import RepoSyncer
from .scheduler import DownloadScheduler, UsedPaths

logger = logging.getLogger(__name__)


class DriveBackup:
    """
    One backup run against a Drive account.

    Phases must not overlap: run sync() to completion before download(),
    and download() to completion before cleanup().
    """

    def __init__(
        self,
        client,
        cache_path: Path,
        worker_count: Optional[int] = None,
        settings: Optional[BackupSettings] = None,
        export_formats: Optional[ExportFormats] = None,
        repo_syncer: Optional[RepoSyncer] = None,
    ):
        self.client = client
        self.cache_path = Path(cache_path)
        self.settings = settings or BackupSettings()
        self.worker_count = worker_count or self.settings.worker_count
        self.export_formats = export_formats
        self.repo_syncer = repo_syncer
        self.used_paths: Optional[UsedPaths] = None
        self.total_files = 0
        self.cleaner: Optional[Cleaner] = None

    def sync(self) -> Generator[BackupEvent, None, int]:
        """
        Walk the remote tree and write every file to the cache stream.

        Yields FILE_FOUND for each file; the generator's return value is the
        number of files written.

        Raises:
            WalkError: The walk failed; the cache file is incomplete
        """
        yield BackupEvent(EventKind.SYNC_STARTED, path=str(self.cache_path))

        walker = TreeWalker(
            self.client,
            batch_size=self.settings.batch_size,
            retry_delay=self.settings.retry_delay,
            max_retries=self.settings.max_walk_retries,
        )
        with CacheWriter(self.cache_path) as writer:
            for remote_file in walker.walk():
                writer.write(remote_file)
                yield BackupEvent(EventKind.FILE_FOUND, path=remote_file.path, total=writer.records)
            total = writer.records

        self.total_files = total
        logger.info("Wrote %d records to %s", total, self.cache_path)
        yield BackupEvent(EventKind.SYNC_FINISHED, path=str(self.cache_path), total=total)
        return total

    async def download(self, output_dir: Path, downloader) -> AsyncIterator[BackupEvent]:
        """Materialize every stale record of the cache into output_dir."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        used_paths = UsedPaths()
        self._protect_cache(output_dir, used_paths)

        scheduler = DownloadScheduler(
            self.cache_path,
            output_dir,
            downloader,
            worker_count=self.worker_count,
            export_formats=self.export_formats,
            repo_syncer=self.repo_syncer,
            used_paths=used_paths,
        )
        async for event in scheduler.run():
            yield event

        self.total_files = scheduler.total
        self.used_paths = used_paths

    def cleanup(self, output_dir: Path) -> Generator[BackupEvent, None, None]:
        """Delete local paths under output_dir that the download pass didn't claim."""
        if self.used_paths is None:
            raise RuntimeError("cleanup() needs a completed download() pass")

        self.cleaner = Cleaner(self.used_paths)
        yield from self.cleaner.cleanup(Path(output_dir))

    def _protect_cache(self, output_dir: Path, used_paths: UsedPaths):
        try:
            rel = self.cache_path.resolve().relative_to(output_dir.resolve())
        except ValueError:
            return
        used_paths.add_file(rel)

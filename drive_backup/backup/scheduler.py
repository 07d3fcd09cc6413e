"""
Download scheduling for Drive Backup.

Replays the cache stream with a fixed number of async workers. Each worker
pulls the next record, decides whether it is stale, and materializes its
variants; everything that happens is streamed back as BackupEvents.
"""

import asyncio
import logging
from pathlib import Path, PurePath
from typing import AsyncIterator, List, Optional, Set, Tuple, Union

from ..core.errors import BackupError, DownloadError
from ..core.files import file_matches_md5, part_path, remove_quietly, replace_file
from ..drive.models import RemoteFile
from .cache import CacheReader, count_lines
from .cleaner import path_sort_key
from .events import BackupEvent, EventKind
from .planner import ExportFormats, needs_backup, variants_for
from .repo import RepoSyncer
from .variants import BackupVariant, VariantKind, render_redirect

logger = logging.getLogger(__name__)

PathLike = Union[str, PurePath]


def _rel_key(path: PathLike) -> str:
    return "/".join(PurePath(path).parts)


class UsedPaths:
    """
    Mirror-relative paths claimed by the current download pass.

    Files are claimed one by one; kept directories (linked repository
    working copies) claim their whole subtree. Ancestors of either are
    implicitly in use.
    """

    def __init__(self):
        self._files: Set[str] = set()
        self._dirs: Set[str] = set()
        self._ancestors: Set[str] = set()

    def _add_ancestors(self, key: str):
        parts = key.split("/")
        for i in range(len(parts) - 1, 0, -1):
            ancestor = "/".join(parts[:i])
            if ancestor in self._ancestors:
                return
            self._ancestors.add(ancestor)

    def add_file(self, path: PathLike):
        key = _rel_key(path)
        self._files.add(key)
        self._add_ancestors(key)

    def add_dir(self, path: PathLike):
        key = _rel_key(path)
        self._dirs.add(key)
        self._add_ancestors(key)

    def __len__(self) -> int:
        return len(self._files) + len(self._dirs)

    def __contains__(self, path: PathLike) -> bool:
        key = _rel_key(path)
        if key in self._files or key in self._dirs or key in self._ancestors:
            return True
        parts = key.split("/")
        return any("/".join(parts[:i]) in self._dirs for i in range(1, len(parts)))

    def ancestors(self) -> Set[str]:
        """Every directory that contains a claimed path."""
        return set(self._ancestors)

    def sorted_entries(self) -> List[Tuple[Tuple[str, ...], bool]]:
        """(parts, keep_subtree) pairs in cleanup order."""
        entries = [(tuple(key.split("/")), False) for key in self._files]
        entries.extend((tuple(key.split("/")), True) for key in self._dirs)
        entries.sort(key=lambda entry: path_sort_key(entry[0], entry[1]))
        return entries


class DownloadScheduler:
    """
    Runs the download pass over a cache file with worker_count workers.

    Workers share one cache cursor; records are handed out in file order,
    one at a time, so every record is processed by exactly one worker.
    """

    def __init__(
        self,
        cache_path: Path,
        output_dir: Path,
        downloader,
        worker_count: int = 3,
        export_formats: Optional[ExportFormats] = None,
        repo_syncer: Optional[RepoSyncer] = None,
        used_paths: Optional[UsedPaths] = None,
    ):
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self.cache_path = Path(cache_path)
        self.output_dir = Path(output_dir)
        self.downloader = downloader
        self.worker_count = worker_count
        self.export_formats = export_formats
        self.repo_syncer = repo_syncer or RepoSyncer()
        self.used_paths = used_paths if used_paths is not None else UsedPaths()
        self.processed = 0
        self.total = 0
        self.errors = 0

    async def run(self) -> AsyncIterator[BackupEvent]:
        """
        Process the whole cache, yielding events as workers produce them.

        Finishes only after every worker has stopped.
        """
        self.processed = 0
        self.errors = 0
        self.total = count_lines(self.cache_path)
        yield BackupEvent(EventKind.DOWNLOAD_STARTED, path=str(self.output_dir), total=self.total)

        queue: asyncio.Queue = asyncio.Queue()
        lock = asyncio.Lock()
        reader = CacheReader(self.cache_path)
        reader.open()

        workers = [
            asyncio.create_task(self._worker(index, reader, lock, queue), name=f"download-worker-{index}")
            for index in range(self.worker_count)
        ]

        async def supervise():
            try:
                await asyncio.gather(*workers)
            finally:
                queue.put_nowait(None)

        supervisor = asyncio.create_task(supervise())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            await supervisor
        finally:
            for task in workers:
                task.cancel()
            supervisor.cancel()
            reader.close()

        yield BackupEvent(
            EventKind.DOWNLOAD_FINISHED,
            path=str(self.output_dir),
            processed=self.processed,
            total=self.total,
        )

    async def _worker(self, index: int, reader: CacheReader, lock: asyncio.Lock, queue: asyncio.Queue):
        def emit(kind: EventKind, **kwargs):
            queue.put_nowait(BackupEvent(kind, processed=self.processed, total=self.total, worker=index, **kwargs))

        while True:
            async with lock:
                line = reader.next_line()
            if line is None:
                return
            if not line.strip():
                continue

            self.processed += 1
            try:
                remote_file = RemoteFile.from_json(line)
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                self.errors += 1
                emit(EventKind.VARIANT_ERROR, path=line[:80], error=f"Invalid cache record: {e}")
                continue

            # A broken record must not take the worker (and the pass) down with it
            try:
                await self._process(remote_file, emit)
            except Exception as e:
                self.errors += 1
                logger.exception("Backing up record %s failed", line[:80])
                emit(EventKind.VARIANT_ERROR, path=record_label(remote_file), error=describe_error(e))

    async def _process(self, remote_file: RemoteFile, emit):
        loop = asyncio.get_running_loop()
        emit(EventKind.RECORD_STARTED, path=remote_file.path)

        variants, stale = await loop.run_in_executor(None, self._plan, remote_file)
        self._claim(variants)

        if remote_file.is_unwanted_repo:
            emit(
                EventKind.UNWANTED_REPO,
                path=remote_file.parent_path,
                error="git repository stored in Drive; upload a .git.json pointer instead",
            )

        if not stale:
            emit(EventKind.RECORD_SKIPPED, path=remote_file.path)
            return

        await self._materialize(remote_file, variants, emit)
        emit(EventKind.RECORD_DONE, path=remote_file.path)

    def _plan(self, remote_file: RemoteFile) -> Tuple[List[BackupVariant], bool]:
        variants = variants_for(remote_file, self.output_dir, self.export_formats)
        if not variants:
            return variants, False
        return variants, needs_backup(remote_file, self.output_dir, self.export_formats)

    def _claim(self, variants: List[BackupVariant]):
        for variant in variants:
            self.used_paths.add_file(variant.local_file_path.relative_to(self.output_dir))
            if variant.repo_dir_path is not None:
                self.used_paths.add_dir(variant.repo_dir_path.relative_to(self.output_dir))

    async def _materialize(self, remote_file: RemoteFile, variants: List[BackupVariant], emit):
        """Write each variant in order; a failure is reported and the rest still run."""
        loop = asyncio.get_running_loop()
        failed = False

        for variant in variants:
            def on_progress(progress: float, variant=variant):
                emit(EventKind.VARIANT_PROGRESS, path=variant.display_path, variant=variant, progress=progress)

            try:
                if variant.kind == VariantKind.REDIRECT:
                    if failed:
                        raise DownloadError("not written, another export of this document failed")
                    await loop.run_in_executor(None, write_redirect, remote_file, variant)
                    on_progress(1.0)
                elif variant.kind == VariantKind.REPO_LINK:
                    await self._sync_repo(variant, on_progress)
                else:
                    await self.downloader.download(variant, on_progress)
            except Exception as e:
                failed = True
                self.errors += 1
                if isinstance(e, (BackupError, OSError)):
                    logger.debug("Variant %s failed: %s", variant.display_path, e)
                else:
                    logger.exception("Unexpected error writing %s", variant.display_path)
                emit(EventKind.VARIANT_ERROR, path=variant.display_path, variant=variant, error=describe_error(e))

    async def _sync_repo(self, variant: BackupVariant, on_progress):
        loop = asyncio.get_running_loop()
        fresh = bool(variant.source_md5) and await loop.run_in_executor(
            None, file_matches_md5, variant.local_file_path, variant.source_md5
        )
        if not fresh:
            await self.downloader.download(variant, on_progress)
        await loop.run_in_executor(None, self.repo_syncer.sync, variant)
        on_progress(1.0)


def write_redirect(remote_file: RemoteFile, variant: BackupVariant):
    """Write the redirect marker page of an exported document."""
    content = render_redirect(remote_file.name, remote_file.link, remote_file.modified_time, remote_file.md5)
    target = variant.local_file_path
    tmp_path = part_path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        tmp_path.write_text(content, encoding="utf-8")
        replace_file(tmp_path, target)
    except OSError:
        remove_quietly(tmp_path)
        raise


def describe_error(error: Exception) -> str:
    """Message for a failure event; unexpected exception types keep their class name."""
    if isinstance(error, (BackupError, OSError)):
        return str(error)
    return f"{error.__class__.__name__}: {error}"


def record_label(remote_file: RemoteFile) -> str:
    """Best-effort display path for a record whose fields may be malformed."""
    name = remote_file.name if isinstance(remote_file.name, str) else str(remote_file.name)
    parent = remote_file.parent_path if isinstance(remote_file.parent_path, str) else ""
    return f"{parent}/{name}" if parent else name

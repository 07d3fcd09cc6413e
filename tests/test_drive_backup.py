"""
Tests for DriveBackup: the sync, download and cleanup phases run together.
"""

import asyncio
import tempfile
from pathlib import Path

import pytest

from drive_backup.backup.cache import CacheReader
from drive_backup.backup.drive_backup import DriveBackup
from drive_backup.backup.events import EventKind
from drive_backup.config import BackupSettings
from drive_backup.constants import FOLDER_MIME_TYPE
from drive_backup.core.errors import WalkError
from drive_backup.drive.client import ListResult

DOC_MIME = "application/vnd.google-apps.document"


class TreeClient:
    """Single-page listings from a {parent_id: [resources]} dict."""

    def __init__(self, tree, status=200):
        self.tree = tree
        self.status = status

    def list_children_batch(self, items, root_id="root"):
        results = []
        for item in items:
            if self.status != 200:
                results.append(ListResult(status=self.status, error_message="Not Found"))
            else:
                results.append(ListResult(status=200, files=list(self.tree.get(item.parent_id(root_id), []))))
        return results


class WritingDownloader:
    async def download(self, variant, on_progress=None):
        variant.local_file_path.parent.mkdir(parents=True, exist_ok=True)
        variant.local_file_path.write_bytes(b"data")
        return 4


TREE = {
    "root": [
        {"id": "F", "name": "Projects", "mimeType": FOLDER_MIME_TYPE},
        {"id": "r1", "name": "readme.txt", "mimeType": "text/plain", "size": "4",
         "md5Checksum": "8d777f385d3dfec8815d20f7496026dc",
         "modifiedTime": "2021-03-04T05:06:07.000Z"},
    ],
    "F": [
        {"id": "d1", "name": "Plan", "mimeType": DOC_MIME,
         "modifiedTime": "2021-03-04T05:06:07.000Z",
         "webViewLink": "https://docs.google.com/document/d/d1/edit"},
    ],
}


def collect(agen):
    async def run():
        return [event async for event in agen]
    return asyncio.run(run())


class TestDriveBackup:

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def make_backup(self, temp_dir, client=None, cache_path=None):
        return DriveBackup(
            client or TreeClient(TREE),
            cache_path or temp_dir / "cache.jsonl",
            worker_count=2,
            settings=BackupSettings(retry_delay=0, max_walk_retries=1),
            export_formats={DOC_MIME: ["application/pdf"]},
        )

    def test_sync_writes_cache(self, temp_dir):
        backup = self.make_backup(temp_dir)
        events = list(backup.sync())

        assert events[0].kind == EventKind.SYNC_STARTED
        assert events[-1].kind == EventKind.SYNC_FINISHED
        assert events[-1].total == 2
        assert backup.total_files == 2

        with CacheReader(temp_dir / "cache.jsonl") as reader:
            paths = sorted(record.path for record in reader)
        assert paths == ["Projects/Plan", "readme.txt"]

    def test_failed_walk_raises(self, temp_dir):
        backup = self.make_backup(temp_dir, client=TreeClient(TREE, status=404))
        with pytest.raises(WalkError):
            list(backup.sync())

    def test_full_run_mirrors_and_cleans(self, temp_dir):
        out = temp_dir / "mirror"
        (out / "Old").mkdir(parents=True)
        (out / "Old" / "gone.txt").write_bytes(b"x")

        backup = self.make_backup(temp_dir)
        list(backup.sync())
        collect(backup.download(out, WritingDownloader()))
        events = list(backup.cleanup(out))

        assert {p.relative_to(out).as_posix() for p in out.rglob("*") if p.is_file()} == {
            "readme.txt",
            "Projects/Plan.bak.pdf",
            "Projects/Plan.html",
        }
        assert [e.kind for e in events if e.kind == EventKind.DELETED] == [EventKind.DELETED]

    def test_cleanup_requires_download(self, temp_dir):
        backup = self.make_backup(temp_dir)
        with pytest.raises(RuntimeError):
            list(backup.cleanup(temp_dir))

    def test_cache_inside_output_dir_survives_cleanup(self, temp_dir):
        out = temp_dir / "mirror"
        backup = self.make_backup(temp_dir, cache_path=out / "meta" / "cache.jsonl")
        list(backup.sync())
        collect(backup.download(out, WritingDownloader()))
        list(backup.cleanup(out))
        assert (out / "meta" / "cache.jsonl").exists()

"""
Local tree cleanup for Drive Backup.

Deletes everything under the output directory that the last download pass
did not claim, then removes directories left empty by it.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

from .events import BackupEvent, EventKind

logger = logging.getLogger(__name__)

SortKey = Tuple[Tuple[int, str], ...]


def path_sort_key(rel_parts: Sequence[str], is_dir: bool) -> SortKey:
    """
    Order key for mirror-relative paths.

    At every level directories come before files and names compare by code
    point. A directory sorts right before everything inside it, so each
    subtree is one contiguous run of keys.
    """
    key = [(0, part) for part in rel_parts[:-1]]
    if rel_parts:
        key.append((0 if is_dir else 1, rel_parts[-1]))
    return tuple(key)


def is_key_prefix(prefix: SortKey, key: SortKey) -> bool:
    return len(prefix) <= len(key) and key[:len(prefix)] == prefix


def walk_tree(root: Path) -> Iterator[Tuple[Path, bool]]:
    """
    Walk root depth-first in path_sort_key order.

    Yields (path, is_dir) for every file and for every empty directory.
    Symlinks are not followed and are reported as files.
    """
    dirs: List[os.DirEntry] = []
    files: List[os.DirEntry] = []
    try:
        with os.scandir(root) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    dirs.append(entry)
                else:
                    files.append(entry)
    except OSError as e:
        logger.warning("Cannot scan %s: %s", root, e)
        return

    for entry in sorted(dirs, key=lambda e: e.name):
        sub_dir = Path(entry.path)
        found = False
        for item in walk_tree(sub_dir):
            found = True
            yield item
        if not found:
            yield sub_dir, True

    for entry in sorted(files, key=lambda e: e.name):
        yield Path(entry.path), False


class Cleaner:
    """
    Removes local paths the backup no longer produces.

    used_paths provides sorted_entries(): (parts, keep_subtree) pairs in
    path_sort_key order, where keep_subtree marks directories whose whole
    content is kept (linked repository working copies).
    """

    def __init__(self, used_paths):
        self.used_paths = used_paths
        self.failures: List[Tuple[Path, str]] = []

    def plan(self, root: Path) -> Iterator[Path]:
        """
        Yield every local path under root that should be deleted.

        Single merge pass over the local walk and the sorted used entries;
        both are in the same order, so the cursor only ever moves forward.
        """
        used = [
            (path_sort_key(parts, keep_subtree), keep_subtree)
            for parts, keep_subtree in self.used_paths.sorted_entries()
        ]
        cursor = 0

        for path, is_dir in walk_tree(root):
            key = path_sort_key(path.relative_to(root).parts, is_dir)

            while cursor < len(used):
                head_key, head_keep = used[cursor]
                if head_key >= key or (head_keep and is_key_prefix(head_key, key)):
                    break
                cursor += 1

            if cursor < len(used):
                head_key, head_keep = used[cursor]
                if head_key == key:
                    continue
                if head_keep and is_key_prefix(head_key, key):
                    continue
                # An empty directory that a used path still lives under
                if is_dir and is_key_prefix(key, head_key):
                    continue

            yield path

    def cleanup(self, root: Path) -> Iterator[BackupEvent]:
        """
        Plan, then delete, reporting each step as an event.

        A failed deletion is reported and recorded in self.failures; the
        remaining candidates are still processed.
        """
        self.failures = []
        yield BackupEvent(EventKind.CLEAN_STARTED, path=str(root))

        candidates = []
        for path in self.plan(root):
            candidates.append(path)
            yield BackupEvent(EventKind.DELETE_CANDIDATE, path=str(path), total=len(candidates))

        total = len(candidates)
        deleted = 0
        for processed, path in enumerate(candidates, start=1):
            try:
                if path.is_dir() and not path.is_symlink():
                    path.rmdir()
                else:
                    path.unlink()
            except OSError as e:
                self.failures.append((path, str(e)))
                yield BackupEvent(EventKind.DELETE_ERROR, path=str(path), processed=processed, total=total, error=str(e))
                continue

            deleted += 1
            yield BackupEvent(EventKind.DELETED, path=str(path), processed=processed, total=total)
            self._prune_empty_parents(path, root)

        yield BackupEvent(EventKind.CLEAN_FINISHED, path=str(root), processed=deleted, total=total)

    def _prune_empty_parents(self, path: Path, root: Path):
        """Remove directories left empty by a deletion, stopping at root."""
        parent = path.parent
        while parent != root and root in parent.parents:
            try:
                if any(parent.iterdir()):
                    return
                parent.rmdir()
            except OSError as e:
                logger.debug("Keeping %s: %s", parent, e)
                return
            logger.debug("Removed empty directory %s", parent)
            parent = parent.parent

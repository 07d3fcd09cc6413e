"""
Remote tree walker for Drive Backup.

Traverses the Drive hierarchy breadth-by-batch: pending walk items are packed
into batched listing requests, retryable failures are re-queued without losing
place, and every discovered item gets a disambiguated mirror path.
"""

import logging
import time
from collections import deque
from typing import Callable, Iterator, List, Optional, Tuple

from ..constants import DEFAULT_BATCH_SIZE, DEFAULT_MAX_WALK_RETRIES, DEFAULT_RETRY_DELAY
from ..core.errors import DriveApiError, WalkError, is_retryable_status
from .client import DriveClient, ListResult
from .models import RemoteDir, RemoteFile, RemoteItem, WalkItem

logger = logging.getLogger(__name__)


class NameRegistry:
    """
    Assigns disambiguation indices to items sharing a mirror path.

    Must be shared by the whole walk: indices depend on discovery order across
    all batches, not just within one.
    """

    def __init__(self):
        self._next_index: dict[str, int] = {}
        self._taken: set[str] = set()

    def assign(self, item: RemoteItem) -> int:
        """
        Set item.unique_name_index to the next free index for its path.

        The first item at a path gets 0 (no suffix), later ones 1, 2, ...
        An index whose suffixed path is already used by a literally named
        sibling is skipped.
        """
        base = item.base_path
        index = self._next_index.get(base, 0)
        item.unique_name_index = index
        while item.path in self._taken:
            index += 1
            item.unique_name_index = index

        self._taken.add(item.path)
        self._next_index[base] = index + 1
        return index


class TreeWalker:
    """
    Walks the remote tree and yields every file exactly once.

    A walker is single-use: walk() may only be iterated once.
    """

    def __init__(
        self,
        client: DriveClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_retries: int = DEFAULT_MAX_WALK_RETRIES,
        root_id: str = "root",
        names: Optional[NameRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.batch_size = batch_size
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self.root_id = root_id
        self.names = names or NameRegistry()
        self._sleep = sleep
        self._started = False

    def walk(self) -> Iterator[RemoteFile]:
        """
        Lazily yield every RemoteFile below the root.

        Raises:
            WalkError: On a non-retryable listing failure, or when one item
                keeps failing past max_retries
        """
        if self._started:
            raise RuntimeError("TreeWalker.walk() can only be run once")
        self._started = True

        pending = deque([WalkItem()])

        while pending:
            batch = [pending.popleft() for _ in range(min(self.batch_size, len(pending)))]

            if any(item.retry > 0 for item in batch):
                logger.debug("Batch contains retries, backing off %.1fs", self.retry_delay)
                self._sleep(self.retry_delay)

            try:
                results = self.client.list_children_batch(batch, self.root_id)
            except DriveApiError as e:
                raise WalkError(e.status, e.message) from e

            files, follow_ups = self._process_batch(batch, results)

            yield from files

            # Depth first: new work goes ahead of what was already queued
            pending.extendleft(reversed(follow_ups))

    def _process_batch(
        self,
        batch: List[WalkItem],
        results: List[ListResult],
    ) -> Tuple[List[RemoteFile], List[WalkItem]]:
        files: List[RemoteFile] = []
        follow_ups: List[WalkItem] = []

        for item, result in zip(batch, results):
            if not result.ok:
                if not is_retryable_status(result.status):
                    raise WalkError(result.status, result.error_message)
                if item.retry >= self.max_retries:
                    raise WalkError(
                        result.status,
                        f"{result.error_message} (gave up after {item.retry} retries)".strip(),
                    )
                logger.warning(
                    "Listing %s failed with %s, retry %d",
                    item.parent.path if item.parent else "/", result.status, item.retry + 1,
                )
                follow_ups.append(WalkItem(parent=item.parent, page_token=item.page_token, retry=item.retry + 1))
                continue

            if result.next_page_token:
                follow_ups.append(WalkItem(parent=item.parent, page_token=result.next_page_token))

            for data in result.files:
                remote = RemoteItem.from_api(item.parent, data)
                self.names.assign(remote)
                if isinstance(remote, RemoteDir):
                    follow_ups.append(WalkItem(parent=remote))
                else:
                    files.append(remote)

        return files, follow_ups

"""
File downloader for Drive Backup.

Fetches raw file content and document exports from the Drive API.
Uses asyncio + aiohttp so several workers can share one connection pool.
"""

import asyncio
import logging
import os
import ssl
import sys
import time
from typing import Callable, Optional, Tuple, Union

import aiohttp
import certifi

from ..core.errors import DownloadError
from ..core.files import part_path, remove_quietly, replace_file
from .variants import BackupVariant, VariantKind

logger = logging.getLogger(__name__)

# Statuses that will not change on retry for this file
FATAL_STATUSES = frozenset({401, 403, 404})

ProgressCallback = Callable[[float], None]


def get_certifi_path() -> str:
    """Get path to certifi CA bundle, handling PyInstaller bundles."""
    if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
        bundled_cert = os.path.join(sys._MEIPASS, 'certifi', 'cacert.pem')
        if os.path.exists(bundled_cert):
            return bundled_cert
    return certifi.where()


def is_retryable_download_status(status: int) -> bool:
    return status == 429 or 500 <= status < 600


class FileDownloader:
    """
    Async downloader for backup variants.

    Use as an async context manager; the session is shared by every
    concurrent download() call.
    """

    API_DOWNLOAD_URL = "https://www.googleapis.com/drive/v3/files/{file_id}?alt=media&supportsAllDrives=true"
    API_EXPORT_URL = "https://www.googleapis.com/drive/v3/files/{file_id}/export"

    def __init__(
        self,
        auth_token: Optional[Union[str, Callable[[], Optional[str]]]] = None,
        max_workers: int = 3,
        max_retries: int = 3,
        timeout: Tuple[int, int] = (10, 120),
        chunk_size: int = 32768,
        progress_interval: float = 0.5,
        retry_backoff: float = 0.5,
    ):
        self._auth_token = auth_token
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.timeout = aiohttp.ClientTimeout(connect=timeout[0], sock_read=timeout[1])
        self.chunk_size = chunk_size
        self.progress_interval = progress_interval
        self.retry_backoff = retry_backoff
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "FileDownloader":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def open(self):
        if self._session is not None:
            return
        ssl_context = ssl.create_default_context(cafile=get_certifi_path())
        connector = aiohttp.TCPConnector(
            limit=self.max_workers * 2,
            limit_per_host=self.max_workers,
            ttl_dns_cache=300,
            keepalive_timeout=30,
            ssl=ssl_context,
        )
        self._session = aiohttp.ClientSession(timeout=self.timeout, connector=connector)

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _get_auth_token(self) -> Optional[str]:
        """Get current auth token, calling getter if it's a callable."""
        if callable(self._auth_token):
            return self._auth_token()
        return self._auth_token

    def _get_headers(self) -> dict:
        token = self._get_auth_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def build_request(self, variant: BackupVariant) -> Tuple[str, dict]:
        """URL and query parameters for a variant's content."""
        if variant.kind == VariantKind.EXPORT:
            url = self.API_EXPORT_URL.format(file_id=variant.source_id)
            return url, {"mimeType": variant.export_format, "supportsAllDrives": "true"}
        if variant.kind in (VariantKind.RAW, VariantKind.REPO_LINK):
            return self.API_DOWNLOAD_URL.format(file_id=variant.source_id), {}
        raise ValueError(f"{variant.kind.value} variants have no remote content")

    async def download(self, variant: BackupVariant, on_progress: Optional[ProgressCallback] = None) -> int:
        """
        Download a variant into its local file, with retries.

        Content is streamed to "<file>.part" and moved over the target only
        once complete, so an interrupted download never leaves a truncated
        file at the final path.

        Returns:
            Number of bytes written

        Raises:
            DownloadError: On a fatal status or when retries are exhausted
        """
        if self._session is None:
            raise RuntimeError("FileDownloader is not open")

        url, params = self.build_request(variant)
        last_error = ""

        for attempt in range(self.max_retries):
            try:
                async with self._session.get(url, params=params, headers=self._get_headers()) as response:
                    if response.status >= 400:
                        message = await response.text()
                        if response.status in FATAL_STATUSES or not is_retryable_download_status(response.status):
                            raise DownloadError(message.strip()[:200], status=response.status)
                        last_error = f"HTTP {response.status}"
                    else:
                        return await self._write_response(response, variant, on_progress)

            except asyncio.TimeoutError:
                last_error = "timeout"

            except aiohttp.ClientError as e:
                last_error = str(e) or e.__class__.__name__

            if attempt < self.max_retries - 1:
                logger.debug("Retrying %s after %s (attempt %d)", variant.display_path, last_error, attempt + 1)
                await asyncio.sleep(self.retry_backoff * (attempt + 1))

        raise DownloadError(f"failed after {self.max_retries} attempts ({last_error})")

    async def _write_response(
        self,
        response: aiohttp.ClientResponse,
        variant: BackupVariant,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Stream response content to the variant's .part file and move it into place."""
        target = variant.local_file_path
        tmp_path = part_path(target)
        target.parent.mkdir(parents=True, exist_ok=True)

        # Only raw content has a size known up front; exports report start and end
        total_size = variant.source_size if variant.kind != VariantKind.EXPORT else None
        downloaded_bytes = 0
        last_progress_time = time.monotonic()

        if on_progress:
            on_progress(0.0)

        try:
            with open(tmp_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded_bytes += len(chunk)

                    if on_progress and total_size:
                        now = time.monotonic()
                        if now - last_progress_time >= self.progress_interval:
                            last_progress_time = now
                            on_progress(min(downloaded_bytes / total_size, 1.0))
            replace_file(tmp_path, target)
        except BaseException:
            remove_quietly(tmp_path)
            raise

        if on_progress:
            on_progress(1.0)
        return downloaded_bytes

"""
Google Drive API client for Drive Backup.

Handles the API side of listing: many "list children" calls are packed into
one batch request and the per-call results are handed back with their own
status codes.
Does NOT handle downloads (see FileDownloader for that).
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

import google_auth_httplib2
import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..core.errors import DriveApiError, is_retryable_status
from .models import WalkItem

logger = logging.getLogger(__name__)

LIST_FIELDS = "nextPageToken, files(id, name, mimeType, md5Checksum, webViewLink, size, modifiedTime)"
LIST_ORDER = "folder, name, modifiedTime"

CredentialsSource = Union[Credentials, Callable[[], Optional[Credentials]]]


@dataclass
class DriveClientConfig:
    """Configuration for DriveClient."""
    timeout: int = 60
    max_retries: int = 3
    page_size: int = 1000


@dataclass
class ListResult:
    """Outcome of one logical "list children" call inside a batch."""
    status: int
    files: List[dict] = field(default_factory=list)
    next_page_token: Optional[str] = None
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def http_error_result(error: HttpError) -> ListResult:
    """Turn a failed call's HttpError into a result carrying its status."""
    return ListResult(status=error.resp.status, error_message=getattr(error, "reason", "") or str(error))


class DriveClient:
    """
    Google Drive API client.

    Handles batched folder listing and API authentication.
    """

    def __init__(
        self,
        config: Optional[DriveClientConfig] = None,
        credentials: Optional[CredentialsSource] = None,
        service=None,
    ):
        """
        Initialize the Drive client.

        Args:
            config: Client configuration
            credentials: OAuth credentials, or a callable returning them
            service: Prebuilt Drive v3 service; built from credentials if omitted
        """
        self.config = config or DriveClientConfig()
        self._credentials = credentials
        self._service = service
        self._api_calls = 0

    @property
    def api_calls(self) -> int:
        """Total batch round trips made by this client."""
        return self._api_calls

    def _get_credentials(self) -> Optional[Credentials]:
        """Get current credentials, calling getter if it's a callable."""
        if callable(self._credentials):
            return self._credentials()
        return self._credentials

    def _get_service(self):
        if self._service is None:
            credentials = self._get_credentials()
            if credentials is None:
                raise DriveApiError(401, "No Google Drive credentials available")
            http = google_auth_httplib2.AuthorizedHttp(
                credentials, http=httplib2.Http(timeout=self.config.timeout)
            )
            self._service = build("drive", "v3", http=http, cache_discovery=False)
        return self._service

    def _list_params(self, item: WalkItem, root_id: str) -> dict:
        params = {
            "q": f"'{item.parent_id(root_id)}' in parents and trashed = false",
            "fields": LIST_FIELDS,
            "orderBy": LIST_ORDER,
            "pageSize": self.config.page_size,
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        if item.page_token:
            params["pageToken"] = item.page_token
        return params

    def _build_batch(self, items: List[WalkItem], root_id: str, results: Dict[str, ListResult]):
        service = self._get_service()

        def on_response(request_id, response, exception):
            if isinstance(exception, HttpError):
                results[request_id] = http_error_result(exception)
            elif exception is not None:
                results[request_id] = ListResult(status=502, error_message=str(exception))
            else:
                response = response or {}
                results[request_id] = ListResult(
                    status=200,
                    files=response.get("files", []),
                    next_page_token=response.get("nextPageToken"),
                )

        batch = service.new_batch_http_request()
        for index, item in enumerate(items):
            request = service.files().list(**self._list_params(item, root_id))
            batch.add(request, callback=on_response, request_id=str(index))
        return batch

    def list_children_batch(self, items: List[WalkItem], root_id: str = "root") -> List[ListResult]:
        """
        List one page of children for every walk item in a single round trip.

        Network failures are retried with exponential backoff. A failed round
        trip with a retryable status is reported as that status for every item;
        any other round-trip status raises.

        Args:
            items: Walk items to list (parent + optional page token)
            root_id: Folder ID used for items without a parent

        Returns:
            One ListResult per item, in the same order as items

        Raises:
            DriveApiError: The whole batch failed with a non-retryable status
        """
        if not items:
            return []

        logger.debug("Listing batch of %d items", len(items))

        for attempt in range(self.config.max_retries):
            results: Dict[str, ListResult] = {}
            batch = self._build_batch(items, root_id, results)
            try:
                batch.execute()
            except HttpError as e:
                self._api_calls += 1
                failure = http_error_result(e)
                if is_retryable_status(failure.status):
                    return [ListResult(status=failure.status, error_message=failure.error_message) for _ in items]
                raise DriveApiError(failure.status, failure.error_message) from e
            except (OSError, httplib2.HttpLib2Error) as e:
                if attempt < self.config.max_retries - 1:
                    logger.warning("Batch listing failed (%s), retrying", e)
                    time.sleep(2 ** attempt)
                    continue
                # Network trouble outlived the client's own retries; let the walker back off
                return [ListResult(status=503, error_message=str(e)) for _ in items]

            self._api_calls += 1
            return [
                results.get(str(index)) or ListResult(status=503, error_message="Missing from batch response")
                for index in range(len(items))
            ]

        raise RuntimeError(f"Batch listing failed after {self.config.max_retries} attempts")

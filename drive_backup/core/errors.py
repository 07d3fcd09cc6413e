"""
Exception types for Drive Backup.
"""

from typing import Optional

# Status codes the listing API returns for conditions that clear up on retry
# (stale token, rate limit, backend hiccups)
RETRYABLE_STATUSES = frozenset({401, 403, 429, 500, 503})


def is_retryable_status(status: int) -> bool:
    """Check if a listing status code should be retried rather than aborting the walk."""
    return status in RETRYABLE_STATUSES


class BackupError(Exception):
    """Base class for all Drive Backup errors."""


class DriveApiError(BackupError):
    """A Drive API call failed with a status code."""

    def __init__(self, status: int, message: str = ""):
        self.status = status
        self.message = message
        super().__init__(f"{status} {message}".strip())


class WalkError(DriveApiError):
    """The remote tree walk hit a non-retryable failure and was aborted."""


class DownloadError(BackupError):
    """A single backup variant could not be fetched or written."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(f"HTTP {status}: {message}" if status else message)


class RepoError(BackupError):
    """A linked repository working copy violates the expected layout."""

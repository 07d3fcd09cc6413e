"""
Google Drive interaction module.

Handles the API client, authentication, and the remote tree walk.
"""

from .client import DriveClient, DriveClientConfig, ListResult
from .models import RemoteDir, RemoteFile, RemoteItem, WalkItem
from .walker import NameRegistry, TreeWalker

__all__ = [
    "DriveClient",
    "DriveClientConfig",
    "ListResult",
    "RemoteDir",
    "RemoteFile",
    "RemoteItem",
    "WalkItem",
    "NameRegistry",
    "TreeWalker",
]

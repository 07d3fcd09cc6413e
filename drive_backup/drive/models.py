"""
Remote item models for Drive Backup.

A RemoteItem is one node of the Drive hierarchy as discovered by the walker.
Directories only live for the duration of a walk; files are serialized into
the cache stream as flat JSON records.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..constants import FOLDER_MIME_TYPE, NATIVE_MIME_PREFIX, REPO_LINK_SUFFIX
from ..core.formatting import join_posix, sanitize_filename


def parse_modified_time(value: Optional[str]) -> Optional[int]:
    """Convert an RFC 3339 timestamp from the API to epoch milliseconds."""
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return round(dt.timestamp() * 1000)


def suffixed_name(safe_base: str, unique_name_index: int) -> str:
    """Apply the disambiguation suffix to an already sanitized name."""
    if unique_name_index > 0:
        return f"{safe_base}, ({unique_name_index})"
    return safe_base


@dataclass
class RemoteItem:
    """Fields shared by every node of the remote tree."""
    id: str
    name: str
    mime_type: str
    parent_path: str = ""
    unique_name_index: int = 0

    @property
    def base_path(self) -> str:
        """Mirror path before disambiguation; siblings colliding here need a suffix."""
        return join_posix(self.parent_path, sanitize_filename(self.name))

    @property
    def safe_name(self) -> str:
        return suffixed_name(sanitize_filename(self.name), self.unique_name_index)

    @property
    def path(self) -> str:
        """Mirror-relative posix path, unique within one walk."""
        return join_posix(self.parent_path, self.safe_name)

    @staticmethod
    def is_dir_data(data: dict) -> bool:
        """Check if an API file resource describes a folder."""
        return data.get("mimeType") == FOLDER_MIME_TYPE

    @staticmethod
    def from_api(parent: Optional["RemoteDir"], data: dict) -> "RemoteItem":
        """Build a RemoteDir or RemoteFile from an API file resource."""
        parent_path = parent.path if parent else ""
        if RemoteItem.is_dir_data(data):
            return RemoteDir(
                id=data["id"],
                name=data.get("name", ""),
                mime_type=FOLDER_MIME_TYPE,
                parent_path=parent_path,
            )

        size = data.get("size")
        return RemoteFile(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            parent_path=parent_path,
            md5=data.get("md5Checksum") or None,
            link=data.get("webViewLink", ""),
            size=int(size) if size is not None else None,
            modified_time=parse_modified_time(data.get("modifiedTime")),
        )


@dataclass
class RemoteDir(RemoteItem):
    """A folder in the Drive hierarchy."""


@dataclass
class RemoteFile(RemoteItem):
    """A file in the Drive hierarchy, either raw bytes or a native document."""
    md5: Optional[str] = None
    link: str = ""
    size: Optional[int] = None
    modified_time: Optional[int] = None

    @property
    def is_native(self) -> bool:
        """Drive-native types (Docs, Sheets, ...) have no bytes of their own."""
        return self.mime_type.startswith(NATIVE_MIME_PREFIX)

    @property
    def is_repo_link(self) -> bool:
        """Pointer file naming an external git repository to check out."""
        name = self.safe_name
        return not self.is_native and name.endswith(REPO_LINK_SUFFIX) and len(name) > len(REPO_LINK_SUFFIX)

    @property
    def is_unwanted_repo(self) -> bool:
        """A raw .git directory was uploaded to Drive instead of a pointer file."""
        parent_name = self.parent_path.rsplit("/", 1)[-1]
        return self.name == "config" and parent_name == ".git"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "mimeType": self.mime_type,
            "md5Checksum": self.md5,
            "webViewLink": self.link,
            "size": self.size,
            "modifiedTime": self.modified_time,
            "parentPath": self.parent_path,
            "uniqueNameIndex": self.unique_name_index,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RemoteFile":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            parent_path=data.get("parentPath", ""),
            unique_name_index=data.get("uniqueNameIndex", 0),
            md5=data.get("md5Checksum"),
            link=data.get("webViewLink", ""),
            size=data.get("size"),
            modified_time=data.get("modifiedTime"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, line: str) -> "RemoteFile":
        return cls.from_dict(json.loads(line))


@dataclass
class WalkItem:
    """One unit of pending listing work."""
    parent: Optional[RemoteDir] = None
    page_token: Optional[str] = None
    retry: int = 0

    def parent_id(self, root_id: str = "root") -> str:
        return self.parent.id if self.parent else root_id

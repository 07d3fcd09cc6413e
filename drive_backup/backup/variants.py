"""
Backup variants for Drive Backup.

A backup variant is one concrete local artifact derived from a remote file:
the raw bytes, one export per target format, the redirect marker of an
exported document, or the pointer file of a linked repository.
"""

import html
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class VariantKind(Enum):
    RAW = "raw"
    EXPORT = "export"
    REDIRECT = "redirect"
    REPO_LINK = "repo_link"


@dataclass
class BackupVariant:
    """One local artifact to materialize for a remote file."""
    kind: VariantKind
    source_id: str
    source_md5: Optional[str]
    source_link: str
    source_size: Optional[int]
    source_modified_time: Optional[int]
    local_dir_path: Path
    local_file_path: Path
    display_path: str
    export_format: Optional[str] = None
    repo_dir_path: Optional[Path] = None  # REPO_LINK only


# Matches the machine-checkable comment embedded in redirect markers
MARKER_PATTERN = re.compile(r"<!--\s*modifiedTime:\s*(\d+)\s*-->")

REDIRECT_TEMPLATE = """<!DOCTYPE HTML>
<html lang="en-US">
    <head>
        <title>{title}</title>
        <meta charset="UTF-8">
        <meta http-equiv="refresh" content="0; url={link}">
        <script type="text/javascript">
            window.location.href = "{link}"
        </script>
    </head>
    <body>
        <!-- modifiedTime: {modified_time} -->
        <!-- md5: {md5} -->
        If you are not redirected automatically, follow this <a href='{link}'>link to {title}</a>.
    </body>
</html>
"""


def render_redirect(title: str, link: str, modified_time: Optional[int], md5: Optional[str] = None) -> str:
    """Build the redirect marker page for an exported document."""
    return REDIRECT_TEMPLATE.format(
        title=html.escape(title),
        link=html.escape(link, quote=True),
        modified_time=modified_time if modified_time is not None else "",
        md5=md5 or "",
    )


def read_marker_modified_time(path: Path) -> Optional[int]:
    """
    Read the modification time recorded in a redirect marker.

    Returns None if the marker is missing, unreadable or carries no timestamp.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    match = MARKER_PATTERN.search(content)
    if not match:
        return None
    return int(match.group(1))

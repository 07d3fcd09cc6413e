"""
Formatting and sanitization utilities for Drive Backup.
"""

import re
import unicodedata


# ============================================================================
# Name sanitization
# ============================================================================

# Characters no common filesystem accepts in a path segment, and their stand-ins.
# ":" becomes " -" so "Title: Subtitle" reads "Title - Subtitle".
SEGMENT_REPLACEMENTS = {
    "<": "-",
    ">": "-",
    ":": " -",
    '"': "'",
    "\\": "-",
    "/": "-",
    "|": "-",
    "?": "",
    "*": "",
}

# Control characters and DEL become "_"
_SEGMENT_TABLE = str.maketrans({
    **SEGMENT_REPLACEMENTS,
    **{chr(code): "_" for code in (*range(0x20), 0x7F)},
})

# Windows device names, with or without an extension
RESERVED_NAME_PATTERN = re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\.|$)", re.IGNORECASE)


def sanitize_filename(filename: str) -> str:
    """
    Turn a single Drive name into a usable local path segment.

    The result is NFC-normalized, free of separators and characters Windows
    rejects, has no trailing dots or spaces, and doesn't collide with a
    reserved device name. It is never empty, so "." and ".." can't escape
    the mirror.
    """
    name = unicodedata.normalize("NFC", filename or "")
    name = name.translate(_SEGMENT_TABLE).rstrip(". ")
    if RESERVED_NAME_PATTERN.match(name):
        name = "_" + name
    return name or "_"


def join_posix(parent: str, name: str) -> str:
    """Join a mirror-relative parent path and a name with forward slashes."""
    return f"{parent}/{name}" if parent else name


# ============================================================================
# Size and duration formatting
# ============================================================================

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(size_bytes: int) -> str:
    """Format bytes as human readable string."""
    size = float(size_bytes)
    for unit in SIZE_UNITS:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_percent(fraction: float) -> str:
    """Format a 0..1 fraction the way download lines show it."""
    return f"{fraction * 100:.0f}%"

"""
Application paths for Drive Backup.
"""

import sys
from pathlib import Path

SETTINGS_FILE = "settings.json"


def get_app_dir() -> Path:
    """Get the directory where the app is located (for user-writable files)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path(__file__).parent.parent.parent


def get_settings_path() -> Path:
    """Get path to the settings file."""
    return get_app_dir() / SETTINGS_FILE


def resolve_app_path(path: str | Path) -> Path:
    """Resolve a settings path; relative paths are taken from the app dir."""
    path = Path(path).expanduser()
    if path.is_absolute():
        return path
    return get_app_dir() / path

"""
Configuration management for Drive Backup.

Config files:
- settings.json: Tuning knobs and credential locations, next to the app

Environment overrides (applied after the file):
- DRIVE_BACKUP_WORKERS: number of download workers
- DRIVE_BACKUP_CACHE: path of the cache stream
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CACHE_FILE,
    DEFAULT_MAX_WALK_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_WORKER_COUNT,
)
from .core.paths import get_settings_path, resolve_app_path

logger = logging.getLogger(__name__)

ENV_WORKERS = "DRIVE_BACKUP_WORKERS"
ENV_CACHE = "DRIVE_BACKUP_CACHE"


@dataclass
class BackupSettings:
    """User settings that persist across runs."""
    worker_count: int = DEFAULT_WORKER_COUNT
    batch_size: int = DEFAULT_BATCH_SIZE
    retry_delay: float = DEFAULT_RETRY_DELAY
    max_walk_retries: int = DEFAULT_MAX_WALK_RETRIES
    download_retries: int = 3
    cache_file: str = DEFAULT_CACHE_FILE
    client_secret_file: str = "client_secret.json"
    token_file: str = "token.json"

    @property
    def cache_path(self) -> Path:
        return resolve_app_path(self.cache_file)

    @property
    def client_secret_path(self) -> Path:
        return resolve_app_path(self.client_secret_file)

    @property
    def token_path(self) -> Path:
        return resolve_app_path(self.token_file)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BackupSettings":
        """Build settings from a dict, ignoring unknown keys and badly typed values."""
        settings = cls()
        for f in fields(cls):
            if f.name not in data:
                continue
            default = getattr(settings, f.name)
            try:
                setattr(settings, f.name, type(default)(data[f.name]))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid setting %s=%r", f.name, data[f.name])
        return settings

    @classmethod
    def load(cls, path: Optional[Path] = None, environ: Optional[dict] = None) -> "BackupSettings":
        """
        Load settings from file, then apply environment overrides.

        A missing file gives the defaults; an unreadable one also gives the
        defaults, with a warning.
        """
        path = path or get_settings_path()
        settings = cls()

        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
                settings = cls.from_dict(data)
            except (json.JSONDecodeError, ValueError, IOError) as e:
                logger.warning("Could not load %s, using defaults: %s", path, e)

        settings.apply_env(os.environ if environ is None else environ)
        return settings

    def apply_env(self, environ):
        workers = environ.get(ENV_WORKERS)
        if workers:
            try:
                self.worker_count = int(workers)
            except ValueError:
                logger.warning("Ignoring %s=%r, not a number", ENV_WORKERS, workers)
        cache = environ.get(ENV_CACHE)
        if cache:
            self.cache_file = cache

    def save(self, path: Optional[Path] = None):
        """Save settings to file."""
        path = path or get_settings_path()
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

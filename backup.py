#!/usr/bin/env python3
"""
Drive Backup - Mirror a Google Drive into a local directory.

Walks the whole Drive into a cache file, downloads everything that changed
(exporting Google Docs to portable formats), and optionally deletes local
files that no longer exist remotely.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from drive_backup.backup import Cleaner, DriveBackup, FileDownloader
from drive_backup.config import BackupSettings
from drive_backup.core.errors import WalkError
from drive_backup.core.logging import setup_logging
from drive_backup.drive.auth import OAuthManager
from drive_backup.drive.client import DriveClient, DriveClientConfig
from drive_backup.ui import ProgressDisplay


class BackupApp:
    """Main application controller."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.settings = BackupSettings.load(Path(args.settings) if args.settings else None)
        if args.workers:
            self.settings.worker_count = args.workers

        self.output_dir = Path(args.output_dir).expanduser()
        self.display = ProgressDisplay(verbose=args.verbose)
        self.auth = OAuthManager(self.settings.client_secret_path, self.settings.token_path)
        self.client = DriveClient(DriveClientConfig(), credentials=self.auth.get_credentials)
        self.backup = DriveBackup(self.client, self.settings.cache_path, settings=self.settings)

    def handle_sync(self):
        """Walk the remote tree into the cache, unless a cached walk was requested."""
        cache_path = self.settings.cache_path
        if self.args.cached and cache_path.exists():
            print(f"Using cached file list {cache_path}")
            print()
            return
        for event in self.backup.sync():
            self.display.handle(event)

    async def handle_download(self):
        downloader = FileDownloader(
            auth_token=self.auth.get_token,
            max_workers=self.settings.worker_count,
            max_retries=self.settings.download_retries,
        )
        async with downloader:
            async for event in self.backup.download(self.output_dir, downloader):
                self.display.handle(event)

    def handle_cleanup(self):
        """Delete stale local paths, asking first unless --force was given."""
        if not self.args.force:
            candidates = list(Cleaner(self.backup.used_paths).plan(self.output_dir))
            if not candidates:
                print("Nothing to clean up.")
                return
            answer = input(f"Delete {len(candidates)} stale paths under {self.output_dir}? [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Cleanup skipped.")
                return

        for event in self.backup.cleanup(self.output_dir):
            self.display.handle(event)

    def run(self) -> int:
        if not self.auth.is_configured:
            print(f"No OAuth client secret found at {self.settings.client_secret_path}.")
            print("Create a desktop OAuth client in the Google Cloud console and save its JSON there.")
            return 1

        try:
            self.handle_sync()
        except WalkError as e:
            print(f"\nScanning Google Drive failed: {e}")
            return 1

        asyncio.run(self.handle_download())

        if self.args.delete:
            self.handle_cleanup()

        self.display.close()
        return 0


def main() -> int:
    """Entry point."""
    parser = argparse.ArgumentParser(
        description="Drive Backup - Mirror a Google Drive into a local directory"
    )
    parser.add_argument("output_dir", help="Directory the backup is written to")
    parser.add_argument(
        "-c", "--cached",
        action="store_true",
        help="Reuse the cached file list from the last run instead of scanning Drive"
    )
    parser.add_argument(
        "-d", "--delete",
        action="store_true",
        help="Delete local files that no longer exist in Drive"
    )
    parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Don't ask before deleting"
    )
    parser.add_argument("-w", "--workers", type=int, help="Number of parallel downloads")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show skipped files and debug logging")
    parser.add_argument("--settings", help="Path to settings.json")
    args = parser.parse_args()

    setup_logging(args.verbose)
    return BackupApp(args).run()


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nCancelled by user.")
        sys.exit(0)

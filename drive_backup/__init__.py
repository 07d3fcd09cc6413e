"""
Drive Backup - Mirror a Google Drive into a local directory.

Import from submodules directly:
    from drive_backup.config import BackupSettings
    from drive_backup.drive import DriveClient, TreeWalker
    from drive_backup.backup import DriveBackup, FileDownloader
    from drive_backup.ui import ProgressDisplay
"""

__version__ = "1.0.0"

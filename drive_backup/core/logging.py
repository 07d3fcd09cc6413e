"""
Logging setup for Drive Backup.

Modules log through logging.getLogger(__name__); the entry script decides
where those records go. User-facing progress is printed separately by the
progress display.
"""

import logging

LOG_NAME = "drive_backup"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(verbose: bool = False) -> logging.Handler:
    """
    Attach a stderr stream handler to the package logger.

    Calling it again replaces the previous handler instead of stacking them.

    Args:
        verbose: Log DEBUG records instead of only WARNING and above

    Returns:
        The installed handler
    """
    log = logging.getLogger(LOG_NAME)
    for h in list(log.handlers):
        if h.get_name() == LOG_NAME:
            log.removeHandler(h)

    level = logging.DEBUG if verbose else logging.WARNING
    handler = logging.StreamHandler()
    handler.set_name(LOG_NAME)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    log.addHandler(handler)
    log.setLevel(level)
    return handler

"""
User interface module.

Handles terminal progress output.
"""

from .progress_display import ProgressDisplay, ProgressTracker

__all__ = ["ProgressDisplay", "ProgressTracker"]

"""
Core utilities shared across Drive Backup: sanitization, hashing, paths,
errors and logging setup.
"""

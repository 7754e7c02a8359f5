"""
Administration tools for web log data.

This module provides:
- backup: Write one web log and everything scoped to it to a JSON archive
- restore: Load an archive, optionally under a new URL base

Invariants:
    - Tools only talk to the store through the data contract
    - A restore either loads the whole web log or leaves none of it behind
"""

from .backup import (
    Archive,
    BackupResult,
    RestoreResult,
    backup_web_log,
    create_backup,
    read_archive,
    rekey_archive,
    restore_backup,
    write_archive,
)

__all__ = [
    "Archive",
    "BackupResult",
    "RestoreResult",
    "backup_web_log",
    "create_backup",
    "read_archive",
    "rekey_archive",
    "restore_backup",
    "write_archive",
]

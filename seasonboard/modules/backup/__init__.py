"""Leaderboard backup / restore."""

from seasonboard.modules.backup.codec import (
    BACKUP_FORMAT,
    BACKUP_VERSION,
    BackupCodec,
    BackupManager,
    backup_name,
)

__all__ = ["BACKUP_FORMAT", "BACKUP_VERSION", "BackupCodec", "BackupManager", "backup_name"]

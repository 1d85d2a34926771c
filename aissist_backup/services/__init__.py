"""Service layer for backup and restore operations."""

from aissist_backup.services.auto_backup import AutoBackupHandle, AutoBackupService
from aissist_backup.services.backup import BackupService
from aissist_backup.services.restore import RestoreService, check_disk_space, parse_restore_mode

__all__ = [
    'AutoBackupHandle',
    'AutoBackupService',
    'BackupService',
    'RestoreService',
    'check_disk_space',
    'parse_restore_mode',
]

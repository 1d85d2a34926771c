"""
Backup engine configuration.

Extends base configuration with storage locations, retention policy and the
auto-backup schedule. Only the CLI, MCP server and service layer read these;
engine functions take explicit paths.
"""

from __future__ import annotations

from pathlib import Path

import pydantic

from aissist_backup.config.base import BaseBackupSettings, lazy_settings
from aissist_backup.schemas.types import StorageKind


class BackupSettings(BaseBackupSettings):
    """Storage, retention and scheduling configuration."""

    # Storage locations
    GLOBAL_STORAGE_PATH: Path = Path.home() / '.aissist'
    LOCAL_STORAGE_DIR_NAME: str = '.aissist'  # Resolved against the working directory
    BACKUP_DIR: Path | None = None  # Default: sibling '<storage>-backups' directory

    # Retention policy (both None = no policy)
    RETENTION_MAX_COUNT: int | None = None
    RETENTION_MAX_AGE_DAYS: int | None = None

    # Auto-backup schedule
    AUTO_BACKUP_ENABLED: bool = False
    AUTO_BACKUP_INTERVAL_HOURS: float = 24.0

    @pydantic.field_validator('RETENTION_MAX_COUNT', 'RETENTION_MAX_AGE_DAYS')
    @classmethod
    def validate_retention(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError('retention limits must be positive')
        return v

    def storage_path(self, storage_kind: StorageKind, cwd: Path | None = None) -> Path:
        """Resolve the storage directory for a storage kind."""
        if storage_kind == 'global':
            return self.GLOBAL_STORAGE_PATH
        return (cwd or Path.cwd()) / self.LOCAL_STORAGE_DIR_NAME

    def backup_dir(self, storage_path: Path) -> Path:
        """
        Resolve where archives for a storage directory are kept.

        Archives live beside the storage directory rather than inside it, so a
        backup never contains earlier backups.
        """
        if self.BACKUP_DIR is not None:
            return self.BACKUP_DIR
        return storage_path.parent / f'{storage_path.name}-backups'


# Module-level singleton (lazy-loaded)
settings = lazy_settings(BackupSettings)

"""
Operation schemas for service results.

This package contains Pydantic models for the archive descriptor and the
results returned by the backup, restore and auto-backup services.
"""

from __future__ import annotations

from aissist_backup.schemas.operations.auto_backup import AutoBackupOutcome, AutoBackupState
from aissist_backup.schemas.operations.backup import (
    ARCHIVE_FORMAT_VERSION,
    DESCRIPTOR_NAME,
    BackupListing,
    BackupMetadata,
    BackupResult,
    CleanupResult,
    ManifestEntry,
    VerificationResult,
)
from aissist_backup.schemas.operations.restore import DiskSpaceCheck, RestoreMode, RestoreResult

__all__ = [
    # Auto-backup
    'AutoBackupOutcome',
    'AutoBackupState',
    # Backup
    'ARCHIVE_FORMAT_VERSION',
    'DESCRIPTOR_NAME',
    'BackupListing',
    'BackupMetadata',
    'BackupResult',
    'CleanupResult',
    'ManifestEntry',
    'VerificationResult',
    # Restore
    'DiskSpaceCheck',
    'RestoreMode',
    'RestoreResult',
]

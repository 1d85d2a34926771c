"""
Shared exceptions for aissist-backup.

Domain-specific exceptions used across services.

Exception Hierarchy:
    BackupError (base)
    ├── BackupNotFoundError (source dir / backup file / safety backup missing)
    ├── InvalidArchiveError (descriptor missing, unparseable or unsupported)
    ├── ArchiveReadError (container unreadable or corrupt)
    ├── IntegrityError (checksum mismatch or missing payload)
    ├── RollbackFailureError (rollback failed after an earlier failure)
    ├── UnsupportedFileError (restore target holds a file that cannot be snapshotted)
    └── RetentionPolicyError (clean requested without a policy)

BackupNotFoundError is also a FileNotFoundError and ArchiveReadError is also an
OSError, so callers catching the builtin filesystem errors still see them.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

ROLLBACK_COMPLETED_NOTE = 'Rollback completed successfully'
"""Note attached to an exception re-raised after a successful rollback."""


class BackupError(Exception):
    """Base exception for all aissist-backup errors."""


class BackupNotFoundError(BackupError, FileNotFoundError):
    """Raised when a source directory, backup archive or safety backup does not exist."""


class InvalidArchiveError(BackupError):
    """Raised when an archive's descriptor entry is missing, unparseable or unsupported."""


class ArchiveReadError(BackupError, OSError):
    """Raised when an archive container cannot be opened or read."""


class IntegrityError(BackupError):
    """Raised when archived or restored bytes do not match the manifest."""

    def __init__(self, message: str, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        details = '\n'.join(f'  {error}' for error in self.errors)
        super().__init__(f'{message}:\n{details}' if details else message)


class RollbackFailureError(BackupError):
    """Raised when rollback itself fails after a replace-mode restore failure.

    The target directory may be in an inconsistent state. The safety backup is
    kept on disk for manual recovery.
    """

    def __init__(
        self,
        original_error: BaseException,
        rollback_error: BaseException,
        safety_backup_path: Path | None,
    ) -> None:
        self.original_error = original_error
        self.rollback_error = rollback_error
        self.safety_backup_path = safety_backup_path
        message = f'Restore failed and rollback also failed: {original_error}. Rollback error: {rollback_error}'
        if safety_backup_path is not None:
            message += f'\nSafety backup preserved at: {safety_backup_path}'
        super().__init__(message)


class UnsupportedFileError(BackupError):
    """Raised when a replace target holds something other than files, directories and symlinks."""


class RetentionPolicyError(BackupError):
    """Raised when cleanup is requested but no retention policy is configured."""


def was_rolled_back(exc: BaseException) -> bool:
    """Check whether an exception was re-raised after a successful rollback."""
    return ROLLBACK_COMPLETED_NOTE in getattr(exc, '__notes__', ())

"""
Backup service - create, inspect, list and verify backup archives.

Wraps the archive writer, reader and verifier with progress logging. A freshly
written archive is verified before it is reported as created; an archive that
fails verification is deleted.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from aissist_backup.config.settings import BackupSettings
from aissist_backup.exceptions import BackupNotFoundError, IntegrityError, InvalidArchiveError
from aissist_backup.protocols import LoggerProtocol
from aissist_backup.schemas.operations.backup import BackupListing, BackupMetadata, BackupResult, VerificationResult
from aissist_backup.schemas.types import StorageKind
from aissist_backup.services import reader
from aissist_backup.services.archive import generate_backup_filename, write_archive
from aissist_backup.services.state import AutoBackupStateStore
from aissist_backup.services.verify import verify_integrity

__all__ = ['BackupService']


class BackupService:
    """Backup operations for one backup directory."""

    def __init__(
        self,
        backup_dir: Path,
        *,
        prefix: str = 'aissist',
        extension: str = 'zip',
        compression_level: int = 6,
        hash_workers: int = 1,
    ) -> None:
        self.backup_dir = backup_dir
        self.prefix = prefix
        self.extension = extension
        self.compression_level = compression_level
        self.hash_workers = hash_workers
        self.state_store = AutoBackupStateStore(backup_dir)

    @classmethod
    def from_settings(cls, settings: BackupSettings, storage_path: Path) -> BackupService:
        """Build a service for the backup directory of storage_path."""
        return cls(
            settings.backup_dir(storage_path),
            prefix=settings.BACKUP_PREFIX,
            extension=settings.ARCHIVE_EXTENSION,
            compression_level=settings.COMPRESSION_LEVEL,
            hash_workers=settings.HASH_WORKERS,
        )

    async def create_backup(
        self,
        source_path: Path,
        output_path: Path | None = None,
        description: str | None = None,
        storage_kind: StorageKind = 'local',
        logger: LoggerProtocol | None = None,
    ) -> BackupResult:
        """
        Create and verify a backup of source_path.

        Args:
            source_path: Storage directory to back up
            output_path: Destination archive (default: <backup_dir>/<generated filename>)
            description: Optional free-text description
            storage_kind: Semantic origin recorded in the descriptor
            logger: Optional logger for progress messages

        Returns:
            BackupResult for the verified archive

        Raises:
            BackupNotFoundError: If source_path does not exist
            IntegrityError: If the written archive fails verification (it is deleted)
            OSError: If reading the source or writing the archive fails
        """
        if output_path is None:
            output_path = self.backup_dir / generate_backup_filename(self.prefix, self.extension)

        if logger:
            await logger.info(f'Creating backup of {source_path}')

        result = write_archive(
            source_path,
            output_path,
            storage_kind=storage_kind,
            description=description,
            compression_level=self.compression_level,
            hash_workers=self.hash_workers,
        )

        if logger:
            await logger.info(
                f'Wrote {result.metadata.file_count} files ({result.metadata.total_size:,} bytes), verifying...'
            )

        verification = verify_integrity(output_path)
        if not verification.valid:
            output_path.unlink(missing_ok=True)
            if logger:
                await logger.error('Backup verification failed, archive deleted')
            raise IntegrityError('Backup verification failed', verification.errors)

        self.state_store.record_backup(datetime.now(UTC))

        if logger:
            await logger.info(f'Backup created: {output_path}')
        return result

    async def get_info(self, archive_path: Path, logger: LoggerProtocol | None = None) -> BackupMetadata:
        """
        Read the descriptor of a backup.

        Raises:
            BackupNotFoundError: If the archive does not exist
            InvalidArchiveError: If the descriptor is missing, unparseable or unsupported
            ArchiveReadError: If the archive is unreadable
        """
        if logger:
            await logger.info(f'Reading backup metadata: {archive_path}')
        metadata = reader.read_metadata(archive_path)
        if metadata is None:
            raise InvalidArchiveError(f'Invalid backup file: missing metadata in {archive_path}')
        return metadata

    async def list_backups(
        self,
        directory: Path | None = None,
        logger: LoggerProtocol | None = None,
    ) -> list[BackupListing]:
        """List backups newest first (default directory: this service's backup_dir)."""
        directory = directory or self.backup_dir
        listings = reader.list_backups(directory)
        if logger:
            unreadable = sum(1 for listing in listings if listing.metadata is None)
            await logger.info(f'Found {len(listings)} backups in {directory} ({unreadable} without metadata)')
        return listings

    async def verify(self, archive_path: Path, logger: LoggerProtocol | None = None) -> VerificationResult:
        """
        Verify an archive against its manifest.

        Raises:
            BackupNotFoundError: If the archive does not exist
        """
        if not archive_path.is_file():
            raise BackupNotFoundError(f'Backup file not found: {archive_path}')
        if logger:
            await logger.info(f'Verifying backup: {archive_path}')
        result = verify_integrity(archive_path)
        if logger and not result.valid:
            await logger.warning(f'Backup verification failed with {len(result.errors)} error(s)')
        return result

"""
Restore orchestrator - mode handling, safety backup, verification, rollback.

Replace-mode lifecycle:

    Idle -> SafetyBackedUp -> Extracted -> Verified -> Committed
                  \               \            \
                   +---------------+------------+--> RolledBack

The safety snapshot is taken before the rollback boundary is entered, so a
snapshot failure aborts with the target untouched. Everything after it
(emptying the target, extraction, verification) runs inside the boundary:
any failure, including cancellation and KeyboardInterrupt, restores the
snapshot and then re-raises the original exception.

Merge modes never snapshot and never roll back.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, nullcontext
from pathlib import Path

import psutil

from aissist_backup.exceptions import (
    ROLLBACK_COMPLETED_NOTE,
    BackupNotFoundError,
    IntegrityError,
    InvalidArchiveError,
    RollbackFailureError,
)
from aissist_backup.protocols import LoggerProtocol
from aissist_backup.schemas.operations.restore import DiskSpaceCheck, RestoreMode, RestoreResult
from aissist_backup.services.extract import extract_archive
from aissist_backup.services.reader import read_metadata
from aissist_backup.services.rollback import (
    create_safety_backup,
    discard_safety_backup,
    empty_directory,
    rollback,
)
from aissist_backup.services.verify import verify_restore

__all__ = ['RestoreService', 'check_disk_space', 'parse_restore_mode']

logger = logging.getLogger(__name__)

# Modes that overwrite target files and therefore get post-restore verification
VERIFIED_MODES = frozenset({RestoreMode.REPLACE, RestoreMode.MERGE_OVERWRITE})


def parse_restore_mode(value: str | RestoreMode) -> RestoreMode:
    """
    Validate a restore mode string.

    Raises:
        ValueError: If value is not a known mode
    """
    try:
        return RestoreMode(value)
    except ValueError:
        valid = ', '.join(mode.value for mode in RestoreMode)
        raise ValueError(f'Invalid restore mode: {value}. Valid modes: {valid}') from None


def check_disk_space(target_path: Path, required_bytes: int) -> DiskSpaceCheck:
    """
    Best-effort free space check for the filesystem holding target_path.

    Queries the nearest existing ancestor, since the target may not exist yet.
    Advisory only: a failed query reports available=True with free_bytes=None.
    """
    probe = target_path.resolve()
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent

    try:
        free_bytes = psutil.disk_usage(str(probe)).free
    except OSError as e:
        logger.warning(f'Could not determine free space for {probe}: {e}')
        return DiskSpaceCheck(available=True, free_bytes=None, required_bytes=required_bytes)

    return DiskSpaceCheck(
        available=free_bytes >= required_bytes,
        free_bytes=free_bytes,
        required_bytes=required_bytes,
    )


class RestoreService:
    """
    Restores backup archives into a target directory.

    Framework-agnostic: the CLI and MCP server pass their own LoggerProtocol.
    Engine steps are synchronous and run on the calling task, so cancellation
    can only arrive between steps.
    """

    @asynccontextmanager
    async def _rollback_boundary(self, safety_path: Path | None, target_path: Path) -> AsyncGenerator[None]:
        """
        Error boundary restoring the pre-restore target on any failure.

        - On ANY exception within the context, rollback is performed
        - After a successful rollback the original exception is re-raised with
          a 'Rollback completed successfully' note and the safety backup is discarded
        - If rollback fails, RollbackFailureError is raised (chained from the
          original) and the safety backup is kept for manual recovery

        Args:
            safety_path: Safety archive of the target, or None if the target did not exist
            target_path: Restore target

        Raises:
            Re-raises any exception after performing rollback
        """
        try:
            yield
        except BaseException as original_exc:
            if isinstance(original_exc, asyncio.CancelledError):
                logger.warning('Restore cancelled, performing rollback...')
            else:
                logger.error(f'Restore failed: {original_exc}, performing rollback...')
            try:
                self._rollback(safety_path, target_path)
            except Exception as rollback_error:
                logger.error(f'Rollback failed: {rollback_error}')
                # Keep safety backup for manual recovery
                raise RollbackFailureError(original_exc, rollback_error, safety_path) from original_exc
            logger.info('Rollback completed successfully')
            if safety_path is not None:
                discard_safety_backup(safety_path)
            original_exc.add_note(ROLLBACK_COMPLETED_NOTE)
            raise

    @staticmethod
    def _rollback(safety_path: Path | None, target_path: Path) -> None:
        if safety_path is None:
            # Target did not exist before the restore - return it to absent
            if target_path.exists():
                shutil.rmtree(target_path)
            return
        rollback(safety_path, target_path)

    async def restore(
        self,
        archive_path: Path,
        target_path: Path,
        mode: RestoreMode | str = RestoreMode.MERGE_OVERWRITE,
        logger: LoggerProtocol | None = None,
    ) -> RestoreResult:
        """
        Restore an archive into target_path.

        Args:
            archive_path: Backup archive to restore
            target_path: Directory to restore into (created if absent)
            mode: replace, merge-overwrite or merge-preserve
            logger: Optional logger for progress messages

        Returns:
            RestoreResult with file counts, verification flag and safety backup path

        Raises:
            ValueError: If mode is not a known restore mode
            BackupNotFoundError: If the archive does not exist
            InvalidArchiveError: If the archive has no valid descriptor
            IntegrityError: If post-restore verification fails
            RollbackFailureError: If a replace-mode failure could not be rolled back
        """
        mode = parse_restore_mode(mode)

        if not archive_path.is_file():
            raise BackupNotFoundError(f'Backup file not found: {archive_path}')

        metadata = read_metadata(archive_path)
        if metadata is None:
            raise InvalidArchiveError(f'Invalid backup file: missing metadata in {archive_path}')

        if logger:
            await logger.info(f'Restoring {metadata.file_count} files ({mode}) into {target_path}')

        disk = check_disk_space(target_path, metadata.total_size)
        if not disk.available and logger:
            await logger.warning(
                f'Low disk space: {disk.free_bytes:,} bytes free, {disk.required_bytes:,} bytes required'
            )

        safety_path: Path | None = None
        if mode == RestoreMode.REPLACE:
            if logger:
                await logger.info('Creating safety backup...')
            safety_path = create_safety_backup(target_path)

        boundary = self._rollback_boundary(safety_path, target_path) if mode == RestoreMode.REPLACE else nullcontext()
        async with boundary:
            if mode == RestoreMode.REPLACE:
                empty_directory(target_path)

            result = extract_archive(archive_path, target_path, mode)
            if logger:
                await logger.info(
                    f'Extracted: {result.files_added} added, {result.files_overwritten} overwritten, '
                    f'{result.files_preserved} preserved'
                )

            verified = False
            if mode in VERIFIED_MODES:
                if logger:
                    await logger.info('Verifying restored files...')
                verification = verify_restore(target_path, metadata)
                if not verification.valid:
                    raise IntegrityError('Restore verification failed', verification.errors)
                verified = True

        # Commit
        if safety_path is not None:
            discard_safety_backup(safety_path)

        return result.model_copy(
            update={
                'verified': verified,
                'safety_backup_path': str(safety_path) if safety_path is not None else None,
            }
        )

"""
Auto-backup scheduler.

Decides whether a periodic backup is due and runs it in the background.
Failures never propagate to the interactive caller: each run produces an
AutoBackupOutcome that the caller polls or awaits through an AutoBackupHandle.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path

from aissist_backup.config.settings import BackupSettings
from aissist_backup.exceptions import BackupError
from aissist_backup.protocols import LoggerProtocol
from aissist_backup.schemas.operations.auto_backup import AutoBackupOutcome
from aissist_backup.schemas.types import StorageKind
from aissist_backup.services.backup import BackupService

__all__ = ['AUTO_BACKUP_DESCRIPTION', 'AutoBackupHandle', 'AutoBackupService']

log = logging.getLogger(__name__)

AUTO_BACKUP_DESCRIPTION = 'Auto-backup'


class AutoBackupHandle:
    """Handle to a background auto-backup run."""

    def __init__(self, task: asyncio.Task[AutoBackupOutcome]) -> None:
        self._task = task

    def poll(self) -> AutoBackupOutcome | None:
        """Return the outcome if the run has finished, None while it is still running."""
        if not self._task.done():
            return None
        return self._task.result()

    async def wait(self) -> AutoBackupOutcome:
        """Block until the run has finished."""
        return await self._task


class AutoBackupService:
    """Periodic backup of one storage directory."""

    def __init__(
        self,
        settings: BackupSettings,
        storage_path: Path,
        storage_kind: StorageKind = 'local',
    ) -> None:
        self.settings = settings
        self.storage_path = storage_path
        self.storage_kind = storage_kind
        self.backup_service = BackupService.from_settings(settings, storage_path)

    @property
    def interval(self) -> timedelta:
        return timedelta(hours=self.settings.AUTO_BACKUP_INTERVAL_HOURS)

    def is_due(self, now: datetime | None = None) -> bool:
        """
        Check whether an auto-backup should run.

        Due when auto-backup is enabled, the storage directory exists, and no
        backup was recorded within the configured interval.
        """
        if not self.settings.AUTO_BACKUP_ENABLED or not self.storage_path.is_dir():
            return False

        last_backup_at = self.backup_service.state_store.read().last_backup_at
        if last_backup_at is None:
            return True

        now = now or datetime.now(UTC)
        if last_backup_at.tzinfo is None:
            last_backup_at = last_backup_at.replace(tzinfo=UTC)
        return now - last_backup_at >= self.interval

    async def run(self, logger: LoggerProtocol | None = None) -> AutoBackupOutcome:
        """
        Perform one auto-backup.

        Returns:
            Outcome with status 'created' or 'failed' (backup errors are reported, not raised)
        """
        try:
            result = await self.backup_service.create_backup(
                self.storage_path,
                description=AUTO_BACKUP_DESCRIPTION,
                storage_kind=self.storage_kind,
                logger=logger,
            )
        except (BackupError, OSError) as e:
            log.error(f'Auto-backup of {self.storage_path} failed: {e}')
            return AutoBackupOutcome(status='failed', finished_at=datetime.now(UTC), error=str(e))

        return AutoBackupOutcome(status='created', finished_at=datetime.now(UTC), archive_path=result.archive_path)

    def start(self, logger: LoggerProtocol | None = None, *, force: bool = False) -> AutoBackupHandle:
        """
        Schedule a background auto-backup on the running event loop.

        Args:
            logger: Optional logger for progress messages
            force: Run even if no backup is due

        Returns:
            Handle for polling or awaiting the outcome (status 'skipped' when not due)
        """
        return AutoBackupHandle(asyncio.create_task(self._run_if_due(logger, force)))

    async def _run_if_due(self, logger: LoggerProtocol | None, force: bool) -> AutoBackupOutcome:
        try:
            due = force or self.is_due()
        except (BackupError, OSError) as e:
            log.error(f'Auto-backup check for {self.storage_path} failed: {e}')
            return AutoBackupOutcome(status='failed', finished_at=datetime.now(UTC), error=str(e))

        if not due:
            return AutoBackupOutcome(status='skipped', finished_at=datetime.now(UTC))
        return await self.run(logger)

"""
Auto-backup state persistence.

Stores the last successful backup time in <backup_dir>/auto-backup-state.json
with process-safe access (filelock) and atomic writes (temp file + rename).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

import pydantic
from filelock import FileLock

from aissist_backup.schemas.operations.auto_backup import AutoBackupState

__all__ = ['STATE_FILENAME', 'AutoBackupStateStore']

STATE_FILENAME = 'auto-backup-state.json'

logger = logging.getLogger(__name__)


class AutoBackupStateStore:
    """Read/update the auto-backup state file of one backup directory."""

    def __init__(self, backup_dir: Path) -> None:
        self.backup_dir = backup_dir
        self.state_file = backup_dir / STATE_FILENAME
        self.lock_file = backup_dir / f'{STATE_FILENAME}.lock'

    def read(self) -> AutoBackupState:
        """Read the state file (empty state if missing or corrupt)."""
        if not self.state_file.exists():
            return AutoBackupState()
        with FileLock(self.lock_file):
            return self._read_state_file()

    def record_backup(self, backup_at: datetime) -> None:
        """Record a successful backup time."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        # Acquire lock, read, modify, write atomically
        with FileLock(self.lock_file):
            state = self._read_state_file()
            state.last_backup_at = backup_at
            self._write_state_file(state)

    def _read_state_file(self) -> AutoBackupState:
        if not self.state_file.exists():
            return AutoBackupState()

        try:
            with self.state_file.open() as f:
                data = json.load(f)
            return AutoBackupState.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, pydantic.ValidationError) as e:
            # Next recorded backup rewrites the file
            logger.warning(f'Ignoring unreadable auto-backup state {self.state_file}: {e}')
            return AutoBackupState()

    def _write_state_file(self, state: AutoBackupState) -> None:
        """Write the state file atomically using temp file + rename."""
        tmp_file = self.state_file.with_suffix('.tmp.json')

        with tmp_file.open('w') as f:
            json.dump(state.model_dump(mode='json'), f, indent=2)

        # Atomic rename
        tmp_file.replace(self.state_file)

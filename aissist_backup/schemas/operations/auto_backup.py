"""
Auto-backup schemas.

Persistent scheduler state and the outcome reported by a background run.
"""

from __future__ import annotations

from typing import Literal

from aissist_backup.schemas.base import StrictModel
from aissist_backup.schemas.types import JsonDatetime, PathStr


class AutoBackupState(StrictModel):
    """The auto-backup-state.json file structure.

    This model is NOT frozen so last_backup_at can be updated in place.
    """

    model_config = {'extra': 'forbid', 'strict': True, 'frozen': False}

    schema_version: str = '1.0'
    last_backup_at: JsonDatetime | None = None


class AutoBackupOutcome(StrictModel):
    """Result of one auto-backup attempt, as seen by the polling caller."""

    status: Literal['created', 'skipped', 'failed']
    finished_at: JsonDatetime
    archive_path: PathStr | None = None
    error: str | None = None

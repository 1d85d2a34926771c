"""
Restore operation schemas.

Models for restore modes, restore results and the disk space preflight.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

import pydantic

from aissist_backup.schemas.base import StrictModel
from aissist_backup.schemas.types import PathStr


class RestoreMode(StrEnum):
    """Per-file conflict policy applied during extraction.

    - REPLACE: target is emptied first (with a safety backup), every file written
    - MERGE_OVERWRITE: archive files overwrite conflicting target files
    - MERGE_PRESERVE: conflicting target files are kept untouched
    """

    REPLACE = 'replace'
    MERGE_OVERWRITE = 'merge-overwrite'
    MERGE_PRESERVE = 'merge-preserve'


class RestoreResult(StrictModel):
    """Result of a restore operation.

    Counts are mutually exclusive: every processed file lands in exactly one bucket.
    """

    mode: RestoreMode
    archive_path: PathStr
    target_path: PathStr

    files_added: int = pydantic.Field(ge=0)
    files_overwritten: int = pydantic.Field(ge=0)
    files_preserved: int = pydantic.Field(ge=0)
    files_skipped: int = pydantic.Field(ge=0)

    # Post-restore checksum verification ran (replace and merge-overwrite only)
    verified: bool = False
    # Rollback snapshot (replace mode only). Deleted on success, reported for audit.
    safety_backup_path: PathStr | None = None
    restored_at: datetime | None = None

    @property
    def files_processed(self) -> int:
        return self.files_added + self.files_overwritten + self.files_preserved + self.files_skipped


class DiskSpaceCheck(StrictModel):
    """Best-effort free space preflight. Advisory only."""

    available: bool
    free_bytes: int | None  # None when the query failed
    required_bytes: int

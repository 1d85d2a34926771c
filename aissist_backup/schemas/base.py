"""
Base class for descriptor and operation result models.

Archive descriptors are read back from untrusted files, so unknown keys and
loose coercion are rejected rather than silently accepted.
"""

from __future__ import annotations

from aissist_backup.schemas.types import BaseStrictModel


class StrictModel(BaseStrictModel):
    """Model for everything under schemas/operations/ (backup, restore, auto-backup).

    Results are frozen once returned; AutoBackupState opts out so the state
    store can update last_backup_at in place.
    """

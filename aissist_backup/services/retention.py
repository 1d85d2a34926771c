"""
Retention cleaner - selects and deletes backups beyond a retention policy.

Policy (either limit may be None, not both):
    max_age_days   Backups whose descriptor timestamp is older than now - max_age_days
    max_count      Everything beyond the newest max_count backups

The selection is the union of both rules. Archives without readable metadata
rank as oldest, so they are the first to go under max_count.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path

from aissist_backup.exceptions import RetentionPolicyError
from aissist_backup.schemas.operations.backup import BackupListing, CleanupResult
from aissist_backup.services.reader import list_backups

__all__ = ['clean_backups', 'select_backups_to_clean']

logger = logging.getLogger(__name__)


def _require_policy(max_age_days: int | None, max_count: int | None) -> None:
    if max_age_days is None and max_count is None:
        raise RetentionPolicyError(
            'No retention policy configured. Set RETENTION_MAX_AGE_DAYS and/or RETENTION_MAX_COUNT.'
        )


def select_backups_to_clean(
    listings: Sequence[BackupListing],
    max_age_days: int | None = None,
    max_count: int | None = None,
    now: datetime | None = None,
) -> list[BackupListing]:
    """
    Select backups that fall outside the retention policy.

    Args:
        listings: Backups ordered newest first (as returned by list_backups)
        max_age_days: Maximum age in days
        max_count: Number of newest backups to keep
        now: Reference time (default: current UTC time)

    Returns:
        Selected listings, in the input order

    Raises:
        RetentionPolicyError: If neither limit is set
    """
    _require_policy(max_age_days, max_count)
    now = now or datetime.now(UTC)

    selected: set[str] = set()

    if max_age_days is not None:
        cutoff = now - timedelta(days=max_age_days)
        for listing in listings:
            if listing.metadata is None:
                continue
            timestamp = listing.metadata.timestamp
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=UTC)
            if timestamp < cutoff:
                selected.add(listing.path)

    if max_count is not None:
        selected.update(listing.path for listing in listings[max_count:])

    return [listing for listing in listings if listing.path in selected]


def clean_backups(
    directory: Path,
    *,
    max_age_days: int | None = None,
    max_count: int | None = None,
    dry_run: bool = False,
    now: datetime | None = None,
) -> CleanupResult:
    """
    Delete backups in directory that fall outside the retention policy.

    Args:
        directory: Backup directory
        max_age_days: Maximum age in days
        max_count: Number of newest backups to keep
        dry_run: Report the selection without deleting anything
        now: Reference time (default: current UTC time)

    Returns:
        CleanupResult with the selection and the paths actually deleted

    Raises:
        RetentionPolicyError: If neither limit is set
        OSError: If a selected archive cannot be deleted
    """
    _require_policy(max_age_days, max_count)

    selected = select_backups_to_clean(list_backups(directory), max_age_days, max_count, now)

    deleted: list[str] = []
    if not dry_run:
        for listing in selected:
            Path(listing.path).unlink(missing_ok=True)
            deleted.append(listing.path)
            logger.info(f'Deleted backup: {listing.path}')

    return CleanupResult(
        backup_dir=str(directory),
        was_dry_run=dry_run,
        selected=selected,
        deleted=deleted,
    )

"""
Extraction engine - writes archive payloads into a target directory.

Conflict handling per mode:

    Mode              Target file exists   Action      Counted as
    replace           (cleared by caller)  write       files_added
    merge-overwrite   yes                  overwrite   files_overwritten
    merge-overwrite   no                   write       files_added
    merge-preserve    yes                  skip        files_preserved
    merge-preserve    no                   write       files_added

Extraction never deletes anything from the target.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import zipfile
from datetime import UTC, datetime
from pathlib import Path

from aissist_backup.exceptions import ArchiveReadError, BackupNotFoundError, IntegrityError, InvalidArchiveError
from aissist_backup.paths import resolve_entry_path
from aissist_backup.schemas.operations.backup import DESCRIPTOR_NAME
from aissist_backup.schemas.operations.restore import RestoreMode, RestoreResult
from aissist_backup.services.reader import ZIP_READ_ERRORS, load_descriptor

__all__ = ['extract_all', 'extract_archive']

logger = logging.getLogger(__name__)


def _write_entry(zf: zipfile.ZipFile, entry_name: str, destination: Path) -> None:
    """Stream one archive entry to destination, creating parent directories."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        with zf.open(entry_name) as src, open(destination, 'wb') as dst:
            shutil.copyfileobj(src, dst)
    except ZIP_READ_ERRORS as e:
        raise ArchiveReadError(f'Failed to read {entry_name} from backup archive: {e}') from e


def _open_archive(archive_path: Path) -> zipfile.ZipFile:
    if not archive_path.is_file():
        raise BackupNotFoundError(f'Backup file not found: {archive_path}')
    try:
        return zipfile.ZipFile(archive_path)
    except ZIP_READ_ERRORS as e:
        raise ArchiveReadError(f'Failed to read backup archive {archive_path}: {e}') from e


def extract_archive(archive_path: Path, target_path: Path, mode: RestoreMode) -> RestoreResult:
    """
    Extract every manifest entry of an archive into target_path.

    Args:
        archive_path: Path to the ZIP archive
        target_path: Destination directory (created if absent)
        mode: Conflict policy for files that already exist

    Returns:
        RestoreResult with per-bucket file counts

    Raises:
        BackupNotFoundError: If the archive does not exist
        ArchiveReadError: If the container is unreadable
        InvalidArchiveError: If the descriptor is missing/invalid or an entry path is unsafe
        IntegrityError: If a manifest entry has no payload
        OSError: If writing a file fails (earlier writes are not undone)
    """
    mode = RestoreMode(mode)
    added = overwritten = preserved = 0

    with _open_archive(archive_path) as zf:
        metadata = load_descriptor(zf)
        if metadata is None:
            raise InvalidArchiveError(f'Invalid backup file: missing metadata in {archive_path}')

        names = set(zf.namelist())
        target_path.mkdir(parents=True, exist_ok=True)

        for entry in metadata.manifest:
            if entry.path not in names:
                raise IntegrityError('Archive is incomplete', [f'Missing file in archive: {entry.path}'])

            destination = resolve_entry_path(target_path, entry.path)
            exists = destination.exists()

            if exists and mode == RestoreMode.MERGE_PRESERVE:
                preserved += 1
                continue

            _write_entry(zf, entry.path, destination)
            if exists and mode == RestoreMode.MERGE_OVERWRITE:
                overwritten += 1
            else:
                added += 1

    logger.debug(
        f'Extracted {archive_path} into {target_path}: '
        f'{added} added, {overwritten} overwritten, {preserved} preserved'
    )

    return RestoreResult(
        mode=mode,
        archive_path=str(archive_path),
        target_path=str(target_path),
        files_added=added,
        files_overwritten=overwritten,
        files_preserved=preserved,
        files_skipped=0,
        restored_at=datetime.now(UTC),
    )


def extract_all(archive_path: Path, target_path: Path) -> int:
    """
    Unconditionally write every entry (all but the descriptor) into target_path.

    Used by rollback, which must not depend on the descriptor being valid.
    Directory entries are recreated and symlink entries become symlinks again.

    Returns:
        Number of files and symlinks written

    Raises:
        BackupNotFoundError: If the archive does not exist
        ArchiveReadError: If the container is unreadable
        InvalidArchiveError: If an entry path is unsafe
        OSError: If writing a file fails
    """
    written = 0
    with _open_archive(archive_path) as zf:
        target_path.mkdir(parents=True, exist_ok=True)
        for info in zf.infolist():
            if info.filename == DESCRIPTOR_NAME:
                continue
            destination = resolve_entry_path(target_path, info.filename)
            if info.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            if stat.S_ISLNK(info.external_attr >> 16):
                destination.parent.mkdir(parents=True, exist_ok=True)
                os.symlink(zf.read(info).decode(), destination)
            else:
                _write_entry(zf, info.filename, destination)
            written += 1
    return written

"""
Safety backups and rollback for replace-mode restores.

A safety backup is a full archive (same format as user backups) of the restore
target, written into a private temp directory before the target is touched.
Rollback depends only on that archive and the target path.

The user backup format only carries regular files, but emptying the target
removes everything. The safety archive therefore also records:

    <dir>/                       Directory entry, so empty directories come back
    <link>                       Symlink entry (S_IFLNK mode bits, link text as payload)
    ./.backup-metadata.json      A stale root descriptor left in the target

Payload names never start with './', so the escaped name cannot collide with
a real entry. It resolves back to the root-level file on extraction.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path

from aissist_backup.exceptions import BackupNotFoundError, UnsupportedFileError
from aissist_backup.paths import to_archive_path
from aissist_backup.schemas.operations.backup import DESCRIPTOR_NAME
from aissist_backup.services.archive import generate_backup_filename, write_archive
from aissist_backup.services.extract import extract_all

__all__ = ['create_safety_backup', 'discard_safety_backup', 'empty_directory', 'rollback']

logger = logging.getLogger(__name__)

SAFETY_DIR_PREFIX = 'aissist-safety-'
RESERVED_ENTRY_NAME = f'./{DESCRIPTOR_NAME}'


def _symlink_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name)
    info.external_attr = (stat.S_IFLNK | 0o777) << 16
    return info


def _record_structure(zf: zipfile.ZipFile, root: Path) -> None:
    """Append what the payload walk leaves out: directories, symlinks and a stale root descriptor."""

    def walk(directory: Path) -> None:
        for path in sorted(directory.iterdir(), key=lambda p: p.name):
            name = to_archive_path(path, root)
            if path.is_symlink():
                zf.writestr(_symlink_info(name), os.readlink(path))
            elif path.is_dir():
                zf.mkdir(name)
                walk(path)
            elif path.is_file():
                if directory == root and path.name == DESCRIPTOR_NAME:
                    zf.writestr(zipfile.ZipInfo(RESERVED_ENTRY_NAME), path.read_bytes())
            else:
                raise UnsupportedFileError(f'Cannot snapshot {path}: not a regular file, directory or symlink')

    walk(root)


def create_safety_backup(path: Path) -> Path | None:
    """
    Snapshot a directory into a fresh temp directory.

    Everything empty_directory() would remove is captured, so rollback can
    rebuild the exact tree.

    Args:
        path: Directory about to be replaced

    Returns:
        Path to the safety archive, or None if path does not exist (nothing to protect)

    Raises:
        UnsupportedFileError: If path holds a file type that cannot be archived
        OSError: If the snapshot cannot be written
    """
    if not path.exists():
        return None

    safety_dir = Path(tempfile.mkdtemp(prefix=SAFETY_DIR_PREFIX))
    try:
        result = write_archive(
            path,
            safety_dir / generate_backup_filename(prefix='safety'),
            description='Safety backup before restore',
        )
        with zipfile.ZipFile(result.archive_path, 'a') as zf:
            _record_structure(zf, path)
    except BaseException:
        shutil.rmtree(safety_dir, ignore_errors=True)
        raise

    logger.info(f'Safety backup created: {result.archive_path}')
    return Path(result.archive_path)


def empty_directory(path: Path) -> None:
    """Remove every child of path, creating path if it does not exist."""
    path.mkdir(parents=True, exist_ok=True)
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def rollback(safety_archive_path: Path, target_path: Path) -> None:
    """
    Return target_path to the exact state captured in the safety archive.

    The target is emptied completely, then every entry is written back
    regardless of mode or descriptor validity.

    Raises:
        BackupNotFoundError: If the safety archive is missing
        OSError: If the target cannot be emptied or written
    """
    if not safety_archive_path.is_file():
        raise BackupNotFoundError('Safety backup not found, cannot rollback')

    logger.info(f'Rolling back {target_path} from {safety_archive_path}')
    empty_directory(target_path)
    restored = extract_all(safety_archive_path, target_path)
    logger.info(f'Rollback restored {restored} files')


def discard_safety_backup(safety_archive_path: Path) -> None:
    """Delete a safety archive along with its temp directory."""
    safety_dir = safety_archive_path.parent
    if safety_dir.name.startswith(SAFETY_DIR_PREFIX):
        shutil.rmtree(safety_dir, ignore_errors=True)
    else:
        safety_archive_path.unlink(missing_ok=True)

"""
Archive writer - produces a ZIP backup of a storage directory.

Archive layout:
    .backup-metadata.json    Descriptor (BackupMetadata, camelCase JSON)
    <posix/relative/path>    One entry per manifest file

The archive is assembled in a hidden temp file next to the destination and
renamed into place, so a reader never observes a partially written backup.
"""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path

from aissist_backup.exceptions import BackupNotFoundError
from aissist_backup.paths import resolve_entry_path
from aissist_backup.schemas.operations.backup import DESCRIPTOR_NAME, BackupResult
from aissist_backup.schemas.types import StorageKind
from aissist_backup.services.manifest import build_manifest

__all__ = ['generate_backup_filename', 'write_archive']

logger = logging.getLogger(__name__)


def generate_backup_filename(prefix: str = 'aissist', extension: str = 'zip', now: datetime | None = None) -> str:
    """
    Build a timestamped backup filename using local time to the second.

    Examples:
        >>> generate_backup_filename(now=datetime(2025, 1, 15, 14, 30, 52))
        'aissist-backup-2025-01-15-143052.zip'
    """
    now = now or datetime.now()
    return f'{prefix}-backup-{now:%Y-%m-%d-%H%M%S}.{extension}'


def write_archive(
    source_path: Path,
    output_path: Path,
    *,
    storage_kind: StorageKind = 'local',
    description: str | None = None,
    compression_level: int = 6,
    hash_workers: int = 1,
) -> BackupResult:
    """
    Snapshot source_path into a ZIP archive at output_path.

    Args:
        source_path: Directory to back up
        output_path: Destination archive file (parent is created if needed)
        storage_kind: Semantic origin tag recorded in the descriptor
        description: Optional free-text description
        compression_level: 0 stores entries uncompressed, 1-9 deflates
        hash_workers: Thread count for checksum computation

    Returns:
        BackupResult with the archive path and embedded metadata

    Raises:
        BackupNotFoundError: If source_path is not an existing directory
        OSError: If reading the source or writing the archive fails
    """
    if not source_path.is_dir():
        raise BackupNotFoundError(f'Source directory not found: {source_path}')

    metadata = build_manifest(source_path, storage_kind, description, hash_workers=hash_workers)

    output_path.parent.mkdir(parents=True, exist_ok=True)

    if compression_level == 0:
        compression, compresslevel = zipfile.ZIP_STORED, None
    else:
        compression, compresslevel = zipfile.ZIP_DEFLATED, compression_level

    fd, tmp_name = tempfile.mkstemp(prefix=f'.{output_path.name}.', suffix='.tmp', dir=output_path.parent)
    os.close(fd)
    tmp_path = Path(tmp_name)

    try:
        with zipfile.ZipFile(tmp_path, 'w', compression=compression, compresslevel=compresslevel) as zf:
            for entry in metadata.manifest:
                zf.write(resolve_entry_path(source_path, entry.path), arcname=entry.path)
            zf.writestr(DESCRIPTOR_NAME, metadata.to_descriptor_json())

        # Atomic rename
        os.replace(tmp_path, output_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f'Wrote backup {output_path} ({metadata.file_count} files, {metadata.total_size:,} bytes)')

    return BackupResult(archive_path=str(output_path), metadata=metadata)

"""
Archive reader - descriptor access and backup directory listing.

Only the descriptor entry is read; payloads are left to the verifier and
extraction engine.
"""

from __future__ import annotations

import logging
import zipfile
import zlib
from datetime import UTC, datetime
from pathlib import Path

import pydantic

from aissist_backup.exceptions import ArchiveReadError, BackupError, BackupNotFoundError, InvalidArchiveError
from aissist_backup.schemas.operations.backup import DESCRIPTOR_NAME, BackupListing, BackupMetadata
from aissist_backup.services.version import is_supported_format

__all__ = ['ZIP_READ_ERRORS', 'list_backups', 'load_descriptor', 'read_metadata']

logger = logging.getLogger(__name__)

# zipfile also raises RuntimeError for encrypted entries, NotImplementedError for
# unsupported compression methods and EOFError for truncated data
ZIP_READ_ERRORS: tuple[type[Exception], ...] = (
    zipfile.BadZipFile,
    zlib.error,
    RuntimeError,
    NotImplementedError,
    EOFError,
)


def load_descriptor(zf: zipfile.ZipFile) -> BackupMetadata | None:
    """
    Parse the descriptor of an already open archive.

    Returns:
        BackupMetadata, or None if the archive has no descriptor entry

    Raises:
        InvalidArchiveError: If the descriptor is unparseable or its format is unsupported
        ArchiveReadError: If the descriptor entry itself cannot be read
    """
    try:
        raw = zf.read(DESCRIPTOR_NAME)
    except KeyError:
        return None
    except ZIP_READ_ERRORS as e:
        raise ArchiveReadError(f'Failed to read backup metadata: {e}') from e

    try:
        metadata = BackupMetadata.model_validate_json(raw)
    except pydantic.ValidationError as e:
        raise InvalidArchiveError(f'Invalid backup metadata: {e}') from e

    if not is_supported_format(metadata.version):
        raise InvalidArchiveError(f'Unsupported backup format version: {metadata.version}')

    return metadata


def read_metadata(archive_path: Path) -> BackupMetadata | None:
    """
    Read the descriptor from a backup archive.

    Args:
        archive_path: Path to the ZIP archive

    Returns:
        BackupMetadata, or None if the archive has no descriptor entry

    Raises:
        BackupNotFoundError: If archive_path does not exist
        ArchiveReadError: If the container is unreadable or corrupt
        InvalidArchiveError: If the descriptor is unparseable or unsupported
    """
    if not archive_path.is_file():
        raise BackupNotFoundError(f'Backup file not found: {archive_path}')

    try:
        with zipfile.ZipFile(archive_path) as zf:
            return load_descriptor(zf)
    except ZIP_READ_ERRORS as e:
        raise ArchiveReadError(f'Failed to read backup archive {archive_path}: {e}') from e


def _utc(timestamp: datetime) -> datetime:
    # Naive timestamps are treated as UTC so they compare with aware ones
    return timestamp if timestamp.tzinfo else timestamp.replace(tzinfo=UTC)


def list_backups(directory: Path) -> list[BackupListing]:
    """
    List backup archives in a directory, newest first.

    Unreadable archives are still listed, with metadata=None and the error text.
    Archives without metadata sort last, ordered by path.

    Args:
        directory: Backup directory (missing directory yields an empty list)

    Returns:
        BackupListing per *.zip file
    """
    if not directory.is_dir():
        return []

    listings: list[BackupListing] = []
    for archive_path in sorted(directory.glob('*.zip')):
        if not archive_path.is_file():
            continue
        try:
            metadata = read_metadata(archive_path)
        except (BackupError, OSError) as e:
            logger.warning(f'Could not read backup {archive_path}: {e}')
            listings.append(BackupListing(path=str(archive_path), metadata=None, error=str(e)))
            continue
        listings.append(BackupListing(path=str(archive_path), metadata=metadata))

    with_metadata = [listing for listing in listings if listing.metadata is not None]
    without_metadata = [listing for listing in listings if listing.metadata is None]
    with_metadata.sort(key=lambda listing: (_utc(listing.metadata.timestamp), listing.path), reverse=True)

    return with_metadata + without_metadata

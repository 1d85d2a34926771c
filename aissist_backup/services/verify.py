"""
Integrity verification for archives and restored directories.

Both checks compare content against the descriptor's manifest and collect every
discrepancy instead of stopping at the first one.
"""

from __future__ import annotations

import logging
import zipfile
import zlib
from pathlib import Path

from aissist_backup.exceptions import BackupNotFoundError, InvalidArchiveError
from aissist_backup.paths import resolve_entry_path
from aissist_backup.schemas.operations.backup import BackupMetadata, ManifestEntry, VerificationResult
from aissist_backup.services.checksum import compute_checksum, compute_stream_checksum
from aissist_backup.services.reader import ZIP_READ_ERRORS, load_descriptor

__all__ = ['verify_integrity', 'verify_restore']

logger = logging.getLogger(__name__)


def _mismatch(entry: ManifestEntry, actual: str) -> str:
    return f'Checksum mismatch for {entry.path}: expected {entry.checksum}, got {actual}'


def verify_integrity(archive_path: Path) -> VerificationResult:
    """
    Verify every payload in an archive against its manifest.

    Args:
        archive_path: Path to the ZIP archive

    Returns:
        VerificationResult - valid iff no errors were found

    Raises:
        BackupNotFoundError: If archive_path does not exist
    """
    if not archive_path.is_file():
        raise BackupNotFoundError(f'Backup file not found: {archive_path}')

    errors: list[str] = []
    try:
        with zipfile.ZipFile(archive_path) as zf:
            metadata = load_descriptor(zf)
            if metadata is None:
                return VerificationResult.from_errors(['Missing backup metadata file'])

            names = set(zf.namelist())
            for entry in metadata.manifest:
                if entry.path not in names:
                    errors.append(f'Missing file in archive: {entry.path}')
                    continue
                try:
                    with zf.open(entry.path) as stream:
                        actual = compute_stream_checksum(stream)
                except (zipfile.BadZipFile, zlib.error, EOFError) as e:
                    # Stored bytes fail the container's own CRC, so no digest can be computed
                    errors.append(_mismatch(entry, f'unreadable payload ({e})'))
                    continue
                if actual != entry.checksum:
                    errors.append(_mismatch(entry, actual))
    except (*ZIP_READ_ERRORS, InvalidArchiveError, OSError) as e:
        return VerificationResult.from_errors([f'Failed to verify backup: {e}'])

    if errors:
        logger.warning(f'Backup {archive_path} failed verification with {len(errors)} error(s)')
    return VerificationResult.from_errors(errors)


def verify_restore(target_dir: Path, metadata: BackupMetadata) -> VerificationResult:
    """
    Verify that target_dir holds every manifest file with matching content.

    Files present in target_dir but absent from the manifest are ignored.

    Args:
        target_dir: Restored directory
        metadata: Descriptor of the archive that was restored

    Returns:
        VerificationResult - valid iff no errors were found
    """
    errors: list[str] = []
    for entry in metadata.manifest:
        file_path = resolve_entry_path(target_dir, entry.path)
        if not file_path.is_file():
            errors.append(f'Missing file after restore: {entry.path}')
            continue
        actual = compute_checksum(file_path)
        if actual != entry.checksum:
            errors.append(_mismatch(entry, actual))
    return VerificationResult.from_errors(errors)

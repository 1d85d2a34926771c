"""
Manifest builder - walks a source directory into BackupMetadata.

Traversal is depth-first over name-sorted directory listings, so an unchanged
tree always produces the same manifest order, file count and total size.
Directories are structural only; symlinks are neither followed nor recorded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path

from aissist_backup.paths import to_archive_path
from aissist_backup.schemas.operations.backup import DESCRIPTOR_NAME, BackupMetadata, ManifestEntry
from aissist_backup.schemas.types import StorageKind
from aissist_backup.services.checksum import compute_checksum
from aissist_backup.services.version import get_tool_version

__all__ = ['build_manifest', 'iter_source_files']

logger = logging.getLogger(__name__)


def iter_source_files(source_dir: Path) -> Iterator[Path]:
    """
    Yield every regular file under source_dir in traversal order.

    A root-level file named like the archive descriptor is skipped: it can only
    be a stale descriptor left behind by a naive unzip, and would otherwise
    collide with the real descriptor entry.
    """

    def walk(directory: Path) -> Iterator[Path]:
        for path in sorted(directory.iterdir(), key=lambda p: p.name):
            if path.is_symlink():
                continue
            if path.is_dir():
                yield from walk(path)
            elif path.is_file():
                if directory == source_dir and path.name == DESCRIPTOR_NAME:
                    logger.warning(f'Skipping reserved descriptor name in source: {path}')
                    continue
                yield path

    yield from walk(source_dir)


def _describe(path: Path, source_dir: Path) -> ManifestEntry:
    return ManifestEntry(
        path=to_archive_path(path, source_dir),
        size=path.stat().st_size,
        checksum=compute_checksum(path),
    )


def build_manifest(
    source_dir: Path,
    storage_kind: StorageKind,
    description: str | None = None,
    *,
    hash_workers: int = 1,
) -> BackupMetadata:
    """
    Scan source_dir and build the descriptor for a new backup.

    Args:
        source_dir: Directory to snapshot
        storage_kind: Semantic origin tag recorded in the descriptor
        description: Optional free-text description
        hash_workers: Thread count for hashing (1 = sequential). Order is preserved.

    Returns:
        Frozen BackupMetadata with aggregate totals

    Raises:
        OSError: If a file cannot be read
    """
    files = list(iter_source_files(source_dir))

    if hash_workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=hash_workers) as executor:
            manifest = list(executor.map(lambda p: _describe(p, source_dir), files))
    else:
        manifest = [_describe(path, source_dir) for path in files]

    total_size = sum(entry.size for entry in manifest)
    logger.debug(f'Manifest for {source_dir}: {len(manifest)} files, {total_size:,} bytes')

    return BackupMetadata(
        timestamp=datetime.now(UTC),
        tool_version=get_tool_version(),
        source_path=str(source_dir.resolve()),
        storage_type=storage_kind,
        description=description,
        file_count=len(manifest),
        total_size=total_size,
        manifest=manifest,
    )

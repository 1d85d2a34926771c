"""Tests for archive and restore verification."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from aissist_backup.exceptions import BackupNotFoundError
from aissist_backup.schemas.operations.backup import DESCRIPTOR_NAME
from aissist_backup.schemas.operations.restore import RestoreMode
from aissist_backup.services.archive import write_archive
from aissist_backup.services.extract import extract_archive
from aissist_backup.services.reader import read_metadata
from aissist_backup.services.verify import verify_integrity, verify_restore


def test_fresh_backup_is_valid(archive_path: Path) -> None:
    result = verify_integrity(archive_path)

    assert result.valid
    assert list(result.errors) == []


def test_modified_payload_reports_checksum_mismatch(
    archive_path: Path, rewrite_archive: Callable[..., Path]
) -> None:
    tampered = rewrite_archive(archive_path, replace={'config.json': b'[]'})

    result = verify_integrity(tampered)

    assert not result.valid
    assert len(result.errors) == 1
    assert result.errors[0].startswith('Checksum mismatch for config.json')


def test_missing_payload_reported(archive_path: Path, rewrite_archive: Callable[..., Path]) -> None:
    incomplete = rewrite_archive(archive_path, drop=('goals/g1.md',))

    result = verify_integrity(incomplete)

    assert not result.valid
    assert list(result.errors) == ['Missing file in archive: goals/g1.md']


def test_missing_descriptor_reported(archive_path: Path, rewrite_archive: Callable[..., Path]) -> None:
    stripped = rewrite_archive(archive_path, drop=(DESCRIPTOR_NAME,))

    result = verify_integrity(stripped)

    assert not result.valid
    assert list(result.errors) == ['Missing backup metadata file']


def test_unreadable_container_reported(tmp_path: Path) -> None:
    garbage = tmp_path / 'garbage.zip'
    garbage.write_bytes(b'not a zip')

    result = verify_integrity(garbage)

    assert not result.valid
    assert len(result.errors) == 1
    assert result.errors[0].startswith('Failed to verify backup:')


def test_missing_archive_raises(tmp_path: Path) -> None:
    with pytest.raises(BackupNotFoundError):
        verify_integrity(tmp_path / 'missing.zip')


def test_verify_restore_detects_missing_and_modified_files(archive_path: Path, tmp_path: Path) -> None:
    target = tmp_path / 'target'
    extract_archive(archive_path, target, RestoreMode.REPLACE)
    metadata = read_metadata(archive_path)
    assert metadata is not None

    assert verify_restore(target, metadata).valid

    (target / 'config.json').write_text('changed')
    (target / 'goals' / 'g1.md').unlink()
    (target / 'extra.txt').write_text('not in manifest')

    result = verify_restore(target, metadata)

    assert not result.valid
    assert result.errors[0].startswith('Checksum mismatch for config.json')
    assert result.errors[1] == 'Missing file after restore: goals/g1.md'
    assert len(result.errors) == 2


def test_single_byte_mutation_reports_one_mismatch(source_dir: Path, tmp_path: Path) -> None:
    archive = tmp_path / 'stored.zip'
    write_archive(source_dir, archive, compression_level=0)
    raw = archive.read_bytes()
    assert raw.count(b'Ship v1') == 1
    archive.write_bytes(raw.replace(b'Ship v1', b'Ship v2'))

    result = verify_integrity(archive)

    assert not result.valid
    assert len(result.errors) == 1
    assert result.errors[0].startswith('Checksum mismatch for goals/g1.md')


def test_encrypted_archive_reported_as_failure(archive_path: Path, mark_encrypted: Callable[[Path], Path]) -> None:
    result = verify_integrity(mark_encrypted(archive_path))

    assert not result.valid
    assert len(result.errors) == 1
    assert result.errors[0].startswith('Failed to verify backup:')

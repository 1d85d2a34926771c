"""Tests for the restore orchestrator.

Covers per-mode behavior, post-restore verification, and the replace-mode
rollback guarantee under injected failures.
"""

from __future__ import annotations

import asyncio
import os
import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest

from aissist_backup.exceptions import (
    BackupNotFoundError,
    IntegrityError,
    InvalidArchiveError,
    RollbackFailureError,
    was_rolled_back,
)
from aissist_backup.schemas.operations.backup import DESCRIPTOR_NAME
from aissist_backup.schemas.operations.restore import RestoreMode
from aissist_backup.services import extract, restore, rollback
from aissist_backup.services.archive import write_archive
from aissist_backup.services.restore import RestoreService, check_disk_space, parse_restore_mode


@pytest.fixture
def target(tmp_path: Path) -> Path:
    root = tmp_path / 'target'
    (root / 'goals').mkdir(parents=True)
    (root / 'config.json').write_text('{"local": true}')
    (root / 'goals' / 'g2.md').write_text('newer goal')
    return root


@pytest.fixture
def fail_on_entry(monkeypatch: pytest.MonkeyPatch) -> Callable[[str], None]:
    """Make the first write of the named archive entry raise OSError."""

    def install(entry_name: str) -> None:
        original = extract._write_entry
        failed = False

        def write_entry(zf: zipfile.ZipFile, name: str, destination: Path) -> None:
            nonlocal failed
            if name == entry_name and not failed:
                failed = True
                raise OSError(f'Injected write failure: {name}')
            original(zf, name, destination)

        monkeypatch.setattr(extract, '_write_entry', write_entry)

    return install


# ==============================================================================
# Mode handling
# ==============================================================================


@pytest.mark.asyncio
async def test_replace_mode_replaces_target_exactly(
    archive_path: Path, target: Path, snapshot: Callable[[Path], dict[str, bytes]], source_dir: Path
) -> None:
    result = await RestoreService().restore(archive_path, target, RestoreMode.REPLACE)

    assert snapshot(target) == snapshot(source_dir)
    assert result.files_added == 2
    assert result.verified
    assert result.safety_backup_path is not None
    # Safety backup discarded on commit
    assert not Path(result.safety_backup_path).exists()


@pytest.mark.asyncio
async def test_replace_into_missing_target(archive_path: Path, tmp_path: Path) -> None:
    target = tmp_path / 'does-not-exist'

    result = await RestoreService().restore(archive_path, target, 'replace')

    assert result.files_added == 2
    assert result.safety_backup_path is None


@pytest.mark.asyncio
async def test_merge_preserve_keeps_existing_files(archive_path: Path, target: Path) -> None:
    result = await RestoreService().restore(archive_path, target, RestoreMode.MERGE_PRESERVE)

    assert (result.files_added, result.files_overwritten, result.files_preserved) == (1, 0, 1)
    assert not result.verified
    assert result.safety_backup_path is None
    assert (target / 'config.json').read_text() == '{"local": true}'
    assert (target / 'goals' / 'g1.md').is_file()
    assert (target / 'goals' / 'g2.md').read_text() == 'newer goal'


@pytest.mark.asyncio
async def test_merge_preserve_keeps_old_and_adds_new(tmp_path: Path) -> None:
    source = tmp_path / 'snapshot'
    (source / 'goals').mkdir(parents=True)
    (source / 'history').mkdir()
    (source / 'goals' / 'g1.md').write_text('new')
    (source / 'history' / 'h1.md').write_text('first entry')
    archive = Path(write_archive(source, tmp_path / 'backup.zip').archive_path)

    target = tmp_path / 'live'
    (target / 'goals').mkdir(parents=True)
    (target / 'goals' / 'g1.md').write_text('old')

    result = await RestoreService().restore(archive, target, RestoreMode.MERGE_PRESERVE)

    assert (target / 'goals' / 'g1.md').read_text() == 'old'
    assert (target / 'history' / 'h1.md').read_text() == 'first entry'
    assert result.files_preserved == 1
    assert result.files_added == 1


@pytest.mark.asyncio
async def test_merge_overwrite_overwrites_and_verifies(archive_path: Path, target: Path) -> None:
    result = await RestoreService().restore(archive_path, target, RestoreMode.MERGE_OVERWRITE)

    assert (result.files_added, result.files_overwritten, result.files_preserved) == (1, 1, 0)
    assert result.verified
    assert (target / 'config.json').read_text() == '{}'
    assert (target / 'goals' / 'g2.md').read_text() == 'newer goal'


@pytest.mark.asyncio
async def test_invalid_mode_rejected_before_io(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match='Invalid restore mode'):
        await RestoreService().restore(tmp_path / 'missing.zip', tmp_path / 'target', 'overwrite-all')

    assert not (tmp_path / 'target').exists()


@pytest.mark.asyncio
async def test_missing_backup_raises_not_found(
    tmp_path: Path, target: Path, snapshot: Callable[[Path], dict[str, bytes]]
) -> None:
    before = snapshot(target)

    with pytest.raises(BackupNotFoundError):
        await RestoreService().restore(tmp_path / 'missing.zip', target, RestoreMode.REPLACE)

    assert snapshot(target) == before


@pytest.mark.asyncio
async def test_archive_without_descriptor_rejected(
    archive_path: Path, target: Path, rewrite_archive: Callable[..., Path], snapshot: Callable[[Path], dict[str, bytes]]
) -> None:
    before = snapshot(target)
    stripped = rewrite_archive(archive_path, drop=(DESCRIPTOR_NAME,))

    with pytest.raises(InvalidArchiveError):
        await RestoreService().restore(stripped, target, RestoreMode.REPLACE)

    assert snapshot(target) == before


# ==============================================================================
# Rollback
# ==============================================================================


@pytest.mark.asyncio
async def test_replace_rolls_back_on_write_failure(
    archive_path: Path,
    target: Path,
    snapshot: Callable[[Path], dict[str, bytes]],
    fail_on_entry: Callable[[str], None],
) -> None:
    before = snapshot(target)
    fail_on_entry('goals/g1.md')

    with pytest.raises(OSError, match='Injected write failure') as exc_info:
        await RestoreService().restore(archive_path, target, RestoreMode.REPLACE)

    assert was_rolled_back(exc_info.value)
    assert snapshot(target) == before


@pytest.mark.asyncio
async def test_replace_rollback_restores_links_empty_dirs_and_stale_descriptor(
    archive_path: Path, tmp_path: Path, fail_on_entry: Callable[[str], None]
) -> None:
    target = tmp_path / 'live'
    target.mkdir()
    (target / 'real.md').write_text('real')
    (target / 'link.md').symlink_to('real.md')
    (target / 'empty-dir').mkdir()
    (target / DESCRIPTOR_NAME).write_bytes(b'{"stale": true}')
    fail_on_entry('goals/g1.md')

    with pytest.raises(OSError, match='Injected write failure') as exc_info:
        await RestoreService().restore(archive_path, target, RestoreMode.REPLACE)

    assert was_rolled_back(exc_info.value)
    assert sorted(p.name for p in target.iterdir()) == [DESCRIPTOR_NAME, 'empty-dir', 'link.md', 'real.md']
    assert (target / 'link.md').is_symlink()
    assert os.readlink(target / 'link.md') == 'real.md'
    assert (target / 'empty-dir').is_dir()
    assert list((target / 'empty-dir').iterdir()) == []
    assert (target / DESCRIPTOR_NAME).read_bytes() == b'{"stale": true}'
    assert (target / 'real.md').read_text() == 'real'


@pytest.mark.asyncio
async def test_replace_rolls_back_on_verification_failure(
    archive_path: Path,
    target: Path,
    snapshot: Callable[[Path], dict[str, bytes]],
    rewrite_archive: Callable[..., Path],
) -> None:
    before = snapshot(target)
    tampered = rewrite_archive(archive_path, replace={'config.json': b'[]'})

    with pytest.raises(IntegrityError) as exc_info:
        await RestoreService().restore(tampered, target, RestoreMode.REPLACE)

    assert was_rolled_back(exc_info.value)
    assert any(error.startswith('Checksum mismatch for config.json') for error in exc_info.value.errors)
    assert snapshot(target) == before


@pytest.mark.asyncio
async def test_rollback_of_missing_target_removes_partial_writes(
    archive_path: Path, tmp_path: Path, fail_on_entry: Callable[[str], None]
) -> None:
    target = tmp_path / 'new-target'
    fail_on_entry('goals/g1.md')

    with pytest.raises(OSError):
        await RestoreService().restore(archive_path, target, RestoreMode.REPLACE)

    assert not target.exists()


@pytest.mark.asyncio
async def test_replace_rolls_back_on_cancellation(
    archive_path: Path,
    target: Path,
    snapshot: Callable[[Path], dict[str, bytes]],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    before = snapshot(target)

    def cancel_during_verify(*args: object, **kwargs: object) -> None:
        raise asyncio.CancelledError()

    monkeypatch.setattr(restore, 'verify_restore', cancel_during_verify)

    with pytest.raises(asyncio.CancelledError) as exc_info:
        await RestoreService().restore(archive_path, target, RestoreMode.REPLACE)

    assert was_rolled_back(exc_info.value)
    assert snapshot(target) == before


@pytest.mark.asyncio
async def test_failed_rollback_raises_rollback_failure(
    archive_path: Path,
    target: Path,
    fail_on_entry: Callable[[str], None],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fail_on_entry('goals/g1.md')

    def broken_rollback(safety_archive_path: Path, target_path: Path) -> None:
        raise OSError('target is read-only')

    monkeypatch.setattr(restore, 'rollback', broken_rollback)

    with pytest.raises(RollbackFailureError) as exc_info:
        await RestoreService().restore(archive_path, target, RestoreMode.REPLACE)

    error = exc_info.value
    assert 'Injected write failure' in str(error.original_error)
    assert 'read-only' in str(error.rollback_error)
    assert error.__cause__ is error.original_error
    # Safety backup kept for manual recovery
    assert error.safety_backup_path is not None
    assert error.safety_backup_path.is_file()
    rollback.discard_safety_backup(error.safety_backup_path)


@pytest.mark.asyncio
async def test_merge_modes_do_not_roll_back(
    archive_path: Path, target: Path, fail_on_entry: Callable[[str], None]
) -> None:
    fail_on_entry('goals/g1.md')

    with pytest.raises(OSError) as exc_info:
        await RestoreService().restore(archive_path, target, RestoreMode.MERGE_OVERWRITE)

    assert not was_rolled_back(exc_info.value)
    # config.json was already overwritten before the failure
    assert (target / 'config.json').read_text() == '{}'


# ==============================================================================
# Helpers
# ==============================================================================


def test_parse_restore_mode() -> None:
    assert parse_restore_mode('merge-preserve') is RestoreMode.MERGE_PRESERVE
    with pytest.raises(ValueError, match='Valid modes: replace, merge-overwrite, merge-preserve'):
        parse_restore_mode('merge')


def test_disk_space_check_on_missing_target(tmp_path: Path) -> None:
    check = check_disk_space(tmp_path / 'a' / 'b', required_bytes=1)

    assert check.available
    assert check.free_bytes is not None
    assert check.required_bytes == 1


def test_disk_space_check_reports_shortfall(tmp_path: Path) -> None:
    check = check_disk_space(tmp_path, required_bytes=2**62)

    assert not check.available


def test_disk_space_query_failure_is_advisory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_disk_usage(path: str) -> None:
        raise OSError('statvfs failed')

    monkeypatch.setattr(restore.psutil, 'disk_usage', failing_disk_usage)

    check = check_disk_space(tmp_path, required_bytes=10)

    assert check.available
    assert check.free_bytes is None

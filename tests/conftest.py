"""Shared fixtures for backup/restore tests."""

from __future__ import annotations

import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest

from aissist_backup.schemas.operations.backup import BackupResult
from aissist_backup.services.archive import write_archive

GOAL_CONTENT = b'# Goal\nShip v1 by June\n'
CONFIG_CONTENT = b'{}'


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A small storage tree: goals/g1.md (23 bytes) and config.json (2 bytes)."""
    root = tmp_path / 'source' / '.aissist'
    (root / 'goals').mkdir(parents=True)
    (root / 'goals' / 'g1.md').write_bytes(GOAL_CONTENT)
    (root / 'config.json').write_bytes(CONFIG_CONTENT)
    return root


@pytest.fixture
def backup(source_dir: Path, tmp_path: Path) -> BackupResult:
    """A backup of source_dir."""
    return write_archive(source_dir, tmp_path / 'backups' / 'aissist-backup-2025-01-15-143052.zip')


@pytest.fixture
def archive_path(backup: BackupResult) -> Path:
    return Path(backup.archive_path)


@pytest.fixture
def rewrite_archive(tmp_path: Path) -> Callable[..., Path]:
    """Copy an archive entry by entry, replacing or dropping selected entries."""

    def rewrite(
        archive: Path,
        replace: dict[str, bytes] | None = None,
        drop: tuple[str, ...] = (),
    ) -> Path:
        replace = replace or {}
        output = tmp_path / f'rewritten-{archive.name}'
        with zipfile.ZipFile(archive) as src, zipfile.ZipFile(output, 'w', zipfile.ZIP_DEFLATED) as dst:
            for info in src.infolist():
                if info.filename in drop:
                    continue
                dst.writestr(info.filename, replace.get(info.filename, src.read(info.filename)))
        return output

    return rewrite


def _snapshot_tree(root: Path) -> dict[str, bytes]:
    return {path.relative_to(root).as_posix(): path.read_bytes() for path in sorted(root.rglob('*')) if path.is_file()}


@pytest.fixture
def snapshot() -> Callable[[Path], dict[str, bytes]]:
    """Map every file under root to its content, keyed by posix relative path."""
    return _snapshot_tree


def _set_encrypted_flag(archive: Path) -> Path:
    raw = bytearray(archive.read_bytes())
    end_of_directory = raw.rfind(b'PK\x05\x06')
    offset = int.from_bytes(raw[end_of_directory + 16 : end_of_directory + 20], 'little')
    # Walk the central directory, setting bit 0 (encrypted) on every entry
    while raw[offset : offset + 4] == b'PK\x01\x02':
        raw[offset + 8] |= 0x01
        name_len, extra_len, comment_len = (
            int.from_bytes(raw[offset + i : offset + i + 2], 'little') for i in (28, 30, 32)
        )
        offset += 46 + name_len + extra_len + comment_len
    archive.write_bytes(bytes(raw))
    return archive


@pytest.fixture
def mark_encrypted() -> Callable[[Path], Path]:
    """Flag every entry of an archive as encrypted, so zipfile refuses to read it without a password."""
    return _set_encrypted_flag

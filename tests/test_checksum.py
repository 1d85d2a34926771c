"""Tests for content hashing."""

from __future__ import annotations

import hashlib
import io
import random
from pathlib import Path

import pytest

from aissist_backup.services.checksum import compute_bytes_checksum, compute_checksum, compute_stream_checksum


def test_checksum_has_algorithm_prefix(tmp_path: Path) -> None:
    path = tmp_path / 'file.txt'
    path.write_bytes(b'hello')

    assert compute_checksum(path) == 'sha256:' + hashlib.sha256(b'hello').hexdigest()


def test_checksum_of_empty_file(tmp_path: Path) -> None:
    path = tmp_path / 'empty'
    path.write_bytes(b'')

    assert compute_checksum(path) == 'sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'


def test_large_file_matches_in_memory_digest(tmp_path: Path) -> None:
    """Files larger than one read block hash the same as their bytes."""
    data = bytes(range(256)) * 1024  # 256 KiB
    path = tmp_path / 'large.bin'
    path.write_bytes(data)

    assert compute_checksum(path) == compute_bytes_checksum(data)
    assert compute_stream_checksum(io.BytesIO(data)) == compute_bytes_checksum(data)


def test_checksum_of_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        compute_checksum(tmp_path / 'missing')


def test_checksum_is_stable_for_unchanged_file(tmp_path: Path) -> None:
    path = tmp_path / 'goal.md'
    path.write_bytes(b'# Goal\nShip v1 by June\n')

    assert len({compute_checksum(path) for _ in range(5)}) == 1


_FLIP_DATA = random.Random(1234).randbytes(200_000)
# Both ends plus random positions spread over several read blocks
_FLIP_POSITIONS = [0, len(_FLIP_DATA) - 1, *sorted(random.Random(42).sample(range(len(_FLIP_DATA)), 8))]


@pytest.mark.parametrize('position', _FLIP_POSITIONS)
def test_any_single_byte_flip_changes_checksum(tmp_path: Path, position: int) -> None:
    path = tmp_path / 'data.bin'
    path.write_bytes(_FLIP_DATA)
    original = compute_checksum(path)

    mutated = bytearray(_FLIP_DATA)
    mutated[position] ^= 0xFF
    path.write_bytes(bytes(mutated))

    assert compute_checksum(path) != original

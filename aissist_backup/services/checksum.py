"""
Content hashing for backup integrity checks.

Every checksum is a SHA-256 hex digest prefixed with its algorithm tag
("sha256:<hex>"), so the descriptor stays self-describing if the algorithm
ever changes.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

__all__ = [
    'CHECKSUM_ALGORITHM',
    'compute_bytes_checksum',
    'compute_checksum',
    'compute_stream_checksum',
]

CHECKSUM_ALGORITHM = 'sha256'

# Read in 64kb blocks to bound memory on large files
_BLOCK_SIZE = 64 * 1024


def _format(digest: str) -> str:
    return f'{CHECKSUM_ALGORITHM}:{digest}'


def compute_stream_checksum(stream: BinaryIO) -> str:
    """Hash a binary stream from its current position to EOF."""
    sha256 = hashlib.sha256()
    for block in iter(lambda: stream.read(_BLOCK_SIZE), b''):
        sha256.update(block)
    return _format(sha256.hexdigest())


def compute_checksum(file_path: Path) -> str:
    """
    Compute the checksum of a file on disk.

    Args:
        file_path: File to hash

    Returns:
        Checksum string, e.g. 'sha256:9f86d0...'

    Raises:
        OSError: If the file cannot be read
    """
    with open(file_path, 'rb') as f:
        return compute_stream_checksum(f)


def compute_bytes_checksum(data: bytes) -> str:
    """Compute the checksum of an in-memory byte string."""
    return _format(hashlib.sha256(data).hexdigest())

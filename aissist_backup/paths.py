"""
Path mapping between the filesystem and archive entry names.

Archive entries always use posix separators relative to the backup root, so an
archive written on one platform restores on another. Entry names coming back
out of an archive are untrusted: resolve_entry_path() refuses any name that
would land outside the restore target.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from aissist_backup.exceptions import InvalidArchiveError

__all__ = ['resolve_entry_path', 'to_archive_path']


def to_archive_path(path: Path, root: Path) -> str:
    """
    Convert a file under root to its archive entry name.

    Examples:
        >>> to_archive_path(Path('/data/.aissist/goals/g1.md'), Path('/data/.aissist'))
        'goals/g1.md'
    """
    return path.relative_to(root).as_posix()


def resolve_entry_path(root: Path, entry_name: str) -> Path:
    """
    Map an archive entry name to its destination under root.

    Args:
        root: Restore target directory
        entry_name: Posix-style entry name from the archive

    Returns:
        Destination path inside root

    Raises:
        InvalidArchiveError: If the name is absolute, empty, or escapes root
    """
    pure = PurePosixPath(entry_name)
    if not entry_name or pure.is_absolute() or '..' in pure.parts:
        raise InvalidArchiveError(f'Unsafe path in archive: {entry_name!r}')
    return root.joinpath(*pure.parts)

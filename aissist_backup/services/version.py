"""
Tool version detection and descriptor format compatibility.

The producing build's version is recorded in every archive descriptor
(aissistVersion). Archives are readable when their descriptor format shares
our major version.
"""

from __future__ import annotations

import importlib.metadata

import packaging.version

from aissist_backup.schemas.operations.backup import ARCHIVE_FORMAT_VERSION

DISTRIBUTION_NAME = 'aissist-backup'
UNKNOWN_VERSION = 'unknown'


def get_tool_version() -> str:
    """Get the installed aissist-backup version.

    Returns:
        Normalized version string (e.g., "0.3.1"), or 'unknown' when the
        distribution metadata is unavailable or not a valid version
    """
    try:
        raw = importlib.metadata.version(DISTRIBUTION_NAME)
        return str(packaging.version.Version(raw))
    except (importlib.metadata.PackageNotFoundError, packaging.version.InvalidVersion):
        return UNKNOWN_VERSION


def is_supported_format(format_version: str) -> bool:
    """Check whether a descriptor format version can be read by this build.

    Args:
        format_version: The descriptor's version field (e.g., "1.0")

    Returns:
        True if the major version matches ours, False otherwise (including
        unparseable versions)
    """
    try:
        theirs = packaging.version.Version(format_version)
    except packaging.version.InvalidVersion:
        return False
    return theirs.major == packaging.version.Version(ARCHIVE_FORMAT_VERSION).major

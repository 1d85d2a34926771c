"""
Backup operation schemas.

Models for the archive descriptor (BackupMetadata), its manifest entries, and
the results returned by backup creation, listing and verification.

The descriptor is serialized with camelCase keys so archives stay
interchangeable with those written by the aissist CLI.
"""

from __future__ import annotations

from collections.abc import Sequence

import pydantic
from pydantic.alias_generators import to_camel

from aissist_backup.schemas.base import StrictModel
from aissist_backup.schemas.types import ArchivePath, JsonDatetime, PathStr, StorageKind

# ==============================================================================
# Archive Format Constants
# ==============================================================================

ARCHIVE_FORMAT_VERSION = '1.0'
"""Current descriptor format version. Used when creating new archives."""

DESCRIPTOR_NAME = '.backup-metadata.json'
"""Reserved archive entry holding the serialized BackupMetadata."""

CHECKSUM_PATTERN = r'^sha256:[0-9a-f]{64}$'


# ==============================================================================
# Descriptor Models (serialized into the archive)
# ==============================================================================


class DescriptorModel(StrictModel):
    """Strict model serialized with camelCase aliases."""

    model_config = pydantic.ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ManifestEntry(DescriptorModel):
    """Single backed-up file: relative path, byte size and content hash."""

    path: ArchivePath
    size: int = pydantic.Field(ge=0)
    checksum: str = pydantic.Field(pattern=CHECKSUM_PATTERN)


class BackupMetadata(DescriptorModel):
    """
    Archive descriptor (the .backup-metadata.json entry).

    Built once per backup by the manifest builder and embedded in the archive.
    Frozen - never mutated after creation.

    JSON shape:
        version, timestamp, aissistVersion, sourcePath, storageType,
        description (omitted when None), fileCount, totalSize, manifest
    """

    version: str = ARCHIVE_FORMAT_VERSION  # Descriptor format version
    timestamp: JsonDatetime  # Creation time (UTC)
    tool_version: str = pydantic.Field(alias='aissistVersion')  # Producing build
    source_path: PathStr  # Absolute path that was snapshotted
    storage_type: StorageKind
    description: str | None = None
    file_count: int = pydantic.Field(ge=0)
    total_size: int = pydantic.Field(ge=0)
    manifest: Sequence[ManifestEntry]

    @pydantic.model_validator(mode='after')
    def check_totals(self) -> BackupMetadata:
        """Aggregates must agree with the manifest and paths must be unique."""
        if self.file_count != len(self.manifest):
            raise ValueError(f'fileCount {self.file_count} does not match manifest length {len(self.manifest)}')
        manifest_size = sum(entry.size for entry in self.manifest)
        if self.total_size != manifest_size:
            raise ValueError(f'totalSize {self.total_size} does not match manifest total {manifest_size}')
        paths = [entry.path for entry in self.manifest]
        if len(set(paths)) != len(paths):
            raise ValueError('manifest contains duplicate paths')
        return self

    def to_descriptor_json(self) -> str:
        """Serialize for the archive descriptor entry."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


# ==============================================================================
# Operation Results
# ==============================================================================


class BackupResult(StrictModel):
    """Result of writing a backup archive."""

    archive_path: PathStr
    metadata: BackupMetadata


class BackupListing(StrictModel):
    """One archive found while listing a backup directory.

    metadata is None when the archive has no descriptor or could not be read;
    error carries the reason in the latter case.
    """

    path: PathStr
    metadata: BackupMetadata | None
    error: str | None = None


class VerificationResult(StrictModel):
    """Outcome of an integrity check. valid is True iff errors is empty."""

    valid: bool
    errors: Sequence[str]

    @classmethod
    def from_errors(cls, errors: Sequence[str]) -> VerificationResult:
        return cls(valid=not errors, errors=list(errors))


class CleanupResult(StrictModel):
    """Result of applying a retention policy to a backup directory."""

    backup_dir: PathStr
    was_dry_run: bool
    selected: Sequence[BackupListing]  # Backups matched by the policy
    deleted: Sequence[PathStr]  # Empty on dry run

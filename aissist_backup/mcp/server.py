"""
aissist Backup MCP Server.

Provides tools for creating, inspecting, verifying and restoring backups of
aissist storage directories.

Setup:
    claude mcp add --scope user aissist-backup -- aissist-backup-mcp

Example:
    # Back up project storage
    create_backup()

    # Restore into global storage, keeping existing files
    restore_backup('/path/to/aissist-backup-2025-01-15-143052.zip', mode='merge-preserve', storage_kind='global')
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import attrs
from mcp.server.fastmcp import Context, FastMCP

from aissist_backup.config.settings import BackupSettings, settings
from aissist_backup.mcp.utils import DualLogger
from aissist_backup.schemas.operations.backup import BackupListing, BackupMetadata, BackupResult, VerificationResult
from aissist_backup.schemas.operations.restore import RestoreResult
from aissist_backup.schemas.types import StorageKind
from aissist_backup.services.backup import BackupService
from aissist_backup.services.restore import RestoreService

# ==============================================================================
# Server State (immutable)
# ==============================================================================


@attrs.define(frozen=True)
class ServerState:
    """
    Immutable server state initialized at startup.

    Contains all services and configuration needed for tool execution.
    """

    settings: BackupSettings
    working_dir: Path
    restore_service: RestoreService

    def storage_path(self, storage_kind: StorageKind) -> Path:
        return self.settings.storage_path(storage_kind, cwd=self.working_dir)

    def backup_service(self, storage_kind: StorageKind) -> BackupService:
        return BackupService.from_settings(self.settings, self.storage_path(storage_kind))


# ==============================================================================
# Lifespan
# ==============================================================================


@contextlib.asynccontextmanager
async def lifespan(mcp_server: FastMCP) -> AsyncIterator[None]:
    """
    Manage server lifecycle and state initialization.

    Creates ServerState with all services at startup.
    """
    working_dir = Path.cwd()

    state = ServerState(
        settings=settings,
        working_dir=working_dir,
        restore_service=RestoreService(),
    )

    # Register tools with closure over state
    register_tools(state)

    print(f'[MCP Server] Working dir: {working_dir}', file=sys.stderr)
    print(f'[MCP Server] Global storage: {state.storage_path("global")}', file=sys.stderr)

    yield  # Setup successful; application active


# ==============================================================================
# Server Setup
# ==============================================================================

server = FastMCP('aissist-backup', lifespan=lifespan)


# ==============================================================================
# Tool Registration (Closure Pattern)
# ==============================================================================


def register_tools(state: ServerState) -> None:
    """
    Register MCP tools with closure over server state.

    Args:
        state: Server state containing services
    """

    @server.tool()
    async def create_backup(
        storage_kind: StorageKind = 'local',
        description: str | None = None,
        output_path: str | None = None,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> BackupResult:
        """
        Create a verified backup of aissist storage.

        Args:
            storage_kind: 'local' (project .aissist directory) or 'global' (~/.aissist)
            description: Optional description stored in the backup
            output_path: Optional archive path (default: the storage's backup directory)

        Returns:
            BackupResult with archive path and embedded metadata
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        return await state.backup_service(storage_kind).create_backup(
            state.storage_path(storage_kind),
            output_path=Path(output_path) if output_path else None,
            description=description,
            storage_kind=storage_kind,
            logger=logger,
        )

    @server.tool()
    async def list_backups(
        storage_kind: StorageKind = 'local',
        directory: str | None = None,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> list[BackupListing]:
        """
        List backups, newest first.

        Args:
            storage_kind: Whose backup directory to list when directory is not given
            directory: Optional explicit backup directory

        Returns:
            BackupListing per archive (metadata is None for unreadable archives)
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        return await state.backup_service(storage_kind).list_backups(
            Path(directory) if directory else None,
            logger=logger,
        )

    @server.tool()
    async def get_backup_info(
        archive_path: str,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> BackupMetadata:
        """
        Read the metadata of a backup archive.

        Args:
            archive_path: Path to the backup archive

        Returns:
            BackupMetadata including the file manifest
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        path = Path(archive_path)
        return await BackupService(path.parent).get_info(path, logger=logger)

    @server.tool()
    async def verify_backup(
        archive_path: str,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> VerificationResult:
        """
        Verify every file in a backup against its recorded checksum.

        Args:
            archive_path: Path to the backup archive

        Returns:
            VerificationResult (valid is True iff errors is empty)
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        path = Path(archive_path)
        return await BackupService(path.parent).verify(path, logger=logger)

    @server.tool()
    async def restore_backup(
        archive_path: str,
        mode: str = 'merge-overwrite',
        storage_kind: StorageKind = 'local',
        target_path: str | None = None,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> RestoreResult:
        """
        Restore a backup archive into aissist storage.

        Args:
            archive_path: Path to the backup archive
            mode: 'replace' (empty target first, rolled back on failure),
                  'merge-overwrite' (archive wins on conflict), or
                  'merge-preserve' (existing files win on conflict)
            storage_kind: Target storage when target_path is not given
            target_path: Optional explicit target directory

        Returns:
            RestoreResult with per-mode file counts and verification status
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        target = Path(target_path) if target_path else state.storage_path(storage_kind)
        result = await state.restore_service.restore(Path(archive_path), target, mode, logger=logger)

        await logger.info(f'Restored {result.files_processed} files into {target}')
        return result


# ==============================================================================
# Server Entry Point
# ==============================================================================


def main() -> None:
    """Run the MCP server."""
    server.run()


if __name__ == '__main__':
    main()

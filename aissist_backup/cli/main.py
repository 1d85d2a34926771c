#!/usr/bin/env python3
"""
Command-line interface for aissist-backup.

Provides commands to create, inspect, verify, clean and restore backups of
aissist storage directories.
"""

from __future__ import annotations

import asyncio
import traceback
from pathlib import Path

import typer

from aissist_backup.cli.logger import CLILogger
from aissist_backup.config.settings import settings
from aissist_backup.exceptions import BackupError, IntegrityError, RollbackFailureError, was_rolled_back
from aissist_backup.schemas.operations.backup import BackupMetadata
from aissist_backup.schemas.operations.restore import RestoreMode
from aissist_backup.schemas.types import StorageKind
from aissist_backup.services.auto_backup import AutoBackupService
from aissist_backup.services.backup import BackupService
from aissist_backup.services.restore import RestoreService, parse_restore_mode
from aissist_backup.services.retention import clean_backups

app = typer.Typer(
    name='aissist-backup',
    help='Back up and restore aissist storage',
    add_completion=False,
)


def _validate_restore_mode(value: str) -> RestoreMode:
    """Validate and narrow restore mode for typer callback."""
    try:
        return parse_restore_mode(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _resolve_storage(global_storage: bool, storage: Path | None) -> tuple[Path, StorageKind]:
    """Resolve the storage directory and its kind from --global/--storage."""
    storage_kind: StorageKind = 'global' if global_storage else 'local'
    if storage is not None:
        return storage.resolve(), storage_kind
    return settings.storage_path(storage_kind), storage_kind


def _format_size(size: int) -> str:
    if size < 1024:
        return f'{size} B'
    if size < 1024 * 1024:
        return f'{size / 1024:.1f} KB'
    return f'{size / (1024 * 1024):.1f} MB'


def _print_metadata(metadata: BackupMetadata) -> None:
    typer.echo(f'  Created: {metadata.timestamp.isoformat()}')
    typer.echo(f'  Version: {metadata.tool_version}')
    typer.echo(f'  Source: {metadata.source_path} ({metadata.storage_type})')
    typer.echo(f'  Files: {metadata.file_count}')
    typer.echo(f'  Size: {_format_size(metadata.total_size)}')
    if metadata.description:
        typer.echo(f'  Description: {metadata.description}')


def _fail(message: str) -> typer.Exit:
    typer.secho(f'Error: {message}', fg=typer.colors.RED, err=True)
    return typer.Exit(1)


# ==============================================================================
# Commands
# ==============================================================================


@app.command()
def create(
    output: Path | None = typer.Option(None, '--output', '-o', help='Output archive path (default: backup directory)'),
    description: str | None = typer.Option(None, '--description', '-d', help='Backup description'),
    global_storage: bool = typer.Option(False, '--global', '-g', help='Back up global storage'),
    storage: Path | None = typer.Option(None, '--storage', help='Storage directory (overrides --global)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Create a verified backup of aissist storage."""
    asyncio.run(_create_async(output, description, global_storage, storage, verbose))


@app.command('list')
def list_(
    path: Path | None = typer.Option(None, '--path', help='Backup directory to list'),
    global_storage: bool = typer.Option(False, '--global', '-g', help='List backups of global storage'),
    storage: Path | None = typer.Option(None, '--storage', help='Storage directory (overrides --global)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """List backups, newest first."""
    asyncio.run(_list_async(path, global_storage, storage, verbose))


@app.command()
def info(
    backup_file: Path = typer.Argument(..., help='Backup archive'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Show backup metadata."""
    asyncio.run(_info_async(backup_file, verbose))


@app.command()
def verify(
    backup_file: Path = typer.Argument(..., help='Backup archive'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Verify every file in a backup against its checksum."""
    asyncio.run(_verify_async(backup_file, verbose))


@app.command()
def clean(
    path: Path | None = typer.Option(None, '--path', help='Backup directory to clean'),
    global_storage: bool = typer.Option(False, '--global', '-g', help='Clean backups of global storage'),
    storage: Path | None = typer.Option(None, '--storage', help='Storage directory (overrides --global)'),
    max_age_days: int | None = typer.Option(None, '--max-age-days', min=1, help='Delete backups older than N days'),
    max_count: int | None = typer.Option(None, '--max-count', min=1, help='Keep only the newest N backups'),
    dry_run: bool = typer.Option(False, '--dry-run', help='Preview what would be deleted'),
    yes: bool = typer.Option(False, '--yes', '-y', help='Skip confirmation prompt'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Delete backups outside the retention policy.

    Limits default to RETENTION_MAX_AGE_DAYS / RETENTION_MAX_COUNT settings.
    """
    asyncio.run(_clean_async(path, global_storage, storage, max_age_days, max_count, dry_run, yes, verbose))


@app.command()
def auto(
    global_storage: bool = typer.Option(False, '--global', '-g', help='Back up global storage'),
    storage: Path | None = typer.Option(None, '--storage', help='Storage directory (overrides --global)'),
    force: bool = typer.Option(False, '--force', '-f', help='Run even if no backup is due'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Run an auto-backup if one is due."""
    asyncio.run(_auto_async(global_storage, storage, force, verbose))


@app.command()
def restore(
    backup_file: Path = typer.Argument(..., help='Backup archive to restore'),
    mode: str = typer.Option(
        RestoreMode.MERGE_OVERWRITE.value,
        '--mode',
        '-m',
        help='Restore mode: replace, merge-overwrite, or merge-preserve',
        callback=_validate_restore_mode,
    ),
    global_storage: bool = typer.Option(False, '--global', '-g', help='Restore to global storage'),
    storage: Path | None = typer.Option(None, '--storage', help='Target storage directory (overrides --global)'),
    yes: bool = typer.Option(False, '--yes', '-y', help='Skip confirmation prompt'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Restore data from a backup.

    replace empties the target first (a safety backup is taken and restored on
    any failure). merge-overwrite overwrites conflicting files. merge-preserve
    keeps existing files on conflict.
    """
    asyncio.run(_restore_async(backup_file, RestoreMode(mode), global_storage, storage, yes, verbose))


# ==============================================================================
# Async implementations
# ==============================================================================


async def _create_async(
    output: Path | None,
    description: str | None,
    global_storage: bool,
    storage: Path | None,
    verbose: bool,
) -> None:
    """Async implementation of create command."""
    logger = CLILogger(verbose=verbose)

    try:
        storage_path, storage_kind = _resolve_storage(global_storage, storage)
        service = BackupService.from_settings(settings, storage_path)

        result = await service.create_backup(
            storage_path,
            output_path=output,
            description=description,
            storage_kind=storage_kind,
            logger=logger,
        )

        typer.secho('✓ Backup created successfully!', fg=typer.colors.GREEN)
        typer.echo(f'  Path: {result.archive_path}')
        _print_metadata(result.metadata)

    except IntegrityError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        typer.echo('The invalid backup was deleted.', err=True)
        raise typer.Exit(1)
    except (BackupError, OSError) as e:
        raise _fail(str(e))
    except Exception as e:
        await logger.error(f'Failed to create backup: {e}')
        if verbose:
            traceback.print_exc()
        raise typer.Exit(1)


async def _list_async(path: Path | None, global_storage: bool, storage: Path | None, verbose: bool) -> None:
    """Async implementation of list command."""
    logger = CLILogger(verbose=verbose)

    try:
        if path is None:
            storage_path, _ = _resolve_storage(global_storage, storage)
            path = settings.backup_dir(storage_path)

        listings = await BackupService(path).list_backups(logger=logger)

        if not listings:
            typer.echo(f'No backups found in {path}')
            return

        typer.secho(f'Backups in {path}:', bold=True)
        for listing in listings:
            name = Path(listing.path).name
            if listing.metadata is None:
                reason = listing.error or 'missing metadata'
                typer.secho(f'  {name}  (unreadable: {reason})', fg=typer.colors.YELLOW)
                continue
            metadata = listing.metadata
            line = f'  {name}  {metadata.timestamp:%Y-%m-%d %H:%M:%S}  {metadata.file_count} files'
            line += f'  {_format_size(metadata.total_size)}'
            if metadata.description:
                line += f'  {metadata.description}'
            typer.echo(line)

    except (BackupError, OSError) as e:
        raise _fail(str(e))


async def _info_async(backup_file: Path, verbose: bool) -> None:
    """Async implementation of info command."""
    logger = CLILogger(verbose=verbose)

    try:
        metadata = await BackupService(backup_file.parent).get_info(backup_file, logger=logger)

        typer.secho(f'Backup: {backup_file}', bold=True)
        _print_metadata(metadata)
        if verbose:
            typer.echo('\n  Manifest:')
            for entry in metadata.manifest:
                typer.echo(f'    - {entry.path} ({_format_size(entry.size)})')

    except (BackupError, OSError) as e:
        raise _fail(str(e))


async def _verify_async(backup_file: Path, verbose: bool) -> None:
    """Async implementation of verify command."""
    logger = CLILogger(verbose=verbose)

    try:
        result = await BackupService(backup_file.parent).verify(backup_file, logger=logger)
    except (BackupError, OSError) as e:
        raise _fail(str(e))

    if result.valid:
        typer.secho('✓ Backup is valid', fg=typer.colors.GREEN)
        return

    typer.secho('✗ Backup verification failed', fg=typer.colors.RED, err=True)
    for error in result.errors:
        typer.echo(f'  - {error}', err=True)
    raise typer.Exit(1)


async def _clean_async(
    path: Path | None,
    global_storage: bool,
    storage: Path | None,
    max_age_days: int | None,
    max_count: int | None,
    dry_run: bool,
    yes: bool,
    verbose: bool,
) -> None:
    """Async implementation of clean command."""
    logger = CLILogger(verbose=verbose)

    try:
        if path is None:
            storage_path, _ = _resolve_storage(global_storage, storage)
            path = settings.backup_dir(storage_path)

        if max_age_days is None and max_count is None:
            max_age_days = settings.RETENTION_MAX_AGE_DAYS
            max_count = settings.RETENTION_MAX_COUNT

        # Preview first, then confirm before deleting anything
        preview = clean_backups(path, max_age_days=max_age_days, max_count=max_count, dry_run=True)

        if not preview.selected:
            typer.echo('No backups to clean')
            return

        typer.secho(f'Backups to delete ({len(preview.selected)}):', bold=True)
        for listing in preview.selected:
            typer.echo(f'  - {Path(listing.path).name}')

        if dry_run:
            typer.secho('\nDry run: nothing deleted', fg=typer.colors.YELLOW)
            return

        if not yes and not typer.confirm(f'Delete {len(preview.selected)} backup(s)?', default=False):
            typer.secho('Cleanup cancelled', fg=typer.colors.YELLOW)
            return

        result = clean_backups(path, max_age_days=max_age_days, max_count=max_count)
        await logger.info(f'Deleted {len(result.deleted)} backups from {path}')
        typer.secho(f'✓ Deleted {len(result.deleted)} backup(s)', fg=typer.colors.GREEN)

    except (BackupError, OSError) as e:
        raise _fail(str(e))


async def _auto_async(global_storage: bool, storage: Path | None, force: bool, verbose: bool) -> None:
    """Async implementation of auto command."""
    logger = CLILogger(verbose=verbose)

    storage_path, storage_kind = _resolve_storage(global_storage, storage)
    service = AutoBackupService(settings, storage_path, storage_kind)

    handle = service.start(logger, force=force)
    outcome = await handle.wait()

    if outcome.status == 'created':
        typer.secho(f'✓ Auto-backup created: {outcome.archive_path}', fg=typer.colors.GREEN)
    elif outcome.status == 'skipped':
        typer.echo('Auto-backup not due')
    else:
        raise _fail(f'Auto-backup failed: {outcome.error}')


async def _restore_async(
    backup_file: Path,
    mode: RestoreMode,
    global_storage: bool,
    storage: Path | None,
    yes: bool,
    verbose: bool,
) -> None:
    """Async implementation of restore command."""
    logger = CLILogger(verbose=verbose)

    try:
        if not backup_file.is_file():
            raise _fail(f'Backup file not found: {backup_file}')

        target_path, _ = _resolve_storage(global_storage, storage)

        # Display restore plan
        typer.secho('Restore Plan:', bold=True)
        typer.echo(f'  Backup: {backup_file}')
        typer.echo(f'  Target: {target_path}')
        typer.echo(f'  Mode: {mode}')

        if mode == RestoreMode.REPLACE:
            typer.secho('\n  WARNING: Replace mode will DELETE all existing data!', fg=typer.colors.YELLOW)
            typer.secho('  A safety backup will be created before proceeding.', fg=typer.colors.YELLOW)
        elif mode == RestoreMode.MERGE_OVERWRITE:
            typer.secho('\n  Merge-overwrite will overwrite conflicting files.', fg=typer.colors.YELLOW)
        else:
            typer.secho('\n  Merge-preserve will keep existing files on conflict.', fg=typer.colors.GREEN)

        # Merge-preserve never destroys data, no confirmation needed
        if mode != RestoreMode.MERGE_PRESERVE and not yes:
            if not typer.confirm('Proceed with restore?', default=False):
                typer.secho('Restore cancelled', fg=typer.colors.YELLOW)
                return

        result = await RestoreService().restore(backup_file, target_path, mode, logger=logger)

        typer.secho('\n✓ Restore completed successfully', fg=typer.colors.GREEN)
        typer.secho('Restore Summary:', bold=True)
        if result.files_added:
            typer.echo(f'  Added: {result.files_added} files')
        if result.files_overwritten:
            typer.echo(f'  Overwritten: {result.files_overwritten} files')
        if result.files_preserved:
            typer.echo(f'  Preserved: {result.files_preserved} files')
        if result.files_skipped:
            typer.echo(f'  Skipped: {result.files_skipped} files')
        if result.verified:
            typer.echo('  Verified: all restored files match their checksums')

    except typer.Exit:
        raise
    except RollbackFailureError as e:
        typer.secho(f'Error: {e.original_error}', fg=typer.colors.RED, err=True)
        typer.secho(f'Rollback failed: {e.rollback_error}', fg=typer.colors.RED, err=True)
        if e.safety_backup_path is not None:
            typer.echo(f'Your previous data is preserved at: {e.safety_backup_path}', err=True)
        raise typer.Exit(1)
    except (BackupError, OSError) as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        if was_rolled_back(e):
            typer.secho('Your data has been restored from the safety backup.', fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(1)
    except (KeyboardInterrupt, asyncio.CancelledError) as e:
        typer.secho('Restore interrupted', fg=typer.colors.RED, err=True)
        if was_rolled_back(e):
            typer.secho('Your data has been restored from the safety backup.', fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(1)
    except Exception as e:
        await logger.error(f'Failed to restore backup: {e}')
        if was_rolled_back(e):
            typer.secho('Your data has been restored from the safety backup.', fg=typer.colors.YELLOW, err=True)
        if verbose:
            traceback.print_exc()
        raise typer.Exit(1)


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()

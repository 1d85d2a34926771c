"""
Terminal progress output for the aissist-backup commands.

Step messages from a backup or restore (safety backup, extraction counts,
verification) appear only with --verbose. Warnings and errors always reach
stderr, so a failed restore is visible even in quiet mode.
"""

from __future__ import annotations

import typer


class CLILogger:
    """LoggerProtocol for the typer commands."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    async def info(self, message: str) -> None:
        if self.verbose:
            typer.echo(f'[INFO] {message}')

    async def warning(self, message: str) -> None:
        typer.secho(f'[WARNING] {message}', fg=typer.colors.YELLOW, err=True)

    async def error(self, message: str) -> None:
        typer.secho(f'[ERROR] {message}', fg=typer.colors.RED, err=True)

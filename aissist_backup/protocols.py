"""
Progress reporting seam between the backup services and their front ends.

RestoreService, BackupService and AutoBackupService accept an optional logger
and report user-facing steps through it ("Creating safety backup...",
extraction counts, verification results). Module-level logging still carries
diagnostics; this protocol carries only what the operator should see.
"""

from __future__ import annotations

from typing import Protocol


class LoggerProtocol(Protocol):
    """
    Async sink for backup/restore progress messages.

    Implementations:
    - DualLogger (mcp/utils.py): forwards to the MCP client context and stderr
    - CLILogger (cli/logger.py): prints to the terminal, info only with --verbose
    - NullLogger (below): drops everything
    """

    async def info(self, message: str) -> None: ...
    async def warning(self, message: str) -> None: ...
    async def error(self, message: str) -> None: ...


class NullLogger:
    """Discards progress messages, for callers that only want the result."""

    async def info(self, message: str) -> None:
        pass

    async def warning(self, message: str) -> None:
        pass

    async def error(self, message: str) -> None:
        pass

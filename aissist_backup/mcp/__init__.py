"""MCP server entry point for aissist-backup."""

from __future__ import annotations

from aissist_backup.mcp.server import main, server

__all__ = ['main', 'server']

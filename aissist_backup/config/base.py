"""
Archive and hashing settings shared by the CLI and the MCP server.

Everything that changes the bytes of a backup (name prefix, extension,
compression level, hashing threads) lives here; storage locations, retention
and auto-backup scheduling live in settings.py.
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

T = TypeVar('T', bound='BaseBackupSettings')


class BaseBackupSettings(pydantic_settings.BaseSettings):
    """Archive format settings, read from AISSIST_BACKUP_* environment variables."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='AISSIST_BACKUP_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown settings in .env
    )

    # Application metadata
    APP_NAME: str = 'aissist'

    # Archive settings
    BACKUP_PREFIX: str = 'aissist'  # <prefix>-backup-YYYY-MM-DD-HHmmss.zip
    ARCHIVE_EXTENSION: str = 'zip'
    COMPRESSION_LEVEL: int = 6  # 0 = stored, 1-9 = deflate level

    # Checksum workers (1 = sequential hashing)
    HASH_WORKERS: int = 1

    @pydantic.field_validator('COMPRESSION_LEVEL')
    @classmethod
    def validate_compression_level(cls, v: int) -> int:
        """Validate compression level is within deflate bounds."""
        if not 0 <= v <= 9:
            raise ValueError('COMPRESSION_LEVEL must be between 0-9')
        return v

    @pydantic.field_validator('HASH_WORKERS')
    @classmethod
    def validate_hash_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError('HASH_WORKERS must be at least 1')
        return v


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset (production), loads from environment variables only.

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()  # No .env file, load from environment only

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """
    Lazy settings - defers instantiation until first access.

    Args:
        settings_class: Settings class to instantiate

    Returns:
        Proxy that instantiates settings on first access
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))

"""
Shared type definitions for schemas.

Centralizes common type annotations used across backup and restore schemas.

Layering:
- This module provides FOUNDATION types (BaseStrictModel, primitive aliases)
- schemas/base.py re-exports BaseStrictModel as StrictModel for operations/
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

import pydantic

# ==============================================================================
# Base Strict Model (Foundation)
# ==============================================================================


class BaseStrictModel(pydantic.BaseModel):
    """
    Foundation strict model - operation schemas inherit from this.

    Uses extra='forbid' to reject unknown fields - any field not modeled
    causes immediate validation failure (fail-fast).
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',  # Reject unknown fields (fail-fast)
        strict=True,  # Strict type coercion
        frozen=True,  # Immutable after creation
    )


# ==============================================================================
# Primitive Types
# ==============================================================================

type JsonDatetime = Annotated[datetime, pydantic.Field(strict=False)]
"""Pydantic-enhanced datetime for JSON serialization (allows string->datetime conversion)."""

type PathStr = str
"""A filesystem path (file or directory) as a string."""

type ArchivePath = str
"""A posix-style path relative to the backup root, as stored in the archive."""

StorageKind = Literal['local', 'global']
"""Semantic origin of a snapshot. Describes where the source logically lived, not a filesystem property."""

"""Stable constants shared across the package."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
STATE_DB_SCHEMA_VERSION: Final[int] = 1
DOCUMENT_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the working directory unless overridden by config).
DEFAULT_CONFIG_FILE: Final[str] = "acr_conformance.toml"
STATE_DIR: Final[PurePosixPath] = PurePosixPath("state")
STATE_DB_FILE: Final[PurePosixPath] = STATE_DIR / "acr_versions.sqlite3"
LOG_DIR: Final[PurePosixPath] = PurePosixPath("logs")

ENV_PREFIX: Final[str] = "ACR_"

# Version authorship for generated snapshots.
SYSTEM_AI_AUTHOR: Final[str] = "system-ai"
AI_INITIAL_REASON: Final[str] = "AI-generated initial assessment"

__all__ = [
    "AI_INITIAL_REASON",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "DOCUMENT_SCHEMA_VERSION",
    "ENV_PREFIX",
    "LOG_DIR",
    "STATE_DB_FILE",
    "STATE_DB_SCHEMA_VERSION",
    "STATE_DIR",
    "SYSTEM_AI_AUTHOR",
]

"""SQLite state database and the append-only version store."""

from acr_conformance.persistence.state_db import (
    MigrationRecord,
    StateDB,
    StateDBAsyncPolicyError,
    StateDBBusyError,
    StateDBCorruptionError,
    StateDBError,
    StateDBMigrationError,
)
from acr_conformance.persistence.version_repo import (
    AcrVersionRepo,
    InMemoryVersionStore,
    VersionBuilder,
    VersionConflictError,
    VersionNotFoundError,
    VersionStore,
    VersionStoreError,
)

__all__ = [
    "AcrVersionRepo",
    "InMemoryVersionStore",
    "MigrationRecord",
    "StateDB",
    "StateDBAsyncPolicyError",
    "StateDBBusyError",
    "StateDBCorruptionError",
    "StateDBError",
    "StateDBMigrationError",
    "VersionBuilder",
    "VersionConflictError",
    "VersionNotFoundError",
    "VersionStore",
    "VersionStoreError",
]

"""Append-only storage for compliance document versions."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from acr_conformance.domain.models import AcrVersion, datetime_to_iso8601z

if TYPE_CHECKING:
    from acr_conformance.persistence.state_db import RowValue, StateDB

VersionBuilder = Callable[[AcrVersion | None], AcrVersion]


class VersionStoreError(RuntimeError):
    """Base class for version store failures."""


class VersionConflictError(VersionStoreError):
    """Another writer already holds ``(acr_id, version)``. Retrying is safe."""

    def __init__(self, acr_id: str, version: int) -> None:
        super().__init__(f"version {version} of {acr_id!r} already exists")
        self.acr_id = acr_id
        self.version = version


class VersionNotFoundError(VersionStoreError):
    def __init__(self, acr_id: str, version: int) -> None:
        super().__init__(f"version {version} not found for {acr_id!r}")
        self.acr_id = acr_id
        self.version = version


@runtime_checkable
class VersionStore(Protocol):
    """Persistence contract keyed by ``(acr_id, version)``; rows are never updated."""

    def insert(self, version: AcrVersion) -> AcrVersion: ...

    def append_next(self, acr_id: str, build: VersionBuilder) -> AcrVersion: ...

    def get(self, acr_id: str, version: int) -> AcrVersion | None: ...

    def latest(self, acr_id: str) -> AcrVersion | None: ...

    def list_versions(self, acr_id: str) -> list[AcrVersion]: ...

    def count(self, acr_id: str) -> int: ...

    def delete_all(self, acr_id: str) -> int: ...


def _check_next(acr_id: str, previous: AcrVersion | None, built: AcrVersion) -> None:
    expected = 1 if previous is None else previous.version + 1
    if built.acr_id != acr_id:
        raise ValueError(f"built version belongs to {built.acr_id!r}, expected {acr_id!r}")
    if built.version != expected:
        raise ValueError(f"built version must be {expected}, got {built.version}")


class InMemoryVersionStore:
    """Lock-guarded in-process store, for tests and embedding."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: dict[str, dict[int, AcrVersion]] = {}

    def insert(self, version: AcrVersion) -> AcrVersion:
        with self._lock:
            self._insert_locked(version)
        return version

    def append_next(self, acr_id: str, build: VersionBuilder) -> AcrVersion:
        with self._lock:
            previous = self._latest_locked(acr_id)
            built = build(previous)
            _check_next(acr_id, previous, built)
            self._insert_locked(built)
        return built

    def get(self, acr_id: str, version: int) -> AcrVersion | None:
        with self._lock:
            return self._versions.get(acr_id, {}).get(version)

    def latest(self, acr_id: str) -> AcrVersion | None:
        with self._lock:
            return self._latest_locked(acr_id)

    def list_versions(self, acr_id: str) -> list[AcrVersion]:
        with self._lock:
            rows = self._versions.get(acr_id, {})
            return [rows[number] for number in sorted(rows)]

    def count(self, acr_id: str) -> int:
        with self._lock:
            return len(self._versions.get(acr_id, {}))

    def delete_all(self, acr_id: str) -> int:
        with self._lock:
            return len(self._versions.pop(acr_id, {}))

    def _insert_locked(self, version: AcrVersion) -> None:
        rows = self._versions.setdefault(version.acr_id, {})
        if version.version in rows:
            raise VersionConflictError(version.acr_id, version.version)
        rows[version.version] = version

    def _latest_locked(self, acr_id: str) -> AcrVersion | None:
        rows = self._versions.get(acr_id)
        if not rows:
            return None
        return rows[max(rows)]


class AcrVersionRepo:
    """SQLite-backed version store on top of :class:`StateDB`."""

    def __init__(self, db: StateDB) -> None:
        self._db = db
        self._db.migrate()

    def insert(self, version: AcrVersion) -> AcrVersion:
        try:
            with self._db.transaction() as conn:
                self._insert(conn, version)
        except sqlite3.IntegrityError as exc:
            raise VersionConflictError(version.acr_id, version.version) from exc
        return version

    def append_next(self, acr_id: str, build: VersionBuilder) -> AcrVersion:
        """
        Allocate and insert the next version in one ``BEGIN IMMEDIATE`` transaction.

        The write lock is held from the max-version read through the insert, so two
        writers cannot observe the same predecessor. The unique ``(acr_id, version)``
        constraint backs this up and surfaces as :class:`VersionConflictError`.
        """

        candidate = 1
        try:
            with self._db.transaction(immediate=True) as conn:
                previous = self._latest(acr_id, conn=conn)
                candidate = 1 if previous is None else previous.version + 1
                built = build(previous)
                _check_next(acr_id, previous, built)
                self._insert(conn, built)
        except sqlite3.IntegrityError as exc:
            raise VersionConflictError(acr_id, candidate) from exc
        return built

    def get(self, acr_id: str, version: int) -> AcrVersion | None:
        row = self._db.query_one(
            f"SELECT {_COLUMNS} FROM acr_versions WHERE acr_id = ? AND version = ?",
            (acr_id, version),
        )
        return None if row is None else _row_to_version(row)

    def latest(self, acr_id: str) -> AcrVersion | None:
        return self._latest(acr_id)

    def list_versions(self, acr_id: str) -> list[AcrVersion]:
        rows = self._db.query_all(
            f"SELECT {_COLUMNS} FROM acr_versions WHERE acr_id = ? ORDER BY version ASC",
            (acr_id,),
        )
        return [_row_to_version(row) for row in rows]

    def count(self, acr_id: str) -> int:
        row = self._db.query_one(
            "SELECT COUNT(*) AS total FROM acr_versions WHERE acr_id = ?", (acr_id,)
        )
        total = None if row is None else row["total"]
        return total if isinstance(total, int) else 0

    def delete_all(self, acr_id: str) -> int:
        return self._db.execute("DELETE FROM acr_versions WHERE acr_id = ?", (acr_id,))

    async def append_next_async(self, acr_id: str, build: VersionBuilder) -> AcrVersion:
        return await asyncio.to_thread(self.append_next, acr_id, build)

    async def list_versions_async(self, acr_id: str) -> list[AcrVersion]:
        return await asyncio.to_thread(self.list_versions, acr_id)

    def _latest(self, acr_id: str, *, conn: sqlite3.Connection | None = None) -> AcrVersion | None:
        row = self._db.query_one(
            f"SELECT {_COLUMNS} FROM acr_versions WHERE acr_id = ? "
            "ORDER BY version DESC LIMIT 1",
            (acr_id,),
            conn=conn,
        )
        return None if row is None else _row_to_version(row)

    def _insert(self, conn: sqlite3.Connection, version: AcrVersion) -> None:
        change_log = [entry.to_dict() for entry in version.change_log]
        self._db.execute(
            f"INSERT INTO acr_versions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                version.id,
                version.acr_id,
                version.version,
                datetime_to_iso8601z(version.created_at),
                version.created_by,
                json.dumps(change_log, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
                version.snapshot.to_json(),
            ),
            conn=conn,
        )


_COLUMNS = "id, acr_id, version, created_at, created_by, change_log_json, snapshot_json"


def _row_text(row: dict[str, RowValue], key: str) -> str:
    value = row.get(key)
    if not isinstance(value, str):
        raise VersionStoreError(f"acr_versions.{key} must be text")
    return value


def _row_to_version(row: dict[str, RowValue]) -> AcrVersion:
    version = row.get("version")
    if not isinstance(version, int):
        raise VersionStoreError("acr_versions.version must be an integer")
    return AcrVersion.from_dict(
        {
            "id": _row_text(row, "id"),
            "acr_id": _row_text(row, "acr_id"),
            "version": version,
            "created_at": _row_text(row, "created_at"),
            "created_by": _row_text(row, "created_by"),
            "change_log": json.loads(_row_text(row, "change_log_json")),
            "snapshot": json.loads(_row_text(row, "snapshot_json")),
        }
    )


__all__ = [
    "AcrVersionRepo",
    "InMemoryVersionStore",
    "VersionBuilder",
    "VersionConflictError",
    "VersionNotFoundError",
    "VersionStore",
    "VersionStoreError",
]

"""State DB migration, pragma, integrity, and async-policy tests."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest

from acr_conformance.constants import STATE_DB_SCHEMA_VERSION
from acr_conformance.persistence import (
    AcrVersionRepo,
    StateDB,
    StateDBAsyncPolicyError,
    StateDBMigrationError,
)

from . import make_version

if TYPE_CHECKING:
    from pathlib import Path


def test_migration_idempotence_schema_version_and_pragmas(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "acr.sqlite3", busy_timeout_ms=4_321)

    assert db.migrate() == STATE_DB_SCHEMA_VERSION
    assert db.migrate() == STATE_DB_SCHEMA_VERSION

    with db.connection() as conn:
        tables = {
            str(row[0])
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        assert {"schema_versions", "acr_versions"} <= tables

        triggers = {
            str(row[0])
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'trigger'")
        }
        assert "acr_versions_no_update" in triggers

        pragma_journal = conn.execute("PRAGMA journal_mode").fetchone()
        pragma_busy_timeout = conn.execute("PRAGMA busy_timeout").fetchone()
        assert pragma_journal is not None
        assert str(pragma_journal[0]).lower() == "wal"
        assert pragma_busy_timeout is not None
        assert int(pragma_busy_timeout[0]) == 4_321

    history = db.schema_history()
    assert [record.version for record in history] == list(range(1, STATE_DB_SCHEMA_VERSION + 1))
    assert all(len(record.checksum) == 64 for record in history)
    assert history[0].applied_at.endswith("Z")


def test_constructor_rejects_bad_settings(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="busy_timeout_ms"):
        StateDB(tmp_path / "a.sqlite3", busy_timeout_ms=-1)
    with pytest.raises(ValueError, match="busy_retry_limit"):
        StateDB(tmp_path / "a.sqlite3", busy_retry_limit=-1)
    with pytest.raises(ValueError, match="async_blocking_policy"):
        StateDB(tmp_path / "a.sqlite3", async_blocking_policy="lenient")  # type: ignore[arg-type]


def test_checksum_drift_is_refused(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "acr.sqlite3")
    db.migrate()

    db.execute("UPDATE schema_versions SET checksum = ? WHERE version = 1", ("f" * 64,))

    with pytest.raises(StateDBMigrationError, match="checksum mismatch for version 1"):
        db.migrate()


def test_newer_schema_is_refused(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "acr.sqlite3")
    db.migrate()

    db.execute(
        "INSERT INTO schema_versions (version, name, checksum, applied_at) VALUES (?, ?, ?, ?)",
        (STATE_DB_SCHEMA_VERSION + 1, "future", "0" * 64, "2030-01-01T00:00:00.000000Z"),
    )

    with pytest.raises(StateDBMigrationError, match="newer than supported"):
        db.migrate()


def test_stored_versions_cannot_be_updated(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "acr.sqlite3")
    repo = AcrVersionRepo(db)
    repo.insert(make_version(1))

    with pytest.raises(sqlite3.IntegrityError, match="append-only"):
        db.execute("UPDATE acr_versions SET created_by = ? WHERE version = 1", ("mallory",))

    stored = repo.get("acr-guide", 1)
    assert stored is not None
    assert stored.created_by == "reviewer-a"


def test_nested_transaction_rolls_back_to_savepoint(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "acr.sqlite3")
    db.migrate()
    db.execute("CREATE TABLE notes (body TEXT NOT NULL)")

    with db.transaction() as conn:
        db.execute("INSERT INTO notes (body) VALUES (?)", ("kept",), conn=conn)
        with pytest.raises(RuntimeError, match="inner"):
            with db.transaction(conn=conn):
                db.execute("INSERT INTO notes (body) VALUES (?)", ("dropped",), conn=conn)
                raise RuntimeError("inner")

    assert db.query_all("SELECT body FROM notes") == [{"body": "kept"}]


def test_backup_and_integrity_check(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "acr.sqlite3")
    AcrVersionRepo(db).insert(make_version(1))

    assert db.integrity_check() == ()

    backup_path = db.backup(tmp_path / "backup" / "acr.sqlite3")
    assert backup_path.exists()

    restored = AcrVersionRepo(StateDB(backup_path))
    assert restored.count("acr-guide") == 1

    with pytest.raises(ValueError, match="max_errors"):
        db.integrity_check(max_errors=0)


@pytest.mark.asyncio
async def test_strict_async_policy_blocks_sync_db_io_on_event_loop(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "acr.sqlite3", async_blocking_policy="strict")

    with pytest.raises(StateDBAsyncPolicyError):
        db.migrate()

    assert await db.migrate_async() == STATE_DB_SCHEMA_VERSION

    with pytest.raises(StateDBAsyncPolicyError, match="query_one"):
        db.query_one("SELECT 1 AS one")

    row = await db.query_one_async("SELECT 1 AS one")
    assert row == {"one": 1}

"""
SQLite state database behind the compliance document version store.

Every call opens a short-lived connection in WAL mode with a busy timeout; a connection
may also be passed in explicitly so several statements share one transaction. The
schema is owned by numbered migrations whose SHA-256 checksums are recorded in
``schema_versions`` when applied. A database stamped by a newer release, or one whose
recorded checksum no longer matches the shipped migration, is refused instead of
being migrated in place.
"""

from __future__ import annotations

import asyncio
import hashlib
import sqlite3
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Literal, TypeAlias, TypeVar

from acr_conformance.constants import STATE_DB_SCHEMA_VERSION

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

SQLValue = str | int | float | bytes | None
SQLParams = Sequence[SQLValue]
RowValue = str | int | float | bytes | None
Row: TypeAlias = dict[str, RowValue]
AsyncBlockingPolicy: TypeAlias = Literal["allow", "strict"]

_T = TypeVar("_T")

DEFAULT_BUSY_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_BUSY_RETRY_LIMIT: Final[int] = 4
DEFAULT_BUSY_RETRY_BACKOFF_MS: Final[int] = 25
DEFAULT_ASYNC_BLOCKING_POLICY: Final[AsyncBlockingPolicy] = "allow"
ASYNC_BLOCKING_POLICIES: Final[tuple[AsyncBlockingPolicy, ...]] = ("allow", "strict")

_SCHEMA_VERSIONS_DDL: Final[str] = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY CHECK (version > 0),
    name TEXT NOT NULL,
    checksum TEXT NOT NULL CHECK (length(checksum) = 64),
    applied_at TEXT NOT NULL
)
"""


@dataclass(frozen=True, slots=True)
class MigrationRecord:
    """One row of ``schema_versions``."""

    version: int
    name: str
    checksum: str
    applied_at: str


@dataclass(frozen=True, slots=True)
class Migration:
    version: int
    name: str
    statements: tuple[str, ...]

    @property
    def checksum(self) -> str:
        # Whitespace-insensitive at line ends so reformatting the SQL literal is harmless.
        digest = hashlib.sha256(f"{self.version}:{self.name}\n".encode())
        for statement in self.statements:
            lines = (line.rstrip() for line in statement.strip().splitlines())
            digest.update("\n".join(lines).encode("utf-8") + b"\n--\n")
        return digest.hexdigest()


MIGRATIONS: Final[tuple[Migration, ...]] = (
    Migration(
        version=1,
        name="acr_version_store",
        statements=(
            _SCHEMA_VERSIONS_DDL,
            """
            CREATE TABLE IF NOT EXISTS acr_versions (
                id TEXT PRIMARY KEY,
                acr_id TEXT NOT NULL,
                version INTEGER NOT NULL CHECK (version >= 1),
                created_at TEXT NOT NULL,
                created_by TEXT NOT NULL,
                change_log_json TEXT NOT NULL,
                snapshot_json TEXT NOT NULL,
                UNIQUE (acr_id, version)
            )
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_acr_versions_acr_id_version
            ON acr_versions(acr_id, version)
            """,
            """
            CREATE TRIGGER IF NOT EXISTS acr_versions_no_update
            BEFORE UPDATE ON acr_versions
            BEGIN
                SELECT RAISE(ABORT, 'acr_versions is append-only');
            END
            """,
        ),
    ),
)


class StateDBError(RuntimeError):
    """Base class for state database failures."""


class StateDBBusyError(StateDBError):
    """The database stayed locked through every retry."""


class StateDBMigrationError(StateDBError):
    """The on-disk schema cannot be brought to the version this release expects."""


class StateDBCorruptionError(StateDBError):
    """SQLite reported a malformed or foreign database file."""


class StateDBAsyncPolicyError(StateDBError):
    """Blocking database I/O was attempted on a running event loop under the strict policy."""


def _sqlite_codes(*names: str) -> frozenset[int]:
    codes = (getattr(sqlite3, name, None) for name in names)
    return frozenset(code for code in codes if isinstance(code, int))


_BUSY_CODES: Final[frozenset[int]] = _sqlite_codes(
    "SQLITE_BUSY", "SQLITE_BUSY_RECOVERY", "SQLITE_BUSY_SNAPSHOT", "SQLITE_LOCKED"
)
_CORRUPT_CODES: Final[frozenset[int]] = _sqlite_codes("SQLITE_CORRUPT", "SQLITE_NOTADB")
_BUSY_MARKERS: Final[tuple[str, ...]] = ("is locked",)
_CORRUPT_MARKERS: Final[tuple[str, ...]] = ("malformed", "file is not a database")


def _classify(exc: sqlite3.Error) -> Literal["busy", "corrupt"] | None:
    code = getattr(exc, "sqlite_errorcode", None)
    message = str(exc).lower()
    if code in _CORRUPT_CODES or any(marker in message for marker in _CORRUPT_MARKERS):
        return "corrupt"
    if code in _BUSY_CODES or any(marker in message for marker in _BUSY_MARKERS):
        return "busy"
    return None


class StateDB:
    """SQLite access with checksummed migrations, savepoint nesting, and busy retries."""

    def __init__(
        self,
        path: str | Path,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        busy_retry_limit: int = DEFAULT_BUSY_RETRY_LIMIT,
        busy_retry_backoff_ms: int = DEFAULT_BUSY_RETRY_BACKOFF_MS,
        async_blocking_policy: AsyncBlockingPolicy = DEFAULT_ASYNC_BLOCKING_POLICY,
    ) -> None:
        for name, value in (
            ("busy_timeout_ms", busy_timeout_ms),
            ("busy_retry_limit", busy_retry_limit),
            ("busy_retry_backoff_ms", busy_retry_backoff_ms),
        ):
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if async_blocking_policy not in ASYNC_BLOCKING_POLICIES:
            raise ValueError(
                f"async_blocking_policy must be one of {', '.join(ASYNC_BLOCKING_POLICIES)}, "
                f"got {async_blocking_policy!r}"
            )
        self._path = Path(path).expanduser()
        self._timeout_s = busy_timeout_ms / 1000.0
        self._busy_timeout_ms = busy_timeout_ms
        self._retries = busy_retry_limit
        self._backoff_s = busy_retry_backoff_ms / 1000.0
        self._policy: AsyncBlockingPolicy = async_blocking_policy
        self._savepoints = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def async_blocking_policy(self) -> AsyncBlockingPolicy:
        return self._policy

    # -- connections and transactions -------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """Open a WAL-mode connection in autocommit mode. The caller closes it."""

        self._guard("connect")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self._path, timeout=self._timeout_s, isolation_level=None, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute(f"PRAGMA busy_timeout={self._busy_timeout_ms}")
            mode = conn.execute("PRAGMA journal_mode=WAL").fetchone()
            if mode is None or str(mode[0]).lower() != "wal":
                raise StateDBError(f"could not switch {self._path} to WAL journaling")
        except BaseException:
            conn.close()
            raise
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(
        self,
        *,
        conn: sqlite3.Connection | None = None,
        immediate: bool = True,
    ) -> Iterator[sqlite3.Connection]:
        """
        Commit everything in the block or nothing.

        The outermost level issues ``BEGIN IMMEDIATE`` by default, so the write lock is
        held before the first read. Entering again on a connection that is already in a
        transaction opens a savepoint that rolls back on its own.
        """

        self._guard("transaction")
        with self._borrow(conn) as active:
            if active.in_transaction:
                self._savepoints += 1
                name = f"sp_{self._savepoints}"
                begin, commit = f"SAVEPOINT {name}", f"RELEASE SAVEPOINT {name}"
                rollback: tuple[str, ...] = (f"ROLLBACK TO SAVEPOINT {name}", commit)
            else:
                begin = "BEGIN IMMEDIATE" if immediate else "BEGIN"
                commit, rollback = "COMMIT", ("ROLLBACK",)

            self._run(active, begin, (), operation=begin.lower())
            try:
                yield active
            except BaseException:
                for statement in rollback:
                    self._run(active, statement, (), operation="rollback")
                raise
            self._run(active, commit, (), operation="commit")

    # -- migrations --------------------------------------------------------------------

    def migrate(self) -> int:
        """Bring the schema to ``STATE_DB_SCHEMA_VERSION`` and return the version reached."""

        self._guard("migrate")
        shipped = {migration.version: migration for migration in MIGRATIONS}
        missing = [v for v in range(1, STATE_DB_SCHEMA_VERSION + 1) if v not in shipped]
        if missing:
            raise StateDBMigrationError(f"no migration shipped for schema version {missing[0]}")

        with self.connection() as conn:
            self._run(conn, _SCHEMA_VERSIONS_DDL, (), operation="create schema_versions")
            applied = {record.version: record for record in self._history(conn)}
            newest = max(applied, default=0)
            if newest > STATE_DB_SCHEMA_VERSION:
                raise StateDBMigrationError(
                    f"database schema is newer than supported: {self._path} is at "
                    f"version {newest}, this release knows {STATE_DB_SCHEMA_VERSION}"
                )

            for version in range(1, STATE_DB_SCHEMA_VERSION + 1):
                migration = shipped[version]
                record = applied.get(version)
                if record is not None:
                    if record.checksum != migration.checksum:
                        raise StateDBMigrationError(
                            f"migration checksum mismatch for version {version} "
                            f"({migration.name}); the database was written by different code"
                        )
                    continue
                with self.transaction(conn=conn) as tx:
                    for statement in migration.statements:
                        self._run(tx, statement, (), operation=f"migration {version}")
                    self._run(
                        tx,
                        "INSERT INTO schema_versions (version, name, checksum, applied_at) "
                        "VALUES (?, ?, ?, ?)",
                        (version, migration.name, migration.checksum, _utc_now_iso()),
                        operation=f"stamp migration {version}",
                    )
            return self.schema_version(conn=conn)

    async def migrate_async(self) -> int:
        return await asyncio.to_thread(self.migrate)

    def schema_version(self, *, conn: sqlite3.Connection | None = None) -> int:
        row = self.query_one("SELECT MAX(version) AS version FROM schema_versions", conn=conn)
        value = None if row is None else row["version"]
        return value if isinstance(value, int) else 0

    def schema_history(self) -> list[MigrationRecord]:
        with self.connection() as conn:
            return self._history(conn)

    # -- statements --------------------------------------------------------------------

    def execute(
        self, sql: str, params: SQLParams = (), *, conn: sqlite3.Connection | None = None
    ) -> int:
        """Run one write statement and return its row count; autocommits without ``conn``."""

        self._guard("execute")
        if conn is not None:
            return self._run(conn, sql, params, operation="execute").rowcount
        with self.transaction() as tx:
            return self._run(tx, sql, params, operation="execute").rowcount

    def query_all(
        self, sql: str, params: SQLParams = (), *, conn: sqlite3.Connection | None = None
    ) -> list[Row]:
        self._guard("query_all")
        with self._borrow(conn) as active:
            return [_as_row(row) for row in self._run(active, sql, params).fetchall()]

    def query_one(
        self, sql: str, params: SQLParams = (), *, conn: sqlite3.Connection | None = None
    ) -> Row | None:
        self._guard("query_one")
        with self._borrow(conn) as active:
            row = self._run(active, sql, params).fetchone()
        return None if row is None else _as_row(row)

    async def execute_async(self, sql: str, params: SQLParams = ()) -> int:
        return await asyncio.to_thread(self.execute, sql, tuple(params))

    async def query_all_async(self, sql: str, params: SQLParams = ()) -> list[Row]:
        return await asyncio.to_thread(self.query_all, sql, tuple(params))

    async def query_one_async(self, sql: str, params: SQLParams = ()) -> Row | None:
        return await asyncio.to_thread(self.query_one, sql, tuple(params))

    # -- maintenance -------------------------------------------------------------------

    def backup(self, destination: str | Path) -> Path:
        """Copy the live database to ``destination`` with the online backup API."""

        self._guard("backup")
        target_path = Path(destination).expanduser()
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target = sqlite3.connect(target_path, timeout=self._timeout_s, isolation_level=None)
        try:
            with self.connection() as source:
                source.backup(target)
        finally:
            target.close()
        return target_path

    def integrity_check(self, *, max_errors: int = 100) -> tuple[str, ...]:
        """Empty when ``PRAGMA integrity_check`` reports ``ok``; otherwise its messages."""

        if max_errors <= 0:
            raise ValueError("max_errors must be > 0")
        messages = tuple(
            str(row.get("integrity_check", ""))
            for row in self.query_all(f"PRAGMA integrity_check({max_errors})")
        )
        return () if messages == ("ok",) else messages

    def __enter__(self) -> StateDB:
        self.migrate()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        return None

    # -- internals ---------------------------------------------------------------------

    def _guard(self, operation: str) -> None:
        if self._policy == "allow":
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        raise StateDBAsyncPolicyError(
            f"{operation} is disallowed from a running event loop ({self._path}); "
            "await the *_async variant instead"
        )

    @contextmanager
    def _borrow(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.connection() as owned:
            yield owned

    def _history(self, conn: sqlite3.Connection) -> list[MigrationRecord]:
        rows = self._run(
            conn, "SELECT version, name, checksum, applied_at FROM schema_versions ORDER BY version"
        ).fetchall()
        history: list[MigrationRecord] = []
        for row in rows:
            values = (row["version"], row["name"], row["checksum"], row["applied_at"])
            if not isinstance(values[0], int) or not all(isinstance(v, str) for v in values[1:]):
                raise StateDBMigrationError(f"schema_versions row {values[0]!r} is malformed")
            history.append(MigrationRecord(*values))
        return history

    def _run(
        self,
        conn: sqlite3.Connection,
        sql: str,
        params: SQLParams = (),
        *,
        operation: str = "query",
    ) -> sqlite3.Cursor:
        return self._retrying(lambda: conn.execute(sql, tuple(params)), operation)

    def _retrying(self, call: Callable[[], _T], operation: str) -> _T:
        attempt = 0
        while True:
            try:
                return call()
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as exc:
                kind = _classify(exc)
                if kind == "busy" and attempt < self._retries:
                    time.sleep(self._backoff_s * (2**attempt))
                    attempt += 1
                    continue
                if kind == "corrupt":
                    raise StateDBCorruptionError(
                        f"{operation} on {self._path} failed: {exc}; "
                        "run integrity_check() and restore from a backup"
                    ) from exc
                if kind == "busy":
                    raise StateDBBusyError(
                        f"{operation} on {self._path} still locked after "
                        f"{attempt + 1} attempt(s): {exc}"
                    ) from exc
                raise StateDBError(f"{operation} on {self._path} failed: {exc}") from exc


def _as_row(row: sqlite3.Row) -> Row:
    return {key: row[key] for key in row.keys()}  # noqa: SIM118


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


__all__ = [
    "ASYNC_BLOCKING_POLICIES",
    "DEFAULT_ASYNC_BLOCKING_POLICY",
    "DEFAULT_BUSY_RETRY_BACKOFF_MS",
    "DEFAULT_BUSY_RETRY_LIMIT",
    "DEFAULT_BUSY_TIMEOUT_MS",
    "MIGRATIONS",
    "Migration",
    "MigrationRecord",
    "Row",
    "RowValue",
    "SQLParams",
    "SQLValue",
    "StateDB",
    "StateDBAsyncPolicyError",
    "StateDBBusyError",
    "StateDBCorruptionError",
    "StateDBError",
    "StateDBMigrationError",
]

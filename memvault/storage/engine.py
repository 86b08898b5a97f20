"""DuckDB-backed storage engine for users and files.

The engine owns the only connection to the vault database and exposes a small
set of coroutine operations over two collections:

    users  (email PRIMARY KEY)
    files  (id PRIMARY KEY, secondary index idx_files_owner on owner)

Every operation runs in its own transaction on its own cursor, in a worker
thread, so the event loop is only suspended while DuckDB is working. The
connection is opened lazily by the first operation; concurrent first callers
share a single in-flight open. Writes to a collection are serialized, so
concurrent puts of the same id apply in turn (latest write wins).

Schema versions are recorded in ``vault_meta``. Opening a database written
by a newer schema is refused with StoreUnavailable.

Usage:
    engine = StorageEngine.get_instance()
    await engine.put_file(record)
    files = await engine.get_files_by_owner("a@x.com")
"""
import asyncio
import logging
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

import duckdb

from memvault.errors import DuplicateKey, StoreUnavailable

from .schemas import FileRecord, FileSummary, UserRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_CREATE_META = """
CREATE TABLE IF NOT EXISTS vault_meta (
    key   VARCHAR PRIMARY KEY,
    value VARCHAR NOT NULL
)
"""

_USER_COLUMNS = ("email", "password", "created_at")
_SUMMARY_COLUMNS = ("id", "owner", "name", "mime_type", "size", "created_at")
_FILE_COLUMNS = _SUMMARY_COLUMNS + ("payload",)


def _migrate_to_v1(cursor: duckdb.DuckDBPyConnection) -> None:
    cursor.execute("""
        CREATE TABLE users (
            email      VARCHAR PRIMARY KEY,
            password   VARCHAR NOT NULL,
            created_at DOUBLE  NOT NULL
        )
    """)
    cursor.execute("""
        CREATE TABLE files (
            id         VARCHAR PRIMARY KEY,
            owner      VARCHAR NOT NULL,
            name       VARCHAR NOT NULL,
            mime_type  VARCHAR NOT NULL,
            size       BIGINT  NOT NULL,
            created_at DOUBLE  NOT NULL,
            payload    BLOB    NOT NULL
        )
    """)
    cursor.execute("CREATE INDEX idx_files_owner ON files(owner)")


# version -> step that upgrades the previous version to it
_MIGRATIONS: Dict[int, Callable[[duckdb.DuckDBPyConnection], None]] = {
    1: _migrate_to_v1,
}


@dataclass(frozen=True)
class StoreHandle:
    """An open vault database.

    Only the engine uses the connection; callers get the handle back from
    ``initialize()`` to inspect what was opened.
    """
    path: str
    schema_version: int
    _connection: duckdb.DuckDBPyConnection = field(repr=False, compare=False)


class StorageEngine:
    """Singleton engine mediating all access to the vault collections.

    Attributes:
        _instance: Process-wide engine returned by ``get_instance``.
        _db_path: Path to the DuckDB database file.
    """

    _instance: Optional["StorageEngine"] = None
    _db_path: str = "memory_vault.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        if db_path:
            self._db_path = db_path
        self._handle: Optional[StoreHandle] = None
        self._opening: Optional[asyncio.Future] = None
        # writes to one collection run one at a time; reads are not locked
        self._write_locks: Dict[str, threading.Lock] = {
            "users": threading.Lock(),
            "files": threading.Lock(),
        }

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "StorageEngine":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close and drop the singleton instance (used by tests)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    @property
    def db_path(self) -> str:
        return self._db_path

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def initialize(self) -> StoreHandle:
        """Open the store, creating or upgrading its schema if needed.

        Idempotent. Callers arriving while an open is in flight await that
        same open. A failed open is not remembered, so the next call retries.

        Raises:
            StoreUnavailable: If DuckDB cannot open the database, or the
                database was written by a newer schema version.
        """
        if self._handle is not None:
            return self._handle

        if self._opening is None:
            self._opening = asyncio.ensure_future(asyncio.to_thread(self._open))
        opening = self._opening
        try:
            handle = await opening
        finally:
            if self._opening is opening:
                self._opening = None

        self._handle = handle
        return handle

    def close(self) -> None:
        """Close the database connection. The next operation reopens it."""
        if self._handle is not None:
            self._handle._connection.close()
            self._handle = None
            logger.info("Closed vault store %s", self._db_path)

    def _open(self) -> StoreHandle:
        try:
            conn = duckdb.connect(self._db_path)
        except duckdb.Error as exc:
            raise StoreUnavailable(f"Cannot open store at {self._db_path}: {exc}") from exc

        try:
            version = self._upgrade_schema(conn)
        except Exception:
            conn.close()
            raise

        logger.info("Opened vault store %s (schema v%d)", self._db_path, version)
        return StoreHandle(path=self._db_path, schema_version=version, _connection=conn)

    def _upgrade_schema(self, conn: duckdb.DuckDBPyConnection) -> int:
        with self._transaction(conn) as cursor:
            cursor.execute(_CREATE_META)
            row = cursor.execute(
                "SELECT value FROM vault_meta WHERE key = 'schema_version'"
            ).fetchone()
            current = int(row[0]) if row else 0

            if current > SCHEMA_VERSION:
                raise StoreUnavailable(
                    f"Store {self._db_path} has schema v{current}, "
                    f"newer than supported v{SCHEMA_VERSION}"
                )

            for version in range(current + 1, SCHEMA_VERSION + 1):
                _MIGRATIONS[version](cursor)
                logger.info("Applied vault schema v%d to %s", version, self._db_path)

            if current != SCHEMA_VERSION:
                cursor.execute(
                    "INSERT OR REPLACE INTO vault_meta (key, value) VALUES ('schema_version', ?)",
                    [str(SCHEMA_VERSION)],
                )
        return SCHEMA_VERSION

    # -----------------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------------

    @staticmethod
    @contextmanager
    def _transaction(conn: duckdb.DuckDBPyConnection) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run the body on a fresh cursor inside BEGIN/COMMIT.

        Any error rolls the transaction back and is re-raised unchanged.
        """
        cursor = conn.cursor()
        try:
            cursor.begin()
            try:
                yield cursor
            except Exception:
                cursor.rollback()
                raise
            cursor.commit()
        finally:
            cursor.close()

    async def _run(self, operation: Callable, *args, lock: Optional[threading.Lock] = None):
        handle = await self.initialize()

        def _execute():
            with lock or nullcontext():
                with self._transaction(handle._connection) as cursor:
                    return operation(cursor, *args)

        return await asyncio.to_thread(_execute)

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    async def add_user(self, record: UserRecord) -> None:
        """Insert a new user.

        Raises:
            DuplicateKey: If a user with the same email exists.
        """
        await self._run(self._insert_user, record, lock=self._write_locks["users"])
        logger.debug("Added user %s", record.email)

    async def get_user(self, email: str) -> Optional[UserRecord]:
        return await self._run(self._select_user, email)

    @staticmethod
    def _insert_user(cursor: duckdb.DuckDBPyConnection, record: UserRecord) -> None:
        try:
            cursor.execute(
                "INSERT INTO users (email, password, created_at) VALUES (?, ?, ?)",
                [record.email, record.password, record.created_at],
            )
        except duckdb.ConstraintException as exc:
            raise DuplicateKey("users", record.email) from exc

    @staticmethod
    def _select_user(cursor: duckdb.DuckDBPyConnection, email: str) -> Optional[UserRecord]:
        row = cursor.execute(
            "SELECT email, password, created_at FROM users WHERE email = ?", [email]
        ).fetchone()
        return UserRecord(**dict(zip(_USER_COLUMNS, row))) if row else None

    # -----------------------------------------------------------------------
    # Files
    # -----------------------------------------------------------------------

    async def put_file(self, record: FileRecord) -> None:
        """Insert a file, replacing any existing file with the same id.

        The old row and its owner index entry are removed and the new row
        written in one transaction.
        """
        await self._run(self._upsert_file, record, lock=self._write_locks["files"])
        logger.debug("Stored file %s for %s (%d bytes)", record.id, record.owner, record.size)

    async def get_file_by_id(self, file_id: str) -> Optional[FileRecord]:
        return await self._run(self._select_file, file_id)

    async def get_files_by_owner(self, owner: str) -> List[FileRecord]:
        """Return every file owned by *owner*, in no particular order."""
        return await self._run(self._select_files_by_owner, owner)

    async def list_file_summaries(self, owner: str) -> List[FileSummary]:
        """Like ``get_files_by_owner`` but without loading payloads."""
        return await self._run(self._select_summaries_by_owner, owner)

    async def delete_file(self, file_id: str) -> bool:
        """Delete a file by id. Deleting an absent id is a no-op.

        Returns:
            True if a record was removed.
        """
        deleted = await self._run(self._delete_file, file_id, lock=self._write_locks["files"])
        if deleted:
            logger.debug("Deleted file %s", file_id)
        return deleted

    async def clear_files_by_owner(self, owner: str) -> int:
        """Delete every file owned by *owner*, one transaction per file.

        This is not atomic: if a delete fails, the files deleted before it
        stay deleted and the error propagates. Callers needing all-or-nothing
        behaviour must reconcile on their own.

        Returns:
            Number of files deleted.
        """
        summaries = await self.list_file_summaries(owner)
        deleted = 0
        for summary in summaries:
            if await self.delete_file(summary.id):
                deleted += 1
        logger.info("Cleared %d files for %s", deleted, owner)
        return deleted

    @staticmethod
    def _upsert_file(cursor: duckdb.DuckDBPyConnection, record: FileRecord) -> None:
        cursor.execute("DELETE FROM files WHERE id = ?", [record.id])
        cursor.execute(
            """
            INSERT INTO files (id, owner, name, mime_type, size, created_at, payload)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                record.id,
                record.owner,
                record.name,
                record.mime_type,
                record.size,
                record.created_at,
                record.payload,
            ],
        )

    @staticmethod
    def _select_file(cursor: duckdb.DuckDBPyConnection, file_id: str) -> Optional[FileRecord]:
        row = cursor.execute(
            f"SELECT {', '.join(_FILE_COLUMNS)} FROM files WHERE id = ?", [file_id]
        ).fetchone()
        return FileRecord(**dict(zip(_FILE_COLUMNS, row))) if row else None

    @staticmethod
    def _select_files_by_owner(cursor: duckdb.DuckDBPyConnection, owner: str) -> List[FileRecord]:
        rows = cursor.execute(
            f"SELECT {', '.join(_FILE_COLUMNS)} FROM files WHERE owner = ?", [owner]
        ).fetchall()
        return [FileRecord(**dict(zip(_FILE_COLUMNS, r))) for r in rows]

    @staticmethod
    def _select_summaries_by_owner(cursor: duckdb.DuckDBPyConnection, owner: str) -> List[FileSummary]:
        rows = cursor.execute(
            f"SELECT {', '.join(_SUMMARY_COLUMNS)} FROM files WHERE owner = ?", [owner]
        ).fetchall()
        return [FileSummary(**dict(zip(_SUMMARY_COLUMNS, r))) for r in rows]

    @staticmethod
    def _delete_file(cursor: duckdb.DuckDBPyConnection, file_id: str) -> bool:
        row = cursor.execute(
            "DELETE FROM files WHERE id = ? RETURNING id", [file_id]
        ).fetchone()
        return row is not None

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from chillertrack.errors import PersistenceError
from chillertrack.persistence.interfaces import EntriesRepoProtocol, TotalsRepoProtocol
from chillertrack.persistence.sqlite.entries_repo import SqliteEntriesRepo
from chillertrack.persistence.sqlite.sqlite_connection import (
    create_sqlite_connection,
    ensure_min_schema,
)
from chillertrack.persistence.sqlite.totals_repo import SqliteTotalsRepo

logger = logging.getLogger(__name__)


class UnitOfWork:
    """One sqlite transaction. ``sqlite3.Error`` surfaces as ``PersistenceError``."""

    def __init__(self, db_path: str, *, read_only: bool = False) -> None:
        self._db_path = db_path
        self.read_only = read_only
        self._conn: sqlite3.Connection | None = None
        self.entries: EntriesRepoProtocol
        self.totals: TotalsRepoProtocol

    def __enter__(self) -> UnitOfWork:
        try:
            conn = create_sqlite_connection(self._db_path)
        except sqlite3.Error as exc:
            logger.error(
                "state_db_open_failed",
                extra={"extra": {"db_path": self._db_path, "error": str(exc)}},
            )
            raise PersistenceError(f"cannot open state db {self._db_path}: {exc}") from exc
        try:
            ensure_min_schema(conn)
            if self.read_only:
                conn.execute("BEGIN")
            else:
                conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            conn.close()
            raise PersistenceError(f"cannot start transaction: {exc}") from exc
        self._conn = conn
        self.entries = SqliteEntriesRepo(conn, read_only=self.read_only)
        self.totals = SqliteTotalsRepo(conn, read_only=self.read_only)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._conn is None:
            return
        try:
            if exc_type is None:
                self._conn.commit()
            else:
                self._conn.rollback()
        except sqlite3.Error as commit_exc:
            raise PersistenceError(f"transaction finalize failed: {commit_exc}") from commit_exc
        finally:
            self._conn.close()
            self._conn = None
        if exc is not None and isinstance(exc, sqlite3.Error):
            raise PersistenceError(str(exc)) from exc


@dataclass(frozen=True)
class UnitOfWorkFactory:
    db_path: str
    read_only: bool = False

    def __call__(self) -> UnitOfWork:
        return UnitOfWork(self.db_path, read_only=self.read_only)

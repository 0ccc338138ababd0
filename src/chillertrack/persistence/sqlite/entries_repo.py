from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from decimal import Decimal

from chillertrack.domain.inventory import InventoryEntry, ensure_utc, to_amount

logger = logging.getLogger(__name__)


def _format_ts(ts: datetime) -> str:
    return ensure_utc(ts).isoformat(timespec="microseconds")


def _parse_db_datetime(raw: object) -> datetime:
    parsed = datetime.fromisoformat(str(raw))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class SqliteEntriesRepo:
    def __init__(self, conn: sqlite3.Connection, *, read_only: bool = False) -> None:
        self._conn = conn
        self._read_only = read_only

    def _ensure_writable(self) -> None:
        if self._read_only:
            logger.warning("read_only_write_blocked", extra={"extra": {"repo": "entries"}})
            raise PermissionError("UnitOfWork is read-only; inventory writes are blocked")

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> InventoryEntry:
        return InventoryEntry(
            id=str(row["id"]),
            category=str(row["category"]),
            chiller=str(row["chiller"]) if row["chiller"] is not None else None,
            total=to_amount(row["total"]),
            kilograms=to_amount(row["kilograms"]),
            created_at=_parse_db_datetime(row["created_at"]),
            loaded_out=bool(row["loaded_out"]),
            paid=bool(row["paid"]),
            worker_name=str(row["worker_name"]) if row["worker_name"] is not None else None,
            shooter_name=str(row["shooter_name"]) if row["shooter_name"] is not None else None,
        )

    def list_entries(
        self,
        *,
        chiller: str | int | None = None,
        category: str | None = None,
        loaded_out: bool | None = None,
    ) -> list[InventoryEntry]:
        clauses: list[str] = []
        params: list[object] = []
        if chiller is not None:
            clauses.append("TRIM(chiller) = ?")
            params.append(str(chiller).strip())
        if category is not None:
            clauses.append("category = ?")
            params.append(category)
        if loaded_out is not None:
            clauses.append("loaded_out = ?")
            params.append(1 if loaded_out else 0)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT * FROM inventory {where} ORDER BY created_at DESC, id", params
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_entry(self, entry_id: str) -> InventoryEntry | None:
        row = self._conn.execute("SELECT * FROM inventory WHERE id = ?", (entry_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def add_entry(self, entry: InventoryEntry) -> None:
        self._ensure_writable()
        self._conn.execute(
            """
            INSERT INTO inventory(
                id, category, chiller, total, kilograms, created_at,
                loaded_out, paid, worker_name, shooter_name
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.category,
                entry.chiller,
                str(entry.total),
                str(entry.kilograms),
                _format_ts(entry.created_at),
                1 if entry.loaded_out else 0,
                1 if entry.paid else 0,
                entry.worker_name,
                entry.shooter_name,
            ),
        )

    def update_entry(
        self,
        entry_id: str,
        *,
        total: Decimal | None = None,
        kilograms: Decimal | None = None,
        worker_name: str | None = None,
        shooter_name: str | None = None,
    ) -> bool:
        self._ensure_writable()
        assignments: list[str] = []
        params: list[object] = []
        if total is not None:
            assignments.append("total = ?")
            params.append(str(total))
        if kilograms is not None:
            assignments.append("kilograms = ?")
            params.append(str(kilograms))
        if worker_name is not None:
            assignments.append("worker_name = ?")
            params.append(worker_name)
        if shooter_name is not None:
            assignments.append("shooter_name = ?")
            params.append(shooter_name)
        if not assignments:
            return self.get_entry(entry_id) is not None
        params.append(entry_id)
        cur = self._conn.execute(
            f"UPDATE inventory SET {', '.join(assignments)} WHERE id = ?", params
        )
        return bool(cur.rowcount)

    def mark_loaded_out(self, entry_id: str, loaded_out: bool = True) -> bool:
        self._ensure_writable()
        cur = self._conn.execute(
            "UPDATE inventory SET loaded_out = ? WHERE id = ?",
            (1 if loaded_out else 0, entry_id),
        )
        return bool(cur.rowcount)

    def delete_entry(self, entry_id: str) -> bool:
        self._ensure_writable()
        cur = self._conn.execute("DELETE FROM inventory WHERE id = ?", (entry_id,))
        return bool(cur.rowcount)

    def delete_entries(
        self, *, created_before: datetime | None = None, inclusive: bool = True
    ) -> int:
        self._ensure_writable()
        if created_before is None:
            cur = self._conn.execute("DELETE FROM inventory")
        else:
            op = "<=" if inclusive else "<"
            cur = self._conn.execute(
                f"DELETE FROM inventory WHERE created_at {op} ?", (_format_ts(created_before),)
            )
        return int(cur.rowcount)

    def get_last_paid_at(self) -> datetime | None:
        row = self._conn.execute(
            "SELECT last_paid_at FROM last_paid_timestamp WHERE state_id = 1"
        ).fetchone()
        if row is None or row["last_paid_at"] is None:
            return None
        return _parse_db_datetime(row["last_paid_at"])

    def set_last_paid_at(self, ts: datetime) -> None:
        self._ensure_writable()
        self._conn.execute(
            """
            INSERT INTO last_paid_timestamp(state_id, last_paid_at, updated_at)
            VALUES (1, ?, ?)
            ON CONFLICT(state_id) DO UPDATE SET
                last_paid_at=excluded.last_paid_at,
                updated_at=excluded.updated_at
            """,
            (_format_ts(ts), _format_ts(datetime.now(UTC))),
        )

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime

from chillertrack.accounting.models import TotalsLedger
from chillertrack.errors import LedgerConflictError, PersistenceError

logger = logging.getLogger(__name__)


class SqliteTotalsRepo:
    """Single-row store for the stored totals; every write replaces the whole row."""

    def __init__(self, conn: sqlite3.Connection, *, read_only: bool = False) -> None:
        self._conn = conn
        self._read_only = read_only

    def _ensure_writable(self) -> None:
        if self._read_only:
            logger.warning("read_only_write_blocked", extra={"extra": {"repo": "totals"}})
            raise PermissionError("UnitOfWork is read-only; totals writes are blocked")

    def get_latest(self) -> TotalsLedger | None:
        row = self._conn.execute(
            "SELECT * FROM saved_totals ORDER BY saved_at DESC, id DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        try:
            saved_at = datetime.fromisoformat(str(row["saved_at"]))
            if saved_at.tzinfo is None:
                saved_at = saved_at.replace(tzinfo=UTC)
            return TotalsLedger.from_parts(
                chiller_totals=json.loads(str(row["chiller_totals_json"])),
                goats_totals=json.loads(str(row["goats_totals_json"])),
                kangaroo_breakdown=json.loads(str(row["kangaroo_breakdown_json"])),
                saved_at=saved_at,
                version=int(row["version"] or 0),
            )
        except (ValueError, TypeError) as exc:
            logger.error(
                "stored_totals_unreadable",
                extra={"extra": {"row_id": row["id"], "error": str(exc)}},
            )
            raise PersistenceError(f"stored totals row {row['id']} is unreadable: {exc}") from exc

    def current_version(self) -> int:
        row = self._conn.execute("SELECT MAX(version) AS version FROM saved_totals").fetchone()
        if row is None or row["version"] is None:
            return 0
        return int(row["version"])

    def replace(self, ledger: TotalsLedger, *, expected_version: int | None = None) -> None:
        self._ensure_writable()
        if expected_version is not None:
            actual_version = self.current_version()
            if actual_version != expected_version:
                logger.warning(
                    "stored_totals_conflict",
                    extra={
                        "extra": {
                            "expected_version": expected_version,
                            "actual_version": actual_version,
                        }
                    },
                )
                raise LedgerConflictError(
                    expected_version=expected_version, actual_version=actual_version
                )

        payload = ledger.to_payload()
        self._conn.execute("DELETE FROM saved_totals")
        self._conn.execute(
            """
            INSERT INTO saved_totals(
                chiller_totals_json, goats_totals_json, kangaroo_breakdown_json, version, saved_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                json.dumps(payload["chiller_totals"], sort_keys=True),
                json.dumps(payload["goats_totals"], sort_keys=True),
                json.dumps(payload["kangaroo_breakdown"], sort_keys=True),
                ledger.version,
                ledger.saved_at.isoformat(timespec="microseconds"),
            ),
        )

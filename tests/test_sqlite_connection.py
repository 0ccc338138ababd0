from __future__ import annotations

import sqlite3

from chillertrack.persistence.sqlite.sqlite_connection import (
    create_sqlite_connection,
    ensure_min_schema,
)


def test_connection_uses_wal_and_busy_timeout(tmp_path) -> None:
    conn = create_sqlite_connection(str(tmp_path / "state.db"))
    try:
        journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        busy_timeout = conn.execute("PRAGMA busy_timeout").fetchone()[0]
        row = conn.execute("SELECT 1 AS one").fetchone()
    finally:
        conn.close()

    assert str(journal_mode).lower() == "wal"
    assert int(busy_timeout) == 5000
    assert row["one"] == 1


def test_schema_migrates_legacy_tables(tmp_path) -> None:
    db = tmp_path / "legacy.db"
    with sqlite3.connect(db) as legacy:
        legacy.execute(
            """
            CREATE TABLE inventory (
                id TEXT PRIMARY KEY,
                category TEXT NOT NULL,
                chiller TEXT,
                total TEXT NOT NULL,
                kilograms TEXT NOT NULL,
                created_at TEXT NOT NULL,
                loaded_out INTEGER NOT NULL DEFAULT 0,
                worker_name TEXT
            )
            """
        )
        legacy.execute(
            """
            CREATE TABLE saved_totals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                chiller_totals_json TEXT NOT NULL,
                goats_totals_json TEXT NOT NULL,
                kangaroo_breakdown_json TEXT NOT NULL,
                saved_at TEXT NOT NULL
            )
            """
        )
    legacy.close()

    conn = create_sqlite_connection(str(db))
    try:
        ensure_min_schema(conn)
        ensure_min_schema(conn)
        inventory_cols = {row["name"] for row in conn.execute("PRAGMA table_info(inventory)")}
        totals_cols = {row["name"] for row in conn.execute("PRAGMA table_info(saved_totals)")}
    finally:
        conn.close()

    assert {"shooter_name", "paid"} <= inventory_cols
    assert "version" in totals_cols

from __future__ import annotations

import sqlite3


def create_sqlite_connection(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def ensure_inventory_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS inventory (
            id TEXT PRIMARY KEY,
            category TEXT NOT NULL,
            chiller TEXT,
            total TEXT NOT NULL,
            kilograms TEXT NOT NULL,
            created_at TEXT NOT NULL,
            loaded_out INTEGER NOT NULL DEFAULT 0,
            paid INTEGER NOT NULL DEFAULT 0,
            worker_name TEXT,
            shooter_name TEXT
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_inventory_chiller ON inventory(chiller)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_inventory_created_at ON inventory(created_at)")
    inventory_cols = {str(row["name"]) for row in conn.execute("PRAGMA table_info(inventory)")}
    if "shooter_name" not in inventory_cols:
        conn.execute("ALTER TABLE inventory ADD COLUMN shooter_name TEXT")
    if "paid" not in inventory_cols:
        conn.execute("ALTER TABLE inventory ADD COLUMN paid INTEGER NOT NULL DEFAULT 0")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS last_paid_timestamp (
            state_id INTEGER PRIMARY KEY CHECK(state_id = 1),
            last_paid_at TEXT,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )


def ensure_totals_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS saved_totals (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            chiller_totals_json TEXT NOT NULL,
            goats_totals_json TEXT NOT NULL,
            kangaroo_breakdown_json TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 0,
            saved_at TEXT NOT NULL
        )
        """
    )
    totals_cols = {str(row["name"]) for row in conn.execute("PRAGMA table_info(saved_totals)")}
    if "version" not in totals_cols:
        conn.execute("ALTER TABLE saved_totals ADD COLUMN version INTEGER NOT NULL DEFAULT 0")


def ensure_min_schema(conn: sqlite3.Connection) -> None:
    ensure_inventory_schema(conn)
    ensure_totals_schema(conn)

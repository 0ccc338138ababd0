from __future__ import annotations

from pathlib import Path

from chillertrack.errors import ValidationError


def normalize_db_path(raw: str) -> Path:
    candidate = raw.strip()
    if not candidate:
        raise ValidationError(
            "STATE_DB_PATH is required and cannot be empty. "
            "Use a .db path, e.g. STATE_DB_PATH=/var/lib/chillertrack/depot.db."
        )

    path = Path(candidate).expanduser()
    if not path.is_absolute():
        path = path.resolve()

    if path.suffix.lower() != ".db":
        raise ValidationError("STATE_DB_PATH must end with '.db'.")

    path.parent.mkdir(parents=True, exist_ok=True)
    return path.resolve()

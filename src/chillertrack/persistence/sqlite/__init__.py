from chillertrack.persistence.sqlite.entries_repo import SqliteEntriesRepo
from chillertrack.persistence.sqlite.totals_repo import SqliteTotalsRepo

__all__ = ["SqliteEntriesRepo", "SqliteTotalsRepo"]

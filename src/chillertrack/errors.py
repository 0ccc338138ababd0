from __future__ import annotations


class TotalsError(Exception):
    """Base class for stored-totals failures."""


class ValidationError(TotalsError, ValueError):
    """Raised when a caller supplies an invalid domain event.

    Always raised before any write, so the ledger is left untouched.
    """


class EntryNotFoundError(ValidationError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"inventory entry not found: {entry_id}")
        self.entry_id = entry_id


class PersistenceError(TotalsError):
    """Raised when the entry store or the ledger store cannot be read or written."""


class LedgerConflictError(PersistenceError):
    def __init__(self, *, expected_version: int, actual_version: int) -> None:
        super().__init__(
            "stored totals changed underneath this writer "
            f"(expected_version={expected_version} actual_version={actual_version})"
        )
        self.expected_version = expected_version
        self.actual_version = actual_version

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from chillertrack.domain.inventory import InventoryEntry


class EntriesRepoProtocol(Protocol):
    def list_entries(
        self,
        *,
        chiller: str | int | None = None,
        category: str | None = None,
        loaded_out: bool | None = None,
    ) -> list[InventoryEntry]: ...

    def get_entry(self, entry_id: str) -> InventoryEntry | None: ...

    def add_entry(self, entry: InventoryEntry) -> None: ...

    def update_entry(
        self,
        entry_id: str,
        *,
        total: Decimal | None = None,
        kilograms: Decimal | None = None,
        worker_name: str | None = None,
        shooter_name: str | None = None,
    ) -> bool: ...

    def mark_loaded_out(self, entry_id: str, loaded_out: bool = True) -> bool: ...

    def delete_entry(self, entry_id: str) -> bool: ...

    def delete_entries(
        self, *, created_before: datetime | None = None, inclusive: bool = True
    ) -> int: ...

    def get_last_paid_at(self) -> datetime | None: ...

    def set_last_paid_at(self, ts: datetime) -> None: ...

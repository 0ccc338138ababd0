from __future__ import annotations

from typing import Protocol

from chillertrack.accounting.models import TotalsLedger


class TotalsRepoProtocol(Protocol):
    def get_latest(self) -> TotalsLedger | None: ...

    def current_version(self) -> int: ...

    def replace(self, ledger: TotalsLedger, *, expected_version: int | None = None) -> None: ...

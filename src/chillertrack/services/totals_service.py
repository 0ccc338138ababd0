from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from chillertrack.accounting.ledger import TotalsAccountant
from chillertrack.accounting.models import TotalsLedger
from chillertrack.config import Settings
from chillertrack.domain.categories import require_chiller
from chillertrack.domain.inventory import InventoryEntry
from chillertrack.errors import PersistenceError
from chillertrack.logging_context import with_operation_context
from chillertrack.persistence.uow import UnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)

TotalsSubscriber = Callable[[TotalsLedger], None]


def _ledger_log_fields(ledger: TotalsLedger) -> dict[str, object]:
    return {
        "version": ledger.version,
        "grand_total": str(ledger.grand_total),
        "grand_kilograms": str(ledger.grand_kilograms),
        "goats_total": str(ledger.goats_totals.total),
    }


class TotalsService:
    """Owns the current stored-totals snapshot and every operation that changes it.

    Each mutation builds a complete new ledger from the in-memory snapshot, persists
    it as the only row in ``saved_totals``, and only then swaps the in-memory copy and
    notifies subscribers. Operations are serialized within the process; across
    processes the last write wins unless conflict detection is enabled.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        *,
        accountant: TotalsAccountant | None = None,
        conflict_detection: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self.accountant = accountant or TotalsAccountant()
        self.conflict_detection = conflict_detection
        self._clock = clock or (lambda: datetime.now(UTC))
        self._ledger = TotalsLedger.zero()
        self._loaded = False
        self._lock = threading.RLock()
        self._subscribers: list[TotalsSubscriber] = []

    @classmethod
    def from_settings(cls, settings: Settings, *, db_path: str | None = None) -> TotalsService:
        return cls(
            UnitOfWorkFactory(db_path or settings.state_db_path),
            accountant=TotalsAccountant(decimal_places=settings.totals_decimal_places),
            conflict_detection=settings.ledger_conflict_detection,
        )

    @property
    def snapshot(self) -> TotalsLedger:
        return self._ledger

    def subscribe(self, callback: TotalsSubscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def load(self) -> TotalsLedger:
        with self._lock, with_operation_context("load_stored_totals"):
            with self._uow_factory() as uow:
                stored = uow.totals.get_latest()
            if stored is None:
                logger.info("stored_totals_missing_using_zero")
                stored = TotalsLedger.zero(saved_at=self._clock())
            else:
                logger.info("stored_totals_loaded", extra={"extra": _ledger_log_fields(stored)})
            self._ledger = stored
            self._loaded = True
            return stored

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _read_entries(self, **filters: object) -> list[InventoryEntry]:
        with self._uow_factory() as uow:
            return uow.entries.list_entries(**filters)

    def _commit(self, candidate: TotalsLedger) -> TotalsLedger:
        current = self._ledger
        stamped = candidate.stamped(saved_at=self._clock(), version=current.version + 1)
        expected_version = current.version if self.conflict_detection else None
        try:
            with self._uow_factory() as uow:
                uow.totals.replace(stamped, expected_version=expected_version)
        except PersistenceError:
            logger.error(
                "stored_totals_save_failed",
                exc_info=True,
                extra={"extra": {"version": stamped.version}},
            )
            raise
        self._ledger = stamped
        logger.info("stored_totals_saved", extra={"extra": _ledger_log_fields(stamped)})
        for callback in list(self._subscribers):
            callback(stamped)
        return stamped

    def add_entry(self, entry: InventoryEntry) -> TotalsLedger:
        with self._lock, with_operation_context("add_entry", entry_id=entry.id):
            self._ensure_loaded()
            return self._commit(self.accountant.add(self._ledger, entry))

    def subtract_entry(self, entry: InventoryEntry) -> TotalsLedger:
        with self._lock, with_operation_context("subtract_entry", entry_id=entry.id):
            self._ensure_loaded()
            return self._commit(self.accountant.subtract(self._ledger, entry))

    def replace_entry(self, old: InventoryEntry, new: InventoryEntry) -> TotalsLedger:
        with self._lock, with_operation_context("replace_entry", entry_id=new.id):
            self._ensure_loaded()
            return self._commit(self.accountant.replace(self._ledger, old, new))

    def reset_all(self) -> TotalsLedger:
        with self._lock, with_operation_context("reset_all"):
            self._ensure_loaded()
            ledger = self._commit(self.accountant.reset_all(self._ledger))
            logger.info("stored_totals_reset_all")
            return ledger

    def reset_goats(self) -> TotalsLedger:
        with self._lock, with_operation_context("reset_goats"):
            self._ensure_loaded()
            return self._commit(self.accountant.reset_goats(self._ledger))

    def reset_chiller(self, chiller: int | str) -> TotalsLedger:
        slot = require_chiller(chiller)
        with self._lock, with_operation_context("reset_chiller", chiller=int(slot)):
            self._ensure_loaded()
            entries = self._read_entries(chiller=int(slot))
            ledger = self._commit(self.accountant.reset_chiller(self._ledger, slot, entries))
            # Entries are preserved so shooter and payment history stays intact.
            logger.info(
                "chiller_totals_reset",
                extra={"extra": {"chiller": int(slot), "entries_seen": len(entries)}},
            )
            return ledger

    def partial_loadout(self, chiller: int | str, quantity: object) -> TotalsLedger:
        with self._lock, with_operation_context("partial_loadout", chiller=chiller):
            self._ensure_loaded()
            slot, amount = self.accountant.validate_loadout(self._ledger, chiller, quantity)
            entries = self._read_entries(chiller=int(slot))
            before = self._ledger.chiller(slot)
            ledger = self._commit(
                self.accountant.partial_loadout(self._ledger, slot, amount, entries)
            )
            after = ledger.chiller(slot)
            logger.info(
                "partial_loadout_applied",
                extra={
                    "extra": {
                        "chiller": int(slot),
                        "quantity": str(amount),
                        "kilograms_removed": str(before.kilograms - after.kilograms),
                    }
                },
            )
            return ledger

    def transfer_between_chillers(
        self, from_chiller: int | str, to_chiller: int | str, quantity: object
    ) -> TotalsLedger:
        with self._lock, with_operation_context("transfer_between_chillers", chiller=from_chiller):
            self._ensure_loaded()
            source, target, amount = self.accountant.validate_transfer(
                self._ledger, from_chiller, to_chiller, quantity
            )
            entries = self._read_entries(chiller=int(source))
            ledger = self._commit(
                self.accountant.transfer(self._ledger, source, target, amount, entries)
            )
            logger.info(
                "chiller_transfer_applied",
                extra={
                    "extra": {
                        "from_chiller": int(source),
                        "to_chiller": int(target),
                        "quantity": str(amount),
                    }
                },
            )
            return ledger

    def sync_with_source(self) -> TotalsLedger:
        with self._lock, with_operation_context("sync_with_source"):
            self._ensure_loaded()
            entries = self._read_entries(loaded_out=False)
            fresh = self.accountant.recompute(entries, base=self._ledger)
            drifted = not fresh.buckets_equal(self._ledger)
            ledger = self._commit(fresh)
            logger.info(
                "stored_totals_synced",
                extra={"extra": {"entries": len(entries), "drift_corrected": drifted}},
            )
            return ledger


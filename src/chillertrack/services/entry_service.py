from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from chillertrack.accounting.models import TotalsLedger
from chillertrack.domain.categories import Category, require_chiller
from chillertrack.domain.inventory import InventoryEntry, ensure_utc, new_entry_id
from chillertrack.errors import EntryNotFoundError, ValidationError
from chillertrack.logging_context import with_operation_context
from chillertrack.persistence.uow import UnitOfWork
from chillertrack.services.totals_service import TotalsService

logger = logging.getLogger(__name__)


def _validated_amount(raw: object, *, field_name: str) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise ValidationError(f"{field_name} is required")
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise ValidationError(f"{field_name} must be a number; got {raw!r}") from exc
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field_name} must be a finite number >= 0; got {raw!r}")
    return amount


@dataclass(frozen=True)
class PaidResetResult:
    deleted: int
    last_paid_at: datetime


@dataclass(frozen=True)
class LoadoutResetResult:
    deleted: int
    last_paid_at: datetime | None
    ledger: TotalsLedger


class EntryService:
    """Inventory workflows around the entry log; totals change only via ``TotalsService``."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        totals: TotalsService,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self.totals = totals
        self._clock = clock or (lambda: datetime.now(UTC))

    def list_entries(
        self,
        *,
        chiller: str | int | None = None,
        category: str | None = None,
        loaded_out: bool | None = None,
    ) -> list[InventoryEntry]:
        with self._uow_factory() as uow:
            return uow.entries.list_entries(
                chiller=chiller, category=category, loaded_out=loaded_out
            )

    def get_entry(self, entry_id: str) -> InventoryEntry:
        with self._uow_factory() as uow:
            entry = uow.entries.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def record_entry(
        self,
        *,
        category: str,
        total: object,
        kilograms: object,
        chiller: str | int | None = None,
        worker_name: str | None = None,
        shooter_name: str | None = None,
        created_at: datetime | None = None,
    ) -> tuple[InventoryEntry, TotalsLedger]:
        parsed_category = Category.parse(category)
        chiller_value: str | None = None
        if not parsed_category.is_goat:
            chiller_value = str(int(require_chiller(chiller)))
        entry = InventoryEntry(
            id=new_entry_id(),
            category=parsed_category.value,
            chiller=chiller_value,
            total=_validated_amount(total, field_name="total"),
            kilograms=_validated_amount(kilograms, field_name="kilograms"),
            created_at=ensure_utc(created_at or self._clock()),
            worker_name=(worker_name or "").strip() or None,
            shooter_name=(shooter_name or "").strip() or None,
        )
        with with_operation_context("record_entry", entry_id=entry.id, chiller=chiller_value):
            with self._uow_factory() as uow:
                uow.entries.add_entry(entry)
            logger.info(
                "inventory_entry_recorded",
                extra={
                    "extra": {
                        "category": entry.category,
                        "total": str(entry.total),
                        "kilograms": str(entry.kilograms),
                    }
                },
            )
            ledger = self.totals.add_entry(entry)
        return entry, ledger

    def edit_entry(
        self,
        entry_id: str,
        *,
        total: object = None,
        kilograms: object = None,
        worker_name: str | None = None,
        shooter_name: str | None = None,
    ) -> tuple[InventoryEntry, TotalsLedger]:
        new_total = _validated_amount(total, field_name="total") if total is not None else None
        new_kg = (
            _validated_amount(kilograms, field_name="kilograms") if kilograms is not None else None
        )
        with with_operation_context("edit_entry", entry_id=entry_id):
            with self._uow_factory() as uow:
                old = uow.entries.get_entry(entry_id)
                if old is None:
                    raise EntryNotFoundError(entry_id)
                uow.entries.update_entry(
                    entry_id,
                    total=new_total,
                    kilograms=new_kg,
                    worker_name=worker_name,
                    shooter_name=shooter_name,
                )
                updated = uow.entries.get_entry(entry_id)
            if updated is None:
                raise EntryNotFoundError(entry_id)
            return updated, self.totals.replace_entry(old, updated)

    def delete_entry(self, entry_id: str) -> TotalsLedger:
        with with_operation_context("delete_entry", entry_id=entry_id):
            with self._uow_factory() as uow:
                entry = uow.entries.get_entry(entry_id)
                if entry is None:
                    raise EntryNotFoundError(entry_id)
                uow.entries.delete_entry(entry_id)
            logger.info("inventory_entry_deleted", extra={"extra": {"category": entry.category}})
            return self.totals.subtract_entry(entry)

    def mark_loaded_out(self, entry_id: str) -> InventoryEntry:
        with with_operation_context("mark_loaded_out", entry_id=entry_id):
            with self._uow_factory() as uow:
                if not uow.entries.mark_loaded_out(entry_id):
                    raise EntryNotFoundError(entry_id)
                entry = uow.entries.get_entry(entry_id)
            if entry is None:
                raise EntryNotFoundError(entry_id)
            return entry

    def paid_reset(self, *, cutoff: datetime | None = None) -> PaidResetResult:
        """Clear the entry log up to ``cutoff`` for settlement; stored totals stay as they are."""

        effective_cutoff = ensure_utc(cutoff or self._clock())
        with with_operation_context("paid_reset"):
            with self._uow_factory() as uow:
                deleted = uow.entries.delete_entries(created_before=effective_cutoff)
                uow.entries.set_last_paid_at(effective_cutoff)
            logger.info(
                "paid_reset_completed",
                extra={"extra": {"deleted": deleted, "cutoff": effective_cutoff.isoformat()}},
            )
        return PaidResetResult(deleted=deleted, last_paid_at=effective_cutoff)

    def last_paid_at(self) -> datetime | None:
        with self._uow_factory() as uow:
            return uow.entries.get_last_paid_at()

    def full_reset(self) -> tuple[int, TotalsLedger]:
        with with_operation_context("full_reset"):
            with self._uow_factory() as uow:
                deleted = uow.entries.delete_entries()
            logger.info("inventory_entries_cleared", extra={"extra": {"deleted": deleted}})
            return deleted, self.totals.reset_all()

    def loadout_reset(self) -> LoadoutResetResult:
        """Truck pickup: drop entries recorded before the last Paid, then zero every total.

        Entries at or after the paid stamp stay in the log. With no paid stamp
        nothing is deleted.
        """

        with with_operation_context("loadout_reset"):
            with self._uow_factory() as uow:
                last_paid_at = uow.entries.get_last_paid_at()
                deleted = 0
                if last_paid_at is not None:
                    deleted = uow.entries.delete_entries(
                        created_before=last_paid_at, inclusive=False
                    )
            logger.info(
                "loadout_reset_completed",
                extra={
                    "extra": {
                        "deleted": deleted,
                        "last_paid_at": last_paid_at.isoformat() if last_paid_at else None,
                    }
                },
            )
            ledger = self.totals.reset_all()
        return LoadoutResetResult(deleted=deleted, last_paid_at=last_paid_at, ledger=ledger)

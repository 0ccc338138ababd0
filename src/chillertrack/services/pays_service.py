from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from chillertrack.config import Settings
from chillertrack.domain.categories import is_goat_category, is_kangaroo_category
from chillertrack.domain.inventory import InventoryEntry, to_amount
from chillertrack.persistence.uow import UnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AnimalTally:
    count: Decimal = ZERO
    kilograms: Decimal = ZERO

    def plus(self, entry: InventoryEntry) -> AnimalTally:
        return AnimalTally(
            count=self.count + to_amount(entry.total),
            kilograms=self.kilograms + to_amount(entry.kilograms),
        )


@dataclass(frozen=True)
class PayLine:
    count: Decimal
    kilograms: Decimal
    subtotal: Decimal
    gst: Decimal
    total: Decimal


@dataclass(frozen=True)
class ShooterPayment:
    shooter: str
    kangaroos: PayLine
    goats: PayLine

    @property
    def grand_total(self) -> Decimal:
        return self.kangaroos.total + self.goats.total


@dataclass(frozen=True)
class CommissionSummary:
    kangaroo_count: Decimal
    goat_count: Decimal
    kangaroo_kilograms: Decimal
    goat_kilograms: Decimal
    kangaroo_commission: Decimal
    goat_commission: Decimal
    subtotal: Decimal
    gst: Decimal
    total: Decimal


def _tally(entries: Iterable[InventoryEntry]) -> tuple[AnimalTally, AnimalTally]:
    kangaroos = AnimalTally()
    goats = AnimalTally()
    for entry in entries:
        if is_kangaroo_category(entry.category):
            kangaroos = kangaroos.plus(entry)
        elif is_goat_category(entry.category):
            goats = goats.plus(entry)
    return kangaroos, goats


class PaysService:
    """Shooter pay sheets and depot commission over the active (not loaded out) entries."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        *,
        kangaroo_price_per_kg: Decimal,
        goat_price_per_kg: Decimal,
        commission_per_kg: Decimal,
        gst_rate: Decimal,
    ) -> None:
        self._uow_factory = uow_factory
        self.kangaroo_price_per_kg = kangaroo_price_per_kg
        self.goat_price_per_kg = goat_price_per_kg
        self.commission_per_kg = commission_per_kg
        self.gst_rate = gst_rate

    @classmethod
    def from_settings(cls, settings: Settings, *, db_path: str | None = None) -> PaysService:
        return cls(
            UnitOfWorkFactory(db_path or settings.state_db_path, read_only=True),
            kangaroo_price_per_kg=settings.kangaroo_price_per_kg,
            goat_price_per_kg=settings.goat_price_per_kg,
            commission_per_kg=settings.commission_per_kg,
            gst_rate=settings.gst_rate,
        )

    def _active_entries(self) -> list[InventoryEntry]:
        with self._uow_factory() as uow:
            return uow.entries.list_entries(loaded_out=False)

    def _pay_line(self, tally: AnimalTally, price_per_kg: Decimal) -> PayLine:
        subtotal = to_cents(tally.kilograms * price_per_kg)
        gst = to_cents(subtotal * self.gst_rate)
        return PayLine(
            count=tally.count,
            kilograms=tally.kilograms,
            subtotal=subtotal,
            gst=gst,
            total=subtotal + gst,
        )

    def shooter_payments(
        self, entries: Iterable[InventoryEntry] | None = None
    ) -> list[ShooterPayment]:
        active = [
            entry
            for entry in (self._active_entries() if entries is None else entries)
            if not entry.loaded_out
        ]
        by_shooter: dict[str, list[InventoryEntry]] = {}
        for entry in active:
            name = entry.attributed_to
            if not name:
                continue
            by_shooter.setdefault(name, []).append(entry)

        payments = []
        for shooter, shooter_entries in by_shooter.items():
            kangaroos, goats = _tally(shooter_entries)
            payments.append(
                ShooterPayment(
                    shooter=shooter,
                    kangaroos=self._pay_line(kangaroos, self.kangaroo_price_per_kg),
                    goats=self._pay_line(goats, self.goat_price_per_kg),
                )
            )
        logger.info("shooter_payments_computed", extra={"extra": {"shooters": len(payments)}})
        return payments

    def commission_summary(
        self, entries: Iterable[InventoryEntry] | None = None
    ) -> CommissionSummary:
        # Unattributed entries still earn the depot its commission.
        active = [
            entry
            for entry in (self._active_entries() if entries is None else entries)
            if not entry.loaded_out
        ]
        kangaroos, goats = _tally(active)
        kangaroo_commission = to_cents(kangaroos.kilograms * self.commission_per_kg)
        goat_commission = to_cents(goats.kilograms * self.commission_per_kg)
        subtotal = kangaroo_commission + goat_commission
        gst = to_cents(subtotal * self.gst_rate)
        return CommissionSummary(
            kangaroo_count=kangaroos.count,
            goat_count=goats.count,
            kangaroo_kilograms=kangaroos.kilograms,
            goat_kilograms=goats.kilograms,
            kangaroo_commission=kangaroo_commission,
            goat_commission=goat_commission,
            subtotal=subtotal,
            gst=gst,
            total=subtotal + gst,
        )

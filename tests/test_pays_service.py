from __future__ import annotations

from decimal import Decimal

from chillertrack.config import Settings
from chillertrack.persistence.uow import UnitOfWorkFactory
from chillertrack.services.entry_service import EntryService
from chillertrack.services.pays_service import PaysService, to_cents


def _pays(uow_factory: UnitOfWorkFactory) -> PaysService:
    return PaysService(
        uow_factory,
        kangaroo_price_per_kg=Decimal("2.50"),
        goat_price_per_kg=Decimal("3.00"),
        commission_per_kg=Decimal("0.50"),
        gst_rate=Decimal("0.10"),
    )


def test_shooter_payments_group_by_shooter_then_worker(
    entry_service: EntryService, uow_factory: UnitOfWorkFactory
) -> None:
    entry_service.record_entry(
        category="Red Kangaroos", total=4, kilograms=100, chiller=1, shooter_name="Dave"
    )
    entry_service.record_entry(category="Goats", total=2, kilograms=30, worker_name="Dave")
    entry_service.record_entry(
        category="Eastern Grey", total=1, kilograms=21.3, chiller=2, worker_name="Kim"
    )
    entry_service.record_entry(category="Red", total=9, kilograms=90, chiller=3)

    payments = {p.shooter: p for p in _pays(uow_factory).shooter_payments()}

    assert set(payments) == {"Dave", "Kim"}
    dave = payments["Dave"]
    assert dave.kangaroos.count == Decimal("4")
    assert dave.kangaroos.subtotal == Decimal("250.00")
    assert dave.kangaroos.gst == Decimal("25.00")
    assert dave.kangaroos.total == Decimal("275.00")
    assert dave.goats.subtotal == Decimal("90.00")
    assert dave.goats.total == Decimal("99.00")
    assert dave.grand_total == Decimal("374.00")
    kim = payments["Kim"]
    # 21.3kg * 2.50 = 53.25, GST 5.325 rounds half up.
    assert kim.kangaroos.subtotal == Decimal("53.25")
    assert kim.kangaroos.gst == Decimal("5.33")
    assert kim.kangaroos.total == Decimal("58.58")
    assert kim.goats.total == Decimal("0.00")


def test_loaded_out_entries_are_not_paid(
    entry_service: EntryService, uow_factory: UnitOfWorkFactory
) -> None:
    entry, _ = entry_service.record_entry(
        category="Red", total=1, kilograms=10, chiller=1, shooter_name="Dave"
    )
    entry_service.mark_loaded_out(entry.id)

    assert _pays(uow_factory).shooter_payments() == []


def test_commission_counts_unattributed_entries(
    entry_service: EntryService, uow_factory: UnitOfWorkFactory
) -> None:
    entry_service.record_entry(category="Western Grey", total=2, kilograms=40, chiller=2)
    entry_service.record_entry(category="Goats", total=1, kilograms=15, shooter_name="Kim")

    summary = _pays(uow_factory).commission_summary()

    assert summary.kangaroo_count == Decimal("2")
    assert summary.goat_kilograms == Decimal("15")
    assert summary.kangaroo_commission == Decimal("20.00")
    assert summary.goat_commission == Decimal("7.50")
    assert summary.subtotal == Decimal("27.50")
    assert summary.gst == Decimal("2.75")
    assert summary.total == Decimal("30.25")


def test_from_settings_reads_prices(db_path: str) -> None:
    settings = Settings(KANGAROO_PRICE_PER_KG="4.10", GST_RATE="0")

    pays = PaysService.from_settings(settings, db_path=db_path)

    assert pays.kangaroo_price_per_kg == Decimal("4.10")
    assert pays.goat_price_per_kg == Decimal("3.00")
    assert pays.gst_rate == Decimal("0")
    assert pays.commission_summary().total == Decimal("0.00")


def test_to_cents_rounds_half_up() -> None:
    assert to_cents(Decimal("0.125")) == Decimal("0.13")
    assert to_cents(Decimal("0.124")) == Decimal("0.12")

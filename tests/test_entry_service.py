from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from chillertrack.accounting.models import Bucket
from chillertrack.domain.categories import ChillerSlot, Species
from chillertrack.errors import EntryNotFoundError, ValidationError
from chillertrack.services.entry_service import EntryService
from chillertrack.services.totals_service import TotalsService


def test_record_entry_normalizes_and_updates_totals(entry_service: EntryService) -> None:
    entry, ledger = entry_service.record_entry(
        category="red kangaroos",
        total="5",
        kilograms="25.5",
        chiller=" 1 ",
        shooter_name="  Dave ",
    )

    assert entry.category == "Red"
    assert entry.chiller == "1"
    assert entry.shooter_name == "Dave"
    assert entry.worker_name is None
    assert ledger.chiller(ChillerSlot.ONE) == Bucket(Decimal("5"), Decimal("25.5"))
    assert entry_service.get_entry(entry.id) == entry


def test_record_goat_entry_ignores_chiller(entry_service: EntryService) -> None:
    entry, ledger = entry_service.record_entry(
        category="Goats", total=3, kilograms=9, chiller="2"
    )

    assert entry.chiller is None
    assert ledger.goats_totals == Bucket(Decimal("3"), Decimal("9"))
    assert ledger.chiller(ChillerSlot.TWO) == Bucket()


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"category": "Wallaby", "total": 1, "kilograms": 1, "chiller": 1}, "unknown category"),
        ({"category": "Red", "total": 1, "kilograms": 1, "chiller": None}, "chiller must be"),
        ({"category": "Red", "total": -1, "kilograms": 1, "chiller": 1}, "total must be"),
        ({"category": "Red", "total": 1, "kilograms": "lots", "chiller": 1}, "kilograms must be"),
        ({"category": "Red", "total": None, "kilograms": 1, "chiller": 1}, "total is required"),
    ],
)
def test_record_entry_rejects_bad_input(
    entry_service: EntryService, kwargs: dict, message: str
) -> None:
    with pytest.raises(ValidationError, match=message):
        entry_service.record_entry(**kwargs)

    assert entry_service.list_entries() == []
    assert entry_service.totals.snapshot.version == 0


def test_edit_entry_replaces_contribution(entry_service: EntryService) -> None:
    entry, _ = entry_service.record_entry(
        category="Eastern Grey", total=4, kilograms=20, chiller=3
    )

    updated, ledger = entry_service.edit_entry(entry.id, total="3", kilograms="18")

    assert updated.total == Decimal("3")
    assert ledger.chiller(ChillerSlot.THREE) == Bucket(Decimal("3"), Decimal("18"))
    assert ledger.kangaroo_breakdown[Species.EASTERN] == Bucket(Decimal("3"), Decimal("18"))


def test_edit_names_only_keeps_totals(entry_service: EntryService) -> None:
    entry, before = entry_service.record_entry(
        category="Red", total=2, kilograms=10, chiller=1, worker_name="Sam"
    )

    updated, after = entry_service.edit_entry(entry.id, shooter_name="Alex")

    assert updated.shooter_name == "Alex"
    assert updated.worker_name == "Sam"
    assert after.buckets_equal(before)


def test_delete_entry_subtracts(entry_service: EntryService) -> None:
    keep, _ = entry_service.record_entry(category="Red", total=2, kilograms=10, chiller=1)
    drop, _ = entry_service.record_entry(category="Red", total=1, kilograms=6, chiller=1)

    ledger = entry_service.delete_entry(drop.id)

    assert ledger.chiller(ChillerSlot.ONE) == Bucket(Decimal("2"), Decimal("10"))
    assert [e.id for e in entry_service.list_entries()] == [keep.id]


def test_unknown_entry_ids_raise_not_found(entry_service: EntryService) -> None:
    with pytest.raises(EntryNotFoundError):
        entry_service.delete_entry("nope")
    with pytest.raises(EntryNotFoundError):
        entry_service.edit_entry("nope", total=1)
    with pytest.raises(EntryNotFoundError):
        entry_service.mark_loaded_out("nope")
    with pytest.raises(EntryNotFoundError):
        entry_service.get_entry("nope")


def test_mark_loaded_out_leaves_totals(entry_service: EntryService) -> None:
    entry, before = entry_service.record_entry(category="Red", total=2, kilograms=10, chiller=1)

    flagged = entry_service.mark_loaded_out(entry.id)

    assert flagged.loaded_out is True
    assert entry_service.totals.snapshot is before
    assert entry_service.list_entries(loaded_out=False) == []


def test_paid_reset_clears_log_up_to_cutoff_but_keeps_totals(
    entry_service: EntryService,
) -> None:
    start = datetime(2024, 3, 1, 6, 0, tzinfo=UTC)
    old, _ = entry_service.record_entry(
        category="Red", total=2, kilograms=10, chiller=1, created_at=start
    )
    new, before = entry_service.record_entry(
        category="Goats", total=1, kilograms=3, created_at=start + timedelta(days=1)
    )

    result = entry_service.paid_reset(cutoff=start + timedelta(hours=1))

    assert result.deleted == 1
    assert [e.id for e in entry_service.list_entries()] == [new.id]
    assert entry_service.last_paid_at() == start + timedelta(hours=1)
    assert entry_service.totals.snapshot is before


def test_full_reset_clears_entries_and_totals(entry_service: EntryService) -> None:
    entry_service.record_entry(category="Red", total=2, kilograms=10, chiller=1)
    entry_service.record_entry(category="Goats", total=1, kilograms=3)

    deleted, ledger = entry_service.full_reset()

    assert deleted == 2
    assert entry_service.list_entries() == []
    assert ledger.grand_total == Decimal("0")
    assert ledger.grand_kilograms == Decimal("0")


def test_recorded_entries_resync_to_same_totals(
    entry_service: EntryService, totals_service: TotalsService
) -> None:
    entry_service.record_entry(category="Red", total=2, kilograms=10, chiller=1)
    entry_service.record_entry(category="Western Grey", total=3, kilograms=27, chiller=4)
    entry_service.record_entry(category="Goats", total=1, kilograms=3)
    before = totals_service.snapshot

    after = totals_service.sync_with_source()

    assert after.buckets_equal(before)
    assert after.version == before.version + 1


def test_loadout_reset_drops_entries_before_last_paid(entry_service: EntryService) -> None:
    paid_at = datetime(2024, 3, 2, 12, 0, tzinfo=UTC)
    entry_service.paid_reset(cutoff=paid_at)
    entry_service.record_entry(
        category="Red", total=2, kilograms=10, chiller=1, created_at=paid_at - timedelta(hours=1)
    )
    at_stamp, _ = entry_service.record_entry(
        category="Goats", total=1, kilograms=3, created_at=paid_at
    )
    after, _ = entry_service.record_entry(
        category="Eastern Grey", total=1, kilograms=8, chiller=2,
        created_at=paid_at + timedelta(hours=1),
    )

    result = entry_service.loadout_reset()

    assert result.deleted == 1
    assert result.last_paid_at == paid_at
    assert sorted(e.id for e in entry_service.list_entries()) == sorted([at_stamp.id, after.id])
    assert result.ledger.grand_total == Decimal("0")
    assert result.ledger.goats_totals == Bucket()
    assert entry_service.totals.snapshot is result.ledger


def test_loadout_reset_without_paid_stamp_keeps_entries(entry_service: EntryService) -> None:
    entry_service.record_entry(category="Red", total=2, kilograms=10, chiller=1)

    result = entry_service.loadout_reset()

    assert result.deleted == 0
    assert result.last_paid_at is None
    assert len(entry_service.list_entries()) == 1
    assert result.ledger.chiller(ChillerSlot.ONE) == Bucket()

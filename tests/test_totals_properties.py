from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from chillertrack.accounting import TotalsAccountant, TotalsLedger
from chillertrack.accounting.models import ZERO
from chillertrack.domain.categories import CHILLER_SLOTS
from chillertrack.domain.inventory import InventoryEntry

CATEGORIES = ["Red", "Eastern Grey", "Western Grey Kangaroos", "Goats", "Wallaby"]
CHILLERS = ["1", "2", "3", "4", "9", None]

amounts = st.decimals(min_value=-10_000, max_value=10_000, places=2, allow_nan=False)


@st.composite
def entries(draw, chiller=st.sampled_from(CHILLERS)):
    return InventoryEntry(
        id=draw(st.uuids()).hex,
        category=draw(st.sampled_from(CATEGORIES)),
        total=draw(amounts),
        kilograms=draw(amounts),
        chiller=draw(chiller),
        created_at=datetime(2024, 3, 1, tzinfo=UTC),
        loaded_out=draw(st.booleans()),
    )


def _all_buckets(ledger: TotalsLedger):
    yield from ledger.chiller_totals.values()
    yield ledger.goats_totals
    yield from ledger.kangaroo_breakdown.values()


def _non_negative(ledger: TotalsLedger) -> bool:
    return all(b.total >= ZERO and b.kilograms >= ZERO for b in _all_buckets(ledger))


@given(st.lists(st.tuples(st.booleans(), entries()), max_size=25))
def test_counters_never_go_negative(operations) -> None:
    accountant = TotalsAccountant()
    ledger = TotalsLedger.zero()
    for subtract, entry in operations:
        if subtract:
            ledger = accountant.subtract(ledger, entry)
        else:
            ledger = accountant.add(ledger, entry)
        assert _non_negative(ledger)


@given(st.lists(entries(), max_size=15), entries())
def test_subtract_undoes_add(existing, entry) -> None:
    accountant = TotalsAccountant()
    ledger = accountant.recompute([e for e in existing if not e.loaded_out])

    assert accountant.subtract(accountant.add(ledger, entry), entry).buckets_equal(ledger)


@given(st.lists(entries(), max_size=20))
def test_recompute_is_idempotent_and_matches_adds(items) -> None:
    accountant = TotalsAccountant()
    stale = InventoryEntry(
        id="stale", category="Red", total=Decimal("99"), kilograms=Decimal("9"), chiller="1"
    )
    dirty = accountant.add(TotalsLedger.zero(), stale)

    first = accountant.recompute(items, base=dirty)
    second = accountant.recompute(items, base=first)

    expected = TotalsLedger.zero()
    for entry in items:
        if not entry.loaded_out:
            expected = accountant.add(expected, entry)
    assert first.buckets_equal(second)
    assert first.buckets_equal(expected)


@given(st.lists(entries(), max_size=20))
def test_reset_all_zeroes_everything(items) -> None:
    accountant = TotalsAccountant()

    cleared = accountant.reset_all(accountant.recompute(items))

    assert all(b.total == ZERO and b.kilograms == ZERO for b in _all_buckets(cleared))


@settings(max_examples=75)
@given(
    st.lists(entries(chiller=st.just("2")), min_size=1, max_size=10),
    st.sampled_from([s for s in CHILLER_SLOTS if int(s) != 2]),
    st.integers(min_value=1, max_value=50),
)
def test_transfer_conserves_count_and_weight(source_entries, target, quantity) -> None:
    accountant = TotalsAccountant()
    kangaroos = [e.with_changes(category="Red", loaded_out=False) for e in source_entries]
    ledger = accountant.recompute(kangaroos)
    source = CHILLER_SLOTS[1]
    available = ledger.chiller(source).total
    if available < quantity or ledger.chiller(source).total <= ZERO:
        return

    moved = accountant.transfer(ledger, source, target, Decimal(quantity), kangaroos)

    assert moved.grand_total == ledger.grand_total
    assert moved.grand_kilograms == ledger.grand_kilograms
    assert moved.kangaroo_breakdown == ledger.kangaroo_breakdown
    assert _non_negative(moved)


@settings(max_examples=75)
@given(
    st.lists(entries(chiller=st.just("1")), min_size=1, max_size=10),
    st.integers(min_value=1, max_value=50),
)
def test_loadout_never_removes_more_than_available(source_entries, quantity) -> None:
    accountant = TotalsAccountant()
    kangaroos = [e.with_changes(loaded_out=False, category="Eastern Grey") for e in source_entries]
    ledger = accountant.recompute(kangaroos)
    slot = CHILLER_SLOTS[0]
    before = ledger.chiller(slot)
    if before.total < quantity:
        return

    after = accountant.partial_loadout(ledger, slot, Decimal(quantity), kangaroos)

    assert after.chiller(slot).total == before.total - quantity
    assert ZERO <= after.chiller(slot).kilograms <= before.kilograms
    assert _non_negative(after)

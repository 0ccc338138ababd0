from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from chillertrack.accounting.models import (
    DEFAULT_DECIMAL_PLACES,
    ZERO,
    Bucket,
    TotalsLedger,
    quantize_amount,
)
from chillertrack.domain.categories import (
    SPECIES_KEYS,
    ChillerSlot,
    Species,
    is_goat_category,
    require_chiller,
    resolve_chiller,
    resolve_species,
)
from chillertrack.domain.inventory import InventoryEntry, to_amount
from chillertrack.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryClassification:
    is_goat: bool
    chiller: ChillerSlot
    species: Species


def classify_entry(entry: InventoryEntry, *, warn: bool = True) -> EntryClassification:
    """Classify an entry on the chiller axis and the species axis independently.

    Never raises: an axis that cannot be resolved comes back UNCLASSIFIED and the
    caller skips it.
    """

    if is_goat_category(entry.category):
        return EntryClassification(
            is_goat=True, chiller=ChillerSlot.UNCLASSIFIED, species=Species.UNCLASSIFIED
        )

    chiller = resolve_chiller(entry.chiller)
    species = resolve_species(entry.category)
    if warn and chiller is ChillerSlot.UNCLASSIFIED:
        _warn_data_shape(entry, axis="chiller", raw_value=entry.chiller)
    if warn and species is Species.UNCLASSIFIED:
        _warn_data_shape(entry, axis="species", raw_value=entry.category)
    return EntryClassification(is_goat=False, chiller=chiller, species=species)


def _warn_data_shape(entry: InventoryEntry, *, axis: str, raw_value: object) -> None:
    logger.warning(
        "data_shape_warning",
        extra={
            "extra": {
                "axis": axis,
                "entry_id": entry.id,
                "raw_value": None if raw_value is None else str(raw_value),
            }
        },
    )


@dataclass(frozen=True)
class ChillerAggregate:
    """Entry-store view of one chiller: item count, weight and per-species split."""

    total: Decimal = ZERO
    kilograms: Decimal = ZERO
    entry_count: int = 0
    species: dict[Species, Bucket] = field(
        default_factory=lambda: {species: Bucket() for species in SPECIES_KEYS}
    )


def aggregate_entries(entries: Iterable[InventoryEntry]) -> ChillerAggregate:
    total = ZERO
    kilograms = ZERO
    count = 0
    species_totals = {species: Bucket() for species in SPECIES_KEYS}
    for entry in entries:
        entry_total = to_amount(entry.total)
        entry_kg = to_amount(entry.kilograms)
        total += entry_total
        kilograms += entry_kg
        count += 1
        species = resolve_species(entry.category)
        if species is not Species.UNCLASSIFIED:
            species_totals[species] = species_totals[species].plus(entry_total, entry_kg)
    return ChillerAggregate(
        total=total, kilograms=kilograms, entry_count=count, species=species_totals
    )


def _coerce_quantity(quantity: object) -> Decimal:
    amount = to_amount(quantity)
    if amount <= ZERO:
        raise ValidationError(f"quantity must be greater than zero; got {quantity!r}")
    return amount


class TotalsAccountant:
    """Pure ledger transitions. Every method returns a new ledger and never mutates input."""

    def __init__(self, *, decimal_places: int = DEFAULT_DECIMAL_PLACES) -> None:
        self.decimal_places = decimal_places

    def _q(self, value: Decimal) -> Decimal:
        return quantize_amount(value, self.decimal_places)

    def _apply(self, ledger: TotalsLedger, entry: InventoryEntry, *, subtract: bool) -> TotalsLedger:
        total = to_amount(entry.total)
        kilograms = to_amount(entry.kilograms)
        classification = classify_entry(entry)

        chillers = dict(ledger.chiller_totals)
        breakdown = dict(ledger.kangaroo_breakdown)
        goats = ledger.goats_totals

        def _move(bucket: Bucket) -> Bucket:
            if subtract:
                return bucket.minus(total, kilograms)
            return bucket.plus(total, kilograms)

        if classification.is_goat:
            goats = _move(goats)
        else:
            if classification.chiller is not ChillerSlot.UNCLASSIFIED:
                chillers[classification.chiller] = _move(chillers[classification.chiller])
            if classification.species is not Species.UNCLASSIFIED:
                breakdown[classification.species] = _move(breakdown[classification.species])

        return TotalsLedger(
            chiller_totals=chillers,
            goats_totals=goats,
            kangaroo_breakdown=breakdown,
            saved_at=ledger.saved_at,
            version=ledger.version,
        )

    def add(self, ledger: TotalsLedger, entry: InventoryEntry) -> TotalsLedger:
        return self._apply(ledger, entry, subtract=False)

    def subtract(self, ledger: TotalsLedger, entry: InventoryEntry) -> TotalsLedger:
        return self._apply(ledger, entry, subtract=True)

    def replace(
        self, ledger: TotalsLedger, old: InventoryEntry, new: InventoryEntry
    ) -> TotalsLedger:
        return self.add(self.subtract(ledger, old), new)

    def reset_all(self, ledger: TotalsLedger) -> TotalsLedger:
        return TotalsLedger.zero(saved_at=ledger.saved_at, version=ledger.version)

    def reset_goats(self, ledger: TotalsLedger) -> TotalsLedger:
        return TotalsLedger(
            chiller_totals=dict(ledger.chiller_totals),
            goats_totals=Bucket(),
            kangaroo_breakdown=dict(ledger.kangaroo_breakdown),
            saved_at=ledger.saved_at,
            version=ledger.version,
        )

    def reset_chiller(
        self, ledger: TotalsLedger, slot: ChillerSlot, chiller_entries: Iterable[InventoryEntry]
    ) -> TotalsLedger:
        # The chiller bucket is zeroed from the ledger's own value; the breakdown is
        # corrected by subtracting what the entry store attributes to this chiller.
        aggregate = aggregate_entries(chiller_entries)
        chillers = dict(ledger.chiller_totals)
        chillers[slot] = Bucket()
        breakdown = {
            species: bucket.minus(
                aggregate.species[species].total, aggregate.species[species].kilograms
            )
            for species, bucket in ledger.kangaroo_breakdown.items()
        }
        return TotalsLedger(
            chiller_totals=chillers,
            goats_totals=ledger.goats_totals,
            kangaroo_breakdown=breakdown,
            saved_at=ledger.saved_at,
            version=ledger.version,
        )

    def validate_loadout(
        self, ledger: TotalsLedger, chiller: object, quantity: object
    ) -> tuple[ChillerSlot, Decimal]:
        slot = require_chiller(chiller)
        amount = _coerce_quantity(quantity)
        available = ledger.chiller(slot).total
        if amount > available:
            raise ValidationError(
                f"Cannot remove {amount} items. Only {available} items available in "
                f"Chiller {int(slot)} (based on current totals)"
            )
        return slot, amount

    def validate_transfer(
        self, ledger: TotalsLedger, from_chiller: object, to_chiller: object, quantity: object
    ) -> tuple[ChillerSlot, ChillerSlot, Decimal]:
        source = require_chiller(from_chiller)
        target = require_chiller(to_chiller)
        if source is target:
            raise ValidationError("Source and destination chillers must be different")
        amount = _coerce_quantity(quantity)
        available = ledger.chiller(source).total
        if amount > available:
            raise ValidationError(
                f"Cannot transfer {amount} items. Only {available} items available in "
                f"Chiller {int(source)}"
            )
        return source, target, amount

    def _require_items(self, slot: ChillerSlot, aggregate: ChillerAggregate) -> None:
        if aggregate.entry_count == 0 or aggregate.total <= ZERO:
            raise ValidationError(f"No entries found in Chiller {int(slot)}")

    def partial_loadout(
        self,
        ledger: TotalsLedger,
        slot: ChillerSlot,
        quantity: Decimal,
        chiller_entries: Iterable[InventoryEntry],
    ) -> TotalsLedger:
        """Remove ``quantity`` items from a chiller.

        The capacity check uses the ledger, while the weight and species split use the
        entry-store aggregate for the chiller. The two sources can disagree; the
        ledger's buckets are clamped at zero when they do.
        """

        aggregate = aggregate_entries(chiller_entries)
        self._require_items(slot, aggregate)

        avg_weight_per_item = aggregate.kilograms / aggregate.total
        weight_to_remove = self._q(quantity * avg_weight_per_item)

        breakdown = dict(ledger.kangaroo_breakdown)
        for species, share in aggregate.species.items():
            if share.total == ZERO and share.kilograms == ZERO:
                continue
            count_to_remove = self._q(quantity * share.total / aggregate.total)
            kg_to_remove = ZERO
            if aggregate.kilograms > ZERO:
                kg_to_remove = self._q(weight_to_remove * share.kilograms / aggregate.kilograms)
            breakdown[species] = breakdown[species].minus(count_to_remove, kg_to_remove)

        chillers = dict(ledger.chiller_totals)
        chillers[slot] = chillers[slot].minus(quantity, weight_to_remove)
        return TotalsLedger(
            chiller_totals=chillers,
            goats_totals=ledger.goats_totals,
            kangaroo_breakdown=breakdown,
            saved_at=ledger.saved_at,
            version=ledger.version,
        )

    def transfer(
        self,
        ledger: TotalsLedger,
        source: ChillerSlot,
        target: ChillerSlot,
        quantity: Decimal,
        source_entries: Iterable[InventoryEntry],
    ) -> TotalsLedger:
        aggregate = aggregate_entries(source_entries)
        self._require_items(source, aggregate)

        from_bucket = ledger.chiller(source)
        avg_weight_per_item = aggregate.kilograms / aggregate.total
        weight_to_move = min(self._q(quantity * avg_weight_per_item), from_bucket.kilograms)

        chillers = dict(ledger.chiller_totals)
        chillers[source] = from_bucket.minus(quantity, weight_to_move)
        chillers[target] = chillers[target].plus(quantity, weight_to_move)
        return TotalsLedger(
            chiller_totals=chillers,
            goats_totals=ledger.goats_totals,
            kangaroo_breakdown=dict(ledger.kangaroo_breakdown),
            saved_at=ledger.saved_at,
            version=ledger.version,
        )

    def recompute(
        self, entries: Iterable[InventoryEntry], *, base: TotalsLedger | None = None
    ) -> TotalsLedger:
        """Rebuild every counter from scratch using the same rules as ``add``."""

        ledger = TotalsLedger.zero()
        if base is not None:
            ledger = TotalsLedger.zero(saved_at=base.saved_at, version=base.version)
        for entry in entries:
            if entry.loaded_out:
                continue
            ledger = self.add(ledger, entry)
        return ledger

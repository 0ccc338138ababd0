from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from chillertrack.domain.categories import CHILLER_SLOTS, SPECIES_KEYS, ChillerSlot, Species
from chillertrack.domain.inventory import ensure_utc, to_amount

ZERO = Decimal("0")
DEFAULT_DECIMAL_PLACES = 4


def quantize_amount(value: Decimal, places: int = DEFAULT_DECIMAL_PLACES) -> Decimal:
    """Centralized rounding for proportional shares so repeated splits stay deterministic."""

    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


def clamp_non_negative(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


@dataclass(frozen=True)
class Bucket:
    total: Decimal = ZERO
    kilograms: Decimal = ZERO

    def plus(self, total: Decimal, kilograms: Decimal) -> Bucket:
        return Bucket(total=self.total + total, kilograms=self.kilograms + kilograms)

    def minus(self, total: Decimal, kilograms: Decimal) -> Bucket:
        return Bucket(
            total=clamp_non_negative(self.total - total),
            kilograms=clamp_non_negative(self.kilograms - kilograms),
        )

    def to_payload(self) -> dict[str, str]:
        return {"total": str(self.total), "kilograms": str(self.kilograms)}

    @classmethod
    def from_payload(cls, payload: object) -> Bucket:
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            total=to_amount(payload.get("total")),
            kilograms=to_amount(payload.get("kilograms")),
        )


def _zero_chillers() -> dict[ChillerSlot, Bucket]:
    return {slot: Bucket() for slot in CHILLER_SLOTS}


def _zero_breakdown() -> dict[Species, Bucket]:
    return {species: Bucket() for species in SPECIES_KEYS}


def chiller_key(slot: ChillerSlot) -> str:
    return f"chiller{int(slot)}"


@dataclass(frozen=True)
class TotalsLedger:
    chiller_totals: dict[ChillerSlot, Bucket] = field(default_factory=_zero_chillers)
    goats_totals: Bucket = field(default_factory=Bucket)
    kangaroo_breakdown: dict[Species, Bucket] = field(default_factory=_zero_breakdown)
    saved_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: int = 0

    def __post_init__(self) -> None:
        if set(self.chiller_totals) != set(CHILLER_SLOTS):
            raise ValueError("chiller_totals must hold exactly chillers 1-4")
        if set(self.kangaroo_breakdown) != set(SPECIES_KEYS):
            raise ValueError("kangaroo_breakdown must hold exactly red, eastern, western")

    @classmethod
    def zero(cls, *, saved_at: datetime | None = None, version: int = 0) -> TotalsLedger:
        return cls(saved_at=saved_at or datetime.now(UTC), version=version)

    def chiller(self, slot: ChillerSlot) -> Bucket:
        return self.chiller_totals[slot]

    @property
    def grand_total(self) -> Decimal:
        return sum((b.total for b in self.chiller_totals.values()), ZERO) + self.goats_totals.total

    @property
    def grand_kilograms(self) -> Decimal:
        return (
            sum((b.kilograms for b in self.chiller_totals.values()), ZERO)
            + self.goats_totals.kilograms
        )

    def buckets_equal(self, other: TotalsLedger) -> bool:
        """Compare counters only, ignoring save metadata."""

        return (
            self.chiller_totals == other.chiller_totals
            and self.goats_totals == other.goats_totals
            and self.kangaroo_breakdown == other.kangaroo_breakdown
        )

    def stamped(self, *, saved_at: datetime, version: int) -> TotalsLedger:
        return TotalsLedger(
            chiller_totals=dict(self.chiller_totals),
            goats_totals=self.goats_totals,
            kangaroo_breakdown=dict(self.kangaroo_breakdown),
            saved_at=ensure_utc(saved_at),
            version=version,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "chiller_totals": {
                chiller_key(slot): bucket.to_payload()
                for slot, bucket in sorted(self.chiller_totals.items())
            },
            "goats_totals": self.goats_totals.to_payload(),
            "kangaroo_breakdown": {
                species.value: self.kangaroo_breakdown[species].to_payload()
                for species in SPECIES_KEYS
            },
            "saved_at": self.saved_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_parts(
        cls,
        *,
        chiller_totals: object,
        goats_totals: object,
        kangaroo_breakdown: object,
        saved_at: datetime,
        version: int,
    ) -> TotalsLedger:
        """Rebuild a ledger from stored JSON parts; missing buckets fall back to zero."""

        chillers = chiller_totals if isinstance(chiller_totals, Mapping) else {}
        breakdown = kangaroo_breakdown if isinstance(kangaroo_breakdown, Mapping) else {}
        return cls(
            chiller_totals={
                slot: Bucket.from_payload(chillers.get(chiller_key(slot))) for slot in CHILLER_SLOTS
            },
            goats_totals=Bucket.from_payload(goats_totals),
            kangaroo_breakdown={
                species: Bucket.from_payload(breakdown.get(species.value))
                for species in SPECIES_KEYS
            },
            saved_at=ensure_utc(saved_at),
            version=int(version),
        )

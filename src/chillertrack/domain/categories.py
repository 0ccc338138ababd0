from __future__ import annotations

from decimal import Decimal
from enum import IntEnum, StrEnum

from chillertrack.errors import ValidationError


class Category(StrEnum):
    RED = "Red"
    WESTERN_GREY = "Western Grey"
    EASTERN_GREY = "Eastern Grey"
    GOATS = "Goats"

    @classmethod
    def parse(cls, raw: object) -> Category:
        """Validate a category at the entry store boundary.

        Accepts the short names and the "... Kangaroos" spellings, case-insensitively.
        """

        cleaned = " ".join(str(raw or "").split()).casefold()
        if cleaned.endswith(" kangaroos"):
            cleaned = cleaned[: -len(" kangaroos")]
        for member in cls:
            if member.value.casefold() == cleaned:
                return member
        raise ValidationError(f"unknown category: {raw!r}")

    @property
    def is_goat(self) -> bool:
        return self is Category.GOATS


KANGAROO_CATEGORIES = (
    "Red",
    "Western Grey",
    "Eastern Grey",
    "Red Kangaroos",
    "Western Grey Kangaroos",
    "Eastern Grey Kangaroos",
)
GOAT_CATEGORIES = ("Goats",)

_GOAT_KEYS = frozenset(value.casefold() for value in GOAT_CATEGORIES)


class Species(StrEnum):
    RED = "red"
    EASTERN = "eastern"
    WESTERN = "western"
    UNCLASSIFIED = "unclassified"


# Matched in this order; first hit wins.
SPECIES_KEYS: tuple[Species, ...] = (Species.RED, Species.EASTERN, Species.WESTERN)


class ChillerSlot(IntEnum):
    UNCLASSIFIED = 0
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4


CHILLER_SLOTS: tuple[ChillerSlot, ...] = (
    ChillerSlot.ONE,
    ChillerSlot.TWO,
    ChillerSlot.THREE,
    ChillerSlot.FOUR,
)


def is_goat_category(category: object) -> bool:
    return str(category or "").strip().casefold() in _GOAT_KEYS


def is_kangaroo_category(category: object) -> bool:
    return str(category or "").strip() in KANGAROO_CATEGORIES


def resolve_species(category: object) -> Species:
    lowered = str(category or "").strip().lower()
    for species in SPECIES_KEYS:
        if species.value in lowered:
            return species
    return Species.UNCLASSIFIED


def resolve_chiller(raw: object) -> ChillerSlot:
    """Map numeric or string chiller ids onto a slot; anything else is UNCLASSIFIED."""

    if raw is None or isinstance(raw, bool):
        return ChillerSlot.UNCLASSIFIED
    if isinstance(raw, int):
        candidate = raw
    elif isinstance(raw, float | Decimal):
        try:
            candidate = int(raw)
        except (ValueError, OverflowError):
            return ChillerSlot.UNCLASSIFIED
        if raw != candidate:
            return ChillerSlot.UNCLASSIFIED
    else:
        text = str(raw).strip()
        if not (text.isascii() and text.isdigit()):
            return ChillerSlot.UNCLASSIFIED
        candidate = int(text)
    if 1 <= candidate <= 4:
        return ChillerSlot(candidate)
    return ChillerSlot.UNCLASSIFIED


def require_chiller(raw: object) -> ChillerSlot:
    slot = resolve_chiller(raw)
    if slot is ChillerSlot.UNCLASSIFIED:
        raise ValidationError(f"chiller must be one of 1, 2, 3, 4; got {raw!r}")
    return slot

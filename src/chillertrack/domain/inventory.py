from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from uuid import uuid4


def ensure_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def to_amount(raw: object) -> Decimal:
    """Coerce a stored count/weight to a Decimal >= 0.

    Unparseable, non-finite and negative values count as zero.
    """

    if raw is None or isinstance(raw, bool):
        return Decimal("0")
    if isinstance(raw, Decimal):
        value = raw
    else:
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation:
            return Decimal("0")
    if not value.is_finite() or value < 0:
        return Decimal("0")
    return value


def new_entry_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class InventoryEntry:
    id: str
    category: str
    total: Decimal
    kilograms: Decimal
    chiller: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    loaded_out: bool = False
    paid: bool = False
    worker_name: str | None = None
    shooter_name: str | None = None

    @property
    def attributed_to(self) -> str | None:
        return self.shooter_name or self.worker_name or None

    def with_changes(self, **changes: object) -> InventoryEntry:
        return replace(self, **changes)

"""Stored-totals accounting: ledger model and pure ledger transitions."""

from chillertrack.accounting.ledger import (
    ChillerAggregate,
    EntryClassification,
    TotalsAccountant,
    aggregate_entries,
    classify_entry,
)
from chillertrack.accounting.models import Bucket, TotalsLedger, quantize_amount

__all__ = [
    "Bucket",
    "ChillerAggregate",
    "EntryClassification",
    "TotalsAccountant",
    "TotalsLedger",
    "aggregate_entries",
    "classify_entry",
    "quantize_amount",
]

"""
Ledger core package.

RecordStore is the leaf every other component reads and writes through.
"""

from fintrack.core.aggregator import Aggregator
from fintrack.core.reconciler import BalanceReconciler
from fintrack.core.store import RecordStore
from fintrack.core.synthesizer import (
    TransactionSynthesizer,
    signed_amount,
    transfer_amounts,
)

__all__ = [
    "Aggregator",
    "BalanceReconciler",
    "RecordStore",
    "TransactionSynthesizer",
    "signed_amount",
    "transfer_amounts",
]

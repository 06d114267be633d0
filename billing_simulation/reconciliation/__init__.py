"""
Reconciliation Layer - deterministic post-processing of generated bills.

Submodules:
    index_map.py  → Explicit old → new-or-deleted line index map
    closure.py    → Line, subtotal and balance closure rules
    reconciler.py → DeterministicReconciler
"""

from billing_simulation.reconciliation.closure import (
    close_balance,
    exempt_line_indices,
    heal_line_totals,
)
from billing_simulation.reconciliation.index_map import IndexMap
from billing_simulation.reconciliation.reconciler import DeterministicReconciler

__all__ = [
    "DeterministicReconciler",
    "IndexMap",
    "close_balance",
    "exempt_line_indices",
    "heal_line_totals",
]

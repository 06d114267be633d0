"""
Financial closure rules shared by reconciliation and the Compliance Sentinel.

    line closure     total == round(quantity * unit_price, 2)
    subtotal         subtotal == round(sum(line totals), 2)
    balance closure  grand_total == max(0, subtotal - |adjustments| - |insurance_paid|)

MATH_ERROR bills keep their offending line totals; BALANCE_MISMATCH bills
keep their grand-total discrepancy (the delta survives a changed subtotal).
"""

from typing import Iterable, List

from billing_simulation.core.enums import IrregularityType
from billing_simulation.core.models import BillArtifact
from billing_simulation.core.money import round_currency


def exempt_line_indices(artifact: BillArtifact) -> List[int]:
    """Lines whose broken total is the planted irregularity."""
    if artifact.irregularity != IrregularityType.MATH_ERROR or artifact.ground_truth is None:
        return []
    return artifact.ground_truth.live_indices


def heal_line_totals(artifact: BillArtifact, exempt: Iterable[int] = ()) -> List[int]:
    """Round prices and restore line closure; returns indices of lines that changed."""
    exempt = set(exempt)
    healed = []
    for index, item in enumerate(artifact.line_items):
        item.unit_price = round_currency(item.unit_price)
        if index in exempt:
            item.total = round_currency(item.total)
            continue
        expected = item.expected_total()
        if item.total != expected:
            item.total = expected
            healed.append(index)
    return healed


def close_balance(artifact: BillArtifact) -> List[str]:
    """
    Recompute subtotal, cap adjustments and insurance, and close the balance.

    Returns human-readable notes for every value that changed.
    """
    notes: List[str] = []
    mismatch_delta = 0.0
    if artifact.irregularity == IrregularityType.BALANCE_MISMATCH:
        mismatch_delta = round_currency(artifact.grand_total - artifact.expected_grand_total())

    subtotal = artifact.expected_subtotal()
    if subtotal != artifact.subtotal:
        notes.append(f"Subtotal {artifact.subtotal:.2f} → {subtotal:.2f}")
        artifact.subtotal = subtotal

    adjustments = round_currency(min(abs(artifact.adjustments), subtotal))
    if adjustments != abs(artifact.adjustments):
        notes.append(f"Adjustments capped at {adjustments:.2f}")
    artifact.adjustments = adjustments

    cap = round_currency(max(0.0, subtotal - adjustments))
    insurance_paid = round_currency(min(abs(artifact.insurance_paid), cap))
    if insurance_paid != abs(artifact.insurance_paid):
        notes.append(f"Insurance paid capped at {insurance_paid:.2f}")
    artifact.insurance_paid = insurance_paid

    expected = artifact.expected_grand_total()
    if artifact.irregularity == IrregularityType.BALANCE_MISMATCH:
        artifact.grand_total = round_currency(expected + mismatch_delta)
    elif artifact.grand_total != expected:
        notes.append(f"Grand total {artifact.grand_total:.2f} → {expected:.2f}")
        artifact.grand_total = expected
    return notes

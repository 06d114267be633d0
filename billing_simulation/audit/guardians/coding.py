"""
Coding Guardians - rules about which codes may appear together.

    Unbundling   NCCI edits, revenue-code bundles, fragmented lab panels
    Duplicate    the same service billed more than once on the same day

Author: Shubham Singh
Date: January 2026
"""

from collections import defaultdict
from typing import Dict, List, Tuple

from billing_simulation.audit.guardians.base import AuditContext, Guardian, ScreenResult
from billing_simulation.core.constants import GUARDIAN_DUPLICATE, GUARDIAN_UNBUNDLING, PANEL_COMPONENTS
from billing_simulation.core.enums import Severity
from billing_simulation.core.models import BillArtifact
from billing_simulation.generation.coding_rules import bundled_codes, panel_fragments

EXACT_MATCH = "EXACT_MATCH"
DUPLICATE_PRICE_VARIANCE = "DUPLICATE_PRICE_VARIANCE"
QUANTITY_POTENTIAL = "QUANTITY_POTENTIAL"

# Pulse oximetry is legitimately billed once per revenue centre.
REVENUE_SEPARATED_CODES = ("94760",)


# =============================================================================
# UNBUNDLING
# =============================================================================


class UnbundlingGuardian(Guardian):
    name = GUARDIAN_UNBUNDLING
    rule = "Bundled services and panel components may not be billed separately."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        lines = artifact.line_items
        codes = [item.code for item in lines]
        findings: List[ScreenResult] = []

        dropped = bundled_codes(codes, artifact.care_setting)
        if dropped:
            indices = [i for i, code in enumerate(codes) if code in dropped]
            findings.append(
                ScreenResult.failed(
                    "Bundled Service Billed Separately",
                    f"{sorted(dropped)} are included in other billed services.",
                    overcharge=sum(lines[i].total for i in indices),
                    line_indices=tuple(indices),
                )
            )

        for panel, components in panel_fragments(codes).items():
            indices = [i for i, code in enumerate(codes) if code in components]
            findings.append(
                ScreenResult.failed(
                    "Panel Fragmentation",
                    f"{len(components)} components of panel {panel} billed individually.",
                    severity=Severity.HIGH,
                    overcharge=sum(lines[i].total for i in indices),
                    line_indices=tuple(indices),
                )
            )

        for panel, components in PANEL_COMPONENTS.items():
            if panel not in codes:
                continue
            indices = [i for i, code in enumerate(codes) if code in components]
            if indices:
                findings.append(
                    ScreenResult.failed(
                        "Panel Component Double Billed",
                        f"Panel {panel} billed together with {len(indices)} of its components.",
                        overcharge=sum(lines[i].total for i in indices),
                        line_indices=tuple(indices),
                    )
                )

        return ScreenResult.from_findings(findings, "No bundled or fragmented services.")


# =============================================================================
# DUPLICATE
# =============================================================================


def duplicate_groups(artifact: BillArtifact) -> Dict[Tuple[str, object], List[int]]:
    """Lines sharing code and service date, two or more per group."""
    groups: Dict[Tuple[str, object], List[int]] = defaultdict(list)
    for i, item in enumerate(artifact.line_items):
        if item.code:
            groups[(item.code, item.date)].append(i)

    result = {}
    for key, indices in groups.items():
        if len(indices) < 2:
            continue
        if key[0] in REVENUE_SEPARATED_CODES:
            revenue_codes = {artifact.line_items[i].revenue_code for i in indices}
            if len(revenue_codes) == len(indices):
                continue
        result[key] = indices
    return result


def classify_duplicate(artifact: BillArtifact, indices: List[int]) -> str:
    items = [artifact.line_items[i] for i in indices]
    prices = {item.unit_price for item in items}
    quantities = {item.quantity for item in items}
    if len(prices) > 1:
        return DUPLICATE_PRICE_VARIANCE
    if len(quantities) > 1:
        return QUANTITY_POTENTIAL
    return EXACT_MATCH


class DuplicateGuardian(Guardian):
    """
    Same code, same date, billed twice.

    Exact copies and copies at a different price fail outright. Copies that
    differ only in quantity may be a quantity split and go to the oracle.
    """

    name = GUARDIAN_DUPLICATE
    rule = "A service may be billed only once per date of service."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        groups = duplicate_groups(artifact)
        if not groups:
            return ScreenResult.passed("No repeated code on the same date.")

        findings: List[ScreenResult] = []
        review: List[int] = []
        for (code, day), indices in groups.items():
            kind = classify_duplicate(artifact, indices)
            if kind == QUANTITY_POTENTIAL:
                review.extend(indices)
                continue
            findings.append(
                ScreenResult.failed(
                    kind,
                    f"{code} billed {len(indices)} times on {day} (lines {indices}).",
                    severity=Severity.HIGH if kind == EXACT_MATCH else Severity.MEDIUM,
                    overcharge=sum(artifact.line_items[i].total for i in indices[1:]),
                    line_indices=tuple(indices),
                )
            )

        if findings:
            return ScreenResult.from_findings(findings, "")
        return ScreenResult.review(
            "Same code and date billed with different quantities.", line_indices=tuple(review)
        )

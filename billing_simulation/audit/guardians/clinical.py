"""
Clinical Guardians - rules that compare the bill with the medical record.

    Upcoding       E/M level against documented acuity
    Record Match   billed side (LT / RT / 50) against documented laterality
    Global Period  service dates against admission, discharge, statement
                   and any surgical global period

Each rule still produces a verdict when the medical record is missing,
either from bill-only heuristics or by deferring to the oracle (REVIEW).

Author: Shubham Singh
Date: January 2026
"""

import re
from typing import List, Optional

from billing_simulation.audit.guardians.base import AuditContext, Guardian, ScreenResult
from billing_simulation.core.constants import (
    ACUITY_MAX_EM_LEVEL,
    DIAGNOSTIC_REVENUE_CODES,
    GLOBAL_PERIOD_EXEMPT_MODIFIERS,
    GUARDIAN_GLOBAL_PERIOD,
    GUARDIAN_RECORD_MATCH,
    GUARDIAN_UPCODING,
    LATERALITY_MODIFIERS,
    POST_DISCHARGE_ALLOWED_CODES,
    PRE_ADMISSION_WINDOW_DAYS,
    TURNAROUND_MIN_DAYS,
    TURNAROUND_MIN_LINE_ITEMS,
)
from billing_simulation.core.enums import Severity
from billing_simulation.core.models import BillArtifact, LineItem
from billing_simulation.generation.coding_rules import (
    em_code_for,
    em_level,
    is_em_code,
    is_primary_em_code,
    service_rank,
)

GLOBAL_PERIOD_KEYWORDS = ("post-op", "postoperative", "global period")

_SIDE_PATTERNS = [
    ("BILATERAL", re.compile(r"\bBILATERAL\b|\bBILAT\b")),
    ("LEFT", re.compile(r"\bLEFT\b|\bLT\b")),
    ("RIGHT", re.compile(r"\bRIGHT\b|\bRT\b")),
]


# =============================================================================
# UPCODING
# =============================================================================


class UpcodingGuardian(Guardian):
    """
    Flags E/M levels the encounter does not support.

    With the medical record: any primary E/M above the acuity ceiling
    (Low 3, Medium 4, High 5) fails. Without it: three or more E/M lines
    all at level 5 fail, and a lone level-5 visit with almost no
    diagnostic work goes to the oracle.
    """

    name = GUARDIAN_UPCODING
    rule = "The billed E/M level must be supported by the documented encounter acuity."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        lines = artifact.line_items
        primary = [i for i, item in enumerate(lines) if is_primary_em_code(item.code)]
        if not primary:
            return ScreenResult.passed("No primary E/M line on the bill.")

        all_em = [i for i, item in enumerate(lines) if is_em_code(item.code)]
        if len(all_em) >= 3 and all(em_level(lines[i].code) == 5 for i in all_em):
            return ScreenResult.failed(
                "Pattern Upcoding",
                f"{len(all_em)} E/M lines, all billed at level 5.",
                severity=Severity.HIGH,
                line_indices=tuple(all_em),
            )

        if context.clinical is not None:
            ceiling = ACUITY_MAX_EM_LEVEL[context.clinical.acuity]
            over = [i for i in primary if (em_level(lines[i].code) or 0) > ceiling]
            if not over:
                return ScreenResult.passed(
                    f"E/M level within the {context.clinical.acuity.value} acuity ceiling (level {ceiling})."
                )
            codes = ", ".join(lines[i].code for i in over)
            return ScreenResult.failed(
                "E/M Level Exceeds Acuity",
                f"Billed {codes} for a {context.clinical.acuity.value}-acuity encounter "
                f"(supports level {ceiling} at most).",
                severity=Severity.HIGH,
                overcharge=self._overcharge(artifact, over, ceiling, context),
                line_indices=tuple(over),
            )

        top = [i for i in primary if em_level(lines[i].code) == 5]
        diagnostic = sum(1 for item in lines if item.revenue_code in DIAGNOSTIC_REVENUE_CODES)
        if top and diagnostic <= 1:
            return ScreenResult.review(
                f"Level-5 visit {lines[top[0]].code} with {diagnostic} diagnostic service(s); "
                f"medical record unavailable.",
                line_indices=tuple(top),
            )
        return ScreenResult.passed("E/M level consistent with the billed services.")

    @staticmethod
    def _overcharge(
        artifact: BillArtifact, indices: List[int], ceiling: int, context: AuditContext
    ) -> float:
        if context.resolver is None:
            return 0.0
        expected_code = em_code_for(artifact.care_setting, ceiling)
        rate = context.resolver.resolve_rate(expected_code)
        total = 0.0
        for i in indices:
            item = artifact.line_items[i]
            expected = context.resolver.billed_price(
                rate,
                artifact.payer_class,
                artifact.region,
                item.modifiers,
                location_text=artifact.facility.location_text,
            )
            total += max(0.0, item.unit_price - expected) * item.quantity
        return total


# =============================================================================
# RECORD MATCH
# =============================================================================


def line_side(item: LineItem) -> Optional[str]:
    """LEFT / RIGHT / BILATERAL from the modifiers, else from the description."""
    for modifier in item.modifiers:
        if modifier in LATERALITY_MODIFIERS:
            return LATERALITY_MODIFIERS[modifier]
    description = (item.description or "").upper()
    for side, pattern in _SIDE_PATTERNS:
        if pattern.search(description):
            return side
    return None


class RecordMatchGuardian(Guardian):
    name = GUARDIAN_RECORD_MATCH
    rule = "Sided services must match the laterality documented in the medical record."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        sided = [(i, line_side(item)) for i, item in enumerate(artifact.line_items)]
        sided = [(i, side) for i, side in sided if side]
        if not sided:
            return ScreenResult.passed("No sided services billed.")

        documented = context.clinical.laterality if context.clinical else None
        if not documented:
            return ScreenResult.review(
                "Sided services billed but no laterality documented.",
                line_indices=tuple(i for i, _ in sided),
            )

        documented = documented.upper()
        if documented == "BILATERAL":
            return ScreenResult.passed("Bilateral encounter covers every billed side.")

        mismatched = [(i, side) for i, side in sided if side != documented]
        if not mismatched:
            return ScreenResult.passed(f"All sided services match documented {documented}.")

        detail = ", ".join(
            f"line {i} {artifact.line_items[i].billed_code} billed {side}" for i, side in mismatched
        )
        return ScreenResult.failed(
            "Laterality Mismatch",
            f"Record documents {documented}; {detail}.",
            severity=Severity.MEDIUM,
            overcharge=sum(artifact.line_items[i].total for i, _ in mismatched),
            line_indices=tuple(i for i, _ in mismatched),
        )


# =============================================================================
# GLOBAL PERIOD AND DATES
# =============================================================================


class GlobalPeriodGuardian(Guardian):
    """
    Date integrity of the bill.

    Fails on:
        - a primary E/M inside a prior surgery's global period without an
          exempting modifier (24, 25, 57, 58, 78, 79)
        - service dates in the future
        - services before admission (labs may precede it by up to 3 days)
        - services after discharge other than discharge-day management
        - large bills issued less than a week after discharge
    """

    name = GUARDIAN_GLOBAL_PERIOD
    rule = "Services must fall inside the encounter and outside any surgical global period."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        lines = artifact.line_items
        admission, discharge = artifact.admission_date, artifact.discharge_date
        findings: List[ScreenResult] = []

        recent = context.clinical.recent_procedure if context.clinical else None
        if recent is not None:
            inside = [
                i
                for i, item in enumerate(lines)
                if is_primary_em_code(item.code)
                and recent.performed_on < item.date <= recent.global_period_end
                and not any(m in GLOBAL_PERIOD_EXEMPT_MODIFIERS for m in item.modifiers)
            ]
            if inside:
                findings.append(
                    ScreenResult.failed(
                        "Global Period Violation",
                        f"E/M billed within the {recent.global_days}-day global period of "
                        f"{recent.code} performed {recent.performed_on} (ends {recent.global_period_end}).",
                        severity=Severity.HIGH,
                        overcharge=sum(lines[i].total for i in inside),
                        line_indices=tuple(inside),
                    )
                )

        future = [i for i, item in enumerate(lines) if item.date and item.date > context.today]
        if future:
            findings.append(
                ScreenResult.failed(
                    "Future Service Date",
                    f"{len(future)} line(s) dated after {context.today}.",
                    severity=Severity.HIGH,
                    line_indices=tuple(future),
                )
            )

        if admission is not None:
            early = []
            for i, item in enumerate(lines):
                if item.date is None or item.date >= admission:
                    continue
                too_early = (admission - item.date).days > PRE_ADMISSION_WINDOW_DAYS
                if too_early or service_rank(item.code) != 0:
                    early.append(i)
            if early:
                findings.append(
                    ScreenResult.failed(
                        "Service Before Admission",
                        f"{len(early)} line(s) dated before admission {admission}.",
                        line_indices=tuple(early),
                    )
                )

        if discharge is not None:
            late = [
                i
                for i, item in enumerate(lines)
                if item.date and item.date > discharge and item.code not in POST_DISCHARGE_ALLOWED_CODES
            ]
            if late:
                findings.append(
                    ScreenResult.failed(
                        "Service After Discharge",
                        f"{len(late)} line(s) dated after discharge {discharge}.",
                        line_indices=tuple(late),
                    )
                )

        if (
            discharge is not None
            and artifact.statement_date is not None
            and len(lines) >= TURNAROUND_MIN_LINE_ITEMS
            and (artifact.statement_date - discharge).days < TURNAROUND_MIN_DAYS
        ):
            findings.append(
                ScreenResult.failed(
                    "Implausible Turnaround",
                    f"{len(lines)} line items billed {(artifact.statement_date - discharge).days} "
                    f"day(s) after discharge.",
                    severity=Severity.LOW,
                )
            )

        if findings:
            return ScreenResult.from_findings(findings, "")

        if context.clinical is not None and recent is None:
            narrative = context.clinical.encounter.text.lower()
            if any(keyword in narrative for keyword in GLOBAL_PERIOD_KEYWORDS):
                return ScreenResult.review(
                    "Narrative mentions a recent surgery but no prior procedure is recorded.",
                    line_indices=tuple(i for i, item in enumerate(lines) if is_primary_em_code(item.code)),
                )

        return ScreenResult.passed("All service dates fall inside the encounter.")

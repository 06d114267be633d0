"""
Simulation Judge - meta-audit of the guardians against the intended irregularity.

The Judge is the single arbitration point. It never changes a guardian's
result; it decides whether the audit as a whole behaved:

    ┌──────────────────────────┐
    │ 1. Logic gap             │  recomputed totals disagree by > $1.00
    │                          │  while the Math guardian passed → score 0
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐  each failing result re-checked against
    │ 2. Hallucination check   │  the raw bill: re-screen PASS, line indices
    │                          │  off the bill, cited codes not on the bill
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐  CLEAN: every guardian passed
    │ 3. Mapping check         │  otherwise: the mapped guardian failed
    └────────────┬─────────────┘
                 ▼
    verdict (exactly one) + fidelity score 0-100
    oracle writes the justification; deterministic text on Err

Author: Shubham Singh
Date: January 2026
"""

import copy
import re
from typing import Dict, List, Optional, Set

from loguru import logger

from billing_simulation.audit.guardians import GUARDIAN_REGISTRY, AuditContext, Guardian
from billing_simulation.audit.prompts import JUDGE_TEMPLATE, format_results
from billing_simulation.core.constants import (
    GUARDIAN_MATH,
    IRREGULARITY_GUARDIAN_MAP,
    JUDGE_MATH_TOLERANCE,
    PANEL_COMPONENTS,
)
from billing_simulation.core.enums import IrregularityType, JudgeVerdict, ScreenDecision
from billing_simulation.core.models import (
    BillArtifact,
    GuardianResult,
    SimulationQualityReport,
)
from billing_simulation.core.money import round_currency, sum_currency
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.oracle.schemas import JudgeNarrativeResponse

UNMET_SCORE_CAP = 40
HALLUCINATION_PENALTY = 25
COLLATERAL_PENALTY = 10
SENTINEL_PENALTY = 5

# Five-digit CPT or letter + four digits, not part of a dollar amount.
_CITED_CODE = re.compile(r"(?<![\d.$,])\b(\d{5}|[A-Z]\d{4})\b(?![.,]\d)")


# =============================================================================
# STAGE 1: DETERMINISTIC CHECKS
# =============================================================================


def recomputed_math_mismatch(artifact: BillArtifact, tolerance: float = JUDGE_MATH_TOLERANCE) -> bool:
    """Independent re-computation of line, subtotal and balance closure."""
    for item in artifact.line_items:
        if abs(item.total - round_currency(item.quantity * item.unit_price)) > tolerance:
            return True
    line_sum = sum_currency(item.total for item in artifact.line_items)
    if abs(artifact.subtotal - line_sum) > tolerance:
        return True
    expected_due = round_currency(
        max(0.0, line_sum - abs(artifact.adjustments) - abs(artifact.insurance_paid))
    )
    return abs(artifact.grand_total - expected_due) > tolerance


def known_codes(artifact: BillArtifact, context: AuditContext) -> Set[str]:
    """Codes a finding may legitimately cite."""
    codes = {item.code for item in artifact.line_items if item.code}
    if artifact.estimate is not None:
        codes.update(artifact.estimate.unit_rates)
    for panel, components in PANEL_COMPONENTS.items():
        codes.add(panel)
        codes.update(components)
    if context.clinical is not None and context.clinical.recent_procedure is not None:
        codes.add(context.clinical.recent_procedure.code)
    return codes


def hallucination_reason(
    result: GuardianResult,
    artifact: BillArtifact,
    context: AuditContext,
    guardian: Optional[Guardian],
) -> Optional[str]:
    """Why a failing result is contradicted by the bill, or None when it holds up."""
    details = result.failure_details
    if details is not None:
        size = len(artifact.line_items)
        off_bill = [i for i in details.line_indices if i < 0 or i >= size]
        if off_bill:
            return f"cites line(s) {off_bill} on a {size}-line bill"

    allowed = known_codes(artifact, context)
    text = f"{result.evidence} {details.explanation if details else ''}"
    cited = {code for code in _CITED_CODE.findall(text) if not code.startswith("992")}
    unknown = sorted(cited - allowed)
    if unknown:
        return f"cites code(s) {unknown} not on the bill"

    if guardian is not None:
        screen = guardian.screen(copy.deepcopy(artifact), context)
        if screen.decision == ScreenDecision.PASS:
            return "deterministic re-screen passes"
    return None


# =============================================================================
# STAGE 2: JUDGE
# =============================================================================


class SimulationJudge:
    """
    Scores whether the audit caught what the simulation planted.

    Scoring (after the verdict is fixed):
        start at 100
        cap at 40 when the injection was not met
        -25 per hallucinated failure
        -10 per collateral failure (a real failure of an unexpected guardian)
        -5 per guardian that could not complete
        clamp to 0-100; a logic gap forces 0

    Example:
        >>> report = SimulationJudge(oracle).evaluate(artifact, results, context)
        >>> report.verdict
        <JudgeVerdict.EFFECTIVE: 'Effective'>
    """

    def __init__(
        self,
        oracle: Optional[OracleAdapter] = None,
        guardians: Optional[Dict[str, Guardian]] = None,
    ):
        self._oracle = oracle
        self._guardians = guardians or {name: cls() for name, cls in GUARDIAN_REGISTRY.items()}

    def evaluate(
        self, artifact: BillArtifact, results: List[GuardianResult], context: AuditContext
    ) -> SimulationQualityReport:
        intended = artifact.ground_truth.irregularity if artifact.ground_truth else artifact.irregularity
        by_name = {r.guardian: r for r in results}

        # =====================================================================
        # STAGE 2.1: LOGIC GAP
        # =====================================================================
        math_result = by_name.get(GUARDIAN_MATH)
        logic_gap = recomputed_math_mismatch(artifact) and math_result is not None and math_result.passed

        # =====================================================================
        # STAGE 2.2: HALLUCINATIONS
        # =====================================================================
        hallucinated: Dict[str, str] = {}
        for result in results:
            if result.passed or result.oracle_error:
                continue
            reason = hallucination_reason(
                result, artifact, context, self._guardians.get(result.guardian)
            )
            if reason:
                hallucinated[result.guardian] = reason

        # =====================================================================
        # STAGE 2.3: MAPPING
        # =====================================================================
        expected = IRREGULARITY_GUARDIAN_MAP.get(intended)
        if intended == IrregularityType.CLEAN:
            injection_met = all(r.passed for r in results)
        else:
            target = by_name.get(expected)
            injection_met = (
                target is not None
                and not target.passed
                and not target.oracle_error
                and expected not in hallucinated
            )

        # =====================================================================
        # STAGE 2.4: VERDICT AND SCORE
        # =====================================================================
        if logic_gap:
            verdict = JudgeVerdict.LOGIC_GAP
        elif hallucinated:
            verdict = JudgeVerdict.HALLUCINATION
        else:
            verdict = JudgeVerdict.EFFECTIVE

        sentinels = [r.guardian for r in results if r.oracle_error]
        collateral = [
            r.guardian
            for r in results
            if not r.passed
            and not r.oracle_error
            and r.guardian != expected
            and r.guardian not in hallucinated
        ]

        score = 100
        if not injection_met:
            score = min(score, UNMET_SCORE_CAP)
        score -= HALLUCINATION_PENALTY * len(hallucinated)
        score -= COLLATERAL_PENALTY * len(collateral)
        score -= SENTINEL_PENALTY * len(sentinels)
        score = 0 if logic_gap else max(0, min(100, score))

        findings = self._findings(logic_gap, hallucinated, injection_met, expected, collateral, sentinels)
        justification = self._justify(intended, verdict, score, results, findings)

        logger.info(
            f"Judge | {artifact.artifact_id} | {verdict.value} | Fidelity {score} | "
            f"Injection met: {injection_met} | Hallucinated: {sorted(hallucinated)}"
        )
        return SimulationQualityReport(
            intended_irregularity=intended,
            injection_met=injection_met,
            fidelity_score=score,
            verdict=verdict,
            justification=justification,
            hallucinated_guardians=sorted(hallucinated),
            logic_gap_found=logic_gap,
        )

    # =========================================================================
    # STAGE 3: JUSTIFICATION
    # =========================================================================

    @staticmethod
    def _findings(
        logic_gap: bool,
        hallucinated: Dict[str, str],
        injection_met: bool,
        expected: Optional[str],
        collateral: List[str],
        sentinels: List[str],
    ) -> List[str]:
        findings = []
        if logic_gap:
            findings.append("Totals do not close but the Math guardian passed.")
        for name, reason in sorted(hallucinated.items()):
            findings.append(f"{name} failure not supported by the bill: {reason}.")
        if expected is None:
            findings.append(
                "Clean bill passed every guardian." if injection_met else "Clean bill raised findings."
            )
        else:
            findings.append(
                f"{expected} {'caught' if injection_met else 'missed'} the intended irregularity."
            )
        if collateral:
            findings.append(f"Additional failures: {', '.join(collateral)}.")
        if sentinels:
            findings.append(f"Guardians that could not complete: {', '.join(sentinels)}.")
        return findings

    def _justify(
        self,
        intended: IrregularityType,
        verdict: JudgeVerdict,
        score: int,
        results: List[GuardianResult],
        findings: List[str],
    ) -> str:
        fallback = " ".join(findings)
        if self._oracle is None:
            return fallback

        prompt = JUDGE_TEMPLATE.format(
            irregularity=intended.value,
            verdict=verdict.value,
            score=score,
            results=format_results(results),
            findings="\n".join(f"- {f}" for f in findings),
        )
        result = self._oracle.request(prompt, JudgeNarrativeResponse, purpose="judge")
        if not result.ok:
            return fallback
        return result.value.justification

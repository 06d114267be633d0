"""
Compliance Sentinel - guarantees the requested irregularity survives.

Reconciliation may erase what the Financial phase planted (a collapsed
duplicate, a healed total). The Sentinel checks, and repairs once:

    ┌─────────┐ CLEAN
    │ (start) │──────────────────────────────────────────► VERIFIED
    └────┬────┘
         │ VERIFY: mapped guardian's deterministic screen
         │   FAIL → observable ────────────────────────────► VERIFIED
         │   REVIEW → oracle {observable, rationale}
         │   PASS / not observable / Err
         ▼
    NEEDS_REPAIR
         │ PLAN: outside injection policy ─────────────────► REPAIR_DECLINED
         │       mechanical recipe, else oracle plan
         │       invalid / declined plan ──────────────────► REPAIR_DECLINED
         │ EXECUTE: deep copy, apply, shift ground truth,
         │          heal totals, close balance, re-screen once
         ▼
    REPAIRED (observable_after: True / False / None when ambiguous)

Single bounded pass: no retry loop.

Author: Shubham Singh
Date: January 2026
"""

import copy
import json
import random
from typing import List, Optional, Tuple

from loguru import logger

from billing_simulation.audit.guardians import AuditContext, Guardian, get_guardian
from billing_simulation.audit.prompts import format_bill, format_record
from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.constants import IRREGULARITY_GUARDIAN_MAP
from billing_simulation.core.enums import IrregularityType, ScreenDecision, SentinelState
from billing_simulation.core.exceptions import InjectionDeclined
from billing_simulation.core.models import (
    BillArtifact,
    ClinicalTruth,
    DeletedLine,
    GroundTruth,
    Intervention,
    SentinelOutcome,
)
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.oracle.schemas import PlanResponse, VerifyResponse
from billing_simulation.pricing.resolver import PricingResolver
from billing_simulation.reconciliation.closure import close_balance, exempt_line_indices, heal_line_totals
from billing_simulation.reconciliation.index_map import IndexMap
from billing_simulation.sentinel.operations import (
    BILL_FIELDS,
    LINE_FIELDS,
    PlanOperation,
    apply_operations,
    validate_plan,
)
from billing_simulation.sentinel.planner import MechanicalPlanner

VERIFY_TEMPLATE = """You are a billing compliance verifier for synthetic medical bills.

**TASK:** Decide whether the bill below visibly contains the irregularity "{irregularity}".
A reader holding only this bill and the medical record must be able to spot it.

**AUDIT RULE:** {rule}

**AUTOMATED SCREEN:** {screen}

**MEDICAL RECORD:**
{record}

**BILL:**
{bill}

**RESPOND IN JSON FORMAT:**
{{"observable": true, "rationale": "one sentence"}}
"""

PLAN_TEMPLATE = """You are a billing simulation planner. The bill below was supposed to contain the
irregularity "{irregularity}" but the audit rule does not detect it yet.

**AUDIT RULE:** {rule}

**BILL:**
{bill}

**RULES:**
1. Use only these operations:
   - {{"op": "set_field", "target": "line", "index": N, "field": one of {line_fields}, "value": ...}}
   - {{"op": "set_field", "target": "bill", "field": one of {bill_fields}, "value": ...}}
   - {{"op": "set_field", "target": "estimate", "field": "<procedure code>" or "estimated_total", "value": number}}
   - {{"op": "duplicate_line", "index": N}}
   - {{"op": "add_line", "item": {{"code": "...", "description": "...", "quantity": 1, "unit_price": 0.0}}}}
2. Make the smallest change that makes the irregularity visible.
3. If it cannot be done with these operations, set can_inject to false.

**RESPOND IN JSON FORMAT:**
{{"can_inject": true, "reason": "...", "operations": []}}
"""


class ComplianceSentinel:
    """
    Verify / plan / execute state machine.

    What it does:
        Makes sure the artifact handed to the audit actually carries the
        scenario's irregularity, or records why it does not.

    Why it exists:
        1. Reconciliation enforces invariants that some irregularities break
        2. A label that the bill does not support poisons the dataset
        3. Complex injections are declined explicitly, never faked

    Example:
        >>> sentinel = ComplianceSentinel(oracle, resolver, config)
        >>> artifact, outcome = sentinel.run(artifact, clinical, rng)
        >>> outcome.state
        <SentinelState.REPAIRED: 'Repaired'>
    """

    def __init__(
        self,
        oracle: OracleAdapter,
        resolver: PricingResolver,
        config: Optional[PipelineConfiguration] = None,
        planner: Optional[MechanicalPlanner] = None,
    ):
        self._oracle = oracle
        self._resolver = resolver
        self._config = config or PipelineConfiguration()
        self._planner = planner or MechanicalPlanner(resolver)

    def run(
        self,
        artifact: BillArtifact,
        clinical: Optional[ClinicalTruth] = None,
        rng: Optional[random.Random] = None,
    ) -> Tuple[BillArtifact, SentinelOutcome]:
        irregularity = artifact.irregularity
        if irregularity == IrregularityType.CLEAN:
            return artifact, SentinelOutcome(SentinelState.VERIFIED, "Clean bill; nothing to verify.")

        guardian = get_guardian(IRREGULARITY_GUARDIAN_MAP[irregularity])
        context = AuditContext(clinical=clinical, resolver=self._resolver, config=self._config)

        # =====================================================================
        # STAGE 1: VERIFY
        # =====================================================================
        observable, rationale = self._verify(artifact, guardian, context)
        if observable:
            logger.info(f"Sentinel | {artifact.artifact_id} | {irregularity.value} verified | {rationale}")
            return artifact, SentinelOutcome(SentinelState.VERIFIED, rationale)

        logger.info(f"Sentinel | {artifact.artifact_id} | {irregularity.value} needs repair | {rationale}")

        # =====================================================================
        # STAGE 2: PLAN
        # =====================================================================
        if irregularity not in self._config.injectable_irregularities:
            return self._decline(artifact, "outside the mechanical injection policy")

        operations = self._planner.plan(artifact, irregularity, clinical, rng)
        if operations is None:
            operations, reason = self._ask_plan(artifact, guardian)
            if operations is None:
                return self._decline(artifact, reason)

        problems = validate_plan(artifact, operations)
        if problems:
            return self._decline(artifact, f"invalid plan: {'; '.join(problems)}")

        # =====================================================================
        # STAGE 3: EXECUTE
        # =====================================================================
        repaired = self._execute(artifact, operations, rationale)
        after = guardian.screen(repaired, context)
        observable_after = {ScreenDecision.FAIL: True, ScreenDecision.PASS: False}.get(after.decision)

        logger.info(
            f"Sentinel | {artifact.artifact_id} | repaired with {len(operations)} operation(s) | "
            f"Observable: {observable_after}"
        )
        return repaired, SentinelOutcome(
            SentinelState.REPAIRED,
            rationale,
            operations=[op.to_dict() for op in operations],
            observable_after=observable_after,
        )

    # =========================================================================
    # STAGE 1 DETAIL
    # =========================================================================

    def _verify(self, artifact: BillArtifact, guardian: Guardian, context: AuditContext) -> Tuple[bool, str]:
        screen = guardian.screen(artifact, context)
        if screen.decision == ScreenDecision.FAIL:
            return True, f"{guardian.name} screen fails: {screen.evidence}"
        if screen.decision == ScreenDecision.PASS:
            return False, f"{guardian.name} screen passes: {screen.evidence}"

        prompt = VERIFY_TEMPLATE.format(
            irregularity=artifact.irregularity.value,
            rule=guardian.rule,
            screen=screen.evidence,
            record=format_record(context.clinical),
            bill=format_bill(artifact),
        )
        result = self._oracle.request(prompt, VerifyResponse, purpose="sentinel:verify")
        if not result.ok:
            return False, f"Verification unavailable ({result.kind.value})"
        return result.value.observable, result.value.rationale or screen.evidence

    # =========================================================================
    # STAGE 2 DETAIL
    # =========================================================================

    def _ask_plan(self, artifact: BillArtifact, guardian: Guardian) -> Tuple[Optional[List[PlanOperation]], str]:
        prompt = PLAN_TEMPLATE.format(
            irregularity=artifact.irregularity.value,
            rule=guardian.rule,
            bill=format_bill(artifact),
            line_fields=json.dumps(list(LINE_FIELDS)),
            bill_fields=json.dumps(list(BILL_FIELDS)),
        )
        result = self._oracle.request(prompt, PlanResponse, purpose="sentinel:plan")
        if not result.ok:
            return None, f"no plan available ({result.kind.value})"

        plan: PlanResponse = result.value
        if not plan.can_inject:
            return None, plan.reason or "oracle declined to inject"
        try:
            return [PlanOperation.from_entry(entry) for entry in plan.operations], plan.reason
        except ValueError as e:
            return None, f"unusable plan: {e}"

    def _decline(self, artifact: BillArtifact, reason: str) -> Tuple[BillArtifact, SentinelOutcome]:
        declined = InjectionDeclined(artifact.irregularity.value, reason)
        logger.warning(f"Sentinel | {artifact.artifact_id} | {declined.message}")
        result = copy.deepcopy(artifact)
        result.annotations.append(str(declined))
        return result, SentinelOutcome(SentinelState.REPAIR_DECLINED, declined.message)

    # =========================================================================
    # STAGE 3 DETAIL
    # =========================================================================

    def _execute(self, artifact: BillArtifact, operations: List[PlanOperation], reason: str) -> BillArtifact:
        repaired, touched, index_map = apply_operations(artifact, operations)

        truth = repaired.ground_truth or GroundTruth(irregularity=repaired.irregularity)
        repaired.ground_truth = truth
        self._retarget(truth, index_map, touched)

        heal_line_totals(repaired, exempt_line_indices(repaired))
        notes = close_balance(repaired)

        repaired.interventions.append(
            Intervention(operations=[op.to_dict() for op in operations], reason=reason)
        )
        repaired.provenance.append(f"Sentinel: injected {repaired.irregularity.value} ({len(operations)} operation(s))")
        repaired.provenance.extend(f"Sentinel: {note}" for note in notes)
        return repaired

    @staticmethod
    def _retarget(truth: GroundTruth, index_map: IndexMap, touched: List[int]) -> None:
        """Shift existing references through the insertions, then point at the touched lines."""
        remapped = index_map.remap(truth.offending_indices)
        if not touched:
            truth.offending_indices = remapped
            return
        deleted = [ref for ref in remapped if isinstance(ref, DeletedLine)]
        truth.offending_indices = deleted + list(touched)

"""
Guardian Base - one independent audit rule.

Every guardian works the same way:

    screen(artifact, context)          deterministic, no oracle
        │
        ├── PASS   → GuardianResult(passed=True)           no oracle call
        ├── FAIL   → oracle writes the forensic narrative   verdict stays FAIL
        └── REVIEW → oracle decides pass/fail               Err → failure sentinel

Guardians never mutate the artifact; the orchestrator hands each one its
own deep copy anyway.

Author: Shubham Singh
Date: January 2026
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from loguru import logger

from billing_simulation.audit.prompts import (
    FORENSIC_TEMPLATE,
    VERDICT_TEMPLATE,
    format_bill,
    format_lines,
    format_record,
)
from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.enums import ScreenDecision, Severity
from billing_simulation.core.models import (
    BillArtifact,
    ClinicalTruth,
    FailureDetail,
    GuardianResult,
)
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.oracle.schemas import ForensicNarrativeResponse, GuardianVerdictResponse
from billing_simulation.pricing.resolver import PricingResolver

_SEVERITY_RANK = [Severity.LOW, Severity.MEDIUM, Severity.HIGH]

# =============================================================================
# STAGE 1: SCREEN RESULT AND CONTEXT
# =============================================================================


@dataclass(frozen=True)
class ScreenResult:
    """Outcome of a guardian's deterministic pre-filter."""

    decision: ScreenDecision
    evidence: str
    failure_type: str = ""
    severity: Severity = Severity.MEDIUM
    overcharge: float = 0.0
    line_indices: Tuple[int, ...] = ()

    @classmethod
    def passed(cls, evidence: str) -> "ScreenResult":
        return cls(ScreenDecision.PASS, evidence)

    @classmethod
    def review(cls, evidence: str, line_indices: Tuple[int, ...] = ()) -> "ScreenResult":
        return cls(ScreenDecision.REVIEW, evidence, line_indices=tuple(line_indices))

    @classmethod
    def failed(
        cls,
        failure_type: str,
        evidence: str,
        severity: Severity = Severity.MEDIUM,
        overcharge: float = 0.0,
        line_indices: Tuple[int, ...] = (),
    ) -> "ScreenResult":
        return cls(
            ScreenDecision.FAIL,
            evidence,
            failure_type=failure_type,
            severity=severity,
            overcharge=round(max(0.0, overcharge), 2),
            line_indices=tuple(sorted(set(line_indices))),
        )

    @classmethod
    def from_findings(cls, findings: List["ScreenResult"], clean_evidence: str) -> "ScreenResult":
        """Merge several FAIL findings into one; the first finding names the failure."""
        if not findings:
            return cls.passed(clean_evidence)
        indices = set()
        for finding in findings:
            indices.update(finding.line_indices)
        return cls.failed(
            findings[0].failure_type,
            " | ".join(f.evidence for f in findings),
            severity=max((f.severity for f in findings), key=_SEVERITY_RANK.index),
            overcharge=sum(f.overcharge for f in findings),
            line_indices=tuple(indices),
        )

    @property
    def is_fail(self) -> bool:
        return self.decision == ScreenDecision.FAIL


@dataclass
class AuditContext:
    """
    What guardians may consult besides the bill.

    clinical is None when auditing a bill loaded without its medical record;
    guardians that need the record then fall back to REVIEW or to bill-only
    heuristics.
    """

    clinical: Optional[ClinicalTruth] = None
    resolver: Optional[PricingResolver] = None
    config: PipelineConfiguration = field(default_factory=PipelineConfiguration)
    today: date = field(default_factory=date.today)


# =============================================================================
# STAGE 2: GUARDIAN BASE CLASS
# =============================================================================


class Guardian(ABC):
    """
    Abstract audit rule.

    Subclasses set `name` and `rule` and implement `screen`.
    """

    name: str = ""
    rule: str = ""

    @abstractmethod
    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        ...

    def audit(
        self, artifact: BillArtifact, context: AuditContext, oracle: OracleAdapter
    ) -> GuardianResult:
        screen = self.screen(artifact, context)

        if screen.decision == ScreenDecision.PASS:
            return GuardianResult(guardian=self.name, passed=True, evidence=screen.evidence)

        if screen.decision == ScreenDecision.FAIL:
            return self._narrate(artifact, screen, oracle)

        return self._ask_verdict(artifact, context, screen, oracle)

    # =========================================================================
    # STAGE 2.1: FAIL → FORENSIC NARRATIVE
    # =========================================================================

    def _narrate(
        self, artifact: BillArtifact, screen: ScreenResult, oracle: OracleAdapter
    ) -> GuardianResult:
        """The verdict is already FAIL; a missing narrative keeps the screen's evidence."""
        evidence, explanation = screen.evidence, screen.evidence

        prompt = FORENSIC_TEMPLATE.format(
            guardian=self.name,
            rule=self.rule,
            finding=f"{screen.failure_type}: {screen.evidence}",
            lines=format_lines(artifact),
        )
        result = oracle.request(prompt, ForensicNarrativeResponse, purpose=f"forensic:{self.name}")
        if result.ok:
            explanation = result.value.explanation
            evidence = f"{screen.evidence} | {result.value.evidence}"

        return GuardianResult(
            guardian=self.name,
            passed=False,
            evidence=evidence,
            failure_details=FailureDetail(
                type=screen.failure_type,
                explanation=explanation,
                severity=screen.severity,
                overcharge_potential=screen.overcharge,
                line_indices=screen.line_indices,
            ),
        )

    # =========================================================================
    # STAGE 2.2: REVIEW → ORACLE VERDICT
    # =========================================================================

    def _ask_verdict(
        self,
        artifact: BillArtifact,
        context: AuditContext,
        screen: ScreenResult,
        oracle: OracleAdapter,
    ) -> GuardianResult:
        prompt = VERDICT_TEMPLATE.format(
            guardian=self.name,
            rule=self.rule,
            finding=screen.evidence,
            record=format_record(context.clinical),
            bill=format_bill(artifact),
        )
        result = oracle.request(prompt, GuardianVerdictResponse, purpose=f"verdict:{self.name}")
        if not result.ok:
            logger.warning(f"Guardian {self.name} could not decide | {result.message}")
            return GuardianResult.failure_sentinel(self.name, f"{result.kind.value}: {result.message}")

        verdict: GuardianVerdictResponse = result.value
        if verdict.passed:
            return GuardianResult(guardian=self.name, passed=True, evidence=verdict.evidence)

        return GuardianResult(
            guardian=self.name,
            passed=False,
            evidence=verdict.evidence,
            failure_details=FailureDetail(
                type=verdict.failure_type or self.name,
                explanation=verdict.explanation or verdict.evidence,
                severity=Severity(verdict.severity),
                overcharge_potential=verdict.overcharge_potential,
                line_indices=screen.line_indices,
            ),
        )

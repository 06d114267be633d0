"""
Tests for the audit orchestrator (fan-out, health score, executive
summary) and the Simulation Judge.
"""

import threading

import pytest

from billing_simulation.audit import AuditOrchestrator, SimulationJudge, executive_summary, health_score
from billing_simulation.audit.guardians import AuditContext, Guardian, MathGuardian, ScreenResult
from billing_simulation.core.constants import CLEAN_EXECUTIVE_SUMMARY
from billing_simulation.core.enums import IrregularityType, JudgeVerdict
from billing_simulation.core.models import FailureDetail, GroundTruth, GuardianResult
from billing_simulation.oracle.adapter import OracleAdapter
from tests.conftest import ScriptedLLMClient, make_artifact, make_line


class ExplodingGuardian(Guardian):
    name = "Exploding"
    rule = "Always raises."

    def screen(self, artifact, context) -> ScreenResult:
        raise RuntimeError("boom")


class RendezvousGuardian(Guardian):
    """Passes only if every guardian sharing the barrier is screening at the same time."""

    rule = "Waits for its peers."

    def __init__(self, name: str, barrier: threading.Barrier):
        self.name = name
        self.barrier = barrier

    def screen(self, artifact, context) -> ScreenResult:
        self.barrier.wait()
        return ScreenResult.passed("all peers arrived")


def passed(name: str) -> GuardianResult:
    return GuardianResult(guardian=name, passed=True, evidence="ok")


def failed(name: str, evidence: str, line_indices=()) -> GuardianResult:
    return GuardianResult(
        guardian=name,
        passed=False,
        evidence=evidence,
        failure_details=FailureDetail(type=name, explanation=evidence, line_indices=tuple(line_indices)),
    )


@pytest.fixture
def duplicate_artifact():
    """Clean bill with the CBC billed twice on the same day."""
    artifact = make_artifact(
        [make_line("99284", 500.0), make_line("85025", 50.0), make_line("85025", 50.0), make_line("71046", 150.0)],
        irregularity=IrregularityType.DUPLICATE,
    )
    artifact.ground_truth = GroundTruth(IrregularityType.DUPLICATE, offending_indices=[2])
    return artifact


class TestHealthScore:
    def test_empty_audit_scores_100(self):
        assert health_score([]) == 100

    def test_all_failed_scores_0(self):
        assert health_score([failed("Math", "x"), failed("Duplicate", "y")]) == 0

    def test_rounds_half_up(self):
        assert health_score([passed("a"), passed("b"), failed("c", "x")]) == 67
        assert health_score([passed("a"), failed("b", "x"), failed("c", "x")]) == 33

    def test_nine_of_ten(self):
        assert health_score([passed(str(i)) for i in range(9)] + [failed("Math", "x")]) == 90


class TestExecutiveSummary:
    def test_clean(self):
        assert executive_summary([passed("Math")]) == CLEAN_EXECUTIVE_SUMMARY

    def test_lists_failures_in_order(self):
        summary = executive_summary([failed("Math", "x"), passed("Upcoding"), failed("Duplicate", "y")])
        assert summary == "Audit found failures in: Math, Duplicate"


class TestAuditOrchestrator:
    def test_clean_bill(self, clean_artifact, audit_context, offline_oracle):
        report = AuditOrchestrator(offline_oracle).audit(clean_artifact, audit_context)

        assert len(report.guardian_results) == 10
        assert report.health_score == 100
        assert report.executive_summary == CLEAN_EXECUTIVE_SUMMARY
        assert report.quality_report.verdict == JudgeVerdict.EFFECTIVE
        assert report.quality_report.injection_met
        assert report.quality_report.fidelity_score == 100
        assert report.other_issues == []

    def test_duplicate_caught(self, duplicate_artifact, audit_context, offline_oracle):
        report = AuditOrchestrator(offline_oracle).audit(duplicate_artifact, audit_context)

        assert report.failed_guardians == ["Duplicate"]
        assert report.health_score == 90
        assert report.quality_report.injection_met
        assert report.quality_report.verdict == JudgeVerdict.EFFECTIVE
        assert report.other_issues[0]["guardian"] == "Duplicate"

    def test_raising_guardian_becomes_failure_sentinel(self, clean_artifact, audit_context, offline_oracle):
        orchestrator = AuditOrchestrator(offline_oracle, guardians=[MathGuardian(), ExplodingGuardian()])

        report = orchestrator.audit(clean_artifact, audit_context)

        exploded = report.result_for("Exploding")
        assert exploded.oracle_error
        assert "RuntimeError" in exploded.evidence
        assert report.health_score == 50
        assert report.result_for("Math").passed

    def test_guardians_run_concurrently(self, clean_artifact, audit_context, offline_oracle):
        barrier = threading.Barrier(4, timeout=5)
        guardians = [RendezvousGuardian(f"Peer {i}", barrier) for i in range(4)]

        report = AuditOrchestrator(offline_oracle, guardians=guardians).audit(clean_artifact, audit_context)

        assert report.health_score == 100
        assert not any(r.oracle_error for r in report.guardian_results)

    def test_results_keep_guardian_order(self, clean_artifact, audit_context, offline_oracle):
        orchestrator = AuditOrchestrator(offline_oracle)
        report = orchestrator.audit(clean_artifact, audit_context)

        assert [r.guardian for r in report.guardian_results] == [g.name for g in orchestrator.guardians]

    def test_audit_is_repeatable(self, duplicate_artifact, audit_context, offline_oracle):
        orchestrator = AuditOrchestrator(offline_oracle)
        before = duplicate_artifact.to_dict()

        first = orchestrator.audit(duplicate_artifact, audit_context)
        second = orchestrator.audit(duplicate_artifact, audit_context)

        assert first.health_score == second.health_score
        assert duplicate_artifact.to_dict() == before

    def test_audit_without_context(self, clean_artifact, offline_oracle):
        report = AuditOrchestrator(offline_oracle).audit(clean_artifact)
        assert report.health_score == 100


class TestSimulationJudge:
    def test_logic_gap_forces_zero(self, clean_artifact, audit_context):
        clean_artifact.grand_total = 300.0

        report = SimulationJudge().evaluate(clean_artifact, [passed("Math")], audit_context)

        assert report.verdict == JudgeVerdict.LOGIC_GAP
        assert report.logic_gap_found
        assert report.fidelity_score == 0

    def test_gap_within_a_dollar_is_tolerated(self, clean_artifact, audit_context):
        clean_artifact.grand_total = 120.5

        report = SimulationJudge().evaluate(clean_artifact, [passed("Math")], audit_context)

        assert report.verdict == JudgeVerdict.EFFECTIVE

    def test_line_index_off_the_bill_is_hallucination(self, duplicate_artifact, audit_context):
        results = [failed("Duplicate", "85025 billed twice", line_indices=[1, 7])]

        report = SimulationJudge().evaluate(duplicate_artifact, results, audit_context)

        assert report.verdict == JudgeVerdict.HALLUCINATION
        assert report.hallucinated_guardians == ["Duplicate"]
        assert not report.injection_met
        assert report.fidelity_score == 15

    def test_unknown_cited_code_is_hallucination(self, duplicate_artifact, audit_context):
        results = [failed("Duplicate", "85025 and 36600 billed twice", line_indices=[1, 2])]
        report = SimulationJudge().evaluate(duplicate_artifact, results, audit_context)
        assert report.verdict == JudgeVerdict.HALLUCINATION

    def test_failure_contradicted_by_rescreen(self, clean_artifact, audit_context):
        results = [failed("Duplicate", "Service billed twice.")]
        report = SimulationJudge().evaluate(clean_artifact, results, audit_context)

        assert report.verdict == JudgeVerdict.HALLUCINATION

    def test_em_codes_and_amounts_are_not_citations(self, duplicate_artifact, audit_context):
        evidence = "85025 billed twice next to 99285; overcharge 12345.67 and $50,000.00"
        results = [failed("Duplicate", evidence, line_indices=[1, 2])]

        report = SimulationJudge().evaluate(duplicate_artifact, results, audit_context)

        assert report.verdict == JudgeVerdict.EFFECTIVE
        assert report.injection_met
        assert report.fidelity_score == 100

    def test_collateral_and_sentinel_penalties(self, duplicate_artifact, audit_context):
        duplicate_artifact.line_items[3].total = 175.0
        results = [
            failed("Duplicate", "85025 billed twice", line_indices=[1, 2]),
            failed("Math", "line 3 total", line_indices=[3]),
            GuardianResult.failure_sentinel("Upcoding", "OracleFailure"),
        ]

        report = SimulationJudge().evaluate(duplicate_artifact, results, audit_context)

        assert report.verdict == JudgeVerdict.EFFECTIVE
        assert report.fidelity_score == 85

    def test_unmet_injection_is_capped(self, duplicate_artifact, audit_context):
        report = SimulationJudge().evaluate(duplicate_artifact, [passed("Duplicate")], audit_context)

        assert not report.injection_met
        assert report.fidelity_score == 40

    def test_justification_from_oracle(self, clean_artifact, audit_context):
        client = ScriptedLLMClient({"audit quality judge": {"justification": "Clean and quiet."}})

        report = SimulationJudge(OracleAdapter(client)).evaluate(clean_artifact, [passed("Math")], audit_context)

        assert report.justification == "Clean and quiet."

    def test_deterministic_justification_on_err(self, clean_artifact, audit_context, offline_oracle):
        report = SimulationJudge(offline_oracle).evaluate(clean_artifact, [passed("Math")], audit_context)
        assert report.justification == "Clean bill passed every guardian."

    def test_intended_irregularity_from_ground_truth(self, duplicate_artifact):
        report = SimulationJudge().evaluate(duplicate_artifact, [], AuditContext())
        assert report.intended_irregularity == IrregularityType.DUPLICATE

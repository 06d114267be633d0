"""
Tests for the ten audit guardians: deterministic screens and the
PASS / FAIL / REVIEW oracle flow.
"""

from datetime import timedelta

import pytest

from billing_simulation.audit.guardians import (
    AuditContext,
    BalanceBillingGuardian,
    DuplicateGuardian,
    ExtractionGuardian,
    GlobalPeriodGuardian,
    GoodFaithEstimateGuardian,
    MathGuardian,
    PriceSentryGuardian,
    RecordMatchGuardian,
    UnbundlingGuardian,
    UpcodingGuardian,
    default_guardians,
    get_guardian,
    price_outlier_category,
)
from billing_simulation.core.enums import (
    Complexity,
    NetworkStatus,
    PayerClass,
    ScreenDecision,
    Severity,
)
from billing_simulation.core.exceptions import ConfigurationError
from billing_simulation.core.models import GoodFaithEstimate, PriorProcedure
from billing_simulation.generation.identifiers import corrupt_npi
from billing_simulation.oracle.adapter import OracleAdapter
from tests.conftest import SERVICE_DAY, ScriptedLLMClient, make_artifact, make_clinical, make_line


def context_for(clinical, resolver, config) -> AuditContext:
    return AuditContext(clinical=clinical, resolver=resolver, config=config)


class TestRegistry:
    def test_ten_guardians_in_report_order(self):
        names = [g.name for g in default_guardians()]
        assert len(names) == 10
        assert names[0] == "Upcoding"
        assert names[-1] == "Extraction"

    def test_unknown_guardian(self):
        with pytest.raises(ConfigurationError):
            get_guardian("Astrology")


class TestCleanBill:
    def test_every_guardian_passes(self, clean_artifact, audit_context):
        for guardian in default_guardians():
            screen = guardian.screen(clean_artifact, audit_context)
            assert screen.decision == ScreenDecision.PASS, f"{guardian.name}: {screen.evidence}"


class TestUpcoding:
    def test_level_above_acuity_ceiling_fails(self, resolver, config):
        artifact = make_artifact([make_line("99285", 900.0), make_line("85025", 50.0)])
        screen = UpcodingGuardian().screen(artifact, context_for(make_clinical(Complexity.LOW), resolver, config))

        assert screen.decision == ScreenDecision.FAIL
        assert screen.line_indices == (0,)
        assert screen.severity == Severity.HIGH
        assert screen.overcharge > 0

    def test_high_acuity_supports_level_five(self, resolver, config):
        artifact = make_artifact([make_line("99285", 900.0)])
        screen = UpcodingGuardian().screen(artifact, context_for(make_clinical(Complexity.HIGH), resolver, config))
        assert screen.decision == ScreenDecision.PASS

    def test_all_level_five_pattern_without_record(self, resolver, config):
        lines = [make_line("99285", 900.0, day=SERVICE_DAY + timedelta(days=d)) for d in range(3)]
        screen = UpcodingGuardian().screen(make_artifact(lines), context_for(None, resolver, config))

        assert screen.failure_type == "Pattern Upcoding"

    def test_lone_level_five_without_record_goes_to_review(self, resolver, config):
        artifact = make_artifact([make_line("99285", 900.0)])
        screen = UpcodingGuardian().screen(artifact, context_for(None, resolver, config))
        assert screen.decision == ScreenDecision.REVIEW


class TestRecordMatch:
    def test_wrong_side_fails(self, resolver, config):
        artifact = make_artifact([make_line("73560", 200.0, modifiers=["RT"])])
        screen = RecordMatchGuardian().screen(
            artifact, context_for(make_clinical(laterality="LEFT"), resolver, config)
        )

        assert screen.failure_type == "Laterality Mismatch"
        assert screen.line_indices == (0,)

    def test_side_from_description(self, resolver, config):
        artifact = make_artifact([make_line("73560", 200.0, description="X-RAY KNEE LEFT 3 VIEWS")])
        screen = RecordMatchGuardian().screen(
            artifact, context_for(make_clinical(laterality="LEFT"), resolver, config)
        )
        assert screen.decision == ScreenDecision.PASS

    def test_no_documented_side_goes_to_review(self, resolver, config):
        artifact = make_artifact([make_line("73560", 200.0, modifiers=["LT"])])
        screen = RecordMatchGuardian().screen(artifact, context_for(make_clinical(), resolver, config))
        assert screen.decision == ScreenDecision.REVIEW

    def test_bilateral_covers_everything(self, resolver, config):
        artifact = make_artifact([make_line("73560", 200.0, modifiers=["RT"])])
        screen = RecordMatchGuardian().screen(
            artifact, context_for(make_clinical(laterality="BILATERAL"), resolver, config)
        )
        assert screen.decision == ScreenDecision.PASS


class TestGlobalPeriod:
    def test_em_inside_global_period_fails(self, resolver, config):
        clinical = make_clinical()
        clinical.recent_procedure = PriorProcedure(
            "27447", "TOTAL KNEE ARTHROPLASTY", SERVICE_DAY - timedelta(days=20), global_days=90
        )
        screen = GlobalPeriodGuardian().screen(make_artifact(), context_for(clinical, resolver, config))

        assert screen.failure_type == "Global Period Violation"
        assert screen.line_indices == (0,)

    def test_exempt_modifier(self, resolver, config):
        clinical = make_clinical()
        clinical.recent_procedure = PriorProcedure(
            "27447", "TOTAL KNEE ARTHROPLASTY", SERVICE_DAY - timedelta(days=20), global_days=90
        )
        artifact = make_artifact([make_line("99284", 500.0, modifiers=["24"])])
        screen = GlobalPeriodGuardian().screen(artifact, context_for(clinical, resolver, config))
        assert screen.decision == ScreenDecision.PASS

    def test_future_service_date(self, audit_context):
        artifact = make_artifact()
        artifact.line_items[2].date = audit_context.today + timedelta(days=3)
        artifact.discharge_date = artifact.line_items[2].date

        screen = GlobalPeriodGuardian().screen(artifact, audit_context)

        assert screen.decision == ScreenDecision.FAIL
        assert 2 in screen.line_indices

    def test_service_after_discharge(self, audit_context):
        artifact = make_artifact()
        artifact.line_items[1].date = SERVICE_DAY + timedelta(days=2)

        screen = GlobalPeriodGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Service After Discharge"

    def test_lab_may_precede_admission(self, audit_context):
        artifact = make_artifact()
        artifact.line_items[1].date = SERVICE_DAY - timedelta(days=1)
        assert GlobalPeriodGuardian().screen(artifact, audit_context).decision == ScreenDecision.PASS

    def test_post_op_narrative_without_procedure_goes_to_review(self, resolver, config):
        clinical = make_clinical()
        clinical.encounter.history = "Seen for postoperative pain after knee surgery."
        screen = GlobalPeriodGuardian().screen(make_artifact(), context_for(clinical, resolver, config))
        assert screen.decision == ScreenDecision.REVIEW


class TestMath:
    def test_wrong_line_total(self, audit_context):
        artifact = make_artifact()
        artifact.line_items[1].total = 75.0
        artifact.subtotal = 725.0
        artifact.grand_total = 145.0

        screen = MathGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Line Total Mismatch"
        assert screen.line_indices == (1,)
        assert screen.overcharge == 25.0

    def test_balance_mismatch(self, audit_context):
        artifact = make_artifact()
        artifact.grand_total = 170.0

        screen = MathGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Balance Mismatch"
        assert screen.severity == Severity.HIGH

    def test_subtotal_mismatch(self, audit_context):
        artifact = make_artifact()
        artifact.subtotal = 650.0
        artifact.grand_total = 70.0

        screen = MathGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Subtotal Mismatch"


class TestPriceSentry:
    @pytest.mark.parametrize(
        "price, expected",
        [(1500.0, None), (1600.0, "MINOR"), (2695.0, "MAJOR"), (3001.0, "EXTREME")],
    )
    def test_outlier_grades(self, price, expected):
        assert price_outlier_category(price, 1500.0, 1.2, 2.0) == expected

    def test_medicare_gouging_is_major(self, resolver, config, clinical):
        price = resolver.billed_price(100.0, PayerClass.MEDICARE, "TX", payer_multiplier_override=5.5)
        artifact = make_artifact([make_line("99284", price)], payer=PayerClass.MEDICARE)

        screen = PriceSentryGuardian().screen(artifact, context_for(clinical, resolver, config))

        assert price == 539.0
        assert screen.decision == ScreenDecision.FAIL
        assert screen.severity == Severity.MEDIUM
        assert "MAJOR" in screen.evidence

    def test_metro_gouging_is_extreme(self, resolver, config, clinical):
        price = resolver.billed_price(
            100.0, PayerClass.MEDICARE, "CA", location_text="Los Angeles, CA", payer_multiplier_override=5.5
        )
        artifact = make_artifact([make_line("99284", price)], payer=PayerClass.MEDICARE)

        screen = PriceSentryGuardian().screen(artifact, context_for(clinical, resolver, config))

        assert price == 682.0
        assert screen.severity == Severity.HIGH

    def test_professional_component_threshold(self, resolver, config, clinical):
        # 30.00 x 5 x 0.4 x 3 = 180.00
        artifact = make_artifact([make_line("71046", 200.0, modifiers=["26"])])
        screen = PriceSentryGuardian().screen(artifact, context_for(clinical, resolver, config))
        assert "MINOR" in screen.evidence

    def test_no_resolver_passes(self, clinical, config):
        artifact = make_artifact([make_line("99284", 99999.0)])
        screen = PriceSentryGuardian().screen(artifact, context_for(clinical, None, config))
        assert screen.decision == ScreenDecision.PASS


class TestUnbundling:
    def test_ncci_edit(self, audit_context):
        artifact = make_artifact([make_line("99284", 500.0), make_line("36415", 15.0)])
        screen = UnbundlingGuardian().screen(artifact, audit_context)

        assert screen.decision == ScreenDecision.FAIL
        assert screen.line_indices == (1,)

    def test_fragmented_panel(self, audit_context):
        artifact = make_artifact(
            [make_line(code, 20.0) for code in ("82947", "84132", "84295", "82565")]
        )
        screen = UnbundlingGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Panel Fragmentation"
        assert screen.severity == Severity.HIGH


class TestDuplicate:
    def test_exact_copy_fails(self, audit_context):
        artifact = make_artifact(
            [make_line("99284", 500.0), make_line("85025", 50.0), make_line("85025", 50.0)]
        )
        screen = DuplicateGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "EXACT_MATCH"
        assert screen.line_indices == (1, 2)
        assert screen.overcharge == 50.0

    def test_price_variance_fails(self, audit_context):
        artifact = make_artifact([make_line("85025", 50.0), make_line("85025", 65.0)])
        assert DuplicateGuardian().screen(artifact, audit_context).failure_type == "DUPLICATE_PRICE_VARIANCE"

    def test_quantity_split_goes_to_review(self, audit_context):
        artifact = make_artifact([make_line("85025", 50.0), make_line("85025", 50.0, quantity=2)])
        assert DuplicateGuardian().screen(artifact, audit_context).decision == ScreenDecision.REVIEW

    def test_different_days_pass(self, audit_context):
        artifact = make_artifact(
            [make_line("85025", 50.0), make_line("85025", 50.0, day=SERVICE_DAY + timedelta(days=1))]
        )
        artifact.discharge_date = SERVICE_DAY + timedelta(days=1)
        assert DuplicateGuardian().screen(artifact, audit_context).decision == ScreenDecision.PASS


class TestGoodFaithEstimate:
    def test_line_above_quote_fails(self, audit_context):
        artifact = make_artifact(payer=PayerClass.SELF_PAY, adjustments=0.0, insurance_paid=0.0)
        artifact.estimate = GoodFaithEstimate(
            unit_rates={"99284": 250.0, "85025": 50.0, "71046": 150.0}, estimated_total=450.0
        )

        screen = GoodFaithEstimateGuardian().screen(artifact, audit_context)

        assert screen.line_indices == (0,)
        assert screen.overcharge == 250.0

    def test_within_estimate_passes(self, audit_context):
        artifact = make_artifact(payer=PayerClass.SELF_PAY, adjustments=0.0, insurance_paid=0.0)
        artifact.estimate = GoodFaithEstimate(
            unit_rates={"99284": 500.0, "85025": 50.0, "71046": 150.0}, estimated_total=700.0
        )
        assert GoodFaithEstimateGuardian().screen(artifact, audit_context).decision == ScreenDecision.PASS


class TestBalanceBilling:
    def test_out_of_network_balance_fails(self, audit_context):
        artifact = make_artifact(adjustments=0.0, insurance_paid=300.0)
        artifact.network_status = NetworkStatus.OUT_OF_NETWORK

        screen = BalanceBillingGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Surprise Balance Bill"
        assert screen.overcharge == 300.0

    def test_self_pay_exempt(self, audit_context):
        artifact = make_artifact(payer=PayerClass.SELF_PAY, adjustments=0.0, insurance_paid=0.0)
        artifact.network_status = NetworkStatus.OUT_OF_NETWORK
        assert BalanceBillingGuardian().screen(artifact, audit_context).decision == ScreenDecision.PASS


class TestExtraction:
    def test_corrupted_attending_npi(self, audit_context):
        artifact = make_artifact()
        artifact.attending_npi = corrupt_npi(artifact.attending_npi)

        screen = ExtractionGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Invalid Provider Identifier"

    def test_phantom_charge(self, audit_context):
        artifact = make_artifact()
        artifact.line_items.append(make_line("", 75.0, description="MISC SUPPLIES"))

        screen = ExtractionGuardian().screen(artifact, audit_context)

        assert screen.failure_type == "Phantom Charge"
        assert screen.line_indices == (3,)


class TestOracleFlow:
    def test_pass_makes_no_oracle_call(self, clean_artifact, audit_context, scripted_client):
        result = MathGuardian().audit(clean_artifact, audit_context, OracleAdapter(scripted_client))

        assert result.passed
        assert scripted_client.prompts == []

    def test_fail_keeps_verdict_when_narrative_unavailable(self, audit_context, offline_oracle):
        artifact = make_artifact()
        artifact.grand_total = 170.0

        result = MathGuardian().audit(artifact, audit_context, offline_oracle)

        assert not result.passed
        assert not result.oracle_error
        assert result.failure_details.type == "Balance Mismatch"

    def test_fail_uses_forensic_narrative(self, audit_context):
        client = ScriptedLLMClient(
            {"forensic billing analyst": {"evidence": "Line math", "explanation": "Amount due inflated by 50.00"}}
        )
        artifact = make_artifact()
        artifact.grand_total = 170.0

        result = MathGuardian().audit(artifact, audit_context, OracleAdapter(client))

        assert result.failure_details.explanation == "Amount due inflated by 50.00"

    def test_review_err_becomes_failure_sentinel(self, audit_context, offline_oracle):
        artifact = make_artifact([make_line("85025", 50.0), make_line("85025", 50.0, quantity=2)])

        result = DuplicateGuardian().audit(artifact, audit_context, offline_oracle)

        assert not result.passed
        assert result.oracle_error
        assert result.failure_details.type == "GuardianFailure"

    def test_review_decided_by_oracle(self, audit_context):
        client = ScriptedLLMClient(
            {"auditor reviewing a medical bill": {"passed": True, "evidence": "Two separate draws documented."}}
        )
        artifact = make_artifact([make_line("85025", 50.0), make_line("85025", 50.0, quantity=2)])

        result = DuplicateGuardian().audit(artifact, audit_context, OracleAdapter(client))

        assert result.passed
        assert result.evidence == "Two separate draws documented."

    def test_guardians_do_not_mutate(self, audit_context, offline_oracle):
        artifact = make_artifact()
        artifact.grand_total = 170.0
        before = artifact.to_dict()

        for guardian in default_guardians():
            guardian.audit(artifact, audit_context, offline_oracle)

        assert artifact.to_dict() == before

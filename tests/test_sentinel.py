"""
Tests for the Compliance Sentinel: verify / plan / execute and the plan
operations it is allowed to apply.
"""

import random

import pytest

from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.enums import IrregularityType, NetworkStatus, PayerClass, SentinelState
from billing_simulation.core.models import GroundTruth
from billing_simulation.generation.identifiers import is_valid_npi
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.sentinel import ComplianceSentinel
from billing_simulation.sentinel.operations import PlanOperation, apply_operations, validate_plan
from tests.conftest import ScriptedLLMClient, make_artifact, make_clinical, make_line


@pytest.fixture
def sentinel(offline_oracle, resolver, config) -> ComplianceSentinel:
    return ComplianceSentinel(offline_oracle, resolver, config)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(3)


def labeled(irregularity: IrregularityType, **kwargs):
    artifact = make_artifact(irregularity=irregularity, **kwargs)
    artifact.ground_truth = GroundTruth(irregularity)
    return artifact


class TestVerify:
    def test_clean_bill_is_verified_untouched(self, sentinel, clean_artifact, clinical, rng):
        result, outcome = sentinel.run(clean_artifact, clinical, rng)

        assert outcome.state == SentinelState.VERIFIED
        assert result is clean_artifact

    def test_observable_irregularity_is_verified(self, sentinel, clinical, rng):
        artifact = make_artifact(
            [make_line("99284", 500.0), make_line("85025", 50.0), make_line("85025", 50.0)],
            irregularity=IrregularityType.DUPLICATE,
        )

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.VERIFIED
        assert result.line_items == artifact.line_items

    def test_review_screen_asks_the_oracle(self, resolver, config, clinical, rng):
        client = ScriptedLLMClient(
            {"billing compliance verifier": {"observable": True, "rationale": "Left knee billed, record silent."}}
        )
        sentinel = ComplianceSentinel(OracleAdapter(client), resolver, config)
        artifact = make_artifact([make_line("73560", 200.0, modifiers=["LT"])], irregularity=IrregularityType.RECORD_MISMATCH)

        _, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.VERIFIED
        assert outcome.rationale == "Left knee billed, record silent."


class TestMechanicalRepair:
    def test_duplicate_injected(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.DUPLICATE)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIRED
        assert outcome.observable_after is True
        assert [item.code for item in result.line_items] == ["99284", "85025", "85025", "71046"]
        assert result.ground_truth.offending_indices == [1, 2]
        assert result.subtotal == 750.0
        assert result.grand_total == 170.0
        assert len(result.interventions) == 1
        assert len(artifact.line_items) == 3

    def test_duplicate_shifts_existing_references(self):
        artifact = labeled(IrregularityType.DUPLICATE)
        operations = [PlanOperation.duplicate(1)]

        _, touched, index_map = apply_operations(artifact, operations)

        assert touched == [1, 2]
        assert index_map.remap([0, 1, 2]) == [0, 1, 3]

    def test_math_error_survives_closure(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.MATH_ERROR)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIRED
        assert outcome.observable_after is True
        assert result.line_items[0].total == 510.0
        assert result.ground_truth.offending_indices == [0]
        assert result.subtotal == 710.0
        assert result.grand_total == result.expected_grand_total()

    def test_balance_mismatch(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.BALANCE_MISMATCH)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.observable_after is True
        assert result.grand_total == 170.0

    def test_ghost_provider(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.GHOST_PROVIDER)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIRED
        assert not is_valid_npi(result.attending_npi)

    def test_gouging(self, sentinel, clinical, rng):
        artifact = make_artifact(
            [make_line("99284", 98.0), make_line("85025", 9.8), make_line("71046", 29.4)],
            irregularity=IrregularityType.CMS_BENCHMARK,
            payer=PayerClass.MEDICARE,
            adjustments=0.0,
            insurance_paid=0.0,
        )

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.observable_after is True
        assert result.line_items[0].unit_price == 594.0  # 100 x 5.5 x 1.08 (Houston)

    def test_balance_billing(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.BALANCE_BILLING)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert result.network_status == NetworkStatus.OUT_OF_NETWORK
        assert result.adjustments == 0.0
        assert outcome.observable_after is True

    def test_phantom_charge(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.PHANTOM_BILLING)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert result.line_items[-1].code == ""
        assert result.ground_truth.offending_indices == [3]
        assert outcome.observable_after is True

    def test_unbundling_adds_venipuncture(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.UNBUNDLING)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert result.line_items[-1].code == "36415"
        assert outcome.observable_after is True


class TestDecline:
    def test_global_period_is_outside_policy(self, sentinel, clinical, rng):
        artifact = labeled(IrregularityType.GLOBAL_PERIOD_VIOLATION)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIR_DECLINED
        assert result.line_items == artifact.line_items
        assert result.annotations
        assert artifact.annotations == []

    def test_policy_is_configurable(self, offline_oracle, resolver, clinical, rng):
        config = PipelineConfiguration(injectable_irregularities=frozenset())
        sentinel = ComplianceSentinel(offline_oracle, resolver, config)

        _, outcome = sentinel.run(labeled(IrregularityType.DUPLICATE), clinical, rng)

        assert outcome.state == SentinelState.REPAIR_DECLINED

    def test_no_recipe_and_no_oracle_plan(self, sentinel, clinical, rng):
        artifact = make_artifact([make_line("73560", 200.0)], irregularity=IrregularityType.RECORD_MISMATCH)

        _, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIR_DECLINED
        assert "no plan available" in outcome.rationale

    def test_oracle_declines(self, resolver, config, clinical, rng):
        client = ScriptedLLMClient(
            {"billing simulation planner": {"can_inject": False, "reason": "needs a new encounter"}}
        )
        sentinel = ComplianceSentinel(OracleAdapter(client), resolver, config)
        artifact = make_artifact([make_line("73560", 200.0)], irregularity=IrregularityType.RECORD_MISMATCH)

        _, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIR_DECLINED
        assert "needs a new encounter" in outcome.rationale

    def test_invalid_oracle_plan(self, resolver, config, clinical, rng):
        client = ScriptedLLMClient(
            {
                "billing simulation planner": {
                    "can_inject": True,
                    "operations": [{"op": "duplicate_line", "index": 9}],
                }
            }
        )
        sentinel = ComplianceSentinel(OracleAdapter(client), resolver, config)
        artifact = make_artifact([make_line("73560", 200.0)], irregularity=IrregularityType.RECORD_MISMATCH)

        _, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIR_DECLINED
        assert "invalid plan" in outcome.rationale

    @pytest.mark.parametrize(
        "operation",
        [
            {"op": "add_line", "item": {"description": "X-RAY", "unit_price": 80.0, "date": "next tuesday"}},
            {"op": "add_line", "item": {"description": "X-RAY", "unit_price": float("inf")}},
            {"op": "set_field", "target": "line", "index": 0, "field": "unit_price", "value": "NaN"},
            {"op": "set_field", "target": "bill", "field": "grand_total", "value": float("inf")},
        ],
    )
    def test_unusable_oracle_values_decline(self, resolver, config, clinical, rng, operation):
        client = ScriptedLLMClient({"billing simulation planner": {"can_inject": True, "operations": [operation]}})
        sentinel = ComplianceSentinel(OracleAdapter(client), resolver, config)
        artifact = make_artifact([make_line("73560", 200.0)], irregularity=IrregularityType.RECORD_MISMATCH)

        result, outcome = sentinel.run(artifact, clinical, rng)

        assert outcome.state == SentinelState.REPAIR_DECLINED
        assert "invalid plan" in outcome.rationale
        assert result.line_items == artifact.line_items


class TestOraclePlan:
    def test_ambiguous_rescreen_records_none(self, resolver, config, rng):
        client = ScriptedLLMClient(
            {
                "billing compliance verifier": {"observable": False},
                "billing simulation planner": {
                    "can_inject": True,
                    "reason": "bill the right side",
                    "operations": [
                        {"op": "set_field", "target": "line", "index": 0, "field": "modifiers", "value": ["rt"]}
                    ],
                },
            }
        )
        sentinel = ComplianceSentinel(OracleAdapter(client), resolver, config)
        artifact = make_artifact([make_line("73560", 200.0, modifiers=["LT"])], irregularity=IrregularityType.RECORD_MISMATCH)

        result, outcome = sentinel.run(artifact, make_clinical(), rng)

        assert outcome.state == SentinelState.REPAIRED
        assert outcome.observable_after is None
        assert result.line_items[0].modifiers == ["RT"]

    def test_documented_side_is_flipped_mechanically(self, sentinel, rng):
        artifact = make_artifact([make_line("73560", 200.0, modifiers=["LT"])], irregularity=IrregularityType.RECORD_MISMATCH)

        result, outcome = sentinel.run(artifact, make_clinical(laterality="LEFT"), rng)

        assert result.line_items[0].modifiers == ["RT"]
        assert outcome.observable_after is True


class TestValidatePlan:
    def test_indices_checked_against_grown_list(self, clean_artifact):
        operations = [PlanOperation.duplicate(2), PlanOperation.set_line(3, "total", 1.0)]
        assert validate_plan(clean_artifact, operations) == []

    def test_rejects_unknown_field_and_bad_value(self, clean_artifact):
        problems = validate_plan(
            clean_artifact,
            [PlanOperation.set_bill("patient_name", "X"), PlanOperation.set_line(0, "quantity", "many")],
        )
        assert len(problems) == 2

    def test_empty_plan(self, clean_artifact):
        assert validate_plan(clean_artifact, []) == ["plan has no operations"]

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan"), "NaN", "1e999"])
    def test_rejects_non_finite_money(self, clean_artifact, value):
        assert len(validate_plan(clean_artifact, [PlanOperation.set_line(0, "unit_price", value)])) == 1
        assert len(validate_plan(clean_artifact, [PlanOperation.set_bill("adjustments", value)])) == 1
        assert len(validate_plan(clean_artifact, [PlanOperation.set_estimate("99284", value)])) == 1

    def test_rejects_bad_added_line(self, clean_artifact):
        operations = [
            PlanOperation.add({"description": "SUPPLY", "unit_price": 10.0, "date": "soon"}),
            PlanOperation.add({"description": "SUPPLY", "unit_price": 10.0, "quantity": float("inf")}),
            PlanOperation.add({"description": "SUPPLY", "unit_price": 10.0, "total": "NaN"}),
        ]
        assert len(validate_plan(clean_artifact, operations)) == 3

    def test_valid_added_line_applies(self, clean_artifact):
        operations = [PlanOperation.add({"description": "SUPPLY", "unit_price": "12.345", "date": "2026-01-05"})]

        assert validate_plan(clean_artifact, operations) == []
        result, touched, _ = apply_operations(clean_artifact, operations)
        assert result.line_items[-1].unit_price == 12.35
        assert touched == [3]

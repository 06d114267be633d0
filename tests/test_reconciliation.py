"""
Tests for deterministic reconciliation: index maps, closure rules and the
reconciler as a whole.
"""

import random
from datetime import timedelta

import pytest

from billing_simulation.core.enums import Complexity, IrregularityType
from billing_simulation.core.models import DeletedLine, GroundTruth
from billing_simulation.core.money import format_money, round_currency, round_half_up, sum_currency
from billing_simulation.generation.identifiers import corrupt_npi, is_valid_npi
from billing_simulation.reconciliation import DeterministicReconciler, IndexMap
from tests.conftest import SERVICE_DAY, make_artifact, make_clinical, make_line


@pytest.fixture
def reconciler() -> DeterministicReconciler:
    return DeterministicReconciler()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


class TestMoney:
    def test_half_up_rounding(self):
        assert round_currency(2.675) == 2.68
        assert round_currency(1.005) == 1.01
        assert round_half_up(50.5) == 51

    def test_sum_has_no_float_drift(self):
        assert sum_currency([0.1, 0.2]) == 0.3

    def test_format(self):
        assert format_money(1234.5) == "$1,234.50"


class TestIndexMap:
    def test_from_kept_marks_removed_lines(self):
        index_map = IndexMap.from_kept(4, kept=[0, 2, 3])

        assert index_map.remap([1, 3]) == [DeletedLine(1), 2]
        assert index_map.deleted == [1]

    def test_reorder(self):
        assert IndexMap.from_kept(3, kept=[2, 0, 1]).remap([0, 1, 2]) == [1, 2, 0]

    def test_insertion_shifts_later_lines(self):
        assert IndexMap.insertion(3, at=1).remap([0, 1, 2]) == [0, 2, 3]

    def test_existing_markers_pass_through(self):
        assert IndexMap.identity(2).remap([DeletedLine(5), 1]) == [DeletedLine(5), 1]

    def test_composition(self):
        composed = IndexMap.from_kept(3, kept=[0, 2]).then(IndexMap.insertion(2, at=0))
        assert composed.remap([0, 1, 2]) == [1, DeletedLine(1), 2]

    def test_unknown_index_resolves_to_deleted(self):
        assert IndexMap.identity(2).resolve(7) == DeletedLine(7)


class TestReconciler:
    def test_clean_bill_is_unchanged(self, reconciler, clean_artifact, clinical, rng):
        result = reconciler.reconcile(clean_artifact, clinical, rng)

        assert result.line_items == clean_artifact.line_items
        assert result.grand_total == 120.0
        assert result.provenance == []

    def test_input_is_not_mutated(self, reconciler, clinical, rng):
        artifact = make_artifact([make_line("99284", 500.0), make_line("85025", 50.0)])
        artifact.line_items[1].total = 999.0
        reconciler.reconcile(artifact, clinical, rng)

        assert artifact.line_items[1].total == 999.0

    def test_low_acuity_collapses_and_resyncs_ground_truth(self, reconciler, rng):
        next_day = SERVICE_DAY + timedelta(days=1)
        artifact = make_artifact(
            [
                make_line("99284", 500.0),
                make_line("85025", 50.0),
                make_line("99283", 300.0, day=next_day),
                make_line("71046", 150.0, day=next_day),
            ],
            irregularity=IrregularityType.UPCODING,
        )
        artifact.discharge_date = next_day
        artifact.ground_truth = GroundTruth(IrregularityType.UPCODING, offending_indices=[2, 3])

        result = reconciler.reconcile(artifact, make_clinical(Complexity.LOW), rng)

        assert [item.code for item in result.line_items] == ["99284", "85025", "71046"]
        assert {item.date for item in result.line_items} == {SERVICE_DAY}
        assert result.discharge_date == SERVICE_DAY
        assert result.ground_truth.offending_indices == [DeletedLine(2), 2]
        assert "Orig Index 2 (Deleted by reconciliation)" in result.ground_truth.actual_value
        assert result.subtotal == 700.0

    def test_offending_references_follow_their_lines(self, reconciler, rng):
        artifact = make_artifact(
            [make_line("99284", 500.0), make_line("99285", 800.0), make_line("85025", 50.0)],
            irregularity=IrregularityType.DUPLICATE,
        )
        artifact.ground_truth = GroundTruth(IrregularityType.DUPLICATE, offending_indices=[2])

        result = reconciler.reconcile(artifact, make_clinical(Complexity.LOW), rng)

        live = result.ground_truth.live_indices
        assert [result.line_items[i].code for i in live] == ["85025"]

    def test_heals_line_totals_and_closes_balance(self, reconciler, clinical, rng):
        artifact = make_artifact()
        artifact.line_items[1].total = 99.0
        artifact.grand_total = 5.0

        result = reconciler.reconcile(artifact, clinical, rng)

        assert result.line_items[1].total == 50.0
        assert result.subtotal == 700.0
        assert result.grand_total == 120.0
        assert any("total healed" in note for note in result.provenance)

    def test_adjustments_and_insurance_are_capped(self, reconciler, clinical, rng):
        artifact = make_artifact(adjustments=650.0, insurance_paid=300.0)

        result = reconciler.reconcile(artifact, clinical, rng)

        assert result.adjustments == 650.0
        assert result.insurance_paid == 50.0
        assert result.grand_total == 0.0

    def test_math_error_line_survives(self, reconciler, clinical, rng):
        artifact = make_artifact(irregularity=IrregularityType.MATH_ERROR)
        artifact.line_items[1].total = 75.0
        artifact.ground_truth = GroundTruth(IrregularityType.MATH_ERROR, offending_indices=[1])

        result = reconciler.reconcile(artifact, clinical, rng)

        assert result.line_items[1].total == 75.0
        assert result.subtotal == 725.0

    def test_balance_mismatch_delta_survives_subtotal_change(self, reconciler, clinical, rng):
        artifact = make_artifact(irregularity=IrregularityType.BALANCE_MISMATCH)
        artifact.subtotal = 650.0
        artifact.grand_total = 120.0  # 50.00 above the stale 70.00

        result = reconciler.reconcile(artifact, clinical, rng)

        assert result.subtotal == 700.0
        assert result.grand_total == 170.0

    def test_em_code_translated_into_setting_family(self, reconciler, clinical, rng):
        artifact = make_artifact([make_line("99213", 300.0, revenue_code="0510")])

        result = reconciler.reconcile(artifact, clinical, rng)

        assert result.line_items[0].code == "99283"
        assert result.line_items[0].revenue_code == "0450"

    def test_placeholder_identifiers_regenerated(self, reconciler, clinical, rng):
        artifact = make_artifact()
        artifact.facility = artifact.facility.with_identifiers("1234567890", "XX-XXXXXXX")
        artifact.attending_npi = "0000000000"

        result = reconciler.reconcile(artifact, clinical, rng)

        assert is_valid_npi(result.facility.npi)
        assert is_valid_npi(result.attending_npi)
        assert result.attending_npi != result.facility.npi

    def test_ghost_provider_attending_npi_kept(self, reconciler, clinical, rng):
        artifact = make_artifact(irregularity=IrregularityType.GHOST_PROVIDER)
        artifact.attending_npi = corrupt_npi(artifact.attending_npi)

        result = reconciler.reconcile(artifact, clinical, rng)

        assert result.attending_npi == artifact.attending_npi
        assert not is_valid_npi(result.attending_npi)

    def test_idempotent(self, reconciler, rng):
        artifact = make_artifact(
            [make_line("99284", 500.0), make_line("99285", 800.0), make_line("85025", 50.0)]
        )
        artifact.line_items[2].total = 1.0
        clinical = make_clinical(Complexity.LOW)

        once = reconciler.reconcile(artifact, clinical, rng)
        twice = reconciler.reconcile(once, clinical, rng)

        assert twice.line_items == once.line_items
        assert twice.grand_total == once.grand_total
        assert twice.provenance == once.provenance

    def test_unfixable_quantity_recorded(self, reconciler, clinical, rng):
        artifact = make_artifact([make_line("85025", 50.0, quantity=0)], adjustments=0.0, insurance_paid=0.0)

        result = reconciler.reconcile(artifact, clinical, rng)

        assert any(note.startswith("Reconciliation: UNRESOLVED") for note in result.provenance)

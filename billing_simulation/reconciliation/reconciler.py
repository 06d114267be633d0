"""
Deterministic Reconciliation

Rule-based post-processing that enforces the structural and financial
invariants of a bill after the generative phases. Independent of phase
order: running it twice changes nothing the second time.

Rules (in order):
    1. Low acuity     → single calendar day, single primary E/M (index map)
    2. Setting        → E/M codes in the setting's family, revenue codes
                        re-derived, type of bill matches the setting
    3. Ground truth   → offending references rewritten through the index map
    4. Line closure   → currency rounding, totals healed (MATH_ERROR lines kept)
    5. Balance        → subtotal, adjustment/insurance caps, grand total
                        (BALANCE_MISMATCH discrepancy kept)
    6. Identifiers    → placeholder or invalid NPIs and tax IDs regenerated,
                        except the attending NPI of GHOST_PROVIDER bills

Violations with no safe fix (non-positive quantity, negative price) are
recorded as provenance notes and left in place.

Author: Shubham Singh
Date: January 2026
"""

import copy
import random
from typing import List, Optional

from loguru import logger

from billing_simulation.core.enums import CareSetting, Complexity, IrregularityType, Track
from billing_simulation.core.exceptions import ValidationFailure
from billing_simulation.core.models import BillArtifact, ClinicalTruth, DeletedLine
from billing_simulation.generation.coding_rules import (
    assign_revenue_code,
    em_matches_setting,
    is_primary_em_code,
    translate_em,
)
from billing_simulation.generation.financial_clerk import type_of_bill_for
from billing_simulation.generation.identifiers import (
    generate_ein,
    generate_npi,
    is_placeholder_npi,
    is_valid_ein,
)
from billing_simulation.reconciliation.closure import (
    close_balance,
    exempt_line_indices,
    heal_line_totals,
)
from billing_simulation.reconciliation.index_map import IndexMap


class DeterministicReconciler:
    """
    Enforces bill invariants without calling the oracle.

    What it does:
        Returns a corrected deep copy of the artifact plus provenance
        notes describing every change and every unfixable violation.

    Why it exists:
        1. Oracle output is never trusted for structure or arithmetic
        2. Ground truth must keep pointing at the right lines after edits
        3. Deliberate irregularities must survive the clean-up

    Example:
        >>> reconciled = DeterministicReconciler().reconcile(artifact, clinical, rng)
        >>> reconciled.ground_truth.offending_indices
        [0, DeletedLine(original_index=3)]
    """

    def reconcile(
        self,
        artifact: BillArtifact,
        clinical: Optional[ClinicalTruth] = None,
        rng: Optional[random.Random] = None,
    ) -> BillArtifact:
        rng = rng or random.Random()
        result = copy.deepcopy(artifact)
        notes: List[str] = []

        index_map = self._collapse_low_acuity(result, clinical, notes)
        self._enforce_setting(result, notes)
        self._resync_ground_truth(result, index_map)
        self._close_lines(result, notes)
        notes.extend(close_balance(result))
        self._regenerate_identifiers(result, rng, notes)

        if result.professional_bill is not None:
            twin = self.reconcile(result.professional_bill, clinical, rng)
            result.professional_bill = twin

        result.provenance.extend(f"Reconciliation: {note}" for note in notes)
        logger.info(
            f"Reconciliation | {result.artifact_id} | {len(notes)} change(s) | "
            f"Removed: {index_map.deleted}"
        )
        return result

    # =========================================================================
    # RULE 1: LOW ACUITY
    # =========================================================================

    @staticmethod
    def _collapse_low_acuity(
        artifact: BillArtifact, clinical: Optional[ClinicalTruth], notes: List[str]
    ) -> IndexMap:
        size = len(artifact.line_items)
        if clinical is None or clinical.acuity != Complexity.LOW:
            return IndexMap.identity(size)

        day = artifact.admission_date
        if artifact.discharge_date != day:
            notes.append(f"Discharge date {artifact.discharge_date} → {day} (single-day encounter)")
            artifact.discharge_date = day
        for item in artifact.line_items:
            item.date = day

        kept: List[int] = []
        primary_seen = False
        for index, item in enumerate(artifact.line_items):
            if is_primary_em_code(item.code):
                if primary_seen:
                    notes.append(f"Removed extra E/M {item.code} at line {index}")
                    continue
                primary_seen = True
            kept.append(index)

        index_map = IndexMap.from_kept(size, kept)
        artifact.line_items = [artifact.line_items[i] for i in kept]
        return index_map

    # =========================================================================
    # RULE 2: SETTING
    # =========================================================================

    @staticmethod
    def _enforce_setting(artifact: BillArtifact, notes: List[str]) -> None:
        setting: CareSetting = artifact.care_setting
        for index, item in enumerate(artifact.line_items):
            if is_primary_em_code(item.code) and not em_matches_setting(item.code, setting):
                translated = translate_em(item.code, setting)
                notes.append(f"Line {index}: {item.code} → {translated} ({setting.value} family)")
                item.code = translated

            revenue_code = assign_revenue_code(item.code, setting)
            if item.revenue_code != revenue_code:
                notes.append(f"Line {index}: revenue code {item.revenue_code} → {revenue_code}")
                item.revenue_code = revenue_code

        if artifact.track == Track.FACILITY:
            type_of_bill = type_of_bill_for(setting)
            if artifact.type_of_bill != type_of_bill:
                notes.append(f"Type of bill {artifact.type_of_bill} → {type_of_bill}")
                artifact.type_of_bill = type_of_bill

    # =========================================================================
    # RULE 3: GROUND TRUTH
    # =========================================================================

    @staticmethod
    def _resync_ground_truth(artifact: BillArtifact, index_map: IndexMap) -> None:
        truth = artifact.ground_truth
        if truth is None:
            return
        truth.offending_indices = index_map.remap(truth.offending_indices)

        removed = [ref for ref in truth.offending_indices if isinstance(ref, DeletedLine)]
        for ref in removed:
            marker = f"Orig Index {ref.original_index} (Deleted by reconciliation)"
            if marker not in truth.actual_value:
                truth.actual_value = f"{truth.actual_value}; {marker}" if truth.actual_value else marker

    # =========================================================================
    # RULE 4: LINE CLOSURE
    # =========================================================================

    @staticmethod
    def _close_lines(artifact: BillArtifact, notes: List[str]) -> None:
        for index, item in enumerate(artifact.line_items):
            failure = None
            if item.quantity <= 0:
                failure = ValidationFailure("positive_quantity", f"quantity {item.quantity}", index)
            elif item.unit_price < 0:
                failure = ValidationFailure("non_negative_price", f"unit price {item.unit_price}", index)
            if failure is not None:
                logger.warning(f"Unfixable line | {artifact.artifact_id} | {failure}")
                notes.append(f"UNRESOLVED {failure}")

        for index in heal_line_totals(artifact, exempt_line_indices(artifact)):
            notes.append(f"Line {index}: total healed to {artifact.line_items[index].total:.2f}")

    # =========================================================================
    # RULE 6: IDENTIFIERS
    # =========================================================================

    @staticmethod
    def _regenerate_identifiers(artifact: BillArtifact, rng: random.Random, notes: List[str]) -> None:
        facility = artifact.facility
        npi, tax_id = facility.npi, facility.tax_id
        if is_placeholder_npi(npi):
            npi = generate_npi(rng)
            notes.append("Facility NPI regenerated")
        if not is_valid_ein(tax_id):
            tax_id = generate_ein(rng)
            notes.append("Facility tax ID regenerated")
        if (npi, tax_id) != (facility.npi, facility.tax_id):
            artifact.facility = facility.with_identifiers(npi, tax_id)

        if artifact.irregularity == IrregularityType.GHOST_PROVIDER:
            return
        if is_placeholder_npi(artifact.attending_npi) or artifact.attending_npi == artifact.facility.npi:
            artifact.attending_npi = generate_npi(rng)
            notes.append("Attending NPI regenerated")

"""
Mechanical Planner - deterministic injection recipes.

One recipe per irregularity. A recipe returns the operations that make the
irregularity observable, or None when this artifact gives it nothing to
work with (the Sentinel then asks the oracle for a plan).
"""

import random
from typing import Callable, Dict, List, Optional

from loguru import logger

from billing_simulation.core.constants import (
    BALANCE_MISMATCH_DELTA,
    GOUGING_MULTIPLIER,
    LATERALITY_MODIFIERS,
    MATH_ERROR_DELTA,
    OUT_OF_NETWORK_COVERAGE_FACTOR,
    PANEL_COMPONENTS,
    PANEL_FRAGMENTATION_THRESHOLDS,
    PAYER_COVERAGE_SHARE,
)
from billing_simulation.core.enums import Complexity, IrregularityType, NetworkStatus
from billing_simulation.core.models import BillArtifact, ClinicalTruth, LineItem
from billing_simulation.core.money import round_currency
from billing_simulation.generation.coding_rules import em_code_for, is_primary_em_code, service_rank
from billing_simulation.generation.financial_clerk import PHANTOM_DESCRIPTION, PHANTOM_PRICE_RANGE
from billing_simulation.generation.identifiers import corrupt_npi, generate_npi, is_valid_npi
from billing_simulation.pricing.resolver import PricingResolver, payer_multiplier
from billing_simulation.sentinel.operations import PlanOperation

VENIPUNCTURE = ("36415", "COLLECTION VENOUS BLOOD VENIPUNCTURE")

# Opposite side to bill for each documented laterality.
SIDE_FLIP = {"LEFT": "RT", "RIGHT": "LT", "BILATERAL": "LT"}

Recipe = Callable[[BillArtifact, Optional[ClinicalTruth], random.Random], Optional[List[PlanOperation]]]


def _first_primary_em(artifact: BillArtifact) -> Optional[int]:
    for i, item in enumerate(artifact.line_items):
        if is_primary_em_code(item.code):
            return i
    return None


class MechanicalPlanner:
    """
    Builds injection plans without the oracle.

    Example:
        >>> planner = MechanicalPlanner(resolver)
        >>> [op.to_dict() for op in planner.plan(artifact, IrregularityType.DUPLICATE)]
        [{'op': 'duplicate_line', 'index': 0}]
    """

    def __init__(self, resolver: PricingResolver):
        self._resolver = resolver
        self._recipes: Dict[IrregularityType, Recipe] = {
            IrregularityType.DUPLICATE: self._duplicate,
            IrregularityType.MATH_ERROR: self._math_error,
            IrregularityType.BALANCE_MISMATCH: self._balance_mismatch,
            IrregularityType.UPCODING: self._upcoding,
            IrregularityType.CMS_BENCHMARK: self._gouging,
            IrregularityType.UNBUNDLING: self._unbundling,
            IrregularityType.GHOST_PROVIDER: self._ghost_provider,
            IrregularityType.PHANTOM_BILLING: self._phantom,
            IrregularityType.BALANCE_BILLING: self._balance_billing,
            IrregularityType.GFE_VIOLATION: self._gfe,
            IrregularityType.RECORD_MISMATCH: self._record_mismatch,
        }

    def has_recipe(self, irregularity: IrregularityType) -> bool:
        return irregularity in self._recipes

    def plan(
        self,
        artifact: BillArtifact,
        irregularity: IrregularityType,
        clinical: Optional[ClinicalTruth] = None,
        rng: Optional[random.Random] = None,
    ) -> Optional[List[PlanOperation]]:
        recipe = self._recipes.get(irregularity)
        if recipe is None:
            return None
        operations = recipe(artifact, clinical, rng or random.Random())
        if operations is None:
            logger.debug(f"No mechanical recipe applies | {irregularity.value} | {artifact.artifact_id}")
        return operations

    # =========================================================================
    # LINE RECIPES
    # =========================================================================

    @staticmethod
    def _duplicate(artifact, clinical, rng):
        coded = [i for i, item in enumerate(artifact.line_items) if item.code]
        if not coded:
            return None
        labs = [i for i in coded if service_rank(artifact.line_items[i].code) == 0]
        return [PlanOperation.duplicate((labs or coded)[0])]

    @staticmethod
    def _math_error(artifact, clinical, rng):
        if not artifact.line_items:
            return None
        index = max(range(len(artifact.line_items)), key=lambda i: artifact.line_items[i].total)
        item = artifact.line_items[index]
        return [PlanOperation.set_line(index, "total", round_currency(item.expected_total() + MATH_ERROR_DELTA))]

    def _reprice(self, artifact: BillArtifact, index: int, code: str, override: Optional[float] = None):
        item: LineItem = artifact.line_items[index]
        rate = self._resolver.resolve_rate(code)
        price = self._resolver.billed_price(
            rate,
            artifact.payer_class,
            artifact.region,
            item.modifiers,
            location_text=artifact.facility.location_text,
            payer_multiplier_override=override,
        )
        return [
            PlanOperation.set_line(index, "unit_price", price),
            PlanOperation.set_line(index, "total", round_currency(item.quantity * price)),
        ]

    def _upcoding(self, artifact, clinical, rng):
        if clinical is not None and clinical.acuity == Complexity.HIGH:
            return None
        index = _first_primary_em(artifact)
        if index is None:
            return None
        code = em_code_for(artifact.care_setting, 5)
        description = self._resolver.describe(code) or f"{artifact.care_setting.value.upper()} VISIT LEVEL 5"
        return [
            PlanOperation.set_line(index, "code", code),
            PlanOperation.set_line(index, "description", description),
        ] + self._reprice(artifact, index, code)

    def _gouging(self, artifact, clinical, rng):
        index = _first_primary_em(artifact)
        if index is None:
            return None
        override = payer_multiplier(artifact.payer_class) * GOUGING_MULTIPLIER
        return self._reprice(artifact, index, artifact.line_items[index].code, override)

    def _unbundling(self, artifact, clinical, rng):
        for index, item in enumerate(artifact.line_items):
            if item.code not in PANEL_COMPONENTS:
                continue
            components = PANEL_COMPONENTS[item.code][: PANEL_FRAGMENTATION_THRESHOLDS[item.code]]
            operations = [PlanOperation.set_line(index, "code", components[0])]
            operations += [
                PlanOperation.set_line(index, "description", self._resolver.describe(components[0]) or components[0])
            ]
            operations += self._reprice(artifact, index, components[0])
            for component in components[1:]:
                operations.append(PlanOperation.add(self._priced_item(artifact, item.date, component)))
            return operations

        return [PlanOperation.add(self._priced_item(artifact, artifact.admission_date, VENIPUNCTURE[0]))]

    def _priced_item(self, artifact: BillArtifact, day, code: str) -> dict:
        price = self._resolver.billed_price(
            self._resolver.resolve_rate(code),
            artifact.payer_class,
            artifact.region,
            location_text=artifact.facility.location_text,
        )
        description = self._resolver.describe(code) or (VENIPUNCTURE[1] if code == VENIPUNCTURE[0] else code)
        return {"date": day, "code": code, "description": description, "quantity": 1, "unit_price": price}

    @staticmethod
    def _phantom(artifact, clinical, rng):
        price = round_currency(rng.uniform(*PHANTOM_PRICE_RANGE))
        return [
            PlanOperation.add(
                {"date": artifact.admission_date, "code": "", "description": PHANTOM_DESCRIPTION, "unit_price": price}
            )
        ]

    @staticmethod
    def _record_mismatch(artifact, clinical, rng):
        documented = (clinical.laterality or "").upper() if clinical else ""
        flip = SIDE_FLIP.get(documented)
        if flip is None:
            return None
        candidates = [
            i for i, item in enumerate(artifact.line_items) if any(m in LATERALITY_MODIFIERS for m in item.modifiers)
        ] or [i for i, item in enumerate(artifact.line_items) if item.code.startswith("73")]
        if not candidates:
            return None
        index = candidates[0]
        kept = [m for m in artifact.line_items[index].modifiers if m not in LATERALITY_MODIFIERS]
        return [PlanOperation.set_line(index, "modifiers", kept + [flip])]

    # =========================================================================
    # BILL RECIPES
    # =========================================================================

    @staticmethod
    def _balance_mismatch(artifact, clinical, rng):
        return [PlanOperation.set_bill("grand_total", round_currency(artifact.grand_total + BALANCE_MISMATCH_DELTA))]

    @staticmethod
    def _ghost_provider(artifact, clinical, rng):
        npi = artifact.attending_npi if is_valid_npi(artifact.attending_npi) else generate_npi(rng)
        return [PlanOperation.set_bill("attending_npi", corrupt_npi(npi))]

    @staticmethod
    def _balance_billing(artifact, clinical, rng):
        if not artifact.payer_class.is_insured:
            return None
        coverage = PAYER_COVERAGE_SHARE[artifact.payer_class] * OUT_OF_NETWORK_COVERAGE_FACTOR
        return [
            PlanOperation.set_bill("network_status", NetworkStatus.OUT_OF_NETWORK.value),
            PlanOperation.set_bill("adjustments", 0.0),
            PlanOperation.set_bill("insurance_paid", round_currency(artifact.subtotal * coverage)),
        ]

    @staticmethod
    def _gfe(artifact, clinical, rng):
        coded = [item for item in artifact.line_items if item.code]
        if not coded:
            return None
        highest = max(coded, key=lambda item: item.total)
        return [PlanOperation.set_estimate(highest.base_code, round_currency(highest.unit_price / 2))]

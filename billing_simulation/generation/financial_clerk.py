"""
Financial Clerk - Financial Phase

Turns CodingTruth into a priced BillArtifact. No oracle call: every number
on the bill comes from the Pricing Resolver and the payer tables.

Processing Stages:
    STAGE 1: Price lines (resolver), assign revenue codes, order
             labs → imaging → E/M → procedures/drugs → other
    STAGE 2: Dates (multi-day stays for high acuity)
    STAGE 3: Plant line-level irregularities
    STAGE 4: Settle: adjustments, insurance paid, grand total
    STAGE 5: Good faith estimate, identifiers, speculative ground truth
    STAGE 6: Professional twin for split bills

Deliberate exceptions (computed broken here, never auto-corrected later):
    MATH_ERROR        one line total off by a fixed delta
    BALANCE_MISMATCH  grand total inflated by a fixed delta
    CMS_BENCHMARK     E/M lines priced at payer multiplier × 5.5
    GFE_VIOLATION     estimate under-states the highest line
    BALANCE_BILLING   out-of-network, insurer pays a fraction
    GHOST_PROVIDER    attending NPI fails its checksum
    PHANTOM_BILLING   code-less supply charge

Author: Shubham Singh
Date: January 2026
"""

import random
from collections import Counter
from datetime import date, timedelta
from typing import List, Optional, Tuple

from loguru import logger

from billing_simulation.core.constants import (
    ACUITY_MAX_EM_LEVEL,
    BALANCE_MISMATCH_DELTA,
    GOUGING_MULTIPLIER,
    HIGH_ACUITY_STAY_DAYS,
    LATERALITY_MODIFIERS,
    MATH_ERROR_DELTA,
    OUT_OF_NETWORK_COVERAGE_FACTOR,
    PANEL_COMPONENTS,
    PAYER_ADJUSTMENT_RANGES,
    PAYER_COVERAGE_SHARE,
    PAYER_INSURANCE_NAMES,
    STATEMENT_DELAY_DAYS,
)
from billing_simulation.core.enums import (
    CareSetting,
    Complexity,
    IrregularityType,
    NetworkStatus,
    PayerClass,
    Track,
)
from billing_simulation.core.models import (
    BillArtifact,
    ClinicalTruth,
    CodeAssignment,
    CodingTruth,
    FacilityIdentity,
    GoodFaithEstimate,
    GroundTruth,
    LineItem,
)
from billing_simulation.core.money import round_currency, sum_currency
from billing_simulation.generation.coding_rules import (
    assign_revenue_code,
    is_em_code,
    is_primary_em_code,
    service_rank,
)
from billing_simulation.generation.context import GenerationContext
from billing_simulation.generation.identifiers import (
    corrupt_npi,
    generate_npi,
    generate_reference,
)
from billing_simulation.pricing.resolver import PricingResolver, payer_multiplier

PHANTOM_DESCRIPTION = "MISC SUPPLIES"
PHANTOM_PRICE_RANGE = (45.0, 260.0)


# =============================================================================
# STAGE 1: SHARED HELPERS
# =============================================================================


def type_of_bill_for(setting: CareSetting) -> str:
    """UB-04 type of bill: 111 inpatient admit-through-discharge, 131 outpatient."""
    return "111" if setting == CareSetting.INPATIENT else "131"


def settle(
    subtotal: float, payer: PayerClass, rng: random.Random, out_of_network: bool = False
) -> Tuple[float, float]:
    """Contractual adjustment and insurer payment for a subtotal."""
    coverage = PAYER_COVERAGE_SHARE[payer]
    if out_of_network:
        # Out-of-network providers take no contractual write-off.
        adjustments = 0.0
        coverage *= OUT_OF_NETWORK_COVERAGE_FACTOR
    else:
        low, high = PAYER_ADJUSTMENT_RANGES[payer]
        adjustments = round_currency(subtotal * rng.uniform(low, high))
    insurance_paid = round_currency(max(0.0, subtotal - adjustments) * coverage)
    return adjustments, insurance_paid


def speculative_offenders(
    line_items: List[LineItem], irregularity: IrregularityType
) -> List[int]:
    """Best guess at the offending lines before reconciliation and the Sentinel run."""
    if irregularity in (
        IrregularityType.UPCODING,
        IrregularityType.CMS_BENCHMARK,
        IrregularityType.GLOBAL_PERIOD_VIOLATION,
    ):
        return [i for i, item in enumerate(line_items) if is_primary_em_code(item.code)]
    if irregularity == IrregularityType.UNBUNDLING:
        components = {c for codes in PANEL_COMPONENTS.values() for c in codes}
        return [i for i, item in enumerate(line_items) if item.code in components]
    if irregularity == IrregularityType.DUPLICATE:
        counts = Counter((item.code, item.date) for item in line_items)
        return [i for i, item in enumerate(line_items) if counts[(item.code, item.date)] > 1]
    if irregularity == IrregularityType.RECORD_MISMATCH:
        return [
            i
            for i, item in enumerate(line_items)
            if any(m in LATERALITY_MODIFIERS for m in item.modifiers)
        ]
    if irregularity == IrregularityType.PHANTOM_BILLING:
        return [i for i, item in enumerate(line_items) if not item.code and item.total > 0]
    return []


# =============================================================================
# STAGE 2: FINANCIAL AGENT
# =============================================================================


class FinancialClerk:
    """
    Financial phase agent.

    What it does:
        Prices the coded services, plants the scenario's financial
        irregularity and settles the bill against the payer.

    Why it exists:
        1. Prices must be reproducible from the resolver and payer tables
        2. Broken arithmetic for MATH_ERROR / BALANCE_MISMATCH is computed
           here once and preserved by every later phase
        3. Produces the first (speculative) ground truth label

    Example:
        >>> artifact = FinancialClerk().run(facility, clinical, coding, context)
        >>> artifact.subtotal == sum(i.total for i in artifact.line_items)
        True
    """

    def run(
        self,
        facility: FacilityIdentity,
        clinical: ClinicalTruth,
        coding: CodingTruth,
        context: GenerationContext,
    ) -> BillArtifact:
        scenario = context.scenario
        irregularity = scenario.irregularity
        rng = context.rng
        payer = scenario.payer_class

        admission = clinical.date_of_service
        stay_days = rng.randint(*HIGH_ACUITY_STAY_DAYS) if clinical.acuity == Complexity.HIGH else 1
        discharge = admission + timedelta(days=stay_days - 1)

        # =====================================================================
        # STAGE 2.1: PRICE LINES
        # =====================================================================
        line_items = self._price_lines(
            coding.for_track(Track.FACILITY),
            facility,
            clinical.care_setting,
            payer,
            context.resolver,
            irregularity,
            admission,
            stay_days,
            rng,
        )

        # =====================================================================
        # STAGE 2.2: LINE-LEVEL IRREGULARITIES
        # =====================================================================
        ground_truth = GroundTruth(irregularity=irregularity)

        if irregularity == IrregularityType.PHANTOM_BILLING:
            price = round_currency(rng.uniform(*PHANTOM_PRICE_RANGE))
            line_items.append(
                LineItem(
                    date=admission,
                    code="",
                    description=PHANTOM_DESCRIPTION,
                    revenue_code=assign_revenue_code("", clinical.care_setting),
                    quantity=1,
                    unit_price=price,
                    total=price,
                )
            )
            ground_truth.explanation = "Charge billed with no procedure code."
            ground_truth.expected_value = "No charge without a documented service"
            ground_truth.actual_value = f"{PHANTOM_DESCRIPTION} ${price:,.2f}"

        if irregularity == IrregularityType.MATH_ERROR and line_items:
            index = rng.randrange(len(line_items))
            item = line_items[index]
            item.total = round_currency(item.expected_total() + MATH_ERROR_DELTA)
            ground_truth.offending_indices = [index]
            ground_truth.explanation = "Line total does not equal quantity times unit price."
            ground_truth.expected_value = f"{item.expected_total():.2f}"
            ground_truth.actual_value = f"{item.total:.2f}"

        if irregularity == IrregularityType.CMS_BENCHMARK:
            ground_truth.explanation = "Visit priced far above the reference rate for the payer."

        if irregularity == IrregularityType.UPCODING:
            ground_truth.explanation = "E/M level exceeds what the documented acuity supports."
            ground_truth.expected_value = f"Level <= {ACUITY_MAX_EM_LEVEL[clinical.acuity]}"

        # =====================================================================
        # STAGE 2.3: SETTLEMENT
        # =====================================================================
        out_of_network = irregularity == IrregularityType.BALANCE_BILLING
        subtotal = sum_currency(item.total for item in line_items)
        adjustments, insurance_paid = settle(subtotal, payer, rng, out_of_network)

        artifact = BillArtifact(
            artifact_id=f"BILL-{rng.randrange(16 ** 8):08X}",
            scenario_id=scenario.scenario_id,
            irregularity=irregularity,
            payer_class=payer,
            care_setting=clinical.care_setting,
            facility=facility,
            patient_name=clinical.patient.name,
            patient_dob=clinical.patient.date_of_birth,
            account_number=generate_reference(rng, "AC", 8),
            admission_date=admission,
            discharge_date=discharge,
            statement_date=discharge + timedelta(days=rng.randint(*STATEMENT_DELAY_DAYS)),
            type_of_bill=type_of_bill_for(clinical.care_setting),
            insurance_name=rng.choice(PAYER_INSURANCE_NAMES[payer]),
            line_items=line_items,
            subtotal=subtotal,
            adjustments=adjustments,
            insurance_paid=insurance_paid,
            network_status=NetworkStatus.OUT_OF_NETWORK if out_of_network else NetworkStatus.IN_NETWORK,
            attending_npi=generate_npi(rng),
            diagnoses=list(coding.diagnoses),
            ground_truth=ground_truth,
        )
        artifact.grand_total = artifact.expected_grand_total()

        if irregularity == IrregularityType.BALANCE_MISMATCH:
            expected = artifact.grand_total
            artifact.grand_total = round_currency(expected + BALANCE_MISMATCH_DELTA)
            ground_truth.explanation = "Amount due exceeds charges minus adjustments and payments."
            ground_truth.expected_value = f"{expected:.2f}"
            ground_truth.actual_value = f"{artifact.grand_total:.2f}"

        if out_of_network:
            ground_truth.explanation = "Insured patient balance-billed by an out-of-network provider."
            ground_truth.actual_value = f"Patient balance ${artifact.grand_total:,.2f}"

        if irregularity == IrregularityType.GHOST_PROVIDER:
            valid = artifact.attending_npi
            artifact.attending_npi = corrupt_npi(valid)
            ground_truth.explanation = "Attending NPI fails its checksum."
            ground_truth.actual_value = artifact.attending_npi

        # =====================================================================
        # STAGE 2.4: GOOD FAITH ESTIMATE
        # =====================================================================
        if not payer.is_insured or irregularity == IrregularityType.GFE_VIOLATION:
            artifact.estimate = self._estimate(artifact, irregularity)

        if not ground_truth.offending_indices:
            ground_truth.offending_indices = list(
                self._gfe_offenders(artifact)
                if irregularity == IrregularityType.GFE_VIOLATION
                else speculative_offenders(line_items, irregularity)
            )

        # =====================================================================
        # STAGE 2.5: PROFESSIONAL TWIN
        # =====================================================================
        professional = coding.for_track(Track.PROFESSIONAL)
        if professional:
            artifact.professional_bill = self._professional_twin(
                artifact, professional, clinical, context, stay_days
            )

        logger.info(
            f"Financial | {artifact.artifact_id} | {len(line_items)} line(s) | "
            f"Subtotal ${artifact.subtotal:,.2f} | Due ${artifact.grand_total:,.2f} | "
            f"Split: {artifact.is_split}"
        )
        return artifact

    # =========================================================================
    # STAGE 3: PRICING
    # =========================================================================

    @staticmethod
    def _price_lines(
        assignments: List[CodeAssignment],
        facility: FacilityIdentity,
        setting: CareSetting,
        payer: PayerClass,
        resolver: PricingResolver,
        irregularity: IrregularityType,
        admission: date,
        stay_days: int,
        rng: random.Random,
    ) -> List[LineItem]:
        gouging_multiplier = payer_multiplier(payer) * GOUGING_MULTIPLIER
        line_items: List[LineItem] = []

        for assignment in sorted(assignments, key=lambda a: service_rank(a.code)):
            rate = resolver.resolve_rate(assignment.code, assignment.official_description)
            override: Optional[float] = None
            if irregularity == IrregularityType.CMS_BENCHMARK and is_primary_em_code(assignment.code):
                override = gouging_multiplier

            unit_price = resolver.billed_price(
                rate,
                payer,
                facility.region,
                assignment.modifiers,
                location_text=facility.location_text,
                payer_multiplier_override=override,
            )

            offset = 0
            if stay_days > 1 and not is_primary_em_code(assignment.code):
                # Subsequent-day visits never share the admission day.
                low = 1 if is_em_code(assignment.code) else 0
                offset = rng.randint(low, stay_days - 1)

            line_items.append(
                LineItem(
                    date=admission + timedelta(days=offset),
                    code=assignment.code,
                    description=assignment.billing_description,
                    revenue_code=assign_revenue_code(assignment.code, setting),
                    quantity=assignment.quantity,
                    unit_price=unit_price,
                    total=round_currency(assignment.quantity * unit_price),
                    modifiers=list(assignment.modifiers),
                )
            )

        return line_items

    # =========================================================================
    # STAGE 4: ESTIMATE
    # =========================================================================

    @staticmethod
    def _estimate(artifact: BillArtifact, irregularity: IrregularityType) -> GoodFaithEstimate:
        """
        Estimate quoted before service.

        Clean estimates quote the billed unit prices; a GFE violation
        halves the quoted rate of the highest-total line.
        """
        rates = {}
        for item in artifact.line_items:
            if item.code:
                rates.setdefault(item.base_code, item.unit_price)

        if irregularity == IrregularityType.GFE_VIOLATION:
            coded = [item for item in artifact.line_items if item.code]
            if coded:
                highest = max(coded, key=lambda item: item.total)
                rates[highest.base_code] = round_currency(highest.unit_price / 2)

        estimated_total = sum_currency(
            item.quantity * rates.get(item.base_code, item.unit_price)
            for item in artifact.line_items
        )
        return GoodFaithEstimate(unit_rates=rates, estimated_total=estimated_total)

    @staticmethod
    def _gfe_offenders(artifact: BillArtifact) -> List[int]:
        if artifact.estimate is None:
            return []
        return [
            i
            for i, item in enumerate(artifact.line_items)
            if item.code and item.unit_price > artifact.estimate.unit_rates.get(item.base_code, item.unit_price)
        ]

    # =========================================================================
    # STAGE 5: SPLIT BILLING
    # =========================================================================

    def _professional_twin(
        self,
        primary: BillArtifact,
        assignments: List[CodeAssignment],
        clinical: ClinicalTruth,
        context: GenerationContext,
        stay_days: int,
    ) -> BillArtifact:
        """Professional-track bill; always priced clean and never labeled."""
        rng = context.rng
        line_items = self._price_lines(
            assignments,
            primary.facility,
            clinical.care_setting,
            primary.payer_class,
            context.resolver,
            IrregularityType.CLEAN,
            primary.admission_date,
            stay_days,
            rng,
        )
        subtotal = sum_currency(item.total for item in line_items)
        adjustments, insurance_paid = settle(subtotal, primary.payer_class, rng)

        twin = BillArtifact(
            artifact_id=f"{primary.artifact_id}-PRO",
            scenario_id=primary.scenario_id,
            irregularity=IrregularityType.CLEAN,
            payer_class=primary.payer_class,
            care_setting=primary.care_setting,
            facility=primary.facility,
            patient_name=primary.patient_name,
            patient_dob=primary.patient_dob,
            account_number=primary.account_number,
            admission_date=primary.admission_date,
            discharge_date=primary.discharge_date,
            statement_date=primary.statement_date,
            type_of_bill="",
            insurance_name=primary.insurance_name,
            line_items=line_items,
            subtotal=subtotal,
            adjustments=adjustments,
            insurance_paid=insurance_paid,
            track=Track.PROFESSIONAL,
            attending_npi=primary.attending_npi
            if primary.irregularity != IrregularityType.GHOST_PROVIDER
            else generate_npi(rng),
            diagnoses=list(primary.diagnoses),
        )
        twin.grand_total = twin.expected_grand_total()
        return twin

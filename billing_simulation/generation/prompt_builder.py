"""
Prompt Builder - Generation Phase Prompts

This module constructs the prompts sent to the oracle by the generation
phases. Prompts are designed to:
    1. Ask for exactly one JSON object matching the phase schema
    2. Carry the scenario context the phase needs, and nothing more
    3. Never let the oracle decide values the pipeline computes itself
       (identifiers, prices, totals, acuity)

Why Separate Prompt Builder:
    1. Single Responsibility: prompt construction separate from phase logic
    2. Testability: prompts can be inspected without oracle calls
    3. Maintainability: centralized prompt templates

Pipeline Position:
    Scenario → [PromptBuilder] → OracleAdapter → Phase → next Phase
               ^^^^^^^^^^^^^^^
               You are here

Author: Shubham Singh
Date: January 2026
"""

import json
from typing import Dict

from billing_simulation.core.enums import IrregularityType
from billing_simulation.core.models import (
    BillArtifact,
    ClinicalTruth,
    FacilityIdentity,
    Scenario,
)


# =============================================================================
# STAGE 1: PROMPT TEMPLATES
# =============================================================================
# Each template opens with the role the oracle plays. Phases are told the
# JSON shape they must return; extra keys are ignored by schema validation.

FACILITY_TEMPLATE = """You are a hospital registry assistant building realistic synthetic provider records.

**TASK:** Invent one plausible US healthcare facility for the encounter below.

**ENCOUNTER CONTEXT:**
- Care setting: {care_setting}
- Specialty: {specialty}
- Scenario: {description}

**RULES:**
1. The facility must not be a real, identifiable organization
2. Use a real US city and its correct two-letter state code
3. facilityType is one of: Hospital, Clinic, Urgent Care Center, Physician Group
4. Do NOT invent NPI or tax identifiers (they are assigned separately)

**RESPOND IN JSON FORMAT:**
{{"name": "...", "address": "...", "city": "...", "state": "TX", "zip": "77002", "facilityType": "Hospital"}}
"""

CLINICAL_TEMPLATE = """You are an attending physician writing synthetic encounter documentation for billing training data.

**TASK:** Write the medical record for one {care_setting} encounter at {facility_name} ({city}, {state}).

**ENCOUNTER CONTEXT:**
- Specialty: {specialty}
- Acuity: {acuity}
- Date of service: {date_of_service}
- Scenario: {description}
- Services expected to be ordered: {services}
{laterality_line}{recent_procedure_line}
**RULES:**
1. Use a fictional patient; no real people
2. Document findings that support the acuity level, no more and no less
3. Mention the anatomical side explicitly whenever a body part is sided
4. Do NOT write billing codes in the narrative

**RESPOND IN JSON FORMAT:**
{{
    "patient_name": "...",
    "date_of_birth": "YYYY-MM-DD",
    "gender": "F|M",
    "chief_complaint": "...",
    "history": "...",
    "exam": "...",
    "assessment": "...",
    "plan": "...",
    "laterality": "LEFT|RIGHT|BILATERAL|null",
    "orders": ["short order descriptions"]
}}
"""

CODING_TEMPLATE = """You are a certified professional medical coder assigning codes for a synthetic claim.

**TASK:** Assign CPT/HCPCS procedure codes and ICD-10-CM diagnosis codes to the encounter below.

**ENCOUNTER ({care_setting}, acuity {acuity}):**
{narrative}

**ORDERS:**
{orders}

**SERVICES ON THE ENCOUNTER:**
{services}

**CODING INSTRUCTIONS:**
{instruction}

**RULES:**
1. Use exactly one evaluation-and-management code for the {care_setting} setting
2. Put anatomical-side modifiers (LT, RT, 50) in "modifiers", not in the code
3. billing_description is the short line text printed on the bill

**RESPOND IN JSON FORMAT:**
{{
    "procedures": [
        {{"code": "99284", "billing_description": "ER VISIT MOD SEVERITY", "official_description": "...", "modifiers": [], "quantity": 1}}
    ],
    "diagnoses": [{{"code": "R07.9", "description": "Chest pain, unspecified"}}],
    "justification": "one paragraph"
}}
"""

REVIEW_TEMPLATE = """You are a patient billing advocate reviewing a hospital bill without access to the medical record.

**TASK:** Decide whether the irregularity "{irregularity}" can be detected from the bill alone.

**BILL:**
{bill}

**RESPOND IN JSON FORMAT:**
{{"detectable_from_bill": true, "explanation": "...", "missing_info": ["what else a reviewer would need"]}}
"""


# =============================================================================
# STAGE 2: IRREGULARITY INSTRUCTIONS
# =============================================================================
# What the coder is told per scenario. Deterministic policies run after the
# oracle answers, so these are requests, not guarantees.

CODING_INSTRUCTIONS: Dict[IrregularityType, str] = {
    IrregularityType.CLEAN: "Code accurately and completely. Bundle panel components into the panel code.",
    IrregularityType.UPCODING: (
        "Assign an evaluation-and-management level higher than the documentation supports."
    ),
    IrregularityType.UNBUNDLING: (
        "List the individual assays of any laboratory panel separately instead of the panel code."
    ),
    IrregularityType.DUPLICATE: "Code accurately; one lab service is performed once.",
    IrregularityType.RECORD_MISMATCH: (
        "Code the imaging with the anatomical side modifier documented in the record."
    ),
    IrregularityType.GLOBAL_PERIOD_VIOLATION: (
        "Bill a separate evaluation-and-management visit without a global-period modifier."
    ),
}

DEFAULT_CODING_INSTRUCTION = "Code accurately and completely."


# =============================================================================
# STAGE 3: PROMPT BUILDER CLASS
# =============================================================================


class PromptBuilder:
    """
    Constructs oracle prompts for the generation phases.

    What it does:
        Fills the phase templates with scenario, facility and clinical
        context so each phase sends one self-contained prompt.

    Why it exists:
        1. Centralizes prompt logic for maintainability
        2. Keeps generated identifiers and prices out of oracle control
        3. Enables testing prompts without making oracle calls

    Example:
        >>> builder = PromptBuilder()
        >>> prompt = builder.build_facility_prompt(scenario)
        >>> "hospital registry" in prompt
        True
    """

    def build_facility_prompt(self, scenario: Scenario) -> str:
        return FACILITY_TEMPLATE.format(
            care_setting=scenario.care_setting.value,
            specialty=scenario.specialty,
            description=scenario.description or scenario.name,
        )

    def build_clinical_prompt(
        self, scenario: Scenario, facility: FacilityIdentity, date_of_service: str
    ) -> str:
        laterality_line = (
            f"- Affected side: {scenario.laterality}\n" if scenario.laterality else ""
        )
        recent_procedure_line = ""
        if scenario.recent_procedure:
            recent = scenario.recent_procedure
            recent_procedure_line = (
                f"- Prior surgery: {recent.get('description', recent.get('code'))} "
                f"{recent.get('days_before', 0)} days before this visit\n"
            )

        return CLINICAL_TEMPLATE.format(
            care_setting=scenario.care_setting.value,
            facility_name=facility.name,
            city=facility.city,
            state=facility.state,
            specialty=scenario.specialty,
            acuity=scenario.complexity.value,
            date_of_service=date_of_service,
            description=scenario.description or scenario.name,
            services=", ".join(scenario.services) or "None specified",
            laterality_line=laterality_line,
            recent_procedure_line=recent_procedure_line,
        )

    def build_coding_prompt(self, scenario: Scenario, clinical: ClinicalTruth) -> str:
        """
        Build the coding prompt.

        The narrative is passed verbatim; the scenario's service list is
        passed as a hint so offline-authored catalogs steer the coder.
        """
        orders = "\n".join(f"- {order}" for order in clinical.orders) or "- None documented"
        return CODING_TEMPLATE.format(
            care_setting=clinical.care_setting.value,
            acuity=clinical.acuity.value,
            narrative=clinical.encounter.text,
            orders=orders,
            services=", ".join(scenario.services) or "Not specified",
            instruction=CODING_INSTRUCTIONS.get(scenario.irregularity, DEFAULT_CODING_INSTRUCTION),
        )

    def build_review_prompt(self, artifact: BillArtifact) -> str:
        bill = {
            "facility": artifact.facility.name,
            "type_of_bill": artifact.type_of_bill,
            "payer": artifact.payer_class.value,
            "network_status": artifact.network_status.value,
            "line_items": [item.to_dict() for item in artifact.line_items],
            "subtotal": artifact.subtotal,
            "adjustments": artifact.adjustments,
            "insurance_paid": artifact.insurance_paid,
            "grand_total": artifact.grand_total,
        }
        return REVIEW_TEMPLATE.format(
            irregularity=artifact.irregularity.value,
            bill=json.dumps(bill, indent=2),
        )

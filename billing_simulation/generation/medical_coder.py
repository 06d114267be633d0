"""
Medical Coder - Coding Phase

Turns the clinical record into CPT/HCPCS procedure assignments and ICD-10
diagnoses. The oracle proposes codes; deterministic policies then make the
assignment internally consistent:

    ┌─────────────────────────┐
    │ oracle codes (or stub)  │
    └───────────┬─────────────┘
                ▼
    ┌─────────────────────────┐  one E/M family per setting, level kept,
    │ 1. E/M exclusivity      │  level-3 default when missing, one primary
    └───────────┬─────────────┘
                ▼
    ┌─────────────────────────┐  panels collapse, NCCI / revenue-code
    │ 2. Bundling             │  companions drop (skipped for UNBUNDLING)
    └───────────┬─────────────┘
                ▼
    ┌─────────────────────────┐
    │ 3. Side modifiers       │  extremity imaging gets LT / RT / 50
    └───────────┬─────────────┘
                ▼
    ┌─────────────────────────┐  facility + professional entry per code,
    │ 4. Split tracks         │  TC / 26 on diagnostic components
    └─────────────────────────┘

Outside UPCODING scenarios, E/M levels are also capped at what the
documented acuity supports.

Stub on oracle Err: the scenario's service list (or 99213) with R69.

Author: Shubham Singh
Date: January 2026
"""

from collections import defaultdict, deque
from dataclasses import replace
from typing import Deque, Dict, List, Optional, Tuple

from loguru import logger

from billing_simulation.core.constants import (
    ACUITY_MAX_EM_LEVEL,
    INPATIENT_SUBSEQUENT_EM_CODES,
    LATERALITY_MODIFIERS,
    PANEL_DESCRIPTIONS,
    STUB_DIAGNOSIS,
    STUB_PROCEDURE,
)
from billing_simulation.core.enums import BillingModel, CareSetting, IrregularityType, Track
from billing_simulation.core.models import (
    ClinicalTruth,
    CodeAssignment,
    CodingTruth,
    DiagnosisCode,
    FacilityIdentity,
)
from billing_simulation.generation.coding_rules import (
    bundled_codes,
    collapse_panels,
    em_code_for,
    em_level,
    is_component_billable,
    is_em_code,
    translate_em,
)
from billing_simulation.generation.context import GenerationContext
from billing_simulation.generation.prompt_builder import PromptBuilder
from billing_simulation.oracle.schemas import CodingResponse
from billing_simulation.pricing.resolver import PricingResolver

SIDE_TO_MODIFIER = {side: modifier for modifier, side in LATERALITY_MODIFIERS.items()}


def split_code(raw: str) -> Tuple[str, List[str]]:
    """'73560-rt' → ('73560', ['RT'])"""
    parts = [p.strip().upper() for p in (raw or "").split("-") if p.strip()]
    if not parts:
        return "", []
    return parts[0], parts[1:]


# =============================================================================
# STAGE 1: DETERMINISTIC POLICIES
# =============================================================================


def enforce_em_policy(
    procedures: List[CodeAssignment], setting: CareSetting, resolver: Optional[PricingResolver] = None
) -> List[CodeAssignment]:
    """
    Exactly one primary E/M code, from the setting's family.

    Wrong-family codes are translated level-preserving; extra primary codes
    are dropped; inpatient subsequent-day codes are kept on inpatient bills.
    """
    result: List[CodeAssignment] = []
    primary_seen = False

    for procedure in procedures:
        if not is_em_code(procedure.code):
            result.append(procedure)
            continue

        if setting == CareSetting.INPATIENT and procedure.code in INPATIENT_SUBSEQUENT_EM_CODES:
            result.append(procedure)
            continue

        translated = translate_em(procedure.code, setting)
        if translated != procedure.code:
            logger.debug(f"E/M translated | {procedure.code} → {translated} | {setting.value}")
            description = (resolver.describe(translated) if resolver else None) or (
                f"{setting.value.upper()} VISIT LEVEL {em_level(translated)}"
            )
            procedure = replace(procedure, code=translated, billing_description=description)

        if primary_seen:
            logger.debug(f"Extra primary E/M dropped | {procedure.code}")
            continue
        primary_seen = True
        result.append(procedure)

    if not primary_seen:
        code = em_code_for(setting, 3)
        description = (resolver.describe(code) if resolver else None) or f"{setting.value.upper()} VISIT"
        result.insert(0, CodeAssignment(code=code, billing_description=description, kind="DERIVED"))
        logger.debug(f"Default E/M added | {code}")

    return result


def cap_em_level(
    procedures: List[CodeAssignment],
    setting: CareSetting,
    max_level: int,
    resolver: Optional[PricingResolver] = None,
) -> List[CodeAssignment]:
    """Lower primary E/M codes the documented acuity does not support."""
    result = []
    for procedure in procedures:
        level = em_level(procedure.code)
        if level and level > max_level and procedure.code not in INPATIENT_SUBSEQUENT_EM_CODES:
            capped = em_code_for(setting, max_level)
            logger.debug(f"E/M capped at acuity | {procedure.code} → {capped}")
            description = (resolver.describe(capped) if resolver else None) or procedure.billing_description
            procedure = replace(procedure, code=capped, billing_description=description)
        result.append(procedure)
    return result


def enforce_bundling(
    procedures: List[CodeAssignment], setting: CareSetting
) -> List[CodeAssignment]:
    """Collapse panel components and drop bundled companion codes."""
    queues: Dict[str, Deque[CodeAssignment]] = defaultdict(deque)
    for procedure in procedures:
        queues[procedure.code].append(procedure)

    collapsed: List[CodeAssignment] = []
    for code in collapse_panels([p.code for p in procedures]):
        if queues[code]:
            collapsed.append(queues[code].popleft())
        else:
            collapsed.append(
                CodeAssignment(
                    code=code,
                    billing_description=PANEL_DESCRIPTIONS.get(code, code),
                    official_description=PANEL_DESCRIPTIONS.get(code, ""),
                    kind="DERIVED",
                )
            )
            logger.debug(f"Panel components collapsed into {code}")

    drop = bundled_codes([p.code for p in collapsed], setting)
    if drop:
        logger.debug(f"Bundled codes dropped | {sorted(drop)}")
    return [p for p in collapsed if p.code not in drop]


def apply_laterality(procedures: List[CodeAssignment], laterality: Optional[str]) -> List[CodeAssignment]:
    modifier = SIDE_TO_MODIFIER.get((laterality or "").upper())
    if modifier is None:
        return procedures
    result = []
    for procedure in procedures:
        sided = any(m in LATERALITY_MODIFIERS for m in procedure.modifiers)
        if procedure.code.startswith("73") and not sided:
            procedure = replace(procedure, modifiers=list(procedure.modifiers) + [modifier])
        result.append(procedure)
    return result


def split_tracks(procedures: List[CodeAssignment]) -> List[CodeAssignment]:
    """Facility entries first, then their professional counterparts."""
    facility: List[CodeAssignment] = []
    professional: List[CodeAssignment] = []
    for procedure in procedures:
        facility_mods = list(procedure.modifiers)
        professional_mods = list(procedure.modifiers)
        if is_component_billable(procedure.code):
            facility_mods.append("TC")
            professional_mods.append("26")
        facility.append(replace(procedure, modifiers=facility_mods, track=Track.FACILITY))
        professional.append(
            replace(procedure, modifiers=professional_mods, track=Track.PROFESSIONAL, kind="DERIVED")
        )
    return facility + professional


# =============================================================================
# STAGE 2: CODING AGENT
# =============================================================================


class MedicalCoder:
    """
    Coding phase agent.

    Example:
        >>> coding = MedicalCoder().run(clinical, facility, context)
        >>> [p.code for p in coding.procedures]
        ['99284', '85025', '80053', '71046']
    """

    def __init__(self, prompt_builder: Optional[PromptBuilder] = None):
        self._prompts = prompt_builder or PromptBuilder()

    def run(
        self, clinical: ClinicalTruth, facility: FacilityIdentity, context: GenerationContext
    ) -> CodingTruth:
        scenario = context.scenario
        resolver = context.resolver

        # =====================================================================
        # STAGE 2.1: ORACLE CODES OR STUB
        # =====================================================================
        prompt = self._prompts.build_coding_prompt(scenario, clinical)
        result = context.oracle.request(prompt, CodingResponse, purpose="coding")

        if result.ok:
            response: CodingResponse = result.value
            procedures = []
            for entry in response.procedures:
                code, suffix_mods = split_code(entry.code)
                if not code:
                    continue
                procedures.append(
                    CodeAssignment(
                        code=code,
                        billing_description=entry.billing_description,
                        official_description=entry.official_description
                        or resolver.describe(code)
                        or "",
                        modifiers=suffix_mods + [m.strip().upper() for m in entry.modifiers if m.strip()],
                        quantity=entry.quantity,
                    )
                )
            diagnoses = [DiagnosisCode(d.code.strip().upper(), d.description) for d in response.diagnoses]
            justification = response.justification
        else:
            logger.warning(f"Coding phase using stub codes | {result.message}")
            procedures, diagnoses, justification = self._stub_codes(scenario.services, resolver)

        if not diagnoses:
            diagnoses = [DiagnosisCode(*STUB_DIAGNOSIS)]

        # =====================================================================
        # STAGE 2.2: DETERMINISTIC POLICIES
        # =====================================================================
        setting = clinical.care_setting
        procedures = enforce_em_policy(procedures, setting, resolver)
        if scenario.irregularity != IrregularityType.UPCODING:
            procedures = cap_em_level(
                procedures, setting, ACUITY_MAX_EM_LEVEL[clinical.acuity], resolver
            )
        if scenario.irregularity != IrregularityType.UNBUNDLING:
            procedures = enforce_bundling(procedures, setting)
        procedures = apply_laterality(procedures, clinical.laterality)
        if facility.billing_model == BillingModel.SPLIT:
            procedures = split_tracks(procedures)

        coding = CodingTruth(procedures=procedures, diagnoses=diagnoses, justification=justification)
        logger.info(
            f"Coding | {len(procedures)} assignment(s) | "
            f"Codes: {[p.code for p in coding.for_track(Track.FACILITY)]} | "
            f"Dx: {[d.code for d in diagnoses]}"
        )
        return coding

    @staticmethod
    def _stub_codes(services: List[str], resolver: PricingResolver):
        procedures = []
        for raw in services or [STUB_PROCEDURE[0]]:
            code, modifiers = split_code(raw)
            description = resolver.describe(code) or (
                STUB_PROCEDURE[1] if code == STUB_PROCEDURE[0] else code
            )
            procedures.append(
                CodeAssignment(
                    code=code,
                    billing_description=description,
                    official_description=description,
                    modifiers=modifiers,
                )
            )
        return procedures, [DiagnosisCode(*STUB_DIAGNOSIS)], "Stub coding: oracle unavailable."

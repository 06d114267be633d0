"""
Clinical Architect - Clinical Phase

Writes the medical record behind the bill: patient, encounter narrative,
orders, anatomical side and any prior surgery.

Determinism rules:
    - acuity ALWAYS comes from the scenario, never from the oracle
    - the scenario's side tag wins over the oracle's; the oracle's is used
      only when the scenario has none
    - the prior surgery (global period scenarios) comes from the scenario

Fallback:
    On oracle Err a minimal generic encounter is produced from the
    scenario description and service list.

Author: Shubham Singh
Date: January 2026
"""

import random
from datetime import date, datetime, timedelta
from typing import Optional

from loguru import logger

from billing_simulation.core.models import (
    ClinicalTruth,
    EncounterNarrative,
    FacilityIdentity,
    PatientDescriptor,
    PriorProcedure,
    Scenario,
)
from billing_simulation.generation.context import GenerationContext
from billing_simulation.generation.prompt_builder import PromptBuilder
from billing_simulation.oracle.schemas import ClinicalResponse

# Dates of service land this many days before the run date, so that the
# statement date (15-45 days after service) is never in the future.
SERVICE_LOOKBACK_DAYS = (60, 120)

STUB_PATIENT_NAMES = [
    "Jordan Avery", "Casey Morgan", "Riley Bennett", "Taylor Quinn",
    "Morgan Ellis", "Jamie Parker", "Alex Carter", "Drew Hayes",
]


def random_birth_date(rng: random.Random, on: date) -> date:
    age_days = rng.randint(18 * 365, 85 * 365)
    return on - timedelta(days=age_days)


def _parse_birth_date(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


class ClinicalArchitect:
    """
    Clinical phase agent.

    What it does:
        Produces the ClinicalTruth for a scenario, from the oracle when it
        answers and from a generic stub when it does not.

    Example:
        >>> clinical = ClinicalArchitect().run(facility, context)
        >>> clinical.acuity == context.scenario.complexity
        True
    """

    def __init__(self, prompt_builder: Optional[PromptBuilder] = None):
        self._prompts = prompt_builder or PromptBuilder()

    def run(self, facility: FacilityIdentity, context: GenerationContext) -> ClinicalTruth:
        scenario = context.scenario
        rng = context.rng
        date_of_service = context.today - timedelta(days=rng.randint(*SERVICE_LOOKBACK_DAYS))

        prompt = self._prompts.build_clinical_prompt(
            scenario, facility, date_of_service.isoformat()
        )
        result = context.oracle.request(prompt, ClinicalResponse, purpose="clinical")

        if result.ok:
            response: ClinicalResponse = result.value
            birth_date = _parse_birth_date(response.date_of_birth) or random_birth_date(
                rng, date_of_service
            )
            patient = PatientDescriptor(response.patient_name, birth_date, response.gender)
            encounter = EncounterNarrative(
                date_of_service=date_of_service,
                chief_complaint=response.chief_complaint,
                history=response.history,
                exam=response.exam,
                assessment=response.assessment,
                plan=response.plan,
            )
            laterality = scenario.laterality or response.laterality
            orders = list(response.orders) or list(scenario.services)
        else:
            logger.warning(f"Clinical phase using stub encounter | {result.message}")
            patient, encounter = self._stub_encounter(scenario, date_of_service, rng)
            laterality = scenario.laterality
            orders = list(scenario.services)

        clinical = ClinicalTruth(
            patient=patient,
            encounter=encounter,
            acuity=scenario.complexity,
            care_setting=scenario.care_setting,
            laterality=laterality.upper() if laterality else None,
            orders=orders,
            recent_procedure=self._prior_procedure(scenario, date_of_service),
        )

        logger.info(
            f"Clinical | {patient.name} | DOS {date_of_service} | "
            f"Acuity: {clinical.acuity.value} | Side: {clinical.laterality or '-'}"
        )
        return clinical

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _stub_encounter(scenario: Scenario, date_of_service: date, rng: random.Random):
        patient = PatientDescriptor(
            name=rng.choice(STUB_PATIENT_NAMES),
            date_of_birth=random_birth_date(rng, date_of_service),
            gender=rng.choice(["F", "M"]),
        )
        side = f" ({scenario.laterality.lower()} side)" if scenario.laterality else ""
        encounter = EncounterNarrative(
            date_of_service=date_of_service,
            chief_complaint=(scenario.description or "General evaluation") + side,
            history="Patient presents for evaluation.",
            exam="Vital signs stable. Focused examination performed.",
            assessment=scenario.name,
            plan="Treatment and follow-up as ordered.",
        )
        return patient, encounter

    @staticmethod
    def _prior_procedure(scenario: Scenario, date_of_service: date) -> Optional[PriorProcedure]:
        recent = scenario.recent_procedure
        if not recent:
            return None
        return PriorProcedure(
            code=recent["code"],
            description=recent.get("description", ""),
            performed_on=date_of_service - timedelta(days=int(recent.get("days_before", 30))),
            global_days=int(recent.get("global_days", 90)),
        )

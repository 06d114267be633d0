"""
Facility Scout - Identity Phase

First phase of the pipeline. Asks the oracle for a plausible billing
facility and attaches deterministically generated identifiers.

    oracle Ok   → facility name/location from the oracle
    oracle Err  → the hardcoded fallback facility

In both branches the NPI, tax ID and phone are generated from the run's
seeded random source, so identifiers are always checksum-valid.

Author: Shubham Singh
Date: January 2026
"""

from typing import Dict, Optional

from loguru import logger

from billing_simulation.core.constants import (
    DEFAULT_AREA_CODES,
    FALLBACK_FACILITY,
    STATE_AREA_CODES,
)
from billing_simulation.core.enums import BillingModel
from billing_simulation.core.models import FacilityIdentity, Scenario
from billing_simulation.generation.context import GenerationContext
from billing_simulation.generation.identifiers import generate_ein, generate_npi, generate_phone
from billing_simulation.generation.prompt_builder import PromptBuilder
from billing_simulation.oracle.schemas import FacilityResponse


def decide_billing_model(scenario: Scenario, facility_type: str) -> BillingModel:
    """Scenario override, else Split for hospitals and Global for everyone else."""
    if scenario.billing_model is not None:
        return scenario.billing_model
    return BillingModel.SPLIT if "hospital" in facility_type.lower() else BillingModel.GLOBAL


class FacilityScout:
    """
    Identity phase agent.

    Example:
        >>> scout = FacilityScout()
        >>> facility = scout.run(context)
        >>> is_valid_npi(facility.npi)
        True
    """

    def __init__(self, prompt_builder: Optional[PromptBuilder] = None):
        self._prompts = prompt_builder or PromptBuilder()

    def run(self, context: GenerationContext) -> FacilityIdentity:
        scenario = context.scenario
        prompt = self._prompts.build_facility_prompt(scenario)
        result = context.oracle.request(prompt, FacilityResponse, purpose="identity")

        if result.ok:
            fields: Dict[str, str] = {
                "name": result.value.name,
                "address": result.value.address,
                "city": result.value.city,
                "state": result.value.state,
                "zip_code": result.value.zip_code,
                "facility_type": result.value.facility_type,
            }
        else:
            logger.warning(f"Identity phase using fallback facility | {result.message}")
            fields = dict(FALLBACK_FACILITY)

        rng = context.rng
        area_code = rng.choice(STATE_AREA_CODES.get(fields["state"], DEFAULT_AREA_CODES))

        facility = FacilityIdentity(
            name=fields["name"],
            address=fields["address"],
            city=fields["city"],
            state=fields["state"],
            zip_code=fields["zip_code"],
            facility_type=fields["facility_type"],
            billing_model=decide_billing_model(scenario, fields["facility_type"]),
            npi=generate_npi(rng),
            tax_id=generate_ein(rng),
            phone=generate_phone(rng, area_code),
        )

        logger.info(
            f"Identity | {facility.name} | {facility.city}, {facility.state} | "
            f"Model: {facility.billing_model.value}"
        )
        return facility

"""
Generation Layer - the phase agents of the bill simulation pipeline.

Submodules:
    facility_scout.py      → Identity phase (facility + deterministic identifiers)
    clinical_architect.py  → Clinical phase (patient + encounter narrative)
    medical_coder.py       → Coding phase (CPT/HCPCS + ICD-10, coding policies)
    financial_clerk.py     → Financial phase (pricing, irregularity, settlement)
    publisher.py           → Publish phase (document projection)
    reviewer.py            → Optional review phase
    coding_rules.py        → E/M categories, bundling, revenue codes
    identifiers.py         → NPI / EIN / reference generators and validators
    prompt_builder.py      → Phase prompt templates
    context.py             → GenerationContext (scenario, oracle, resolver, rng)
"""

from billing_simulation.generation.clinical_architect import ClinicalArchitect
from billing_simulation.generation.context import GenerationContext
from billing_simulation.generation.facility_scout import FacilityScout
from billing_simulation.generation.financial_clerk import FinancialClerk
from billing_simulation.generation.medical_coder import MedicalCoder
from billing_simulation.generation.prompt_builder import PromptBuilder
from billing_simulation.generation.publisher import Publisher
from billing_simulation.generation.reviewer import Reviewer

__all__ = [
    "ClinicalArchitect",
    "FacilityScout",
    "FinancialClerk",
    "GenerationContext",
    "MedicalCoder",
    "PromptBuilder",
    "Publisher",
    "Reviewer",
]

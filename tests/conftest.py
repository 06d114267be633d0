"""
Pytest fixtures shared by the bill simulation tests.

Provides a scripted LLM client (keyed by the role line each prompt opens
with), a small benchmark table, and a hand-built three-line emergency bill
whose arithmetic and coding are clean.
"""

import json
import random
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Union

import pytest

from billing_simulation.audit.guardians import AuditContext
from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.enums import (
    BillingModel,
    CareSetting,
    Complexity,
    IrregularityType,
    PayerClass,
)
from billing_simulation.core.exceptions import OracleFailure
from billing_simulation.core.models import (
    BillArtifact,
    ClinicalTruth,
    EncounterNarrative,
    FacilityIdentity,
    GroundTruth,
    LineItem,
    PatientDescriptor,
)
from billing_simulation.generation.coding_rules import assign_revenue_code
from billing_simulation.generation.identifiers import generate_ein, generate_npi
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.pricing import PricingResolver, RateCache
from billing_simulation.repository import InMemoryBenchmarkRepository

Reply = Union[str, dict, Callable[[str], str]]

BENCHMARK_RATES = {"99284": 100.0, "85025": 10.0, "71046": 30.0, "36415": 3.0, "80053": 15.0}
BENCHMARK_DESCRIPTIONS = {
    "99284": "ED VISIT MODERATE-HIGH SEVERITY",
    "85025": "COMPLETE CBC W/AUTO DIFF WBC",
    "71046": "X-RAY EXAM CHEST 2 VIEWS",
    "36415": "COLLECTION VENOUS BLOOD VENIPUNCTURE",
}

SERVICE_DAY = date.today() - timedelta(days=60)


class ScriptedLLMClient:
    """
    Fake LLM transport.

    Replies are looked up by a substring of the prompt (the agent's role
    line). Unscripted prompts raise OracleFailure, like a provider outage.

    Example:
        >>> client = ScriptedLLMClient({"audit quality judge": {"justification": "ok"}})
    """

    def __init__(self, replies: Optional[Dict[str, Reply]] = None):
        self.replies: Dict[str, Reply] = dict(replies or {})
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        for role, reply in self.replies.items():
            if role in prompt:
                if callable(reply):
                    return reply(prompt)
                return reply if isinstance(reply, str) else json.dumps(reply)
        raise OracleFailure("no scripted reply", provider="scripted")

    def calls_for(self, role: str) -> int:
        return sum(1 for prompt in self.prompts if role in prompt)


# =============================================================================
# BUILDERS
# =============================================================================


def make_facility(seed: int = 1) -> FacilityIdentity:
    rng = random.Random(seed)
    return FacilityIdentity(
        name="General Hospital Center",
        address="1200 Main St",
        city="Houston",
        state="TX",
        zip_code="77002",
        facility_type="Hospital",
        billing_model=BillingModel.GLOBAL,
        npi=generate_npi(rng),
        tax_id=generate_ein(rng),
        phone="(713) 555-0100",
    )


def make_line(code: str, unit_price: float, quantity: int = 1, day: date = SERVICE_DAY, **kwargs) -> LineItem:
    return LineItem(
        date=day,
        code=code,
        description=kwargs.pop("description", BENCHMARK_DESCRIPTIONS.get(code, f"SERVICE {code}")),
        revenue_code=kwargs.pop("revenue_code", assign_revenue_code(code, CareSetting.EMERGENCY)),
        quantity=quantity,
        unit_price=unit_price,
        total=round(quantity * unit_price, 2),
        **kwargs,
    )


def make_artifact(
    lines: Optional[List[LineItem]] = None,
    irregularity: IrregularityType = IrregularityType.CLEAN,
    payer: PayerClass = PayerClass.COMMERCIAL,
    adjustments: float = 280.0,
    insurance_paid: float = 300.0,
) -> BillArtifact:
    """Commercial ER bill priced at 5x the benchmark rates, balance closed."""
    lines = lines if lines is not None else [
        make_line("99284", 500.0),
        make_line("85025", 50.0),
        make_line("71046", 150.0),
    ]
    subtotal = round(sum(item.total for item in lines), 2)
    artifact = BillArtifact(
        artifact_id="BILL-TEST0001",
        scenario_id="test-scenario",
        irregularity=irregularity,
        payer_class=payer,
        care_setting=CareSetting.EMERGENCY,
        facility=make_facility(),
        patient_name="Jordan Avery",
        patient_dob=date(1980, 5, 17),
        account_number="ACCT-00012345",
        admission_date=SERVICE_DAY,
        discharge_date=SERVICE_DAY,
        type_of_bill="131",
        insurance_name="Aetna",
        line_items=lines,
        subtotal=subtotal,
        adjustments=adjustments,
        insurance_paid=insurance_paid,
        grand_total=round(max(0.0, subtotal - adjustments - insurance_paid), 2),
        attending_npi=generate_npi(random.Random(99)),
        statement_date=SERVICE_DAY + timedelta(days=20),
        ground_truth=GroundTruth(irregularity=irregularity),
    )
    return artifact


def make_clinical(acuity: Complexity = Complexity.MEDIUM, laterality: Optional[str] = None) -> ClinicalTruth:
    return ClinicalTruth(
        patient=PatientDescriptor("Jordan Avery", date(1980, 5, 17), "F"),
        encounter=EncounterNarrative(
            date_of_service=SERVICE_DAY,
            chief_complaint="Chest pain for two hours",
            history="No prior cardiac history.",
            exam="Vital signs stable. Lungs clear.",
            assessment="Atypical chest pain",
            plan="CBC, chest x-ray, discharge with follow-up.",
        ),
        acuity=acuity,
        care_setting=CareSetting.EMERGENCY,
        laterality=laterality,
        orders=["85025", "71046"],
    )


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def scripted_client() -> ScriptedLLMClient:
    return ScriptedLLMClient()


@pytest.fixture
def offline_oracle() -> OracleAdapter:
    """Adapter with no client: every request is an Err."""
    return OracleAdapter(None)


@pytest.fixture
def benchmarks() -> InMemoryBenchmarkRepository:
    return InMemoryBenchmarkRepository(BENCHMARK_RATES, BENCHMARK_DESCRIPTIONS)


@pytest.fixture
def resolver(benchmarks, offline_oracle) -> PricingResolver:
    return PricingResolver(RateCache(), benchmarks, offline_oracle)


@pytest.fixture
def config() -> PipelineConfiguration:
    return PipelineConfiguration()


@pytest.fixture
def clean_artifact() -> BillArtifact:
    return make_artifact()


@pytest.fixture
def clinical() -> ClinicalTruth:
    return make_clinical()


@pytest.fixture
def audit_context(clinical, resolver, config) -> AuditContext:
    return AuditContext(clinical=clinical, resolver=resolver, config=config)

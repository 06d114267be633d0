"""
Domain Models for Mock Bill Simulation

This module defines the core data structures that flow through the bill
simulation and audit pipeline. Models are dataclasses designed for:
    1. Type safety and IDE support
    2. Serialization to/from JSON (saved artifacts, oracle prompts)
    3. Clear domain semantics

Model Hierarchy:
    FacilityIdentity    → Billing provider (frozen once created)
    ClinicalTruth       → Patient + encounter narrative, the medical record
    CodingTruth         → Procedure and diagnosis code assignments
    LineItem            → One charge row on a bill
    BillArtifact        → The generated bill (optionally with a professional twin)
    GroundTruth         → Label: which irregularity lives on which lines
    GuardianResult      → One audit rule's verdict (frozen)
    AuditReport         → Aggregated audit with the Judge's quality report
    SimulationResult    → Everything a generation run produced

Author: Shubham Singh
Date: January 2026
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from billing_simulation.core.enums import (
    BillingModel,
    CareSetting,
    Complexity,
    IrregularityType,
    JudgeVerdict,
    NetworkStatus,
    PayerClass,
    SentinelState,
    Severity,
    Track,
)
from billing_simulation.core.money import round_currency, sum_currency


def _date_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


# =============================================================================
# STAGE 1: IDENTITY
# =============================================================================


@dataclass(frozen=True)
class FacilityIdentity:
    """
    The billing provider printed at the top of a bill.

    What it does:
        Holds name, location and the two identifiers (NPI, tax ID) of the
        facility that issues the bill.

    Why it exists:
        1. The location drives the region price factor
        2. The identifiers are audited (checksum, placeholder patterns)
        3. Frozen: the Identity phase creates it once and nothing rewrites it;
           reconciliation uses `with_identifiers` to build a corrected copy

    Attributes:
        state: Two-letter state code, used as the pricing region
        billing_model: Global or Split, decided by facility type
    """

    name: str
    address: str
    city: str
    state: str
    zip_code: str
    facility_type: str
    billing_model: BillingModel
    npi: str
    tax_id: str
    phone: str = ""

    @property
    def region(self) -> str:
        return self.state

    @property
    def location_text(self) -> str:
        return f"{self.address}, {self.city}, {self.state} {self.zip_code}"

    def with_identifiers(self, npi: str, tax_id: str) -> "FacilityIdentity":
        return replace(self, npi=npi, tax_id=tax_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "facility_type": self.facility_type,
            "billing_model": self.billing_model.value,
            "npi": self.npi,
            "tax_id": self.tax_id,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FacilityIdentity":
        return cls(
            name=data["name"],
            address=data.get("address", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip_code=data.get("zip_code", ""),
            facility_type=data.get("facility_type", "Hospital"),
            billing_model=BillingModel(data.get("billing_model", BillingModel.GLOBAL.value)),
            npi=data.get("npi", ""),
            tax_id=data.get("tax_id", ""),
            phone=data.get("phone", ""),
        )


# =============================================================================
# STAGE 2: CLINICAL TRUTH
# =============================================================================


@dataclass
class PatientDescriptor:
    name: str
    date_of_birth: date
    gender: str


@dataclass
class EncounterNarrative:
    """Free-text encounter documentation, SOAP-like."""

    date_of_service: date
    chief_complaint: str
    history: str = ""
    exam: str = ""
    assessment: str = ""
    plan: str = ""

    @property
    def text(self) -> str:
        parts = [
            f"Chief complaint: {self.chief_complaint}",
            f"History: {self.history}",
            f"Exam: {self.exam}",
            f"Assessment: {self.assessment}",
            f"Plan: {self.plan}",
        ]
        return "\n".join(p for p in parts if not p.endswith(": "))


@dataclass
class PriorProcedure:
    """A surgery performed before this encounter that may carry a global period."""

    code: str
    description: str
    performed_on: date
    global_days: int = 90

    @property
    def global_period_end(self) -> date:
        return date.fromordinal(self.performed_on.toordinal() + self.global_days)


@dataclass
class ClinicalTruth:
    """
    The medical record behind a bill.

    Created once by the Clinical phase. Downstream phases read it; only the
    Compliance Sentinel may apply targeted repairs.

    Attributes:
        acuity: Complexity tag taken from the scenario, never from the oracle
        laterality: LEFT / RIGHT / BILATERAL when the encounter is sided
        recent_procedure: Prior surgery whose global period may cover this visit
    """

    patient: PatientDescriptor
    encounter: EncounterNarrative
    acuity: Complexity
    care_setting: CareSetting
    laterality: Optional[str] = None
    orders: List[str] = field(default_factory=list)
    recent_procedure: Optional[PriorProcedure] = None

    @property
    def date_of_service(self) -> date:
        return self.encounter.date_of_service

    def to_dict(self) -> Dict[str, Any]:
        recent = None
        if self.recent_procedure:
            recent = {
                "code": self.recent_procedure.code,
                "description": self.recent_procedure.description,
                "performed_on": _date_str(self.recent_procedure.performed_on),
                "global_days": self.recent_procedure.global_days,
            }
        return {
            "patient": {
                "name": self.patient.name,
                "date_of_birth": _date_str(self.patient.date_of_birth),
                "gender": self.patient.gender,
            },
            "encounter": {
                "date_of_service": _date_str(self.encounter.date_of_service),
                "chief_complaint": self.encounter.chief_complaint,
                "history": self.encounter.history,
                "exam": self.encounter.exam,
                "assessment": self.encounter.assessment,
                "plan": self.encounter.plan,
            },
            "acuity": self.acuity.value,
            "care_setting": self.care_setting.value,
            "laterality": self.laterality,
            "orders": list(self.orders),
            "recent_procedure": recent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClinicalTruth":
        patient = data["patient"]
        encounter = data["encounter"]
        recent = data.get("recent_procedure")
        return cls(
            patient=PatientDescriptor(
                name=patient["name"],
                date_of_birth=_parse_date(patient["date_of_birth"]),
                gender=patient.get("gender", "U"),
            ),
            encounter=EncounterNarrative(
                date_of_service=_parse_date(encounter["date_of_service"]),
                chief_complaint=encounter.get("chief_complaint", ""),
                history=encounter.get("history", ""),
                exam=encounter.get("exam", ""),
                assessment=encounter.get("assessment", ""),
                plan=encounter.get("plan", ""),
            ),
            acuity=Complexity(data["acuity"]),
            care_setting=CareSetting(data["care_setting"]),
            laterality=data.get("laterality"),
            orders=list(data.get("orders", [])),
            recent_procedure=PriorProcedure(
                code=recent["code"],
                description=recent.get("description", ""),
                performed_on=_parse_date(recent["performed_on"]),
                global_days=int(recent.get("global_days", 90)),
            )
            if recent
            else None,
        )


# =============================================================================
# STAGE 3: CODING TRUTH
# =============================================================================


@dataclass(frozen=True)
class DiagnosisCode:
    code: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "description": self.description}


@dataclass
class CodeAssignment:
    """
    One procedure code chosen by the Coding phase.

    kind is CORE for codes that follow directly from the encounter and
    DERIVED for codes added by policy (panel roll-ups, split-track copies).
    """

    code: str
    billing_description: str
    official_description: str = ""
    modifiers: List[str] = field(default_factory=list)
    quantity: int = 1
    kind: str = "CORE"
    track: Track = Track.FACILITY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "billing_description": self.billing_description,
            "official_description": self.official_description,
            "modifiers": list(self.modifiers),
            "quantity": self.quantity,
            "kind": self.kind,
            "track": self.track.value,
        }


@dataclass
class CodingTruth:
    procedures: List[CodeAssignment]
    diagnoses: List[DiagnosisCode]
    justification: str = ""

    def for_track(self, track: Track) -> List[CodeAssignment]:
        return [p for p in self.procedures if p.track == track]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "procedures": [p.to_dict() for p in self.procedures],
            "diagnoses": [d.to_dict() for d in self.diagnoses],
            "justification": self.justification,
        }


# =============================================================================
# STAGE 4: BILL ARTIFACT
# =============================================================================


@dataclass
class LineItem:
    """
    One charge row.

    Invariant (outside MATH_ERROR scenarios):
        total == round(quantity * unit_price, 2)
    """

    date: date
    code: str
    description: str
    revenue_code: str
    quantity: int
    unit_price: float
    total: float
    modifiers: List[str] = field(default_factory=list)

    @property
    def base_code(self) -> str:
        return self.code.split("-")[0].strip()

    @property
    def billed_code(self) -> str:
        if not self.modifiers:
            return self.code
        return "-".join([self.code] + list(self.modifiers))

    def expected_total(self) -> float:
        return round_currency(self.quantity * self.unit_price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": _date_str(self.date),
            "code": self.code,
            "modifiers": list(self.modifiers),
            "description": self.description,
            "revenue_code": self.revenue_code,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(
            date=_parse_date(data["date"]),
            code=data.get("code", "") or "",
            description=data.get("description", ""),
            revenue_code=data.get("revenue_code", ""),
            quantity=int(data.get("quantity", 1)),
            unit_price=float(data.get("unit_price", 0.0)),
            total=float(data.get("total", 0.0)),
            modifiers=list(data.get("modifiers", [])),
        )


@dataclass
class GoodFaithEstimate:
    """Pre-service price estimate owed to self-pay patients, keyed by base code."""

    unit_rates: Dict[str, float]
    estimated_total: float

    def to_dict(self) -> Dict[str, Any]:
        return {"unit_rates": dict(self.unit_rates), "estimated_total": self.estimated_total}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoodFaithEstimate":
        return cls(
            unit_rates={k: float(v) for k, v in data.get("unit_rates", {}).items()},
            estimated_total=float(data.get("estimated_total", 0.0)),
        )


@dataclass(frozen=True)
class DeletedLine:
    """Explicit marker for an offending line that reconciliation removed."""

    original_index: int

    def to_dict(self) -> Dict[str, int]:
        return {"deleted": self.original_index}


LineRef = Union[int, DeletedLine]


def _line_ref_to_json(ref: LineRef) -> Any:
    return ref.to_dict() if isinstance(ref, DeletedLine) else ref


def _line_ref_from_json(value: Any) -> LineRef:
    if isinstance(value, dict):
        return DeletedLine(int(value["deleted"]))
    return int(value)


@dataclass
class GroundTruth:
    """
    The label of a simulated bill.

    offending_indices point into BillArtifact.line_items. After any
    structural edit they are remapped; lines that no longer exist are
    carried as DeletedLine markers, never as stale integers.
    """

    irregularity: IrregularityType
    offending_indices: List[LineRef] = field(default_factory=list)
    explanation: str = ""
    expected_value: str = ""
    actual_value: str = ""

    @property
    def live_indices(self) -> List[int]:
        return [i for i in self.offending_indices if not isinstance(i, DeletedLine)]

    @property
    def deleted_indices(self) -> List[DeletedLine]:
        return [i for i in self.offending_indices if isinstance(i, DeletedLine)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "irregularity": self.irregularity.value,
            "offending_indices": [_line_ref_to_json(i) for i in self.offending_indices],
            "explanation": self.explanation,
            "expected_value": self.expected_value,
            "actual_value": self.actual_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroundTruth":
        return cls(
            irregularity=IrregularityType(data["irregularity"]),
            offending_indices=[_line_ref_from_json(v) for v in data.get("offending_indices", [])],
            explanation=data.get("explanation", ""),
            expected_value=data.get("expected_value", ""),
            actual_value=data.get("actual_value", ""),
        )


@dataclass
class Intervention:
    """Provenance marker left by the Compliance Sentinel after a repair."""

    operations: List[Dict[str, Any]]
    reason: str
    applied_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))

    def to_dict(self) -> Dict[str, Any]:
        return {"operations": list(self.operations), "reason": self.reason, "applied_at": self.applied_at}


@dataclass
class BillArtifact:
    """
    A generated medical bill.

    What it does:
        Carries everything printed on the bill plus the hidden label
        (ground_truth) and provenance (interventions, provenance notes,
        annotations).

    Invariants (outside the scenario that breaks them on purpose):
        - every line: total == round(quantity * unit_price, 2)
        - subtotal == round(sum(line totals), 2)
        - grand_total == max(0, subtotal - |adjustments| - |insurance_paid|)

    Split billing:
        The facility bill is the primary artifact; the professional bill
        is attached as `professional_bill` and carries no ground truth.
    """

    # -------------------------------------------------------------------------
    # 4.1 Identity and encounter summary
    # -------------------------------------------------------------------------
    artifact_id: str
    scenario_id: str
    irregularity: IrregularityType
    payer_class: PayerClass
    care_setting: CareSetting
    facility: FacilityIdentity
    patient_name: str
    patient_dob: date
    account_number: str
    admission_date: date
    discharge_date: date
    type_of_bill: str
    insurance_name: str

    # -------------------------------------------------------------------------
    # 4.2 Charges and totals
    # -------------------------------------------------------------------------
    line_items: List[LineItem] = field(default_factory=list)
    subtotal: float = 0.0
    adjustments: float = 0.0
    insurance_paid: float = 0.0
    grand_total: float = 0.0

    # -------------------------------------------------------------------------
    # 4.3 Optional sections
    # -------------------------------------------------------------------------
    track: Track = Track.FACILITY
    network_status: NetworkStatus = NetworkStatus.IN_NETWORK
    attending_npi: str = ""
    diagnoses: List[DiagnosisCode] = field(default_factory=list)
    statement_date: Optional[date] = None
    estimate: Optional[GoodFaithEstimate] = None
    ground_truth: Optional[GroundTruth] = None
    professional_bill: Optional["BillArtifact"] = None

    # -------------------------------------------------------------------------
    # 4.4 Provenance
    # -------------------------------------------------------------------------
    interventions: List[Intervention] = field(default_factory=list)
    provenance: List[str] = field(default_factory=list)
    annotations: List[str] = field(default_factory=list)

    @property
    def region(self) -> str:
        return self.facility.region

    @property
    def is_split(self) -> bool:
        return self.professional_bill is not None

    def expected_subtotal(self) -> float:
        return sum_currency(item.total for item in self.line_items)

    def expected_grand_total(self) -> float:
        return round_currency(
            max(0.0, self.subtotal - abs(self.adjustments) - abs(self.insurance_paid))
        )

    def service_dates(self) -> List[date]:
        return [item.date for item in self.line_items if item.date]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artifact_id": self.artifact_id,
            "scenario_id": self.scenario_id,
            "irregularity": self.irregularity.value,
            "payer_class": self.payer_class.value,
            "care_setting": self.care_setting.value,
            "facility": self.facility.to_dict(),
            "patient_name": self.patient_name,
            "patient_dob": _date_str(self.patient_dob),
            "account_number": self.account_number,
            "admission_date": _date_str(self.admission_date),
            "discharge_date": _date_str(self.discharge_date),
            "statement_date": _date_str(self.statement_date),
            "type_of_bill": self.type_of_bill,
            "insurance_name": self.insurance_name,
            "network_status": self.network_status.value,
            "attending_npi": self.attending_npi,
            "track": self.track.value,
            "diagnoses": [d.to_dict() for d in self.diagnoses],
            "line_items": [item.to_dict() for item in self.line_items],
            "subtotal": self.subtotal,
            "adjustments": self.adjustments,
            "insurance_paid": self.insurance_paid,
            "grand_total": self.grand_total,
            "estimate": self.estimate.to_dict() if self.estimate else None,
            "ground_truth": self.ground_truth.to_dict() if self.ground_truth else None,
            "professional_bill": self.professional_bill.to_dict() if self.professional_bill else None,
            "interventions": [i.to_dict() for i in self.interventions],
            "provenance": list(self.provenance),
            "annotations": list(self.annotations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BillArtifact":
        return cls(
            artifact_id=data["artifact_id"],
            scenario_id=data.get("scenario_id", ""),
            irregularity=IrregularityType(data.get("irregularity", IrregularityType.CLEAN.value)),
            payer_class=PayerClass.from_label(data.get("payer_class", "")),
            care_setting=CareSetting(data.get("care_setting", CareSetting.EMERGENCY.value)),
            facility=FacilityIdentity.from_dict(data["facility"]),
            patient_name=data.get("patient_name", ""),
            patient_dob=_parse_date(data.get("patient_dob")),
            account_number=data.get("account_number", ""),
            admission_date=_parse_date(data.get("admission_date")),
            discharge_date=_parse_date(data.get("discharge_date")),
            statement_date=_parse_date(data.get("statement_date")),
            type_of_bill=data.get("type_of_bill", ""),
            insurance_name=data.get("insurance_name", ""),
            network_status=NetworkStatus(data.get("network_status", NetworkStatus.IN_NETWORK.value)),
            attending_npi=data.get("attending_npi", ""),
            track=Track(data.get("track", Track.FACILITY.value)),
            diagnoses=[
                DiagnosisCode(d["code"], d.get("description", "")) for d in data.get("diagnoses", [])
            ],
            line_items=[LineItem.from_dict(i) for i in data.get("line_items", [])],
            subtotal=float(data.get("subtotal", 0.0)),
            adjustments=float(data.get("adjustments", 0.0)),
            insurance_paid=float(data.get("insurance_paid", 0.0)),
            grand_total=float(data.get("grand_total", 0.0)),
            estimate=GoodFaithEstimate.from_dict(data["estimate"]) if data.get("estimate") else None,
            ground_truth=GroundTruth.from_dict(data["ground_truth"])
            if data.get("ground_truth")
            else None,
            professional_bill=cls.from_dict(data["professional_bill"])
            if data.get("professional_bill")
            else None,
            interventions=[
                Intervention(i.get("operations", []), i.get("reason", ""), i.get("applied_at", ""))
                for i in data.get("interventions", [])
            ],
            provenance=list(data.get("provenance", [])),
            annotations=list(data.get("annotations", [])),
        )


# =============================================================================
# STAGE 5: AUDIT RESULTS
# =============================================================================


@dataclass(frozen=True)
class FailureDetail:
    type: str
    explanation: str
    severity: Severity = Severity.MEDIUM
    overcharge_potential: float = 0.0
    line_indices: Tuple[int, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "explanation": self.explanation,
            "severity": self.severity.value,
            "overcharge_potential": self.overcharge_potential,
            "line_indices": list(self.line_indices),
        }


@dataclass(frozen=True)
class GuardianResult:
    """
    One audit rule's verdict on one bill.

    Frozen: produced once by a guardian and never mutated. `oracle_error`
    marks the failure-sentinel result recorded when the guardian could not
    complete (its oracle call failed or it raised).
    """

    guardian: str
    passed: bool
    evidence: str
    failure_details: Optional[FailureDetail] = None
    oracle_error: bool = False

    @property
    def status(self) -> str:
        return "PASS" if self.passed else "FAIL"

    @classmethod
    def failure_sentinel(cls, guardian: str, reason: str) -> "GuardianResult":
        return cls(
            guardian=guardian,
            passed=False,
            evidence=f"Guardian could not complete: {reason}",
            failure_details=FailureDetail(
                type="GuardianFailure",
                explanation=reason,
                severity=Severity.LOW,
            ),
            oracle_error=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guardian": self.guardian,
            "passed": self.passed,
            "status": self.status,
            "evidence": self.evidence,
            "failure_details": self.failure_details.to_dict() if self.failure_details else None,
        }


@dataclass
class SimulationQualityReport:
    """The Judge's assessment of whether the audit caught what was planted."""

    intended_irregularity: IrregularityType
    injection_met: bool
    fidelity_score: int
    verdict: JudgeVerdict
    justification: str
    hallucinated_guardians: List[str] = field(default_factory=list)
    logic_gap_found: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intended_irregularity": self.intended_irregularity.value,
            "injection_met": self.injection_met,
            "fidelity_score": self.fidelity_score,
            "verdict": self.verdict.value,
            "justification": self.justification,
            "hallucinated_guardians": list(self.hallucinated_guardians),
            "logic_gap_found": self.logic_gap_found,
        }


@dataclass
class AuditReport:
    health_score: int
    executive_summary: str
    guardian_results: List[GuardianResult]
    quality_report: Optional[SimulationQualityReport] = None
    other_issues: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def failed_guardians(self) -> List[str]:
        return [r.guardian for r in self.guardian_results if not r.passed]

    def result_for(self, guardian: str) -> Optional[GuardianResult]:
        for result in self.guardian_results:
            if result.guardian == guardian:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "health_score": self.health_score,
            "executive_summary": self.executive_summary,
            "guardian_results": [r.to_dict() for r in self.guardian_results],
            "quality_report": self.quality_report.to_dict() if self.quality_report else None,
            "other_issues": list(self.other_issues),
        }


# =============================================================================
# STAGE 6: RUN OUTPUTS
# =============================================================================


@dataclass
class SentinelOutcome:
    state: SentinelState
    rationale: str
    operations: List[Dict[str, Any]] = field(default_factory=list)
    observable_after: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "rationale": self.rationale,
            "operations": list(self.operations),
            "observable_after": self.observable_after,
        }


@dataclass
class ReviewReport:
    detectable_from_bill: bool
    explanation: str
    missing_info: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detectable_from_bill": self.detectable_from_bill,
            "explanation": self.explanation,
            "missing_info": list(self.missing_info),
        }


@dataclass
class Scenario:
    """
    A catalog entry describing which bill to simulate.

    recent_procedure, when present, is a dict with code, description,
    days_before and global_days; it seeds the clinical record of global
    period scenarios.
    """

    scenario_id: str
    name: str
    irregularity: IrregularityType
    care_setting: CareSetting
    complexity: Complexity
    payer_class: PayerClass
    description: str = ""
    specialty: str = "General Medicine"
    billing_model: Optional[BillingModel] = None
    laterality: Optional[str] = None
    services: List[str] = field(default_factory=list)
    recent_procedure: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario_id": self.scenario_id,
            "name": self.name,
            "irregularity": self.irregularity.value,
            "care_setting": self.care_setting.value,
            "complexity": self.complexity.value,
            "payer_class": self.payer_class.value,
            "description": self.description,
            "specialty": self.specialty,
            "billing_model": self.billing_model.value if self.billing_model else None,
            "laterality": self.laterality,
            "services": list(self.services),
            "recent_procedure": self.recent_procedure,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        return cls(
            scenario_id=data["scenario_id"],
            name=data.get("name", data["scenario_id"]),
            irregularity=IrregularityType(data.get("irregularity", IrregularityType.CLEAN.value)),
            care_setting=CareSetting(data.get("care_setting", CareSetting.EMERGENCY.value)),
            complexity=Complexity(data.get("complexity", Complexity.MEDIUM.value)),
            payer_class=PayerClass.from_label(data.get("payer_class", "")),
            description=data.get("description", ""),
            specialty=data.get("specialty", "General Medicine"),
            billing_model=BillingModel(data["billing_model"]) if data.get("billing_model") else None,
            laterality=data.get("laterality"),
            services=list(data.get("services", [])),
            recent_procedure=data.get("recent_procedure"),
        )


@dataclass
class SimulationResult:
    """Everything one generation run produced."""

    scenario: Scenario
    clinical_truth: ClinicalTruth
    coding_truth: CodingTruth
    artifact: BillArtifact
    sentinel_outcome: SentinelOutcome
    document: Dict[str, Any] = field(default_factory=dict)
    review: Optional[ReviewReport] = None
    audit: Optional[AuditReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "clinical_truth": self.clinical_truth.to_dict(),
            "coding_truth": self.coding_truth.to_dict(),
            "artifact": self.artifact.to_dict(),
            "sentinel_outcome": self.sentinel_outcome.to_dict(),
            "document": self.document,
            "review": self.review.to_dict() if self.review else None,
            "audit": self.audit.to_dict() if self.audit else None,
        }

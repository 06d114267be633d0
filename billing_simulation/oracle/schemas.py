"""
Oracle Response Schemas.

Pydantic models describing the JSON object each pipeline phase, guardian
and the Judge expects back from the oracle. The adapter validates every
answer against one of these before a caller sees it.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================
# Pricing
# ============================================

class RateResponse(BaseModel):
    """Tier-3 reference rate lookup."""
    model_config = ConfigDict(populate_by_name=True)

    medicare_rate: float = Field(..., alias="medicareRate", description="Medicare reference rate in USD")


# ============================================
# Generation phases
# ============================================

class FacilityResponse(BaseModel):
    """Identity phase: the billing facility."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=2)
    address: str
    city: str
    state: str = Field(..., min_length=2, max_length=2, description="Two-letter state code")
    zip_code: str = Field(..., alias="zip")
    facility_type: str = Field("Hospital", alias="facilityType")

    @field_validator("state")
    @classmethod
    def upper_state(cls, value: str) -> str:
        return value.upper()


class ClinicalResponse(BaseModel):
    """Clinical phase: patient and encounter narrative."""
    patient_name: str
    date_of_birth: str = Field(..., description="YYYY-MM-DD")
    gender: str = "U"
    chief_complaint: str
    history: str = ""
    exam: str = ""
    assessment: str = ""
    plan: str = ""
    laterality: Optional[str] = None
    orders: List[str] = Field(default_factory=list)

    @field_validator("laterality")
    @classmethod
    def normalise_laterality(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        value = value.strip().upper()
        return value if value in ("LEFT", "RIGHT", "BILATERAL") else None


class ProcedureEntry(BaseModel):
    code: str = Field(..., min_length=4)
    billing_description: str
    official_description: str = ""
    modifiers: List[str] = Field(default_factory=list)
    quantity: int = Field(1, ge=1)


class DiagnosisEntry(BaseModel):
    code: str
    description: str = ""


class CodingResponse(BaseModel):
    """Coding phase: procedure and diagnosis codes."""
    procedures: List[ProcedureEntry] = Field(..., min_length=1)
    diagnoses: List[DiagnosisEntry] = Field(default_factory=list)
    justification: str = ""


class ReviewResponse(BaseModel):
    """Optional reviewer phase."""
    detectable_from_bill: bool
    explanation: str
    missing_info: List[str] = Field(default_factory=list)


# ============================================
# Compliance Sentinel
# ============================================

class VerifyResponse(BaseModel):
    observable: bool
    rationale: str = ""


class PlanOperationEntry(BaseModel):
    """One edit proposed by the oracle; validated again against the artifact before use."""
    op: Literal["set_field", "duplicate_line", "add_line"]
    target: Literal["line", "bill", "estimate"] = "line"
    index: Optional[int] = None
    field: Optional[str] = None
    value: Any = None
    item: Optional[Dict[str, Any]] = None


class PlanResponse(BaseModel):
    can_inject: bool
    reason: str = ""
    operations: List[PlanOperationEntry] = Field(default_factory=list)


# ============================================
# Audit
# ============================================

class GuardianVerdictResponse(BaseModel):
    """A guardian's oracle-decided verdict (screen returned REVIEW)."""
    passed: bool
    evidence: str
    failure_type: Optional[str] = None
    explanation: Optional[str] = None
    severity: Literal["Low", "Medium", "High"] = "Medium"
    overcharge_potential: float = Field(0.0, ge=0)


class ForensicNarrativeResponse(BaseModel):
    """Narrative for a deterministic finding (screen returned FAIL)."""
    evidence: str
    explanation: str


class JudgeNarrativeResponse(BaseModel):
    justification: str

"""
Enumerations for Mock Bill Simulation

This module defines all enumeration types used throughout the bill
simulation and audit pipeline. Enums provide:
    1. Type safety for categorical values
    2. Stable string values for JSON artifacts
    3. Clear domain semantics

Enumeration Categories:
    IrregularityType → Billing irregularity classes a scenario can request
    PayerClass       → Insurance/payer categories driving price multipliers
    Complexity       → Encounter acuity tag
    CareSetting      → Where the encounter happened (drives E/M category)
    BillingModel     → Global (one bill) vs Split (facility + professional)
    Track            → Which side of a split bill a code belongs to
    SentinelState    → Compliance Sentinel state machine states
    JudgeVerdict     → Simulation quality verdicts
    ScreenDecision   → Outcome of a guardian's deterministic screen

Author: Shubham Singh
Date: January 2026
"""

from enum import Enum


# =============================================================================
# STAGE 1: IRREGULARITY TYPES
# =============================================================================
# Every irregularity maps to exactly one guardian expected to catch it
# (see constants.IRREGULARITY_GUARDIAN_MAP).


class IrregularityType(str, Enum):
    """
    Classes of billing irregularity a scenario can embed.

    What it does:
        Names the defect deliberately planted in a generated bill, or CLEAN
        when the bill must be defect-free.

    When to use:
        - Scenario definitions
        - Deciding which reconciliation invariants are preserved
        - Judging whether the audit caught the intended defect
    """

    CLEAN = "CLEAN"
    UPCODING = "UPCODING"
    UNBUNDLING = "UNBUNDLING"
    DUPLICATE = "DUPLICATE"
    MATH_ERROR = "MATH_ERROR"
    BALANCE_MISMATCH = "BALANCE_MISMATCH"
    CMS_BENCHMARK = "CMS_BENCHMARK"
    RECORD_MISMATCH = "RECORD_MISMATCH"
    GLOBAL_PERIOD_VIOLATION = "GLOBAL_PERIOD_VIOLATION"
    GFE_VIOLATION = "GFE_VIOLATION"
    BALANCE_BILLING = "BALANCE_BILLING"
    GHOST_PROVIDER = "GHOST_PROVIDER"
    PHANTOM_BILLING = "PHANTOM_BILLING"

    @property
    def is_clean(self) -> bool:
        return self is IrregularityType.CLEAN


# =============================================================================
# STAGE 2: PAYER, ACUITY, SETTING
# =============================================================================


class PayerClass(str, Enum):
    """Insurance categories. Values match the labels printed on bills."""

    MEDICARE = "Medicare"
    MEDICAID = "Medicaid"
    TRICARE = "Tricare"
    COMMERCIAL = "Commercial"
    HIGH_DEDUCTIBLE = "High-Deductible"
    SELF_PAY = "Self-Pay"
    SELF_PAY_FMV = "Self-Pay-FMV"

    @property
    def is_government(self) -> bool:
        return self in (PayerClass.MEDICARE, PayerClass.MEDICAID, PayerClass.TRICARE)

    @property
    def is_insured(self) -> bool:
        return self not in (PayerClass.SELF_PAY, PayerClass.SELF_PAY_FMV)

    @classmethod
    def from_label(cls, label: str) -> "PayerClass":
        """
        Resolve a free-text payer label.

        Unknown labels fall back to Commercial; labels mentioning Medicare
        resolve to Medicare and "self"/"uninsured" labels to Self-Pay.
        """
        if not label:
            return cls.COMMERCIAL
        for member in cls:
            if member.value.lower() == label.strip().lower():
                return member
        lowered = label.lower()
        if "medicare" in lowered:
            return cls.MEDICARE
        if "medicaid" in lowered:
            return cls.MEDICAID
        if "self" in lowered or "uninsured" in lowered:
            return cls.SELF_PAY
        return cls.COMMERCIAL


class Complexity(str, Enum):
    """Acuity tag attached to the clinical truth."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class CareSetting(str, Enum):
    """
    Care setting of the encounter.

    Each setting owns one evaluation-and-management code family:
        EMERGENCY   → 99281-99285
        CLINIC      → 99202-99215
        URGENT_CARE → 99202-99215 (office family, urgent-care facility)
        INPATIENT   → 99221-99233
    """

    EMERGENCY = "Emergency"
    CLINIC = "Clinic"
    URGENT_CARE = "Urgent Care"
    INPATIENT = "Inpatient"


class BillingModel(str, Enum):
    """Global bills carry everything on one document; Split bills have a professional twin."""

    GLOBAL = "Global"
    SPLIT = "Split"


class Track(str, Enum):
    FACILITY = "Facility"
    PROFESSIONAL = "Professional"


class NetworkStatus(str, Enum):
    IN_NETWORK = "In-Network"
    OUT_OF_NETWORK = "Out-of-Network"


# =============================================================================
# STAGE 3: SENTINEL AND AUDIT STATES
# =============================================================================


class SentinelState(str, Enum):
    """
    Compliance Sentinel state machine.

    Transitions:
        (start) → VERIFIED                   irregularity already observable (or CLEAN)
        (start) → NEEDS_REPAIR → REPAIRED    plan executed
        (start) → NEEDS_REPAIR → REPAIR_DECLINED
    """

    VERIFIED = "Verified"
    NEEDS_REPAIR = "NeedsRepair"
    REPAIR_DECLINED = "RepairDeclined"
    REPAIRED = "Repaired"


class PlanOperationType(str, Enum):
    SET_FIELD = "set_field"
    DUPLICATE_LINE = "duplicate_line"
    ADD_LINE = "add_line"


class JudgeVerdict(str, Enum):
    """Verdict the Judge assigns to an audit of a simulated bill."""

    EFFECTIVE = "Effective"
    LOGIC_GAP = "LogicGapDetected"
    HALLUCINATION = "HallucinationDetected"


class ScreenDecision(str, Enum):
    """
    Result of a guardian's deterministic pre-filter.

    PASS and FAIL are unambiguous. REVIEW defers the verdict to the oracle.
    """

    PASS = "PASS"
    FAIL = "FAIL"
    REVIEW = "REVIEW"


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

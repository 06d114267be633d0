"""
Constants for Mock Bill Simulation

This module defines constant values used throughout the bill simulation
and audit pipeline. Constants are:
    1. Centralized for easy modification
    2. Type-hinted for IDE support
    3. Documented with usage context

Constant Categories:
    PRICING          → Payer multipliers, region factors, modifier factors, fallback rates
    CODING           → E/M families, revenue codes, bundling edits, panel maps
    TIMING           → Date windows used by generation and the date guardian
    AUDIT            → Guardian names and irregularity → guardian mapping
    PRESENTATION     → Abbreviations and payer display names

Author: Shubham Singh
Date: January 2026
"""

from typing import Dict, List, Tuple

from billing_simulation.core.enums import (
    CareSetting,
    Complexity,
    IrregularityType,
    PayerClass,
)


# =============================================================================
# STAGE 1: PRICING
# =============================================================================

# -----------------------------------------------------------------------------
# 1.1 Payer multipliers applied to the reference (Medicare) rate
# -----------------------------------------------------------------------------
PAYER_MULTIPLIERS: Dict[PayerClass, float] = {
    PayerClass.MEDICARE: 1.0,
    PayerClass.MEDICAID: 1.0,
    PayerClass.TRICARE: 1.0,
    PayerClass.COMMERCIAL: 5.0,
    PayerClass.HIGH_DEDUCTIBLE: 5.0,
    PayerClass.SELF_PAY: 8.0,
    PayerClass.SELF_PAY_FMV: 2.0,
}

# Price-gouging scenarios scale the payer multiplier by this factor.
GOUGING_MULTIPLIER = 5.5

# -----------------------------------------------------------------------------
# 1.2 Geographic factors by state code (unknown states → 1.0)
# -----------------------------------------------------------------------------
STATE_REGION_FACTORS: Dict[str, float] = {
    "AL": 0.91, "AK": 1.27, "AZ": 0.99, "AR": 0.89, "CA": 1.14, "CO": 1.03,
    "CT": 1.08, "DE": 1.02, "FL": 0.98, "GA": 0.96, "HI": 1.11, "ID": 0.93,
    "IL": 1.02, "IN": 0.92, "IA": 0.90, "KS": 0.91, "KY": 0.91, "LA": 0.93,
    "ME": 0.96, "MD": 1.08, "MA": 1.12, "MI": 0.97, "MN": 1.02, "MS": 0.91,
    "MO": 0.93, "MT": 0.92, "NE": 0.91, "NV": 1.01, "NH": 1.02, "NJ": 1.11,
    "NM": 0.94, "NY": 1.12, "NC": 0.96, "ND": 0.93, "OH": 0.94, "OK": 0.90,
    "OR": 1.03, "PA": 0.99, "RI": 1.04, "SC": 0.93, "SD": 0.90, "TN": 0.92,
    "TX": 0.98, "UT": 0.96, "VT": 0.95, "VA": 1.01, "WA": 1.06, "WV": 0.90,
    "WI": 0.96, "WY": 0.95, "DC": 1.15,
}

DEFAULT_REGION_FACTOR = 1.0

METRO_BONUS = 0.10

MAJOR_METROS: List[str] = [
    "New York", "Los Angeles", "Chicago", "Houston", "Phoenix", "Philadelphia",
    "San Antonio", "San Diego", "Dallas", "San Francisco", "Miami",
]

METRO_ZIP_PREFIXES: List[str] = [
    "100", "101", "102", "606", "900", "901", "902", "770", "850", "191",
    "782", "921", "752", "941", "331",
]

# -----------------------------------------------------------------------------
# 1.3 Modifier multipliers (unrecognized modifiers are no-ops)
# -----------------------------------------------------------------------------
MODIFIER_FACTORS: Dict[str, float] = {
    "26": 0.40,  # professional component
    "TC": 0.60,  # technical component
    "50": 1.50,  # bilateral
}

# -----------------------------------------------------------------------------
# 1.4 Hardcoded fallback rates, first matching prefix wins
# -----------------------------------------------------------------------------
FALLBACK_RATE_PREFIXES: List[Tuple[str, float]] = [
    ("99285", 380.0), ("99284", 230.0), ("99283", 150.0), ("99282", 80.0), ("99281", 40.0),
    ("99215", 185.0), ("99214", 130.0), ("99213", 95.0), ("99212", 65.0),
    ("99205", 220.0), ("99204", 170.0),
    ("741", 280.0), ("71046", 35.0), ("71045", 32.0), ("73610", 36.0), ("73630", 40.0),
    ("7", 45.0),
    ("87081", 18.74), ("87", 20.0), ("85025", 12.0), ("80053", 15.0), ("8100", 8.0),
    ("86592", 22.0), ("8", 15.0),
    ("131", 180.0), ("12011", 43.0), ("9637", 35.0), ("99070", 45.0), ("1", 50.0),
]

DEFAULT_FALLBACK_RATE = 100.0

# -----------------------------------------------------------------------------
# 1.5 Payer settlement behaviour: (min, max) contractual adjustment share and
#     the share of the remaining balance the insurer pays
# -----------------------------------------------------------------------------
PAYER_ADJUSTMENT_RANGES: Dict[PayerClass, Tuple[float, float]] = {
    PayerClass.MEDICARE: (0.55, 0.70),
    PayerClass.MEDICAID: (0.60, 0.75),
    PayerClass.TRICARE: (0.50, 0.65),
    PayerClass.COMMERCIAL: (0.30, 0.45),
    PayerClass.HIGH_DEDUCTIBLE: (0.25, 0.35),
    PayerClass.SELF_PAY: (0.0, 0.0),
    PayerClass.SELF_PAY_FMV: (0.45, 0.55),
}

PAYER_COVERAGE_SHARE: Dict[PayerClass, float] = {
    PayerClass.MEDICARE: 0.80,
    PayerClass.MEDICAID: 0.95,
    PayerClass.TRICARE: 0.85,
    PayerClass.COMMERCIAL: 0.70,
    PayerClass.HIGH_DEDUCTIBLE: 0.0,
    PayerClass.SELF_PAY: 0.0,
    PayerClass.SELF_PAY_FMV: 0.0,
}

# Fixed deltas used to plant arithmetic irregularities.
MATH_ERROR_DELTA = 10.00
BALANCE_MISMATCH_DELTA = 50.00

# Out-of-network bills are settled at a fraction of the in-network share.
OUT_OF_NETWORK_COVERAGE_FACTOR = 0.25


# =============================================================================
# STAGE 2: CODING
# =============================================================================

# -----------------------------------------------------------------------------
# 2.1 Evaluation-and-management families by care setting, indexed by level 1-5
# -----------------------------------------------------------------------------
EM_CODE_FAMILIES: Dict[CareSetting, List[str]] = {
    CareSetting.EMERGENCY: ["99281", "99282", "99283", "99284", "99285"],
    CareSetting.CLINIC: ["99211", "99212", "99213", "99214", "99215"],
    CareSetting.URGENT_CARE: ["99211", "99212", "99213", "99214", "99215"],
    CareSetting.INPATIENT: ["99221", "99221", "99222", "99222", "99223"],
}

NEW_PATIENT_EM_CODES: List[str] = ["99202", "99202", "99203", "99204", "99205"]

# Inpatient codes that may legitimately repeat across an admission.
INPATIENT_SUBSEQUENT_EM_CODES = ("99231", "99232", "99233", "99238", "99239")

EM_REVENUE_CODES: Dict[CareSetting, str] = {
    CareSetting.EMERGENCY: "0450",
    CareSetting.CLINIC: "0510",
    CareSetting.URGENT_CARE: "0456",
    CareSetting.INPATIENT: "0110",
}

# Highest E/M level an encounter of each acuity supports.
ACUITY_MAX_EM_LEVEL: Dict[Complexity, int] = {
    Complexity.LOW: 3,
    Complexity.MEDIUM: 4,
    Complexity.HIGH: 5,
}

# -----------------------------------------------------------------------------
# 2.2 Revenue code assignment, first matching prefix wins
# -----------------------------------------------------------------------------
REVENUE_CODE_PREFIXES: List[Tuple[str, str]] = [
    ("9928", "0450"),
    ("9929", "0450"),
    ("9920", "0510"),
    ("9921", "0510"),
    ("9922", "0110"),
    ("9923", "0110"),
    ("9900", "0300"),
    ("9636", "0260"),
    ("9637", "0260"),
    ("93", "0730"),
    ("94", "0460"),
    ("36415", "0300"),
    ("J", "0636"),
    ("90", "0636"),
    ("A", "0270"),
    ("7", "0320"),
    ("8", "0300"),
    ("1", "0450"),
    ("2", "0450"),
    ("3", "0450"),
    ("4", "0450"),
    ("5", "0450"),
    ("6", "0450"),
]

DEFAULT_REVENUE_CODE = "0250"

# Revenue codes of diagnostic services (labs, imaging, cardiology).
DIAGNOSTIC_REVENUE_CODES = ("0300", "0320", "0400", "0730")

# Codes billed with TC/26 components on a split bill.
COMPONENT_CODE_PREFIXES = ("7", "93000")

# -----------------------------------------------------------------------------
# 2.3 Bundling edits
# -----------------------------------------------------------------------------
NCCI_EDITS: Dict[str, List[str]] = {
    "99281": ["94760", "94761", "36415"],
    "99282": ["94760", "94761", "36415"],
    "99283": ["94760", "94761", "36415"],
    "99284": ["94760", "94761", "36415"],
    "99285": ["94760", "94761", "36415"],
    "99291": ["94002", "94003", "93000"],
    "80048": ["99000", "36415"],
}

REV_CODE_BUNDLES: Dict[str, List[str]] = {
    "0300": ["36415"],
    "0450": ["94760", "94761", "36415", "93000"],
    "0360": ["A4550"],
}

PANEL_COMPONENTS: Dict[str, List[str]] = {
    "80053": [
        "82310", "82374", "82435", "82565", "82947", "84075",
        "84132", "84155", "84295", "84450", "84460", "84520",
    ],
    "80061": ["82465", "83718", "84478", "83721"],
}

# Minimum number of separately billed components that counts as fragmentation.
PANEL_FRAGMENTATION_THRESHOLDS: Dict[str, int] = {
    "80053": 4,
    "80061": 3,
}

PANEL_DESCRIPTIONS: Dict[str, str] = {
    "80053": "COMPREHENSIVE METABOLIC PANEL",
    "80061": "LIPID PANEL",
}

# Modifiers that legitimately separate an E/M from a global surgical package.
GLOBAL_PERIOD_EXEMPT_MODIFIERS = ("24", "25", "57", "58", "78", "79")

LATERALITY_MODIFIERS: Dict[str, str] = {
    "LT": "LEFT",
    "RT": "RIGHT",
    "50": "BILATERAL",
}

# Code used for the minimal coding stub.
STUB_PROCEDURE = ("99213", "Office visit")
STUB_DIAGNOSIS = ("R69", "Illness, unspecified")


# =============================================================================
# STAGE 3: TIMING
# =============================================================================

PRE_ADMISSION_WINDOW_DAYS = 3
POST_DISCHARGE_ALLOWED_CODES = ("99238", "99239")
TURNAROUND_MIN_LINE_ITEMS = 8
TURNAROUND_MIN_DAYS = 7
STATEMENT_DELAY_DAYS = (15, 45)
PAYMENT_DUE_DAYS = 30
HIGH_ACUITY_STAY_DAYS = (2, 4)


# =============================================================================
# STAGE 4: AUDIT
# =============================================================================

# -----------------------------------------------------------------------------
# 4.1 Guardian names (stable identifiers used in results and reports)
# -----------------------------------------------------------------------------
GUARDIAN_UPCODING = "Upcoding"
GUARDIAN_RECORD_MATCH = "Record Match"
GUARDIAN_GLOBAL_PERIOD = "Global Period"
GUARDIAN_MATH = "Math"
GUARDIAN_PRICE = "Price Sentry"
GUARDIAN_UNBUNDLING = "Unbundling"
GUARDIAN_DUPLICATE = "Duplicate"
GUARDIAN_GFE = "Good Faith Estimate"
GUARDIAN_BALANCE_BILLING = "Balance Billing"
GUARDIAN_EXTRACTION = "Extraction"

IRREGULARITY_GUARDIAN_MAP: Dict[IrregularityType, str] = {
    IrregularityType.UPCODING: GUARDIAN_UPCODING,
    IrregularityType.RECORD_MISMATCH: GUARDIAN_RECORD_MATCH,
    IrregularityType.GLOBAL_PERIOD_VIOLATION: GUARDIAN_GLOBAL_PERIOD,
    IrregularityType.MATH_ERROR: GUARDIAN_MATH,
    IrregularityType.BALANCE_MISMATCH: GUARDIAN_MATH,
    IrregularityType.CMS_BENCHMARK: GUARDIAN_PRICE,
    IrregularityType.UNBUNDLING: GUARDIAN_UNBUNDLING,
    IrregularityType.DUPLICATE: GUARDIAN_DUPLICATE,
    IrregularityType.GFE_VIOLATION: GUARDIAN_GFE,
    IrregularityType.BALANCE_BILLING: GUARDIAN_BALANCE_BILLING,
    IrregularityType.GHOST_PROVIDER: GUARDIAN_EXTRACTION,
    IrregularityType.PHANTOM_BILLING: GUARDIAN_EXTRACTION,
}

# -----------------------------------------------------------------------------
# 4.2 Thresholds
# -----------------------------------------------------------------------------
PRICE_SENSITIVITY = 3.0
MAJOR_OUTLIER_FACTOR = 1.2
EXTREME_OUTLIER_FACTOR = 2.0
GFE_DISPUTE_THRESHOLD = 400.0
GFE_LINE_TOLERANCE = 0.01
COPAY_THRESHOLD = 100.0
MATH_TOLERANCE = 0.01
JUDGE_MATH_TOLERANCE = 1.00

CLEAN_EXECUTIVE_SUMMARY = "No clinical or financial mismatches detected."


# =============================================================================
# STAGE 5: PRESENTATION
# =============================================================================

IRREGULARITY_ABBREVIATIONS: Dict[IrregularityType, str] = {
    IrregularityType.CLEAN: "CLN",
    IrregularityType.UPCODING: "UPC",
    IrregularityType.UNBUNDLING: "UNB",
    IrregularityType.DUPLICATE: "DUP",
    IrregularityType.MATH_ERROR: "MTH",
    IrregularityType.BALANCE_MISMATCH: "BAL",
    IrregularityType.CMS_BENCHMARK: "CMS",
    IrregularityType.RECORD_MISMATCH: "REC",
    IrregularityType.GLOBAL_PERIOD_VIOLATION: "GLB",
    IrregularityType.GFE_VIOLATION: "GFE",
    IrregularityType.BALANCE_BILLING: "OON",
    IrregularityType.GHOST_PROVIDER: "GHO",
    IrregularityType.PHANTOM_BILLING: "PHA",
}

CARE_SETTING_ABBREVIATIONS: Dict[CareSetting, str] = {
    CareSetting.EMERGENCY: "ED",
    CareSetting.CLINIC: "CL",
    CareSetting.URGENT_CARE: "UC",
    CareSetting.INPATIENT: "IP",
}

COMPLEXITY_ABBREVIATIONS: Dict[Complexity, str] = {
    Complexity.LOW: "L1",
    Complexity.MEDIUM: "L2",
    Complexity.HIGH: "L3",
}

PAYER_ABBREVIATIONS: Dict[PayerClass, str] = {
    PayerClass.COMMERCIAL: "COMM",
    PayerClass.HIGH_DEDUCTIBLE: "HDHP",
    PayerClass.SELF_PAY: "SELF",
    PayerClass.SELF_PAY_FMV: "FMV",
    PayerClass.MEDICARE: "MCR",
    PayerClass.MEDICAID: "MCD",
    PayerClass.TRICARE: "TRI",
}

PAYER_INSURANCE_NAMES: Dict[PayerClass, List[str]] = {
    PayerClass.COMMERCIAL: ["Blue Cross Blue Shield", "Aetna", "UnitedHealthcare", "Cigna"],
    PayerClass.HIGH_DEDUCTIBLE: ["Anthem HDHP Bronze", "Aetna HSA Choice"],
    PayerClass.MEDICARE: ["Medicare Part B"],
    PayerClass.MEDICAID: ["State Medicaid"],
    PayerClass.TRICARE: ["TRICARE Select"],
    PayerClass.SELF_PAY: ["Self-Pay"],
    PayerClass.SELF_PAY_FMV: ["Self-Pay (Fair Market Value)"],
}

STATE_AREA_CODES: Dict[str, List[str]] = {
    "TX": ["713", "281", "214", "512"],
    "CA": ["213", "310", "415", "619"],
    "NY": ["212", "718", "917"],
    "FL": ["305", "407", "813"],
    "IL": ["312", "773"],
    "PA": ["215", "412"],
    "AZ": ["602", "480"],
}

DEFAULT_AREA_CODES = ["555"]

# Hardcoded facility used when the Identity phase cannot reach the oracle.
FALLBACK_FACILITY: Dict[str, str] = {
    "name": "General Hospital Center",
    "address": "123 Medical Way",
    "city": "Houston",
    "state": "TX",
    "zip_code": "77002",
    "facility_type": "Hospital",
}

"""
Audit Guardians - ten independent billing rules.

Submodules:
    base.py       → Guardian ABC, ScreenResult, AuditContext
    clinical.py   → Upcoding, Record Match, Global Period
    financial.py  → Math, Price Sentry, Good Faith Estimate, Balance Billing
    coding.py     → Unbundling, Duplicate
    extraction.py → Extraction
"""

from typing import Dict, List, Type

from billing_simulation.audit.guardians.base import AuditContext, Guardian, ScreenResult
from billing_simulation.audit.guardians.clinical import (
    GlobalPeriodGuardian,
    RecordMatchGuardian,
    UpcodingGuardian,
)
from billing_simulation.audit.guardians.coding import DuplicateGuardian, UnbundlingGuardian
from billing_simulation.audit.guardians.extraction import ExtractionGuardian
from billing_simulation.audit.guardians.financial import (
    BalanceBillingGuardian,
    GoodFaithEstimateGuardian,
    MathGuardian,
    PriceSentryGuardian,
    price_outlier_category,
)
from billing_simulation.core.exceptions import ConfigurationError

GUARDIAN_CLASSES: List[Type[Guardian]] = [
    UpcodingGuardian,
    RecordMatchGuardian,
    GlobalPeriodGuardian,
    MathGuardian,
    PriceSentryGuardian,
    UnbundlingGuardian,
    DuplicateGuardian,
    GoodFaithEstimateGuardian,
    BalanceBillingGuardian,
    ExtractionGuardian,
]

GUARDIAN_REGISTRY: Dict[str, Type[Guardian]] = {cls.name: cls for cls in GUARDIAN_CLASSES}


def default_guardians() -> List[Guardian]:
    """One instance of every guardian, in report order."""
    return [cls() for cls in GUARDIAN_CLASSES]


def get_guardian(name: str) -> Guardian:
    if name not in GUARDIAN_REGISTRY:
        raise ConfigurationError(
            f"Unknown guardian: {name}", context={"available": sorted(GUARDIAN_REGISTRY)}
        )
    return GUARDIAN_REGISTRY[name]()


__all__ = [
    "AuditContext",
    "BalanceBillingGuardian",
    "DuplicateGuardian",
    "ExtractionGuardian",
    "GUARDIAN_REGISTRY",
    "GlobalPeriodGuardian",
    "GoodFaithEstimateGuardian",
    "Guardian",
    "MathGuardian",
    "PriceSentryGuardian",
    "RecordMatchGuardian",
    "ScreenResult",
    "UnbundlingGuardian",
    "UpcodingGuardian",
    "default_guardians",
    "get_guardian",
    "price_outlier_category",
]

"""
Coding Rules - deterministic knowledge about procedure codes.

Shared by the Coding and Financial phases, reconciliation and the
guardians, so every component agrees on what an E/M code is, which
revenue code a line carries and which codes bundle into which.
"""

from typing import Dict, Iterable, List, Optional, Set

from billing_simulation.core.constants import (
    COMPONENT_CODE_PREFIXES,
    DEFAULT_REVENUE_CODE,
    EM_CODE_FAMILIES,
    EM_REVENUE_CODES,
    INPATIENT_SUBSEQUENT_EM_CODES,
    NCCI_EDITS,
    NEW_PATIENT_EM_CODES,
    PANEL_COMPONENTS,
    PANEL_FRAGMENTATION_THRESHOLDS,
    REV_CODE_BUNDLES,
    REVENUE_CODE_PREFIXES,
)
from billing_simulation.core.enums import CareSetting


# =============================================================================
# STAGE 1: EVALUATION AND MANAGEMENT CODES
# =============================================================================


def is_em_code(code: str) -> bool:
    return (code or "").startswith("992")


def is_primary_em_code(code: str) -> bool:
    """E/M that represents the encounter itself (not a subsequent inpatient day)."""
    return is_em_code(code) and code not in INPATIENT_SUBSEQUENT_EM_CODES


def em_level(code: str) -> Optional[int]:
    """
    Level 1-5 of an E/M code, or None for anything else.

    Inpatient families have three codes spread over levels 1, 3 and 5.
    """
    if not is_em_code(code):
        return None
    for family in list(EM_CODE_FAMILIES.values()) + [NEW_PATIENT_EM_CODES]:
        if code in family:
            return family.index(code) + 1
    if code in ("99231", "99232", "99233"):
        return {"99231": 1, "99232": 3, "99233": 5}[code]
    return None


def em_code_for(setting: CareSetting, level: int) -> str:
    level = min(max(level, 1), 5)
    return EM_CODE_FAMILIES[setting][level - 1]


def em_matches_setting(code: str, setting: CareSetting) -> bool:
    if setting == CareSetting.INPATIENT and code in INPATIENT_SUBSEQUENT_EM_CODES:
        return True
    if setting in (CareSetting.CLINIC, CareSetting.URGENT_CARE) and code in NEW_PATIENT_EM_CODES:
        return True
    return code in EM_CODE_FAMILIES[setting]


def translate_em(code: str, setting: CareSetting) -> str:
    """Level-preserving translation of an E/M code into the setting's family."""
    if em_matches_setting(code, setting):
        return code
    level = em_level(code) or 3
    return em_code_for(setting, level)


# =============================================================================
# STAGE 2: REVENUE CODES AND ORDERING
# =============================================================================


def assign_revenue_code(code: str, setting: Optional[CareSetting] = None) -> str:
    """
    UB-04 revenue code for a procedure code.

    Primary E/M codes take the setting's revenue code; everything else is
    resolved by the first matching code prefix.
    """
    if not code:
        return DEFAULT_REVENUE_CODE
    if setting is not None and is_primary_em_code(code):
        return EM_REVENUE_CODES[setting]
    for prefix, revenue_code in REVENUE_CODE_PREFIXES:
        if code.startswith(prefix):
            return revenue_code
    return DEFAULT_REVENUE_CODE


def service_rank(code: str) -> int:
    """
    Print order of a line: labs, imaging, E/M, procedures and drugs, other.
    """
    if not code:
        return 4
    if code.startswith("8") or code == "36415":
        return 0
    if code.startswith("7"):
        return 1
    if is_em_code(code):
        return 2
    if code[0] in "9J" or code[0].isdigit():
        return 3
    return 4


def is_component_billable(code: str) -> bool:
    """Diagnostic codes split into technical (TC) and professional (26) components."""
    return any(code.startswith(prefix) for prefix in COMPONENT_CODE_PREFIXES)


# =============================================================================
# STAGE 3: BUNDLING
# =============================================================================


def collapse_panels(codes: List[str]) -> List[str]:
    """
    Replace separately listed panel components with the panel code.

    Components are removed when the panel itself is present or when enough
    of them are listed to count as fragmentation. The panel takes the slot
    of its first component; order is otherwise preserved.
    """
    result = list(codes)
    for panel, components in PANEL_COMPONENTS.items():
        present = [c for c in result if c in components]
        if not present:
            continue
        if panel not in result and len(present) < PANEL_FRAGMENTATION_THRESHOLDS[panel]:
            continue
        if panel not in result:
            result[result.index(present[0])] = panel
        result = [c for c in result if c not in components]
    return result


def bundled_codes(codes: Iterable[str], setting: Optional[CareSetting] = None) -> Set[str]:
    """
    Codes that must not be billed separately given the other codes present.

    Applies NCCI column-two edits and revenue-code bundles (a code bundled
    into a revenue code is dropped when another line carries that revenue code).
    """
    present = list(codes)
    present_set = set(present)
    drop: Set[str] = set()

    for code in present:
        for bundled in NCCI_EDITS.get(code, ()):
            if bundled in present_set and bundled != code:
                drop.add(bundled)

    revenue_by_code: Dict[str, str] = {c: assign_revenue_code(c, setting) for c in present}
    for code, revenue_code in revenue_by_code.items():
        for bundled in REV_CODE_BUNDLES.get(revenue_code, ()):
            if bundled in present_set and bundled != code:
                drop.add(bundled)

    return drop


def panel_fragments(codes: Iterable[str]) -> Dict[str, List[str]]:
    """Panels whose components appear separately at or above the fragmentation threshold."""
    present = list(codes)
    found: Dict[str, List[str]] = {}
    for panel, components in PANEL_COMPONENTS.items():
        listed = [c for c in present if c in components]
        if len(listed) >= PANEL_FRAGMENTATION_THRESHOLDS[panel]:
            found[panel] = listed
    return found

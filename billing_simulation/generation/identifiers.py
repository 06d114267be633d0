"""
Identifier Generation and Validation

Provider identifiers on simulated bills must look real to an auditor:

    NPI     10 digits, starts with 1, last digit is a Luhn check digit
            computed over "80840" + the first nine digits
    Tax ID  NN-NNNNNNN employer identification number, prefix 10-99

Placeholder patterns the oracle likes to emit ("1234567890", "XX-XXXXXXX")
are recognized so reconciliation can replace them.
"""

import random
import re
from typing import Optional

NPI_LUHN_PREFIX = "80840"

_EIN_PATTERN = re.compile(r"^\d{2}-\d{7}$")
_PLACEHOLDER_SEQUENCES = ("12345", "00000", "99999")


# =============================================================================
# NPI
# =============================================================================


def npi_check_digit(base: str) -> int:
    """
    Luhn check digit for a nine-digit NPI base.

    Walks "80840" + base from the right, doubling every digit at an even
    position (the rightmost is position 0).
    """
    digits = NPI_LUHN_PREFIX + base
    total = 0
    for position, char in enumerate(reversed(digits)):
        value = int(char)
        if position % 2 == 0:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return (10 - total % 10) % 10


def is_valid_npi(npi: Optional[str]) -> bool:
    if not npi or len(npi) != 10 or not npi.isdigit() or npi[0] not in "12":
        return False
    return npi_check_digit(npi[:9]) == int(npi[9])


def is_placeholder_npi(npi: Optional[str]) -> bool:
    """True for NPIs that are malformed, obviously fake, or fail the checksum."""
    if not npi:
        return True
    if any(seq in npi for seq in _PLACEHOLDER_SEQUENCES):
        return True
    return not is_valid_npi(npi)


def generate_npi(rng: random.Random) -> str:
    while True:
        base = "1" + "".join(str(rng.randint(0, 9)) for _ in range(8))
        npi = base + str(npi_check_digit(base))
        if not any(seq in npi for seq in _PLACEHOLDER_SEQUENCES):
            return npi


def corrupt_npi(npi: str) -> str:
    """Same digits with a wrong check digit; used for ghost-provider bills."""
    wrong = (int(npi[9]) + 5) % 10
    return npi[:9] + str(wrong)


# =============================================================================
# TAX ID
# =============================================================================


def generate_ein(rng: random.Random) -> str:
    return f"{rng.randint(10, 99)}-{rng.randint(0, 9999999):07d}"


def is_valid_ein(tax_id: Optional[str]) -> bool:
    return bool(tax_id) and bool(_EIN_PATTERN.match(tax_id)) and not tax_id.startswith("00")


# =============================================================================
# ACCOUNT NUMBERS AND CONTACT DETAILS
# =============================================================================


def generate_reference(rng: random.Random, prefix: str, digits: int = 8) -> str:
    """MRN / account / statement identifiers: prefix + zero-padded digits."""
    return f"{prefix}{rng.randint(0, 10**digits - 1):0{digits}d}"


def generate_phone(rng: random.Random, area_code: str) -> str:
    return f"({area_code}) {rng.randint(200, 999)}-{rng.randint(0, 9999):04d}"

"""
Tests for NPI / EIN generation and validation.
"""

import random

from billing_simulation.generation.identifiers import (
    corrupt_npi,
    generate_ein,
    generate_npi,
    is_placeholder_npi,
    is_valid_ein,
    is_valid_npi,
    npi_check_digit,
)


class TestNpi:
    def test_known_valid_npi(self):
        # CMS published example
        assert npi_check_digit("123456789") == 3
        assert is_valid_npi("1234567893")

    def test_generated_npis_are_valid_and_not_placeholders(self):
        rng = random.Random(7)
        for _ in range(200):
            npi = generate_npi(rng)
            assert is_valid_npi(npi)
            assert not is_placeholder_npi(npi)

    def test_generation_is_seeded(self):
        assert generate_npi(random.Random(3)) == generate_npi(random.Random(3))

    def test_corrupted_npi_fails_checksum(self):
        npi = generate_npi(random.Random(11))
        assert not is_valid_npi(corrupt_npi(npi))
        assert corrupt_npi(npi)[:9] == npi[:9]

    def test_placeholders(self):
        assert is_placeholder_npi("1234567893")
        assert is_placeholder_npi(None)
        assert is_placeholder_npi("0000000000")
        assert is_placeholder_npi("ABC")

    def test_malformed(self):
        assert not is_valid_npi("123")
        assert not is_valid_npi("3234567893")


class TestEin:
    def test_generated_ein_format(self):
        rng = random.Random(5)
        for _ in range(50):
            assert is_valid_ein(generate_ein(rng))

    def test_rejects_placeholders(self):
        assert not is_valid_ein("XX-XXXXXXX")
        assert not is_valid_ein("00-1234567")
        assert not is_valid_ein("")

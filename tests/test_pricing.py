"""
Tests for the pricing resolver: rate lookup chain and billed prices.
"""

import pytest

from billing_simulation.core.enums import PayerClass
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.pricing import (
    PricingResolver,
    RateCache,
    base_code,
    fallback_rate,
    is_major_metro,
    region_factor,
)
from billing_simulation.repository import InMemoryBenchmarkRepository
from tests.conftest import ScriptedLLMClient


@pytest.fixture
def rate_client() -> ScriptedLLMClient:
    """Oracle that quotes 42.50 for any code."""
    return ScriptedLLMClient({"CMS fee schedule reference": {"medicareRate": 42.5}})


class TestHelpers:
    def test_base_code_strips_modifier_suffix(self):
        assert base_code("73560-RT") == "73560"
        assert base_code(" 99213 ") == "99213"

    def test_fallback_rate_uses_longest_listed_prefix_first(self):
        assert fallback_rate("99284") == 230.0
        assert fallback_rate("71046") == 35.0
        assert fallback_rate("72100") == 45.0

    def test_fallback_rate_default(self):
        assert fallback_rate("J1100") == 100.0

    def test_metro_detection_by_name_and_zip(self):
        assert is_major_metro("1200 Main St, Houston, TX 77002")
        assert is_major_metro("Suite 4, 90012")
        assert not is_major_metro("12 Elm St, Amarillo, TX 79101")
        assert not is_major_metro("")

    def test_region_factor_adds_metro_bonus(self):
        assert region_factor("TX") == pytest.approx(0.98)
        assert region_factor("CA", "Los Angeles, CA") == pytest.approx(1.24)
        assert region_factor("ZZ") == pytest.approx(1.0)


class TestResolveRate:
    def test_benchmark_rate_wins_over_fallback(self, resolver):
        assert resolver.resolve_rate("99284") == 100.0

    def test_modifier_suffix_is_ignored_for_lookup(self, resolver):
        assert resolver.resolve_rate("71046-26") == 30.0

    def test_offline_falls_back_to_prefix_table(self, resolver):
        assert resolver.resolve_rate("99213") == 95.0
        assert "99213" not in resolver.cache

    def test_oracle_rate_is_cached_once(self, rate_client):
        resolver = PricingResolver(RateCache(), InMemoryBenchmarkRepository(), OracleAdapter(rate_client))

        assert resolver.resolve_rate("93000") == 42.5
        assert resolver.resolve_rate("93000") == 42.5
        assert rate_client.calls_for("CMS fee schedule reference") == 1
        assert resolver.cache.get("93000") == 42.5

    def test_unusable_oracle_rate_is_not_cached(self):
        client = ScriptedLLMClient({"CMS fee schedule reference": {"medicareRate": -3}})
        resolver = PricingResolver(RateCache(), InMemoryBenchmarkRepository(), OracleAdapter(client))

        assert resolver.resolve_rate("99213") == 95.0
        assert "99213" not in resolver.cache

    def test_cache_takes_precedence(self, benchmarks, offline_oracle):
        resolver = PricingResolver(RateCache({"99284": 250.0}), benchmarks, offline_oracle)
        assert resolver.resolve_rate("99284") == 250.0

    def test_rate_is_always_positive(self, resolver):
        for code in ("", "00000", "ZZZZZ", "99284"):
            assert resolver.resolve_rate(code) > 0


class TestBilledPrice:
    def test_medicare_in_texas(self, resolver):
        assert resolver.billed_price(100.0, PayerClass.MEDICARE, "TX") == 98.0

    def test_commercial_multiplier(self, resolver):
        assert resolver.billed_price(100.0, PayerClass.COMMERCIAL, "TX") == 490.0

    def test_metro_and_modifiers_apply(self, resolver):
        price = resolver.billed_price(100.0, PayerClass.MEDICARE, "TX", ["26"], "Houston, TX")
        assert price == pytest.approx(round(100 * 1.08 * 0.4, 2))

    def test_unknown_modifier_is_a_no_op(self, resolver):
        assert resolver.billed_price(100.0, PayerClass.MEDICARE, "TX", ["XYZ"]) == 98.0

    def test_override_replaces_payer_multiplier(self, resolver):
        assert resolver.billed_price(100.0, PayerClass.MEDICARE, "TX", payer_multiplier_override=5.5) == 539.0

    def test_deterministic(self, resolver):
        first = resolver.billed_price(123.45, PayerClass.SELF_PAY, "CA", ["50"], "San Francisco")
        second = resolver.billed_price(123.45, PayerClass.SELF_PAY, "CA", ["50"], "San Francisco")
        assert first == second

"""
Pricing Resolver - Reference Rates and Billed Prices

This module answers two questions for every procedure code:

    resolve_rate(code)  → What is the reference (Medicare) rate?
    billed_price(...)   → What does this payer get billed, here, with these modifiers?

Rate Lookup Chain:
    ┌──────────────┐  hit   ┌──────────────────────┐
    │ 1. RateCache │ ─────► │ return               │
    └──────┬───────┘        └──────────────────────┘
           │ miss
    ┌──────▼────────────────┐  hit
    │ 2. Benchmark table    │ ─────► return (never cached, never written)
    └──────┬────────────────┘
           │ miss
    ┌──────▼────────────────┐  Ok(rate > 0)
    │ 3. Oracle lookup      │ ─────► cache.put + return
    └──────┬────────────────┘
           │ Err / non-numeric / non-positive
    ┌──────▼────────────────┐
    │ 4. Prefix fallback    │ ─────► return
    └───────────────────────┘

Billed Price:
    reference × payer multiplier × region factor × Π modifier factors,
    rounded half-up to cents. Pure: identical inputs give identical output.

Author: Shubham Singh
Date: January 2026
"""

import math
import re
from typing import Iterable, Optional

from loguru import logger

from billing_simulation.core.constants import (
    DEFAULT_FALLBACK_RATE,
    DEFAULT_REGION_FACTOR,
    FALLBACK_RATE_PREFIXES,
    MAJOR_METROS,
    METRO_BONUS,
    METRO_ZIP_PREFIXES,
    MODIFIER_FACTORS,
    PAYER_MULTIPLIERS,
    STATE_REGION_FACTORS,
)
from billing_simulation.core.enums import PayerClass
from billing_simulation.core.money import round_currency
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.oracle.schemas import RateResponse
from billing_simulation.pricing.rate_cache import RateCache
from billing_simulation.repository.benchmark_repository import BenchmarkRepository

_METRO_ZIP_PATTERNS = [re.compile(rf"\b{prefix}\d{{2,5}}\b") for prefix in METRO_ZIP_PREFIXES]


# =============================================================================
# STAGE 1: PURE HELPERS
# =============================================================================


def base_code(code: str) -> str:
    """Strip a hyphenated modifier suffix: '73560-RT' → '73560'."""
    return (code or "").split("-")[0].strip().upper()


def fallback_rate(code: str) -> float:
    """Hardcoded default-by-prefix rate; the lookup chain's last resort."""
    code = base_code(code)
    for prefix, rate in FALLBACK_RATE_PREFIXES:
        if code.startswith(prefix):
            return rate
    return DEFAULT_FALLBACK_RATE


def is_major_metro(location_text: str) -> bool:
    """True when the text names a major metro or contains a metro postal prefix."""
    if not location_text:
        return False
    lowered = location_text.lower()
    if any(metro.lower() in lowered for metro in MAJOR_METROS):
        return True
    return any(pattern.search(location_text) for pattern in _METRO_ZIP_PATTERNS)


def region_factor(region: str, location_text: str = "") -> float:
    factor = STATE_REGION_FACTORS.get((region or "").upper(), DEFAULT_REGION_FACTOR)
    if is_major_metro(location_text):
        factor += METRO_BONUS
    return factor


def modifier_factor(modifiers: Iterable[str]) -> float:
    factor = 1.0
    for modifier in modifiers or ():
        factor *= MODIFIER_FACTORS.get(str(modifier).strip().upper(), 1.0)
    return factor


def payer_multiplier(payer_class: PayerClass) -> float:
    return PAYER_MULTIPLIERS.get(payer_class, PAYER_MULTIPLIERS[PayerClass.COMMERCIAL])


def _usable_rate(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        return None
    return value


# =============================================================================
# STAGE 2: RESOLVER
# =============================================================================


class PricingResolver:
    """
    Resolves reference rates and computes billed prices.

    What it does:
        Walks the four-tier lookup chain for reference rates and applies
        payer, region and modifier factors to produce billed unit prices.

    Why it exists:
        1. Every generated price must be reproducible from its inputs
        2. The oracle is expensive and flaky; its answers are cached once
        3. Pricing never fails: the prefix table always has an answer

    Example:
        >>> resolver = PricingResolver(RateCache(), InMemoryBenchmarkRepository({"99213": 92.05}))
        >>> resolver.resolve_rate("99213-25")
        92.05
        >>> resolver.billed_price(100.0, PayerClass.MEDICARE, "TX", [])
        98.0
    """

    def __init__(
        self,
        cache: RateCache,
        benchmarks: BenchmarkRepository,
        oracle: Optional[OracleAdapter] = None,
    ):
        self._cache = cache
        self._benchmarks = benchmarks
        self._oracle = oracle

    # =========================================================================
    # STAGE 2.1: REFERENCE RATES
    # =========================================================================

    def resolve_rate(self, code: str, description: str = "") -> float:
        """
        Reference rate for a code. Total: always returns a positive number.

        Args:
            code: Procedure code, optionally with a "-MOD" suffix
            description: Free text passed to the oracle on a tier-3 lookup
        """
        key = base_code(code)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        benchmark = self._benchmarks.get_rate(key)
        if benchmark is not None:
            return benchmark

        oracle_rate = self._ask_oracle(key, description)
        if oracle_rate is not None:
            return self._cache.put(key, oracle_rate)

        rate = fallback_rate(key)
        logger.debug(f"Rate fallback | {key} → {rate}")
        return rate

    def describe(self, code: str) -> Optional[str]:
        return self._benchmarks.get_description(base_code(code))

    def _ask_oracle(self, code: str, description: str) -> Optional[float]:
        if self._oracle is None or not code:
            return None

        prompt = (
            "You are a CMS fee schedule reference.\n"
            f"Give the national Medicare Physician Fee Schedule rate for CPT/HCPCS {code}"
            f"{f' ({description})' if description else ''}.\n"
            'Return JSON only: {"medicareRate": Number}'
        )
        result = self._oracle.request(prompt, RateResponse, purpose=f"rate:{code}")
        if not result.ok:
            return None

        rate = _usable_rate(result.value.medicare_rate)
        if rate is None:
            logger.warning(f"Oracle rate unusable | {code} | {result.value.medicare_rate}")
        return rate

    # =========================================================================
    # STAGE 2.2: BILLED PRICE
    # =========================================================================

    def billed_price(
        self,
        reference_rate: float,
        payer_class: PayerClass,
        region: str,
        modifiers: Iterable[str] = (),
        location_text: str = "",
        payer_multiplier_override: Optional[float] = None,
    ) -> float:
        """
        Billed unit price.

        Args:
            reference_rate: Output of resolve_rate
            payer_class: Payer; unknown payers price as Commercial
            region: Two-letter state code
            modifiers: Modifier codes; unrecognized ones are ignored
            location_text: Address text used for the metro bonus
            payer_multiplier_override: Replaces the payer table multiplier

        Returns:
            Price rounded half-up to cents
        """
        multiplier = (
            payer_multiplier_override
            if payer_multiplier_override is not None
            else payer_multiplier(payer_class)
        )
        price = (
            reference_rate
            * multiplier
            * region_factor(region, location_text)
            * modifier_factor(modifiers)
        )
        return round_currency(price)

    @property
    def cache(self) -> RateCache:
        return self._cache

"""
Pricing Layer - reference rates and billed prices.

Submodules:
    rate_cache.py → Append-only tier-1 cache
    resolver.py   → PricingResolver and pure pricing helpers
"""

from billing_simulation.pricing.rate_cache import RateCache
from billing_simulation.pricing.resolver import (
    PricingResolver,
    base_code,
    fallback_rate,
    is_major_metro,
    payer_multiplier,
    region_factor,
)

__all__ = [
    "RateCache",
    "PricingResolver",
    "base_code",
    "fallback_rate",
    "is_major_metro",
    "payer_multiplier",
    "region_factor",
]

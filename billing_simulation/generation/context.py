"""
Generation Context - what every phase receives besides the prior fragment.

One context is built per pipeline run. All randomness in a run flows from
its single seeded `rng`, so a fixed seed with a fixed oracle reproduces the
same bill.
"""

import random
from dataclasses import dataclass, field
from datetime import date

from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.models import Scenario
from billing_simulation.oracle.adapter import OracleAdapter
from billing_simulation.pricing.resolver import PricingResolver


@dataclass
class GenerationContext:
    scenario: Scenario
    oracle: OracleAdapter
    resolver: PricingResolver
    config: PipelineConfiguration = field(default_factory=PipelineConfiguration)
    rng: random.Random = field(default_factory=random.Random)
    today: date = field(default_factory=date.today)

    @property
    def irregularity(self):
        return self.scenario.irregularity

"""
Repository Layer - static data behind the pipeline.

Submodules:
    benchmark_repository.py → Reference rate table (tier 2 of pricing)
    scenario_repository.py  → Scenario catalog
"""

from billing_simulation.repository.benchmark_repository import (
    BenchmarkRepository,
    FileBasedBenchmarkRepository,
    InMemoryBenchmarkRepository,
)
from billing_simulation.repository.scenario_repository import ScenarioRepository

__all__ = [
    "BenchmarkRepository",
    "FileBasedBenchmarkRepository",
    "InMemoryBenchmarkRepository",
    "ScenarioRepository",
]

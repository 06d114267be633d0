"""
Billing Simulation Module

Generates realistic mock medical bills that carry a chosen billing
irregularity (or none), then re-audits each bill to check that the label
actually holds.

Architecture Overview:
    billing_simulation/
    ├── core/            → Domain models, enums, constants, configuration (Layer 0 - Pure)
    ├── repository/      → Benchmark rates and scenario catalog (Layer 1 - Infrastructure)
    ├── clients/         → LLM client abstractions (Layer 1 - Infrastructure)
    ├── oracle/          → Tagged-result oracle adapter + schemas (Layer 2)
    ├── pricing/         → Pricing Resolver (Layer 2)
    ├── generation/      → Phase agents (Layer 3 - Business Logic)
    ├── reconciliation/  → Deterministic reconciliation (Layer 3)
    ├── audit/           → Guardians, orchestrator, Judge (Layer 4)
    ├── sentinel/        → Compliance Sentinel (Layer 4)
    ├── persistence/     → Artifact store (Layer 5)
    ├── observability/   → Logging sinks (Layer 5)
    └── pipeline.py      → Main orchestrator (Layer 6 - Public API)

Quick Start:
    from billing_simulation import BillSimulationPipeline

    pipeline = BillSimulationPipeline.from_environment()
    result = pipeline.generate("duplicate-er-labs", seed=7)

Author: Shubham Singh
Date: January 2026
"""

__version__ = "1.0.0"
__author__ = "Shubham Singh"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================

# Main Entry Point
from billing_simulation.pipeline import BillSimulationPipeline

# Core Models
from billing_simulation.core.models import (
    AuditReport,
    BillArtifact,
    GroundTruth,
    GuardianResult,
    LineItem,
    SimulationResult,
)

# Enums
from billing_simulation.core.enums import (
    IrregularityType,
    JudgeVerdict,
    PayerClass,
    SentinelState,
)

# Configuration
from billing_simulation.core.config import PipelineConfiguration

__all__ = [
    # Main Entry Point (use this!)
    "BillSimulationPipeline",
    # Core Models
    "AuditReport",
    "BillArtifact",
    "GroundTruth",
    "GuardianResult",
    "LineItem",
    "SimulationResult",
    # Enums
    "IrregularityType",
    "JudgeVerdict",
    "PayerClass",
    "SentinelState",
    # Configuration
    "PipelineConfiguration",
]

"""
Core Layer - Domain Models, Enums, and Configuration

This layer contains PURE, side-effect-free components that form the foundation
of the bill simulation system.

Submodules:
    models.py     → Data structures (BillArtifact, LineItem, GroundTruth, GuardianResult)
    enums.py      → Enumerations (IrregularityType, PayerClass, SentinelState)
    constants.py  → Pricing tables, coding edits, thresholds
    money.py      → Half-up currency rounding
    config.py     → Configuration dataclass
    exceptions.py → Domain-specific exceptions

Dependency Rule:
    This layer depends on NOTHING else in the package.
    All other layers may depend on this layer.
"""

from billing_simulation.core.models import (
    AuditReport,
    BillArtifact,
    ClinicalTruth,
    CodingTruth,
    DeletedLine,
    FacilityIdentity,
    GroundTruth,
    GuardianResult,
    LineItem,
    Scenario,
    SimulationResult,
)
from billing_simulation.core.enums import (
    IrregularityType,
    JudgeVerdict,
    PayerClass,
    SentinelState,
)
from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.exceptions import (
    BillSimulationError,
    ConfigurationError,
    UnknownScenarioError,
)

__all__ = [
    # Models
    "AuditReport",
    "BillArtifact",
    "ClinicalTruth",
    "CodingTruth",
    "DeletedLine",
    "FacilityIdentity",
    "GroundTruth",
    "GuardianResult",
    "LineItem",
    "Scenario",
    "SimulationResult",
    # Enums
    "IrregularityType",
    "JudgeVerdict",
    "PayerClass",
    "SentinelState",
    # Configuration
    "PipelineConfiguration",
    # Exceptions
    "BillSimulationError",
    "ConfigurationError",
    "UnknownScenarioError",
]

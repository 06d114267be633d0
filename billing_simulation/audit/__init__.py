"""
Audit Layer - independent re-audit of generated bills.

Submodules:
    guardians/      → Ten billing rules (deterministic screen + oracle)
    prompts.py      → Forensic, verdict and judge prompt templates
    orchestrator.py → Concurrent fan-out, health score, executive summary
    judge.py        → Logic-gap, hallucination and mapping checks
"""

from billing_simulation.audit.guardians import AuditContext, Guardian, ScreenResult, default_guardians
from billing_simulation.audit.judge import SimulationJudge
from billing_simulation.audit.orchestrator import AuditOrchestrator, executive_summary, health_score

__all__ = [
    "AuditContext",
    "AuditOrchestrator",
    "Guardian",
    "ScreenResult",
    "SimulationJudge",
    "default_guardians",
    "executive_summary",
    "health_score",
]

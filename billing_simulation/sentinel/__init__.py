"""
Compliance Sentinel - verify, plan and execute irregularity injection.

Submodules:
    operations.py          → PlanOperation, plan validation and application
    planner.py             → MechanicalPlanner recipes per irregularity
    compliance_sentinel.py → ComplianceSentinel state machine
"""

from billing_simulation.sentinel.compliance_sentinel import ComplianceSentinel
from billing_simulation.sentinel.operations import PlanOperation, apply_operations, validate_plan
from billing_simulation.sentinel.planner import MechanicalPlanner

__all__ = [
    "ComplianceSentinel",
    "MechanicalPlanner",
    "PlanOperation",
    "apply_operations",
    "validate_plan",
]

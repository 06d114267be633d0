"""
Audit Orchestrator - concurrent guardian fan-out, fan-in, Judge.

Pipeline Position:
    ┌─────────────┐     ┌───────────────────────────────────────┐     ┌─────────┐
    │ BillArtifact│────►│ guardian × 10 (each on its own copy)   │────►│  Judge  │
    └─────────────┘     │ asyncio.gather over worker threads     │     └─────────┘
                        └───────────────────────────────────────┘

Guardians are independent: none sees another's result, none mutates
shared state. A guardian that raises (or whose oracle call fails) fills
its slot with a failure-sentinel result; the slot still counts toward the
health score as "did not pass".

The audit can run any number of times against the same artifact.

Author: Shubham Singh
Date: January 2026
"""

import asyncio
import copy
from typing import List, Optional

from loguru import logger

from billing_simulation.audit.guardians import AuditContext, Guardian, default_guardians
from billing_simulation.audit.judge import SimulationJudge
from billing_simulation.core.constants import CLEAN_EXECUTIVE_SUMMARY
from billing_simulation.core.models import AuditReport, BillArtifact, GuardianResult
from billing_simulation.core.money import round_half_up
from billing_simulation.oracle.adapter import OracleAdapter

DEFAULT_PARALLEL_LIMIT = 10


def health_score(results: List[GuardianResult]) -> int:
    """round_half_up(100 × passed / total); an empty audit scores 100."""
    if not results:
        return 100
    passed = sum(1 for r in results if r.passed)
    return round_half_up(100 * passed / len(results))


def executive_summary(results: List[GuardianResult]) -> str:
    failed = [r.guardian for r in results if not r.passed]
    if not failed:
        return CLEAN_EXECUTIVE_SUMMARY
    return f"Audit found failures in: {', '.join(failed)}"


class AuditOrchestrator:
    """
    Runs every guardian concurrently and hands the results to the Judge.

    Example:
        >>> orchestrator = AuditOrchestrator(oracle)
        >>> report = orchestrator.audit(artifact, AuditContext(clinical=clinical, resolver=resolver))
        >>> report.health_score
        90
    """

    def __init__(
        self,
        oracle: OracleAdapter,
        guardians: Optional[List[Guardian]] = None,
        judge: Optional[SimulationJudge] = None,
        parallel_limit: int = DEFAULT_PARALLEL_LIMIT,
    ):
        self._oracle = oracle
        self._guardians = guardians if guardians is not None else default_guardians()
        self._judge = judge or SimulationJudge(oracle, {g.name: g for g in self._guardians})
        self._parallel_limit = parallel_limit

    @property
    def guardians(self) -> List[Guardian]:
        return list(self._guardians)

    # =========================================================================
    # STAGE 1: FAN-OUT / FAN-IN
    # =========================================================================

    async def run_guardians(self, artifact: BillArtifact, context: AuditContext) -> List[GuardianResult]:
        semaphore = asyncio.Semaphore(self._parallel_limit)

        async def run_one(guardian: Guardian) -> GuardianResult:
            snapshot = copy.deepcopy(artifact)
            async with semaphore:
                try:
                    return await asyncio.to_thread(guardian.audit, snapshot, context, self._oracle)
                except Exception as e:
                    logger.error(f"Guardian {guardian.name} raised | {type(e).__name__}: {e}")
                    return GuardianResult.failure_sentinel(guardian.name, f"{type(e).__name__}: {e}")

        return list(await asyncio.gather(*(run_one(g) for g in self._guardians)))

    # =========================================================================
    # STAGE 2: REPORT
    # =========================================================================

    async def audit_async(self, artifact: BillArtifact, context: Optional[AuditContext] = None) -> AuditReport:
        context = context or AuditContext()
        logger.info(f"Audit | {artifact.artifact_id} | {len(self._guardians)} guardian(s)")

        results = await self.run_guardians(artifact, context)
        quality = self._judge.evaluate(artifact, results, context)

        report = AuditReport(
            health_score=health_score(results),
            executive_summary=executive_summary(results),
            guardian_results=results,
            quality_report=quality,
            other_issues=[
                {**r.failure_details.to_dict(), "guardian": r.guardian}
                for r in results
                if not r.passed and r.failure_details is not None
            ],
        )
        logger.info(
            f"Audit complete | {artifact.artifact_id} | Health {report.health_score} | "
            f"Failed: {report.failed_guardians or 'none'}"
        )
        return report

    def audit(self, artifact: BillArtifact, context: Optional[AuditContext] = None) -> AuditReport:
        """Synchronous entry point; must not be called from a running event loop."""
        return asyncio.run(self.audit_async(artifact, context))

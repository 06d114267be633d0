"""
Bill Simulation Pipeline - Main Orchestrator

This is the PUBLIC API entry point for the mock bill generator and auditor.
It wires every layer (repository, pricing, generation, reconciliation,
sentinel, audit, persistence) behind one facade.

Architecture Diagram:
    ┌───────────────────────────────────────────────────────────────────────┐
    │                        BillSimulationPipeline                         │
    ├───────────────────────────────────────────────────────────────────────┤
    │  Identity → Clinical → Coding → Financial → Reconciliation            │
    │      → Sentinel → Publish → (Review)            strictly sequential   │
    │                                                                       │
    │  Audit: 10 guardians fan out over snapshots → fan in → Judge          │
    └───────────────────────────────────────────────────────────────────────┘

Usage:
    from billing_simulation import BillSimulationPipeline

    pipeline = BillSimulationPipeline.from_environment()
    result = pipeline.generate("duplicate-er-labs", seed=7)
    print(result.audit.health_score, result.audit.quality_report.verdict)

Author: Shubham Singh
Date: January 2026
"""

import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from billing_simulation.audit import AuditContext, AuditOrchestrator
from billing_simulation.clients import GeminiClient, OpenAIClient
from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.exceptions import ConfigurationError
from billing_simulation.core.models import AuditReport, BillArtifact, ClinicalTruth, SimulationResult
from billing_simulation.generation import (
    ClinicalArchitect,
    FacilityScout,
    FinancialClerk,
    GenerationContext,
    MedicalCoder,
    Publisher,
    Reviewer,
)
from billing_simulation.oracle import OracleAdapter
from billing_simulation.persistence import ArtifactStore
from billing_simulation.pricing import PricingResolver, RateCache
from billing_simulation.reconciliation import DeterministicReconciler
from billing_simulation.repository import (
    BenchmarkRepository,
    FileBasedBenchmarkRepository,
    InMemoryBenchmarkRepository,
    ScenarioRepository,
)
from billing_simulation.sentinel import ComplianceSentinel


# =============================================================================
# STAGE 1: PIPELINE CLASS
# =============================================================================


class BillSimulationPipeline:
    """
    Main orchestrator for bill generation and audit.

    What it does:
        Runs the generation phases for a scenario, hands the finished bill
        to the audit, and saves / loads results.

    Why it exists:
        1. Simple API: one call produces a labeled, audited bill
        2. Every component can be overridden for tests (fake oracle,
           in-memory benchmarks, fresh rate cache)
        3. Unknown scenarios fail before any phase runs

    How it works:
        STAGE 1: Build components from configuration
        STAGE 2: On generate():
            2.1 Resolve the scenario (fatal if unknown)
            2.2 Run the phases in order with one seeded rng
            2.3 Audit the published artifact

    Example:
        >>> pipeline = BillSimulationPipeline(config, oracle=OracleAdapter(fake_client))
        >>> result = pipeline.generate("clean-er-commercial", seed=1)
        >>> result.audit.health_score
        100
    """

    def __init__(
        self,
        config: Optional[PipelineConfiguration] = None,
        oracle: Optional[OracleAdapter] = None,
        scenarios: Optional[ScenarioRepository] = None,
        benchmarks: Optional[BenchmarkRepository] = None,
        rate_cache: Optional[RateCache] = None,
        store: Optional[ArtifactStore] = None,
    ):
        # =====================================================================
        # STAGE 1.1: CONFIGURATION AND ORACLE
        # =====================================================================
        self._config = config or PipelineConfiguration()
        self._oracle = oracle if oracle is not None else OracleAdapter(None)

        # =====================================================================
        # STAGE 1.2: DATA
        # =====================================================================
        self._scenarios = scenarios or self._create_scenarios(self._config)
        self._benchmarks = benchmarks if benchmarks is not None else self._create_benchmarks(self._config)
        self._resolver = PricingResolver(rate_cache or RateCache(), self._benchmarks, self._oracle)

        # =====================================================================
        # STAGE 1.3: PHASE AGENTS
        # =====================================================================
        self._scout = FacilityScout()
        self._architect = ClinicalArchitect()
        self._coder = MedicalCoder()
        self._clerk = FinancialClerk()
        self._reconciler = DeterministicReconciler()
        self._sentinel = ComplianceSentinel(self._oracle, self._resolver, self._config)
        self._publisher = Publisher()
        self._reviewer = Reviewer()

        # =====================================================================
        # STAGE 1.4: AUDIT AND STORAGE
        # =====================================================================
        self._auditor = AuditOrchestrator(self._oracle)
        self._store = store or ArtifactStore(self._config.output_directory)

        logger.info(
            f"Pipeline ready | {len(self._scenarios)} scenarios | "
            f"{len(self._benchmarks)} benchmark rates | Oracle: {self._oracle.available}"
        )

    # =========================================================================
    # STAGE 2: MAIN GENERATION API
    # =========================================================================

    def generate(
        self,
        scenario_id: str,
        seed: Optional[int] = None,
        review: Optional[bool] = None,
        audit: bool = True,
    ) -> SimulationResult:
        """
        Generate one bill for a scenario.

        Args:
            scenario_id: Catalog id of the scenario
            seed: Seed for the run's random source (None → unseeded)
            review: Run the optional review phase (None → config.enable_review)
            audit: Run the guardian audit and Judge on the result

        Raises:
            UnknownScenarioError: Before any phase runs, if the id is unknown
        """
        # =====================================================================
        # STAGE 2.1: RESOLVE SCENARIO
        # =====================================================================
        scenario = self._scenarios.get(scenario_id)
        context = GenerationContext(
            scenario=scenario,
            oracle=self._oracle,
            resolver=self._resolver,
            config=self._config,
            rng=random.Random(seed),
        )
        logger.info(f"Generating | {scenario.scenario_id} | {scenario.irregularity.value} | Seed: {seed}")

        # =====================================================================
        # STAGE 2.2: SEQUENTIAL PHASES
        # =====================================================================
        facility = self._scout.run(context)
        clinical = self._architect.run(facility, context)
        coding = self._coder.run(clinical, facility, context)
        artifact = self._clerk.run(facility, clinical, coding, context)
        artifact = self._reconciler.reconcile(artifact, clinical, context.rng)
        artifact, outcome = self._sentinel.run(artifact, clinical, context.rng)
        document = self._publisher.run(artifact, clinical, context)

        run_review = self._config.enable_review if review is None else review
        review_report = self._reviewer.run(artifact, context) if run_review else None

        result = SimulationResult(
            scenario=scenario,
            clinical_truth=clinical,
            coding_truth=coding,
            artifact=artifact,
            sentinel_outcome=outcome,
            document=document,
            review=review_report,
        )

        # =====================================================================
        # STAGE 2.3: AUDIT
        # =====================================================================
        if audit:
            result.audit = self.audit(artifact, clinical)

        logger.info(
            f"Generated | {artifact.artifact_id} | {document['bill_name']} | "
            f"Sentinel: {outcome.state.value}"
        )
        return result

    def audit(self, artifact: BillArtifact, clinical: Optional[ClinicalTruth] = None) -> AuditReport:
        """Run the ten guardians and the Judge against an artifact."""
        context = AuditContext(clinical=clinical, resolver=self._resolver, config=self._config)
        return self._auditor.audit(artifact, context)

    # =========================================================================
    # STAGE 3: PERSISTENCE
    # =========================================================================

    def save(self, result: SimulationResult, name: Optional[str] = None) -> Path:
        """Save a result; the default name is bill name plus artifact id."""
        if name is None:
            name = f"{result.document.get('bill_name', 'FMBI')}_{result.artifact.artifact_id}"
        return self._store.save(name, result.to_dict())

    def load(self, name: str) -> Dict[str, Any]:
        return self._store.load(name)

    def list_saved(self) -> List[str]:
        return self._store.list_names()

    # =========================================================================
    # STAGE 4: FACTORY METHODS
    # =========================================================================

    @classmethod
    def from_config(cls, config: PipelineConfiguration) -> "BillSimulationPipeline":
        """Build a pipeline with the LLM client the configuration names."""
        return cls(config=config, oracle=OracleAdapter(cls._create_llm_client(config)))

    @classmethod
    def from_environment(cls, env_file: Optional[str] = None) -> "BillSimulationPipeline":
        """
        Create pipeline from environment variables.

        Raises:
            ConfigurationError: If required settings are missing
        """
        config = PipelineConfiguration.from_environment(env_file)
        logger.info(f"Loaded configuration | Provider: {config.llm_provider}")
        return cls.from_config(config)

    # =========================================================================
    # STAGE 5: PRIVATE HELPERS
    # =========================================================================

    @staticmethod
    def _create_scenarios(config: PipelineConfiguration) -> ScenarioRepository:
        if not config.scenario_catalog_path:
            raise ConfigurationError(
                "Scenario catalog path not configured", context={"setting": "scenario_catalog_path"}
            )
        return ScenarioRepository.from_file(config.scenario_catalog_path)

    @staticmethod
    def _create_benchmarks(config: PipelineConfiguration) -> BenchmarkRepository:
        if not config.benchmark_path:
            logger.warning("No benchmark table configured; pricing falls back to the prefix table")
            return InMemoryBenchmarkRepository()
        return FileBasedBenchmarkRepository(config.benchmark_path)

    @staticmethod
    def _create_llm_client(config: PipelineConfiguration):
        if config.llm_provider == "gemini":
            if not config.gemini_api_key:
                raise ConfigurationError("Gemini API key required", context={"setting": "GEMINI_API_KEY"})
            return GeminiClient(
                api_key=config.gemini_api_key,
                model_name=config.gemini_model,
                rate_limit_delay=config.rate_limit_delay,
                max_retries=config.max_retries,
            )
        if config.llm_provider == "openai":
            if not config.openai_api_key:
                raise ConfigurationError("OpenAI API key required", context={"setting": "OPENAI_API_KEY"})
            return OpenAIClient(
                api_key=config.openai_api_key,
                model_name=config.openai_model,
                rate_limit_delay=config.rate_limit_delay,
                max_retries=config.max_retries,
            )
        raise ConfigurationError(
            f"Unsupported LLM provider: {config.llm_provider}",
            context={"supported": ["gemini", "openai"]},
        )

    # =========================================================================
    # STAGE 6: PROPERTIES
    # =========================================================================

    @property
    def config(self) -> PipelineConfiguration:
        return self._config

    @property
    def scenarios(self) -> ScenarioRepository:
        return self._scenarios

    @property
    def resolver(self) -> PricingResolver:
        return self._resolver

    @property
    def oracle(self) -> OracleAdapter:
        return self._oracle

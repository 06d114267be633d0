"""
Configuration for the Mock Bill Simulation Pipeline

This module defines the configuration dataclass used to initialize the
generation and audit pipeline. Configuration is:
    1. Loaded from environment variables (with .env support)
    2. Validated at startup to fail fast on misconfiguration
    3. Passed explicitly to every component that needs it

Configuration Hierarchy:
    PipelineConfiguration
    ├── LLM Settings (API keys, model names, rate limits, transport retries)
    ├── Data Settings (benchmark table, scenario catalog, output directory)
    ├── Audit Settings (price sensitivity, outlier factors, GFE / co-pay thresholds)
    └── Sentinel Settings (which irregularities may be injected mechanically)

Usage:
    from billing_simulation.core.config import PipelineConfiguration

    config = PipelineConfiguration.from_environment()

Author: Shubham Singh
Date: January 2026
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from dotenv import load_dotenv

from billing_simulation.core import constants
from billing_simulation.core.enums import IrregularityType
from billing_simulation.core.exceptions import ConfigurationError


# =============================================================================
# STAGE 1: DEFAULT VALUES
# =============================================================================


class ConfigDefaults:
    """Default configuration values."""

    # -------------------------------------------------------------------------
    # 1.1 LLM Provider Defaults
    # -------------------------------------------------------------------------
    DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
    DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
    DEFAULT_RATE_LIMIT_DELAY = 0.5  # seconds between API calls
    DEFAULT_MAX_RETRIES = 1  # phases degrade to stubs instead of retrying

    # -------------------------------------------------------------------------
    # 1.2 Data Defaults
    # -------------------------------------------------------------------------
    DATA_DIR = Path(__file__).parent.parent / "data"
    DEFAULT_BENCHMARK_PATH = str(DATA_DIR / "cms_benchmarks.json")
    DEFAULT_SCENARIO_PATH = str(DATA_DIR / "scenarios.json")
    DEFAULT_OUTPUT_DIR = "generated_bills"

    # -------------------------------------------------------------------------
    # 1.3 Audit Defaults
    # -------------------------------------------------------------------------
    DEFAULT_PRICE_SENSITIVITY = constants.PRICE_SENSITIVITY
    DEFAULT_MAJOR_OUTLIER_FACTOR = constants.MAJOR_OUTLIER_FACTOR
    DEFAULT_EXTREME_OUTLIER_FACTOR = constants.EXTREME_OUTLIER_FACTOR
    DEFAULT_GFE_THRESHOLD = constants.GFE_DISPUTE_THRESHOLD
    DEFAULT_COPAY_THRESHOLD = constants.COPAY_THRESHOLD

    # -------------------------------------------------------------------------
    # 1.4 Sentinel Defaults
    # -------------------------------------------------------------------------
    # Global period violations need a rewritten clinical history, which the
    # mechanical planner does not attempt.
    DEFAULT_INJECTABLE = frozenset(
        t
        for t in IrregularityType
        if t not in (IrregularityType.CLEAN, IrregularityType.GLOBAL_PERIOD_VIOLATION)
    )

    DEFAULT_LOG_LEVEL = "INFO"


def _parse_irregularities(raw: str) -> FrozenSet[IrregularityType]:
    values = [v.strip().upper() for v in raw.split(",") if v.strip()]
    try:
        return frozenset(IrregularityType(v) for v in values)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown irregularity in SENTINEL_INJECTABLE: {e}",
            context={"setting": "SENTINEL_INJECTABLE", "value": raw},
        )


# =============================================================================
# STAGE 2: CONFIGURATION DATACLASS
# =============================================================================


@dataclass
class PipelineConfiguration:
    """
    Configuration for the bill simulation pipeline.

    What it does:
        Encapsulates every tunable of generation, reconciliation, the
        Compliance Sentinel and the audit.

    When to use:
        - At pipeline initialization
        - When creating test fixtures with custom thresholds

    Example:
        >>> config = PipelineConfiguration(llm_provider="openai", openai_api_key="sk-...")
        >>> config.price_sensitivity
        3.0
    """

    # -------------------------------------------------------------------------
    # 2.1 LLM Provider Configuration
    # -------------------------------------------------------------------------
    gemini_api_key: Optional[str] = None
    """Google Gemini API key. Required if using Gemini provider."""

    gemini_model: str = ConfigDefaults.DEFAULT_GEMINI_MODEL

    openai_api_key: Optional[str] = None
    """OpenAI API key. Required if using OpenAI provider."""

    openai_model: str = ConfigDefaults.DEFAULT_OPENAI_MODEL

    llm_provider: str = "gemini"
    """Which LLM provider to use: 'gemini' or 'openai'."""

    rate_limit_delay: float = ConfigDefaults.DEFAULT_RATE_LIMIT_DELAY

    max_retries: int = ConfigDefaults.DEFAULT_MAX_RETRIES
    """Transport-level attempts per oracle call. Phases never retry on top of this."""

    # -------------------------------------------------------------------------
    # 2.2 Data Configuration
    # -------------------------------------------------------------------------
    benchmark_path: Optional[str] = ConfigDefaults.DEFAULT_BENCHMARK_PATH
    """JSON benchmark table (tier 2 of the rate lookup)."""

    scenario_catalog_path: Optional[str] = ConfigDefaults.DEFAULT_SCENARIO_PATH

    output_directory: str = ConfigDefaults.DEFAULT_OUTPUT_DIR

    # -------------------------------------------------------------------------
    # 2.3 Audit Configuration
    # -------------------------------------------------------------------------
    price_sensitivity: float = ConfigDefaults.DEFAULT_PRICE_SENSITIVITY
    """Billed unit price above multiplier × reference × sensitivity is an outlier."""

    major_outlier_factor: float = ConfigDefaults.DEFAULT_MAJOR_OUTLIER_FACTOR
    extreme_outlier_factor: float = ConfigDefaults.DEFAULT_EXTREME_OUTLIER_FACTOR
    gfe_threshold: float = ConfigDefaults.DEFAULT_GFE_THRESHOLD
    copay_threshold: float = ConfigDefaults.DEFAULT_COPAY_THRESHOLD

    # -------------------------------------------------------------------------
    # 2.4 Sentinel and Run Configuration
    # -------------------------------------------------------------------------
    injectable_irregularities: FrozenSet[IrregularityType] = field(
        default_factory=lambda: ConfigDefaults.DEFAULT_INJECTABLE
    )
    """Irregularities the Sentinel may inject mechanically; others are declined."""

    enable_review: bool = False
    log_level: str = ConfigDefaults.DEFAULT_LOG_LEVEL

    # -------------------------------------------------------------------------
    # 2.5 Validation Methods
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.llm_provider not in ("gemini", "openai"):
            raise ConfigurationError(
                f"Unsupported LLM provider: {self.llm_provider}",
                context={"setting": "LLM_PROVIDER"},
            )

        if self.llm_provider == "gemini" and not self.gemini_api_key:
            raise ConfigurationError(
                "Gemini API key required when using Gemini provider",
                context={"setting": "GEMINI_API_KEY", "provider": "gemini"},
            )

        if self.llm_provider == "openai" and not self.openai_api_key:
            raise ConfigurationError(
                "OpenAI API key required when using OpenAI provider",
                context={"setting": "OPENAI_API_KEY", "provider": "openai"},
            )

        for setting, path in (
            ("BENCHMARK_PATH", self.benchmark_path),
            ("SCENARIO_CATALOG_PATH", self.scenario_catalog_path),
        ):
            if path and not Path(path).exists():
                raise ConfigurationError(
                    f"Data file not found: {path}", context={"setting": setting, "path": path}
                )

        if self.price_sensitivity <= 0:
            raise ConfigurationError(
                f"Price sensitivity must be positive, got {self.price_sensitivity}",
                context={"sensitivity": self.price_sensitivity},
            )

        if not (1.0 <= self.major_outlier_factor <= self.extreme_outlier_factor):
            raise ConfigurationError(
                "Outlier factors must satisfy 1.0 <= major <= extreme",
                context={"major": self.major_outlier_factor, "extreme": self.extreme_outlier_factor},
            )

        if self.max_retries < 1:
            raise ConfigurationError(
                f"max_retries must be at least 1, got {self.max_retries}",
                context={"max_retries": self.max_retries},
            )

    # -------------------------------------------------------------------------
    # 2.6 Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_environment(
        cls, env_file: Optional[str] = None, validate_on_load: bool = True
    ) -> "PipelineConfiguration":
        """
        Load configuration from environment variables.

        STAGE 1: Load .env file (if specified or found)
        STAGE 2: Read environment variables
        STAGE 3: Convert to typed configuration
        STAGE 4: Validate configuration (optional)

        Raises:
            ConfigurationError: If required settings are missing or invalid
        """
        # STAGE 1: Load .env file
        if env_file:
            load_dotenv(env_file)
        else:
            for location in (Path.cwd() / ".env", Path(__file__).parent.parent / ".env"):
                if location.exists():
                    load_dotenv(location)
                    break

        # STAGE 2: Read environment variables
        gemini_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        openai_key = os.getenv("OPENAI_API_KEY")

        llm_provider = os.getenv("LLM_PROVIDER", "gemini").lower()
        if not gemini_key and openai_key:
            llm_provider = "openai"

        injectable_raw = os.getenv("SENTINEL_INJECTABLE")
        injectable = (
            _parse_irregularities(injectable_raw)
            if injectable_raw
            else ConfigDefaults.DEFAULT_INJECTABLE
        )

        # STAGE 3: Create configuration
        config = cls(
            gemini_api_key=gemini_key,
            gemini_model=os.getenv("GEMINI_MODEL", ConfigDefaults.DEFAULT_GEMINI_MODEL),
            openai_api_key=openai_key,
            openai_model=os.getenv("OPENAI_MODEL", ConfigDefaults.DEFAULT_OPENAI_MODEL),
            llm_provider=llm_provider,
            rate_limit_delay=float(
                os.getenv("RATE_LIMIT_DELAY", ConfigDefaults.DEFAULT_RATE_LIMIT_DELAY)
            ),
            max_retries=int(os.getenv("MAX_RETRIES", ConfigDefaults.DEFAULT_MAX_RETRIES)),
            benchmark_path=os.getenv("BENCHMARK_PATH", ConfigDefaults.DEFAULT_BENCHMARK_PATH),
            scenario_catalog_path=os.getenv(
                "SCENARIO_CATALOG_PATH", ConfigDefaults.DEFAULT_SCENARIO_PATH
            ),
            output_directory=os.getenv("OUTPUT_DIRECTORY", ConfigDefaults.DEFAULT_OUTPUT_DIR),
            price_sensitivity=float(
                os.getenv("PRICE_SENSITIVITY", ConfigDefaults.DEFAULT_PRICE_SENSITIVITY)
            ),
            major_outlier_factor=float(
                os.getenv("MAJOR_OUTLIER_FACTOR", ConfigDefaults.DEFAULT_MAJOR_OUTLIER_FACTOR)
            ),
            extreme_outlier_factor=float(
                os.getenv("EXTREME_OUTLIER_FACTOR", ConfigDefaults.DEFAULT_EXTREME_OUTLIER_FACTOR)
            ),
            gfe_threshold=float(os.getenv("GFE_THRESHOLD", ConfigDefaults.DEFAULT_GFE_THRESHOLD)),
            copay_threshold=float(
                os.getenv("COPAY_THRESHOLD", ConfigDefaults.DEFAULT_COPAY_THRESHOLD)
            ),
            injectable_irregularities=injectable,
            enable_review=os.getenv("ENABLE_REVIEW", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", ConfigDefaults.DEFAULT_LOG_LEVEL).upper(),
        )

        # STAGE 4: Validate
        if validate_on_load:
            config.validate()

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary (for logging/debugging)."""
        return {
            "llm_provider": self.llm_provider,
            "gemini_model": self.gemini_model,
            "openai_model": self.openai_model,
            "gemini_api_key": "***" if self.gemini_api_key else None,
            "openai_api_key": "***" if self.openai_api_key else None,
            "max_retries": self.max_retries,
            "benchmark_path": self.benchmark_path,
            "scenario_catalog_path": self.scenario_catalog_path,
            "output_directory": self.output_directory,
            "price_sensitivity": self.price_sensitivity,
            "gfe_threshold": self.gfe_threshold,
            "injectable_irregularities": sorted(t.value for t in self.injectable_irregularities),
            "enable_review": self.enable_review,
        }

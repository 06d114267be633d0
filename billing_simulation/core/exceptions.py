"""
Domain Exceptions for Mock Bill Simulation

This module defines all custom exceptions used throughout the bill
simulation and audit pipeline. Well-defined exceptions enable:
    1. Clear error categorization for debugging
    2. Specific catch blocks for different failure modes
    3. Rich error context for troubleshooting

Exception Hierarchy:
    BillSimulationError (base)
    ├── ConfigurationError        → Invalid configuration
    ├── UnknownScenarioError      → Scenario id not in catalog (fatal)
    ├── OracleFailure             → LLM transport/provider failure
    │   ├── OracleRateLimitError
    │   └── OracleContentFilteredError
    ├── OracleResponseError       → LLM answered but the answer is unusable
    │   ├── ParseFailure
    │   └── SchemaViolation
    ├── ValidationFailure         → Bill invariant broken with no safe fix
    ├── InjectionDeclined         → Sentinel refused to inject an irregularity
    ├── RepositoryError
    │   └── DatasetLoadError
    └── PersistenceError
        └── ArtifactNotFoundError

Propagation:
    Oracle, parse and schema errors are recovered at the phase boundary
    (each phase degrades to a stub). Validation failures are fixed locally
    or recorded as provenance. Declined injections become annotations.
    Only UnknownScenarioError escapes a pipeline run.

Author: Shubham Singh
Date: January 2026
"""

from typing import Optional


# =============================================================================
# STAGE 1: BASE EXCEPTION
# =============================================================================


class BillSimulationError(Exception):
    """
    Base exception for all bill simulation errors.

    Attributes:
        message: Human-readable error description
        context: Dictionary of additional context for debugging
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format message with context for display."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


# =============================================================================
# STAGE 2: CONFIGURATION AND SCENARIO ERRORS
# =============================================================================


class ConfigurationError(BillSimulationError):
    """
    Error in pipeline configuration.

    When raised:
        - Missing API key for the selected provider
        - Benchmark or scenario file path does not exist
        - Thresholds outside their valid range
    """

    pass


class UnknownScenarioError(BillSimulationError):
    """
    Requested scenario id is not in the catalog.

    This is the one fatal error of a generation run: it is raised before any
    phase executes, so no partial artifact is ever produced.

    Attributes:
        scenario_id: The id that was requested
        available: Ids that do exist
    """

    def __init__(self, scenario_id: str, available: Optional[list] = None):
        self.scenario_id = scenario_id
        self.available = available or []
        super().__init__(
            f"Unknown scenario: {scenario_id}",
            context={"scenario_id": scenario_id, "available": len(self.available)},
        )


# =============================================================================
# STAGE 3: ORACLE ERRORS
# =============================================================================
# Errors raised by the LLM clients and the oracle adapter.


class OracleFailure(BillSimulationError):
    """
    Error from the generative oracle (LLM API call).

    Attributes:
        provider: The LLM provider (gemini, openai)
        original_error: The wrapped original exception
    """

    def __init__(self, message: str, provider: str, original_error: Optional[Exception] = None):
        self.provider = provider
        self.original_error = original_error
        super().__init__(
            message,
            context={
                "provider": provider,
                "original_error": str(original_error) if original_error else None,
            },
        )


class OracleRateLimitError(OracleFailure):
    """
    Provider rate limit exceeded.

    Attributes:
        retry_after: Seconds to wait before retrying (if known)
    """

    def __init__(
        self,
        provider: str,
        retry_after: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for {provider}", provider=provider, original_error=original_error
        )
        self.context["retry_after"] = retry_after


class OracleContentFilteredError(OracleFailure):
    """Provider refused to answer because of its safety filters."""

    def __init__(self, provider: str, reason: Optional[str] = None):
        super().__init__(
            f"Content filtered by {provider} safety settings: {reason or 'unknown reason'}",
            provider=provider,
        )
        self.reason = reason


class OracleResponseError(BillSimulationError):
    """The oracle answered, but the answer cannot be used."""

    pass


class ParseFailure(OracleResponseError):
    """
    Oracle text contained no parseable JSON object.

    Attributes:
        snippet: First characters of the offending text
    """

    def __init__(self, reason: str, snippet: str = ""):
        self.reason = reason
        self.snippet = snippet[:120]
        super().__init__(f"Could not parse oracle response: {reason}", context={"snippet": self.snippet})


class SchemaViolation(OracleResponseError):
    """
    Oracle JSON parsed but did not match the expected schema.

    Attributes:
        schema_name: Name of the schema that was expected
        errors: Validation error summary
    """

    def __init__(self, schema_name: str, errors: str):
        self.schema_name = schema_name
        self.errors = errors
        super().__init__(
            f"Oracle response violates schema {schema_name}",
            context={"schema": schema_name, "errors": errors},
        )


# =============================================================================
# STAGE 4: BILL INTEGRITY ERRORS
# =============================================================================


class ValidationFailure(BillSimulationError):
    """
    A bill invariant is broken and reconciliation has no safe fix.

    Never raised across the pipeline boundary; reconciliation converts it
    into a provenance note on the artifact.

    Attributes:
        invariant: Short name of the broken invariant
        line_index: Offending line, when line-scoped
    """

    def __init__(self, invariant: str, detail: str, line_index: Optional[int] = None):
        self.invariant = invariant
        self.line_index = line_index
        super().__init__(detail, context={"invariant": invariant, "line": line_index})


class InjectionDeclined(BillSimulationError):
    """
    The Compliance Sentinel refused to inject the requested irregularity.

    Recorded as an annotation on the artifact; never fatal.
    """

    def __init__(self, irregularity: str, reason: str):
        self.irregularity = irregularity
        self.reason = reason
        super().__init__(
            f"Injection of {irregularity} declined: {reason}",
            context={"irregularity": irregularity},
        )


# =============================================================================
# STAGE 5: REPOSITORY AND PERSISTENCE ERRORS
# =============================================================================


class RepositoryError(BillSimulationError):
    """Error accessing a data repository (benchmark table, scenario catalog)."""

    pass


class DatasetLoadError(RepositoryError):
    """
    A repository file could not be loaded.

    Attributes:
        file_path: Path to the dataset file
    """

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(
            f"Failed to load dataset from {file_path}: {reason}",
            context={"file_path": file_path, "reason": reason},
        )


class PersistenceError(BillSimulationError):
    """Error reading or writing saved artifacts."""

    pass


class ArtifactNotFoundError(PersistenceError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Saved artifact not found: {name}", context={"name": name})

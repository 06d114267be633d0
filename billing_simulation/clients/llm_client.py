"""
LLM Client Protocol and Base Implementation

This module defines the interface for the generative oracle's transport
and provides a base class with common functionality (rate limiting, error
translation, call metrics).

Protocol Pattern:
    - LLMClientProtocol defines the interface
    - BaseLLMClient provides common implementation
    - Concrete clients (GeminiClient, OpenAIClient) extend base

Retry Policy:
    The pipeline treats every oracle call as single-shot: a failed call
    degrades the calling phase to its stub. `max_retries` therefore defaults
    to 1 and only rate-limit responses wait before the next attempt.

Author: Shubham Singh
Date: January 2026
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from loguru import logger

from billing_simulation.core.exceptions import (
    OracleFailure,
    OracleRateLimitError,
)


# =============================================================================
# STAGE 1: LLM CLIENT PROTOCOL
# =============================================================================


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Protocol defining the interface for LLM clients.

    Required Methods:
        generate(prompt) → Generate text from prompt

    Optional Properties:
        model_name → Name of the model being used
        provider_name → Name of the provider (gemini, openai)
    """

    def generate(self, prompt: str) -> str:
        """
        Generate text from a prompt.

        Raises:
            OracleFailure: If generation fails
        """
        ...

    @property
    def model_name(self) -> str:
        ...

    @property
    def provider_name(self) -> str:
        ...


# =============================================================================
# STAGE 2: BASE LLM CLIENT (ABSTRACT)
# =============================================================================


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients with common functionality.

    What subclasses must implement:
        - _call_api(prompt): Actual API call, returning raw text
        - provider_name: Property returning provider name

    What base class provides:
        - Rate limiting between calls (safe to share across guardian threads)
        - Translation of unexpected SDK errors into OracleFailure
        - Call metrics
    """

    def __init__(
        self, api_key: str, model_name: str, rate_limit_delay: float = 0.5, max_retries: int = 1
    ):
        # =====================================================================
        # STAGE 2.1: STORE CONFIGURATION
        # =====================================================================
        self._api_key = api_key
        self._model_name = model_name
        self._rate_limit_delay = rate_limit_delay
        self._max_retries = max(1, max_retries)

        # =====================================================================
        # STAGE 2.2: TRACKING STATE
        # =====================================================================
        self._last_call_time: Optional[float] = None
        self._total_calls = 0
        self._failed_calls = 0
        self._lock = threading.Lock()

    # =========================================================================
    # STAGE 3: PUBLIC API
    # =========================================================================

    def generate(self, prompt: str) -> str:
        """
        Generate text from prompt with rate limiting.

        Algorithm:
            1. Apply rate limiting (wait if needed)
            2. Call API; on rate limiting wait and try again while attempts remain
            3. Track metrics

        Raises:
            OracleFailure: If every attempt fails
        """
        self._apply_rate_limit()

        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            try:
                result = self._call_api(prompt)
                self._count(failed=False)
                return result

            except OracleRateLimitError as e:
                last_error = e
                self._count(failed=True)
                if attempt < self._max_retries:
                    wait_time = e.retry_after or (2**attempt)
                    logger.warning(
                        f"Rate limited by {self.provider_name} | "
                        f"waiting {wait_time}s (attempt {attempt}/{self._max_retries})"
                    )
                    time.sleep(wait_time)

            except OracleFailure as e:
                last_error = e
                self._count(failed=True)
                logger.warning(
                    f"Oracle call failed | {self.provider_name} "
                    f"(attempt {attempt}/{self._max_retries}): {e}"
                )

            except Exception as e:
                last_error = OracleFailure(str(e), provider=self.provider_name, original_error=e)
                self._count(failed=True)
                logger.error(f"Unexpected error in oracle call | {self.provider_name}: {e}")

        raise OracleFailure(
            f"Generation failed after {self._max_retries} attempt(s)",
            provider=self.provider_name,
            original_error=last_error,
        )

    # =========================================================================
    # STAGE 4: ABSTRACT METHODS
    # =========================================================================

    @abstractmethod
    def _call_api(self, prompt: str) -> str:
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    # =========================================================================
    # STAGE 5: COMMON IMPLEMENTATION
    # =========================================================================

    @property
    def model_name(self) -> str:
        return self._model_name

    def _apply_rate_limit(self) -> None:
        """
        Apply rate limiting between API calls.

        Each caller reserves the next free slot under the lock and sleeps
        outside it, so concurrent guardian threads stay spaced apart.
        """
        with self._lock:
            now = time.time()
            wait = 0.0
            if self._last_call_time is not None:
                wait = max(0.0, self._last_call_time + self._rate_limit_delay - now)
            self._last_call_time = now + wait

        if wait > 0:
            time.sleep(wait)

    def _count(self, failed: bool) -> None:
        with self._lock:
            if failed:
                self._failed_calls += 1
            else:
                self._total_calls += 1

    # =========================================================================
    # STAGE 6: METRICS
    # =========================================================================

    @property
    def total_calls(self) -> int:
        return self._total_calls

    @property
    def failed_calls(self) -> int:
        return self._failed_calls

    @property
    def success_rate(self) -> float:
        total = self._total_calls + self._failed_calls
        if total == 0:
            return 100.0
        return (self._total_calls / total) * 100

"""
OpenAI Client - OpenAI API Implementation

Concrete oracle transport for OpenAI chat models, using JSON mode so the
answer is always a single JSON object.

Author: Shubham Singh
Date: January 2026
"""

from loguru import logger

from billing_simulation.clients.llm_client import BaseLLMClient
from billing_simulation.core.exceptions import (
    OracleContentFilteredError,
    OracleFailure,
    OracleRateLimitError,
)

SYSTEM_MESSAGE = (
    "You are a component of a medical billing simulation. "
    "Always answer with a single JSON object and nothing else."
)


class OpenAIClient(BaseLLMClient):
    """
    OpenAI API client.

    Supported Models:
        - gpt-4o-mini (cost-effective, fast)
        - gpt-4o (high quality)

    Example:
        >>> client = OpenAIClient(api_key="...", model_name="gpt-4o-mini")
        >>> text = client.generate("Audit this bill ...")
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gpt-4o-mini",
        rate_limit_delay: float = 0.5,
        max_retries: int = 1,
        temperature: float = 0.4,
    ):
        super().__init__(
            api_key=api_key,
            model_name=model_name,
            rate_limit_delay=rate_limit_delay,
            max_retries=max_retries,
        )
        self._temperature = temperature
        self._client = None
        self._initialize_client()

        logger.info(f"OpenAIClient initialized | Model: {model_name}")

    def _initialize_client(self) -> None:
        """Lazy import to avoid requiring openai at module load."""
        try:
            from openai import OpenAI

            self._client = OpenAI(api_key=self._api_key)

        except ImportError:
            raise OracleFailure(
                "openai package not installed. Install with: pip install openai",
                provider="openai",
            )
        except Exception as e:
            raise OracleFailure(
                f"Failed to initialize OpenAI client: {e}", provider="openai", original_error=e
            )

    def _call_api(self, prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model_name,
                messages=[
                    {"role": "system", "content": SYSTEM_MESSAGE},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._temperature,
                response_format={"type": "json_object"},
                max_tokens=4096,
            )

            if response.choices:
                choice = response.choices[0]
                if choice.finish_reason == "content_filter":
                    raise OracleContentFilteredError(provider="openai", reason="content_filter")
                if choice.message.content:
                    return choice.message.content

            raise OracleFailure("OpenAI returned empty response", provider="openai")

        except OracleFailure:
            raise

        except Exception as e:
            error_str = str(e).lower()

            if "rate" in error_str or "quota" in error_str or "429" in error_str:
                raise OracleRateLimitError(provider="openai", original_error=e)

            if "content_filter" in error_str or "policy" in error_str:
                raise OracleContentFilteredError(provider="openai", reason=str(e))

            raise OracleFailure(f"OpenAI API error: {e}", provider="openai", original_error=e)

    @property
    def provider_name(self) -> str:
        return "openai"

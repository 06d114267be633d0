"""
Gemini Client - Google Gemini API Implementation

Concrete oracle transport for Google's Gemini models. Responses are
requested as JSON (`response_mime_type`) since every pipeline phase and
guardian parses a JSON object out of the answer.

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


# =============================================================================
# STAGE 1: GEMINI CLIENT IMPLEMENTATION
# =============================================================================


class GeminiClient(BaseLLMClient):
    """
    Google Gemini API client.

    What it does:
        Sends prompts to a Gemini model via google-generativeai and returns
        the raw response text.

    Why it exists:
        1. Encapsulates Gemini-specific API logic
        2. Relaxes safety settings that otherwise block clinical vocabulary
        3. Translates Gemini errors to domain exceptions

    Example:
        >>> client = GeminiClient(api_key="...", model_name="gemini-1.5-flash")
        >>> text = client.generate('Return {"medicareRate": Number} for CPT 99213')
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
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
        self._model = None
        self._initialize_client()

        logger.info(f"GeminiClient initialized | Model: {model_name}")

    def _initialize_client(self) -> None:
        """
        Initialize the Gemini model.

        Lazy import to avoid requiring google-generativeai at module load.
        """
        try:
            import google.generativeai as genai

            genai.configure(api_key=self._api_key)

            # Permissive for medical content (injuries, procedures, body parts)
            safety_settings = [
                {"category": category, "threshold": "BLOCK_NONE"}
                for category in (
                    "HARM_CATEGORY_HARASSMENT",
                    "HARM_CATEGORY_HATE_SPEECH",
                    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
                    "HARM_CATEGORY_DANGEROUS_CONTENT",
                )
            ]

            self._model = genai.GenerativeModel(
                model_name=self._model_name,
                safety_settings=safety_settings,
                generation_config={
                    "temperature": self._temperature,
                    "response_mime_type": "application/json",
                },
            )

        except ImportError:
            raise OracleFailure(
                "google-generativeai package not installed. "
                "Install with: pip install google-generativeai",
                provider="gemini",
            )
        except Exception as e:
            raise OracleFailure(
                f"Failed to initialize Gemini client: {e}", provider="gemini", original_error=e
            )

    # =========================================================================
    # STAGE 2: API CALL IMPLEMENTATION
    # =========================================================================

    def _call_api(self, prompt: str) -> str:
        try:
            response = self._model.generate_content(prompt)

            if response.prompt_feedback and response.prompt_feedback.block_reason:
                raise OracleContentFilteredError(
                    provider="gemini", reason=str(response.prompt_feedback.block_reason)
                )

            if response.candidates:
                candidate = response.candidates[0]
                if candidate.content and candidate.content.parts:
                    return "".join(part.text for part in candidate.content.parts)

            raise OracleFailure("Gemini returned empty response", provider="gemini")

        except OracleFailure:
            raise

        except Exception as e:
            error_str = str(e).lower()

            if "rate" in error_str or "quota" in error_str or "429" in error_str:
                raise OracleRateLimitError(provider="gemini", original_error=e)

            if "blocked" in error_str or "safety" in error_str:
                raise OracleContentFilteredError(provider="gemini", reason=str(e))

            raise OracleFailure(f"Gemini API error: {e}", provider="gemini", original_error=e)

    @property
    def provider_name(self) -> str:
        return "gemini"

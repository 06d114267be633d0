"""
Clients Layer - LLM API Client Abstractions

Transport for the generative oracle. The rest of the system talks to the
oracle through `billing_simulation.oracle.OracleAdapter`, which wraps any
object satisfying LLMClientProtocol.

Submodules:
    llm_client.py    → Protocol and base implementation
    gemini_client.py → Google Gemini implementation
    openai_client.py → OpenAI implementation
"""

from billing_simulation.clients.llm_client import (
    LLMClientProtocol,
    BaseLLMClient,
)
from billing_simulation.clients.gemini_client import GeminiClient
from billing_simulation.clients.openai_client import OpenAIClient

__all__ = [
    "LLMClientProtocol",
    "BaseLLMClient",
    "GeminiClient",
    "OpenAIClient",
]

"""
Oracle Adapter - Single Seam to the Generative Oracle

Every phase, guardian and the Judge reach the LLM through this adapter.
It turns "text that should contain JSON" into a tagged result:

    Ok(value)              → parsed (and schema-validated) payload
    Err(kind, message)     → ORACLE_FAILURE | PARSE_FAILURE | SCHEMA_VIOLATION

Callers branch on `result.ok`; nothing here raises past the adapter, so no
call site can silently assume success.

Parsing:
    1. Strip ```json / ``` fences
    2. json.loads the remaining text
    3. Otherwise take the substring from the first "{" to the last "}"

Author: Shubham Singh
Date: January 2026
"""

import json
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Type, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from billing_simulation.clients.llm_client import LLMClientProtocol
from billing_simulation.core.exceptions import (
    OracleFailure,
    ParseFailure,
    SchemaViolation,
)


# =============================================================================
# STAGE 1: TAGGED RESULT
# =============================================================================


class OracleErrorKind(str, Enum):
    ORACLE_FAILURE = "OracleFailure"
    PARSE_FAILURE = "ParseFailure"
    SCHEMA_VIOLATION = "SchemaViolation"


@dataclass(frozen=True)
class Ok:
    value: Any
    ok: bool = True


@dataclass(frozen=True)
class Err:
    kind: OracleErrorKind
    message: str
    ok: bool = False


OracleResult = Union[Ok, Err]


# =============================================================================
# STAGE 2: JSON EXTRACTION
# =============================================================================


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if "```json" in text:
        return text.split("```json", 1)[1].split("```", 1)[0].strip()
    if text.startswith("```"):
        return text.split("```", 2)[1].strip()
    return text


def extract_json_object(text: str) -> dict:
    """
    Pull a JSON object out of free-form oracle text.

    Raises:
        ParseFailure: If no JSON object can be recovered
    """
    if not text or not text.strip():
        raise ParseFailure("empty response")

    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ParseFailure("no JSON object found", snippet=cleaned)
        try:
            payload = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as e:
            raise ParseFailure(f"invalid JSON object: {e.msg}", snippet=cleaned)

    if not isinstance(payload, dict):
        raise ParseFailure(f"expected a JSON object, got {type(payload).__name__}", snippet=cleaned)
    return payload


# =============================================================================
# STAGE 3: ADAPTER
# =============================================================================


class OracleAdapter:
    """
    Wraps an LLM client and returns tagged results.

    What it does:
        Sends a prompt, extracts the JSON object, validates it against an
        optional pydantic schema and reports the outcome as Ok / Err.

    Why it exists:
        1. Phases degrade to stubs on Err instead of catching exceptions
        2. One place for fence stripping and schema checks
        3. A missing client (offline runs) is just another Err

    Thread safety:
        The audit fans guardians out over worker threads; the call counter
        is lock-protected and the wrapped client is expected to be shareable.

    Example:
        >>> result = adapter.request(prompt, RateResponse)
        >>> if result.ok:
        ...     rate = result.value.medicare_rate
    """

    def __init__(self, client: Optional[LLMClientProtocol] = None):
        self._client = client
        self._lock = threading.Lock()
        self._calls = 0
        self._errors = 0

    @property
    def available(self) -> bool:
        return self._client is not None

    def request(
        self, prompt: str, schema: Optional[Type[BaseModel]] = None, purpose: str = "oracle"
    ) -> OracleResult:
        """
        Send a prompt and return the parsed payload as a tagged result.

        Args:
            prompt: Full prompt text
            schema: Pydantic model the payload must satisfy (None → raw dict)
            purpose: Short label used in logs

        Returns:
            Ok(model instance or dict) or Err(kind, message)
        """
        with self._lock:
            self._calls += 1

        if self._client is None:
            return self._err(OracleErrorKind.ORACLE_FAILURE, "no oracle client configured", purpose)

        try:
            text = self._client.generate(prompt)
        except OracleFailure as e:
            return self._err(OracleErrorKind.ORACLE_FAILURE, str(e), purpose)

        try:
            payload = extract_json_object(text)
        except ParseFailure as e:
            return self._err(OracleErrorKind.PARSE_FAILURE, str(e), purpose)

        if schema is None:
            return Ok(payload)

        try:
            return Ok(schema.model_validate(payload))
        except ValidationError as e:
            violation = SchemaViolation(schema.__name__, f"{e.error_count()} error(s)")
            return self._err(OracleErrorKind.SCHEMA_VIOLATION, str(violation), purpose)

    def _err(self, kind: OracleErrorKind, message: str, purpose: str) -> Err:
        with self._lock:
            self._errors += 1
        logger.warning(f"Oracle {kind.value} | {purpose} | {message}")
        return Err(kind=kind, message=message)

    @property
    def call_count(self) -> int:
        return self._calls

    @property
    def error_count(self) -> int:
        return self._errors

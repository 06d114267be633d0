"""
Tests for the oracle adapter: JSON extraction and tagged results.
"""

import pytest

from billing_simulation.core.exceptions import ParseFailure
from billing_simulation.oracle.adapter import (
    OracleAdapter,
    OracleErrorKind,
    extract_json_object,
    strip_code_fences,
)
from billing_simulation.oracle.schemas import RateResponse
from tests.conftest import ScriptedLLMClient


class TestJsonExtraction:
    def test_strips_json_fence(self):
        text = 'Here you go:\n```json\n{"medicareRate": 12.5}\n```\nThanks'
        assert strip_code_fences(text) == '{"medicareRate": 12.5}'

    def test_strips_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_recovers_object_from_prose(self):
        assert extract_json_object('The answer is {"a": 1, "b": [2]} as requested.') == {"a": 1, "b": [2]}

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2, 3]", "{broken: json}"])
    def test_unrecoverable_text_raises(self, text):
        with pytest.raises(ParseFailure):
            extract_json_object(text)


class TestOracleAdapter:
    def test_no_client_is_an_oracle_failure(self, offline_oracle):
        result = offline_oracle.request("anything", RateResponse)

        assert not result.ok
        assert result.kind == OracleErrorKind.ORACLE_FAILURE
        assert not offline_oracle.available

    def test_valid_payload_is_ok(self):
        adapter = OracleAdapter(ScriptedLLMClient({"rate": '```json\n{"medicareRate": 80}\n```'}))
        result = adapter.request("rate please", RateResponse)

        assert result.ok
        assert result.value.medicare_rate == 80.0

    def test_schema_violation(self):
        adapter = OracleAdapter(ScriptedLLMClient({"rate": {"price": 80}}))
        result = adapter.request("rate please", RateResponse)

        assert not result.ok
        assert result.kind == OracleErrorKind.SCHEMA_VIOLATION

    def test_parse_failure(self):
        adapter = OracleAdapter(ScriptedLLMClient({"rate": "I cannot help with that."}))
        result = adapter.request("rate please", RateResponse)

        assert result.kind == OracleErrorKind.PARSE_FAILURE

    def test_client_exception_becomes_err(self):
        adapter = OracleAdapter(ScriptedLLMClient())
        result = adapter.request("unscripted", RateResponse)

        assert result.kind == OracleErrorKind.ORACLE_FAILURE

    def test_raw_dict_without_schema(self):
        adapter = OracleAdapter(ScriptedLLMClient({"plan": {"x": 1}}))
        assert adapter.request("plan").value == {"x": 1}

    def test_counts_calls_and_errors(self):
        adapter = OracleAdapter(ScriptedLLMClient({"ok": {"medicareRate": 1}}))
        adapter.request("ok", RateResponse)
        adapter.request("fails", RateResponse)

        assert adapter.call_count == 2
        assert adapter.error_count == 1

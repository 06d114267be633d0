"""
Tests for the shared LLM client behaviour (attempt budget, metrics) and the
provider selection done when a pipeline is built from configuration.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from billing_simulation import BillSimulationPipeline
from billing_simulation.clients import llm_client
from billing_simulation.clients.llm_client import BaseLLMClient, LLMClientProtocol
from billing_simulation.core.config import PipelineConfiguration
from billing_simulation.core.exceptions import ConfigurationError, OracleFailure, OracleRateLimitError
from billing_simulation.oracle.adapter import OracleAdapter, OracleErrorKind


class FlakyClient(BaseLLMClient):
    """Fails with the queued errors, then answers."""

    def __init__(self, errors, reply='{"medicareRate": 12.5}', max_retries=3, rate_limit_delay=0.0):
        super().__init__(
            api_key="test", model_name="flaky-1", rate_limit_delay=rate_limit_delay, max_retries=max_retries
        )
        self.errors = list(errors)
        self.reply = reply

    def _call_api(self, prompt: str) -> str:
        if self.errors:
            raise self.errors.pop(0)
        return self.reply

    @property
    def provider_name(self) -> str:
        return "flaky"


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    waits = []
    monkeypatch.setattr(llm_client.time, "sleep", waits.append)
    return waits


class TestBaseLLMClient:
    def test_satisfies_protocol(self):
        assert isinstance(FlakyClient([]), LLMClientProtocol)

    def test_rate_limit_then_success(self):
        client = FlakyClient([OracleRateLimitError(provider="flaky", retry_after=1)])

        assert client.generate("prompt") == '{"medicareRate": 12.5}'
        assert client.total_calls == 1
        assert client.failed_calls == 1
        assert client.success_rate == 50.0

    def test_budget_exhausted(self):
        client = FlakyClient([OracleFailure("down", provider="flaky")] * 2, max_retries=2)

        with pytest.raises(OracleFailure):
            client.generate("prompt")
        assert client.failed_calls == 2

    def test_unexpected_error_is_wrapped(self):
        client = FlakyClient([ValueError("bad socket")], max_retries=1)

        with pytest.raises(OracleFailure) as excinfo:
            client.generate("prompt")
        assert isinstance(excinfo.value.original_error, OracleFailure)

    def test_counters_survive_concurrent_callers(self):
        client = FlakyClient([])

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(client.generate, ["prompt"] * 400))

        assert client.total_calls == 400
        assert client.failed_calls == 0

    def test_rate_limit_reserves_consecutive_slots(self, monkeypatch, sleeps):
        monkeypatch.setattr(llm_client.time, "time", lambda: 100.0)
        client = FlakyClient([], rate_limit_delay=0.5)

        for _ in range(3):
            client.generate("prompt")

        assert sleeps == [0.5, 1.0]

    def test_adapter_turns_exhaustion_into_err(self):
        adapter = OracleAdapter(FlakyClient([OracleFailure("down", provider="flaky")], max_retries=1))

        result = adapter.request("prompt", purpose="pricing")

        assert not result.ok
        assert result.kind == OracleErrorKind.ORACLE_FAILURE


class TestProviderSelection:
    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            BillSimulationPipeline.from_config(PipelineConfiguration(llm_provider="openai"))

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            BillSimulationPipeline.from_config(PipelineConfiguration(llm_provider="mystery", gemini_api_key="k"))

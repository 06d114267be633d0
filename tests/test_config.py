"""
Tests for PipelineConfiguration loading and validation.
"""

import pytest

from billing_simulation.core.config import ConfigDefaults, PipelineConfiguration
from billing_simulation.core.enums import IrregularityType
from billing_simulation.core.exceptions import ConfigurationError

ENV_KEYS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "OPENAI_API_KEY",
    "LLM_PROVIDER",
    "SENTINEL_INJECTABLE",
    "ENABLE_REVIEW",
    "LOG_LEVEL",
    "PRICE_SENSITIVITY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # setenv first so teardown also removes whatever load_dotenv writes
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    # keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)


def load(tmp_path, **env) -> PipelineConfiguration:
    env_file = tmp_path / "test.env"
    env_file.write_text("".join(f"{k}={v}\n" for k, v in env.items()), encoding="utf-8")
    return PipelineConfiguration.from_environment(str(env_file), validate_on_load=False)


class TestDefaults:
    def test_bundled_data_files_exist(self):
        PipelineConfiguration(gemini_api_key="key").validate()

    def test_default_policy_excludes_global_period(self):
        config = PipelineConfiguration()
        assert IrregularityType.GLOBAL_PERIOD_VIOLATION not in config.injectable_irregularities
        assert IrregularityType.DUPLICATE in config.injectable_irregularities

    def test_to_dict_masks_keys(self):
        assert PipelineConfiguration(openai_api_key="sk-secret").to_dict()["openai_api_key"] == "***"


class TestFromEnvironment:
    def test_reads_settings(self, tmp_path):
        config = load(tmp_path, OPENAI_API_KEY="sk-x", ENABLE_REVIEW="true", LOG_LEVEL="debug", PRICE_SENSITIVITY="2.5")

        assert config.llm_provider == "openai"
        assert config.enable_review
        assert config.log_level == "DEBUG"
        assert config.price_sensitivity == 2.5

    def test_injectable_list(self, tmp_path):
        config = load(tmp_path, SENTINEL_INJECTABLE="duplicate, math_error")
        assert config.injectable_irregularities == frozenset(
            {IrregularityType.DUPLICATE, IrregularityType.MATH_ERROR}
        )

    def test_unknown_injectable_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load(tmp_path, SENTINEL_INJECTABLE="DUPLICATE,TELEPORTATION")

    def test_unset_injectable_uses_default(self, tmp_path):
        assert load(tmp_path).injectable_irregularities == ConfigDefaults.DEFAULT_INJECTABLE


class TestValidate:
    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            PipelineConfiguration(llm_provider="openai").validate()

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            PipelineConfiguration(llm_provider="mystery").validate()

    def test_outlier_factors_ordered(self):
        config = PipelineConfiguration(gemini_api_key="key", major_outlier_factor=5.0, extreme_outlier_factor=2.0)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_missing_data_file(self, tmp_path):
        config = PipelineConfiguration(gemini_api_key="key", benchmark_path=str(tmp_path / "none.json"))
        with pytest.raises(ConfigurationError):
            config.validate()

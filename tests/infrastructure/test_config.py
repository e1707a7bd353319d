"""Tests for configuration dataclasses and loaders."""

from __future__ import annotations

import json

import pytest

from inconsistency_finder.infrastructure.config import (
    API_KEYS_ENV,
    DEFAULT_MODEL,
    AnalysisConfig,
    KeyPoolConfig,
    RetryConfig,
    Settings,
    load_config_file,
    load_config_from_json,
    load_config_from_yaml,
)


@pytest.fixture(autouse=True)
def _no_env_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(API_KEYS_ENV, raising=False)


class TestRetryConfig:

    def test_defaults(self) -> None:
        cfg = RetryConfig()
        assert cfg.max_retries_per_key == 3
        assert cfg.base_backoff_ms == 2000
        assert cfg.max_backoff_ms == 60000
        assert cfg.max_total_duration_ms == 5 * 60 * 1000
        assert cfg.immediate_retry is False
        cfg.validate()

    def test_invalid_retries(self) -> None:
        with pytest.raises(ValueError, match="max_retries_per_key"):
            RetryConfig(max_retries_per_key=0).validate()

    def test_cap_below_base(self) -> None:
        with pytest.raises(ValueError, match="max_backoff_ms"):
            RetryConfig(base_backoff_ms=5000, max_backoff_ms=1000).validate()

    def test_from_dict_ignores_unknown(self) -> None:
        cfg = RetryConfig.from_dict({"immediate_retry": True, "bogus": 1})
        assert cfg.immediate_retry is True

    def test_frozen(self) -> None:
        with pytest.raises(AttributeError):
            RetryConfig().base_backoff_ms = 1  # type: ignore[misc]


class TestKeyPoolConfig:

    def test_defaults(self) -> None:
        cfg = KeyPoolConfig()
        assert cfg.exhausted_cooldown_ms == 24 * 60 * 60 * 1000
        assert cfg.server_cooldown_ms == 60000
        assert cfg.deadline_cooldown_ms == 30000
        assert cfg.network_cooldown_ms == 1000
        assert cfg.max_failures == 3

    def test_negative_duration(self) -> None:
        with pytest.raises(ValueError, match="network_cooldown_ms"):
            KeyPoolConfig(network_cooldown_ms=-1).validate()


class TestAnalysisConfig:

    def test_defaults(self) -> None:
        cfg = AnalysisConfig()
        assert cfg.api_keys == ()
        assert cfg.model == DEFAULT_MODEL
        assert cfg.temperature == 0.5
        assert cfg.deep_analysis_depth == 1
        assert cfg.context_limit == 30
        assert cfg.merge_single_continuation is False

    def test_keys_coerced_to_tuple(self) -> None:
        cfg = AnalysisConfig(api_keys=["a", "b"])  # type: ignore[arg-type]
        assert cfg.api_keys == ("a", "b")

    def test_invalid_temperature(self) -> None:
        with pytest.raises(ValueError, match="temperature"):
            AnalysisConfig.from_dict({"temperature": 3.0})

    def test_invalid_depth(self) -> None:
        with pytest.raises(ValueError, match="deep_analysis_depth"):
            AnalysisConfig(deep_analysis_depth=0).validate()

    def test_legacy_single_key_migrated(self) -> None:
        cfg = AnalysisConfig.from_dict({"api_key": "legacy"})
        assert cfg.api_keys == ("legacy",)

    def test_legacy_key_ignored_when_list_present(self) -> None:
        cfg = AnalysisConfig.from_dict({"api_key": "legacy", "api_keys": ["a"]})
        assert cfg.api_keys == ("a",)

    def test_with_keys_dedupes(self) -> None:
        cfg = AnalysisConfig(api_keys=("a",)).with_keys([" a ", "b", "", "b"])
        assert cfg.api_keys == ("a", "b")

    def test_to_dict_round_trip(self) -> None:
        cfg = AnalysisConfig(api_keys=("a",), temperature=0.2)
        assert AnalysisConfig.from_dict(cfg.to_dict()) == cfg


class TestLoaders:

    def test_json_sections(self) -> None:
        sections = load_config_from_json(json.dumps({
            "analysis": {"api_keys": ["k"], "deep_analysis_depth": 2},
            "retry": {"immediate_retry": True},
            "extra": {"anything": 1},
        }))
        assert isinstance(sections["analysis"], AnalysisConfig)
        assert sections["analysis"].deep_analysis_depth == 2
        assert sections["retry"].immediate_retry is True
        assert sections["extra"] == {"anything": 1}

    def test_top_level_must_be_object(self) -> None:
        with pytest.raises(ValueError, match="Top-level"):
            load_config_from_json("[1, 2]")

    def test_yaml_sections(self) -> None:
        sections = load_config_from_yaml("key_pool:\n  max_failures: 5\n")
        assert sections["key_pool"].max_failures == 5

    def test_empty_yaml(self) -> None:
        assert load_config_from_yaml("") == {}

    def test_load_file_defaults(self) -> None:
        settings = load_config_file()
        assert settings == Settings()

    def test_load_yaml_file(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "analysis:\n  api_keys: [one, two]\n  temperature: 0.1\n"
            "retry:\n  max_retries_per_key: 2\n",
            encoding="utf-8",
        )
        settings = load_config_file(path)
        assert settings.analysis.api_keys == ("one", "two")
        assert settings.analysis.temperature == 0.1
        assert settings.retry.max_retries_per_key == 2
        assert settings.key_pool == KeyPoolConfig()

    def test_load_json_file(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"analysis": {"model": "gemini-pro"}}), encoding="utf-8")
        assert load_config_file(path).analysis.model == "gemini-pro"

    def test_env_keys_appended(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"analysis": {"api_keys": ["file-key"]}}), encoding="utf-8")
        monkeypatch.setenv(API_KEYS_ENV, "env-1, env-2,file-key")
        settings = load_config_file(path)
        assert settings.analysis.api_keys == ("file-key", "env-1", "env-2")

"""Tests for configuration loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from copilot import config as config_module
from copilot.config import CopilotConfig, apply_env_overrides, get_config, load_config


@pytest.fixture(autouse=True)
def _restore_cache(monkeypatch):
    monkeypatch.setattr(config_module, "_config", config_module._config)
    monkeypatch.setattr(config_module, "_config_path", config_module._config_path)
    for var in config_module.ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    config = CopilotConfig()
    assert config.default_model == "gpt-5"
    assert config.fallback_model == "gpt-4o"
    assert config.pipeline.max_rounds == 3
    assert config.retry.tries == 3
    assert config.port == 8787


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "default_model: o3\n"
        "retry:\n  tries: 2\n  base_delay_ms: 600\n"
        "pipeline:\n  max_rounds: 4\n"
    )

    config = load_config(str(path))

    assert config.default_model == "o3"
    assert config.retry.tries == 2
    assert config.retry.policy().base_delay_ms == 600
    assert config.pipeline.max_rounds == 4
    assert get_config() is config


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.default_model == "gpt-5"


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("default_model: gpt-4o\nport: 9000\n")
    monkeypatch.setenv("MODEL_DEFAULT", "gpt-5-mini")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("PORT", "9100")

    config = load_config(str(path))

    assert config.default_model == "gpt-5-mini"
    assert config.openai_api_key == "sk-test"
    assert config.port == 9100


def test_apply_env_overrides_ignores_empty():
    merged = apply_env_overrides({"default_model": "o3"}, {"MODEL_DEFAULT": ""})
    assert merged == {"default_model": "o3"}


def test_non_mapping_file_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(str(path))


@pytest.mark.parametrize(
    "raw",
    [
        {"retry": {"tries": 0}},
        {"retry": {"base_delay_ms": -1}},
        {"pipeline": {"max_rounds": 0}},
    ],
)
def test_invalid_values(raw):
    with pytest.raises(ValidationError):
        CopilotConfig(**raw)


def test_get_config_before_load(monkeypatch):
    monkeypatch.setattr(config_module, "_config", None)
    with pytest.raises(RuntimeError, match="not loaded"):
        get_config()

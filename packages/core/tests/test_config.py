"""Tests for configuration loading."""

import pytest

from ghagent_core.config import ENV_VARS, load_config, load_credentials, validate_response_language


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config.model_name == "gpt-4o"
    assert config.max_tokens == 4096
    assert config.fallback_models == ()
    assert config.response_language == "en"
    assert config.max_rounds == 3
    assert config.agent_bin == "codex"
    assert config.context_dir == ".github-agent-data"


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".agent.yml"
    cfg.write_text("model_name: o3\nmax_rounds: 5\nfallback_models:\n  - gpt-4o-mini\n")
    config = load_config(config_path=str(cfg))
    assert config.model_name == "o3"
    assert config.max_rounds == 5
    assert config.fallback_models == ("gpt-4o-mini",)
    assert config.max_tokens == 4096


def test_env_overrides_file(tmp_path, monkeypatch):
    cfg = tmp_path / ".agent.yml"
    cfg.write_text("model_name: o3\nmax_rounds: 5\n")
    monkeypatch.setenv("GITHUB_AGENT_MODEL_NAME", "claude-sonnet")
    monkeypatch.setenv("GITHUB_AGENT_FALLBACK_MODELS", "a, b ,c")
    config = load_config(config_path=str(cfg))
    assert config.model_name == "claude-sonnet"
    assert config.fallback_models == ("a", "b", "c")
    # Not set in the environment, so the file value survives.
    assert config.max_rounds == 5


def test_inputs_override_env(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_AGENT_MAX_ROUNDS", "7")
    config = load_config(config_path=str(tmp_path / "none.yml"), cli_overrides={"max_rounds": "2"})
    assert config.max_rounds == 2


def test_none_and_empty_overrides_ignored(tmp_path):
    cfg = tmp_path / ".agent.yml"
    cfg.write_text("model_name: o3\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model_name": None, "max_tokens": ""})
    assert config.model_name == "o3"
    assert config.max_tokens == 4096


def test_invalid_language_dropped_with_warning(tmp_path, monkeypatch, caplog):
    cfg = tmp_path / ".agent.yml"
    cfg.write_text("response_language: zh-CN\n")
    monkeypatch.setenv("GITHUB_AGENT_RESPONSE_LANGUAGE", "klingon")
    config = load_config(config_path=str(cfg))
    assert config.response_language == "zh-CN"
    assert "Invalid response_language" in caplog.text


def test_non_integer_dropped(tmp_path):
    config = load_config(config_path=str(tmp_path / "none.yml"), cli_overrides={"max_rounds": "lots"})
    assert config.max_rounds == 3


def test_malformed_file_ignored(tmp_path):
    cfg = tmp_path / ".agent.yml"
    cfg.write_text("model_name: [unclosed\n")
    config = load_config(config_path=str(cfg))
    assert config.model_name == "gpt-4o"


def test_unknown_keys_ignored(tmp_path):
    cfg = tmp_path / ".agent.yml"
    cfg.write_text("colour: blue\nmax_tokens: 100\n")
    config = load_config(config_path=str(cfg))
    assert config.max_tokens == 100
    assert not hasattr(config, "colour")


def test_self_review_patterns_configurable(tmp_path):
    cfg = tmp_path / ".agent.yml"
    cfg.write_text("self_review_error_patterns:\n  - cannot review own PR\n")
    config = load_config(config_path=str(cfg))
    assert config.self_review_error_patterns == ("cannot review own PR",)


def test_validate_response_language():
    assert validate_response_language("en") == "en"
    assert validate_response_language("zh-CN") == "zh-CN"
    assert validate_response_language("fr") is None
    assert validate_response_language(None) is None


def test_credentials_inputs_win_over_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "env-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-env")
    creds = load_credentials({"openai_api_key": "input-key"})
    assert creds["openai_api_key"] == "input-key"
    assert creds["anthropic_api_key"] == "ant-env"

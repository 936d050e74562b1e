import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

VALID_LANGUAGES = ("en", "zh-CN")

DEFAULT_CONFIG: dict = {
    "model_name": "gpt-4o",
    "max_tokens": 4096,
    "fallback_models": [],
    "response_language": "en",
    "max_rounds": 3,
    "agent_bin": "codex",
    "context_dir": ".github-agent-data",
    "prompt_dir": None,  # None = use the built-in prompts shipped with ghagent_core
    "verify_max_retries": 5,
    "log_tail_lines": 40,
    "http_timeout": 15,
    # Platform messages meaning "you cannot review your own pull request".
    "self_review_error_patterns": [
        "Can not approve your own pull request",
        "Can not request changes on your own pull request",
    ],
}

# Options that may come from the environment, keyed by config field.
ENV_VARS: dict = {
    "model_name": "GITHUB_AGENT_MODEL_NAME",
    "max_tokens": "GITHUB_AGENT_MAX_TOKENS",
    "fallback_models": "GITHUB_AGENT_FALLBACK_MODELS",
    "response_language": "GITHUB_AGENT_RESPONSE_LANGUAGE",
    "max_rounds": "GITHUB_AGENT_MAX_ROUNDS",
    "agent_bin": "GITHUB_AGENT_BIN",
}

_INT_FIELDS = {"max_tokens", "max_rounds", "verify_max_retries", "log_tail_lines", "http_timeout"}
_LIST_FIELDS = {"fallback_models", "self_review_error_patterns"}


@dataclass(frozen=True)
class UserConfig:
    model_name: str = DEFAULT_CONFIG["model_name"]
    max_tokens: int = DEFAULT_CONFIG["max_tokens"]
    fallback_models: tuple = ()
    response_language: str = DEFAULT_CONFIG["response_language"]
    max_rounds: int = DEFAULT_CONFIG["max_rounds"]
    agent_bin: str = DEFAULT_CONFIG["agent_bin"]
    context_dir: str = DEFAULT_CONFIG["context_dir"]
    prompt_dir: Optional[str] = None
    verify_max_retries: int = DEFAULT_CONFIG["verify_max_retries"]
    log_tail_lines: int = DEFAULT_CONFIG["log_tail_lines"]
    http_timeout: int = DEFAULT_CONFIG["http_timeout"]
    self_review_error_patterns: tuple = field(default=tuple(DEFAULT_CONFIG["self_review_error_patterns"]))


def validate_response_language(value) -> Optional[str]:
    """Return ``value`` if it is a supported language, otherwise warn and return None."""
    if not value:
        return None
    if value in VALID_LANGUAGES:
        return value
    logger.warning(
        "Invalid response_language %r, falling back to default. Valid values: %s",
        value,
        ", ".join(VALID_LANGUAGES),
    )
    return None


def _split_list(value) -> list:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value]


def _normalize(source: str, raw: dict) -> dict:
    """Coerce one source's values, dropping unset and invalid entries."""
    known = {f.name for f in fields(UserConfig)}
    result: dict = {}
    for key, value in raw.items():
        if key not in known:
            logger.debug("Ignoring unknown option %r from %s", key, source)
            continue
        if value is None or value == "":
            continue
        if key in _INT_FIELDS:
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-integer %s=%r from %s", key, value, source)
                continue
        elif key in _LIST_FIELDS:
            value = _split_list(value)
        elif key == "response_language":
            value = validate_response_language(value)
            if value is None:
                continue
        result[key] = value
    return result


def _load_file(config_path: str) -> dict:
    path = Path(config_path)
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse %s: %s", config_path, e)
        return {}
    if not isinstance(file_config, dict):
        logger.warning("Ignoring %s: expected a mapping at the top level", config_path)
        return {}
    logger.info("Loaded config from %s", config_path)
    return file_config


def load_config(config_path: str = ".github_agent.yml", cli_overrides: Optional[dict] = None) -> UserConfig:
    """
    Load configuration by merging (in order of precedence, lowest first):
      1. Built-in defaults
      2. The YAML config file
      3. GITHUB_AGENT_* environment variables
      4. Explicit per-run inputs (CLI flags / action inputs)

    Each source only overrides the options it actually sets.
    """
    config = {
        **DEFAULT_CONFIG,
        "fallback_models": [],
        "self_review_error_patterns": list(DEFAULT_CONFIG["self_review_error_patterns"]),
    }

    config.update(_normalize(config_path, _load_file(config_path)))

    env_config = {key: os.environ.get(var) for key, var in ENV_VARS.items()}
    config.update(_normalize("environment", env_config))

    if cli_overrides:
        config.update(_normalize("inputs", cli_overrides))

    config["fallback_models"] = tuple(config["fallback_models"])
    config["self_review_error_patterns"] = tuple(config["self_review_error_patterns"])
    return UserConfig(**config)


def load_credentials(inputs: Optional[dict] = None) -> dict:
    """Resolve provider credentials and base URLs; explicit inputs win over the environment."""
    inputs = inputs or {}
    names = (
        "openai_api_key",
        "openai_api_base",
        "anthropic_api_key",
        "anthropic_api_base",
        "gemini_api_key",
        "gemini_api_base",
    )
    return {name: inputs.get(name) or os.environ.get(name.upper()) for name in names}

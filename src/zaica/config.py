"""Configuration management for zaica.

Layers, later wins: built-in defaults, provider preset, YAML file,
environment, explicit overrides (CLI flags).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

_logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration could not be resolved."""


class ProviderPreset(BaseModel):
    name: str
    base_url: str
    key_env_var: str | None = None
    default_model: str
    chat_completions_path: str = "/chat/completions"
    requires_key: bool = True


PRESETS: dict[str, ProviderPreset] = {
    p.name: p for p in (
        ProviderPreset(
            name="glm",
            base_url="https://api.z.ai/api/paas/v4",
            key_env_var="GLM_API_KEY",
            default_model="glm-4.7-flash",
        ),
        ProviderPreset(
            name="openai",
            base_url="https://api.openai.com/v1",
            key_env_var="OPENAI_API_KEY",
            default_model="gpt-4o",
        ),
        ProviderPreset(
            name="deepseek",
            base_url="https://api.deepseek.com/v1",
            key_env_var="DEEPSEEK_API_KEY",
            default_model="deepseek-chat",
        ),
        ProviderPreset(
            name="ollama",
            base_url="http://localhost:11434/v1",
            default_model="llama3",
            requires_key=False,
        ),
    )
}

DEFAULT_SYSTEM_PROMPT = (
    "You are a coding assistant with access to tools. "
    "Use tools when the user asks to read, write, or search files, run commands, "
    "or explore the codebase. "
    "Always explain what you're about to do before using tools. "
    "Answer in the same language as the user."
)


class Config(BaseModel):
    provider: str = "glm"
    model: str | None = None  # None = preset default
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_tokens: int = Field(default=8192, gt=0)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    base_url: str | None = None  # overrides the preset endpoint


KeySource = Literal["override", "zaica_env", "provider_env", "config_file", "none"]


class ResolvedConfig(BaseModel):
    """Fully resolved configuration, ready for the completion client."""

    config: Config
    provider: ProviderPreset
    model: str
    completions_url: str
    api_key: str | None = None
    key_source: KeySource = "none"
    config_path: Path | None = None

    @property
    def max_tokens(self) -> int:
        return self.config.max_tokens

    @property
    def temperature(self) -> float:
        return self.config.temperature

    @property
    def system_prompt(self) -> str:
        return self.config.system_prompt

    def redacted(self) -> dict[str, Any]:
        """Resolved settings for display; the API key is masked."""
        key = self.api_key
        if key is None:
            masked = None
        elif len(key) > 8:
            masked = f"{key[:4]}...{key[-4:]}"
        else:
            masked = "****"
        return {
            "provider": self.provider.name,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "log_level": self.config.log_level,
            "completions_url": self.completions_url,
            "provider_base_url": self.provider.base_url,
            "config_file": str(self.config_path) if self.config_path else None,
            "api_key_source": self.key_source,
            "api_key": masked,
        }


CONFIG_FILENAME = "zaica.yaml"

_SEARCH_PATHS = [
    Path(CONFIG_FILENAME),
    Path.home() / ".config" / "zaica" / "config.yaml",
]

# Environment variable -> Config field
_ENV_FIELDS = {
    "ZAICA_PROVIDER": "provider",
    "ZAICA_MODEL": "model",
    "ZAICA_MAX_TOKENS": "max_tokens",
    "ZAICA_TEMPERATURE": "temperature",
    "ZAICA_BASE_URL": "base_url",
}


def _find_config_file(path: str | Path | None) -> Path | None:
    if path is not None:
        p = Path(path).expanduser()
        if not p.exists():
            raise ConfigError(f"Config file not found: {path}")
        return p
    for candidate in _SEARCH_PATHS:
        if candidate.exists():
            return candidate
    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return raw


def load_config(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> ResolvedConfig:
    """Resolve configuration from file, environment and overrides.

    ``overrides`` may hold any ``Config`` field plus ``api_key``; ``None``
    values are ignored so CLI options can be passed through unfiltered.
    ``env`` defaults to ``os.environ``.
    """
    env = os.environ if env is None else env
    layered: dict[str, Any] = {}
    file_key: str | None = None

    config_path = _find_config_file(path)
    if config_path is not None:
        _logger.info("Loading config from %s", config_path)
        raw = _read_yaml(config_path)
        file_key = raw.pop("api_key", None)
        layered.update(raw)
    else:
        _logger.debug("No config file found, using defaults")

    for var, name in _ENV_FIELDS.items():
        if env.get(var):
            layered[name] = env[var]

    overrides = dict(overrides or {})
    override_key = overrides.pop("api_key", None)
    layered.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = Config.model_validate(layered)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    preset = PRESETS.get(config.provider)
    if preset is None:
        raise ConfigError(
            f"Unknown provider {config.provider!r}; available: {', '.join(PRESETS)}"
        )

    api_key: str | None
    key_source: KeySource
    if override_key:
        api_key, key_source = override_key, "override"
    elif env.get("ZAICA_API_KEY"):
        api_key, key_source = env["ZAICA_API_KEY"], "zaica_env"
    elif preset.key_env_var and env.get(preset.key_env_var):
        api_key, key_source = env[preset.key_env_var], "provider_env"
    elif file_key:
        api_key, key_source = str(file_key), "config_file"
    else:
        api_key, key_source = None, "none"

    if preset.requires_key and api_key is None:
        hint = f" or {preset.key_env_var}" if preset.key_env_var else ""
        raise ConfigError(
            f"Provider {preset.name!r} requires an API key: set ZAICA_API_KEY{hint}"
        )

    base_url = (config.base_url or preset.base_url).rstrip("/")
    return ResolvedConfig(
        config=config,
        provider=preset,
        model=config.model or preset.default_model,
        completions_url=base_url + preset.chat_completions_path,
        api_key=api_key,
        key_source=key_source,
        config_path=config_path.resolve() if config_path else None,
    )

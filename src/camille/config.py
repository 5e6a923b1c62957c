"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation.

A broken or missing config file never prevents the daemon from starting:
every failure path logs and falls back to ``DEFAULT_CONFIG``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from camille import paths
from camille.log import get_logger

logger = get_logger(__name__)

LLMProvider = Literal["openai", "ollama", "anthropic"]

DEFAULT_MAX_TOOL_CALLS = 5


class LLMConfig(BaseModel):
    provider: LLMProvider
    model: str = Field(min_length=1)
    api_key: Optional[str] = Field(default=None, min_length=1)
    base_url: Optional[str] = Field(default=None, pattern=r"^https?://")


class AgentModelOverride(BaseModel):
    model: Optional[str] = Field(default=None, min_length=1)
    temperature: Optional[float] = Field(default=None, ge=0, le=2)


class AgentOverride(BaseModel):
    model: Optional[AgentModelOverride] = None
    system_prompt: Optional[str] = None


class AgentsConfig(BaseModel):
    planner: Optional[AgentOverride] = None
    synthesizer: Optional[AgentOverride] = None


class TelegramConfig(BaseModel):
    bot_token: str = Field(min_length=1)


class AppConfig(BaseModel):
    log_level: str = "INFO"
    telegram: Optional[TelegramConfig] = None
    llm: LLMConfig
    max_tool_calls: Optional[int] = Field(default=None, ge=1, le=20)
    agents: Optional[AgentsConfig] = None

    @property
    def effective_max_tool_calls(self) -> int:
        return self.max_tool_calls or DEFAULT_MAX_TOOL_CALLS


# Hardcoded defaults, independent of anything on disk.
DEFAULT_CONFIG = AppConfig(llm=LLMConfig(provider="ollama", model="llama3.2"))


class ConfigurationError(Exception):
    """Invalid or missing settings that make the daemon unable to start."""


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        value = os.environ.get(match.group(1))
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(
    config_path: str | Path | None = None, env_path: str | Path | None = None
) -> AppConfig:
    """Load and validate the config file, falling back to defaults on any problem."""
    config_file = Path(config_path) if config_path else paths.config()
    env_file = Path(env_path) if env_path else config_file.parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    if not config_file.exists():
        logger.info("config_not_found_using_defaults", path=str(config_file))
        return DEFAULT_CONFIG.model_copy(deep=True)

    try:
        raw_text = config_file.read_text(encoding="utf-8")
        data = yaml.safe_load(_interpolate_env_vars(raw_text)) or {}
        if not isinstance(data, dict):
            raise ValueError("top-level YAML value must be a mapping")
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "config_validation_failed_using_defaults",
            path=str(config_file),
            errors=e.errors(include_url=False),
        )
        return DEFAULT_CONFIG.model_copy(deep=True)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning("config_parse_error_using_defaults", path=str(config_file), error=str(e))
        return DEFAULT_CONFIG.model_copy(deep=True)

    logger.info("config_loaded", path=str(config_file))
    return config


def write_config(config: AppConfig, config_path: str | Path | None = None) -> Path:
    """Serialize *config* to YAML, omitting unset values."""
    config_file = Path(config_path) if config_path else paths.config()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(exclude_none=True)
    config_file.write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )
    return config_file

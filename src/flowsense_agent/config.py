"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    provider: str = "openai"  # "openai" | "anthropic"
    model: str = "gpt-4"
    api_key: str = ""
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout: float = 30.0  # seconds, enforced once per request by the SDK client
    max_retries: int = 3
    retry_base_delay: float = 1.0  # seconds; attempt n waits base * 2**n


class AgentConfig(BaseModel):
    max_iterations: int = 5
    enable_cache: bool = True
    cache_ttl: float = 300.0


class ContextConfig(BaseModel):
    max_messages: int = 10
    expiry_seconds: float = 30 * 60
    max_contexts: int = 100
    sweep_interval: float = 5 * 60


class CacheClassConfig(BaseModel):
    max_size: int = 1000
    default_ttl: float = 60.0


class CacheConfig(BaseModel):
    auto_cleanup: bool = True
    sweep_interval: float = 60.0
    balance: CacheClassConfig = Field(
        default_factory=lambda: CacheClassConfig(max_size=500, default_ttl=30.0)
    )
    price: CacheClassConfig = Field(
        default_factory=lambda: CacheClassConfig(max_size=500, default_ttl=60.0)
    )
    portfolio: CacheClassConfig = Field(
        default_factory=lambda: CacheClassConfig(max_size=200, default_ttl=60.0)
    )
    llm: CacheClassConfig = Field(
        default_factory=lambda: CacheClassConfig(max_size=100, default_ttl=300.0)
    )


class StorageConfig(BaseModel):
    db_path: str = "./data/flowsense.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"
    data_dir: str = "./data"
    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other values, e.g. "${data_dir}/flowsense.db"
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(raw_data.get("data_dir", "./data"))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)

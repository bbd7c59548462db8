"""Configuration loader — reads config.yaml, applies env overrides, validates with Pydantic.

The loaded ``CopilotConfig`` is handed explicitly to the orchestrator and the
generation client; nothing in the pipeline reads the environment itself.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from copilot.agents.retry import RetryPolicy

logger = logging.getLogger(__name__)

SERVICE_NAME = "PRS Co-Pilot API"
SERVICE_VERSION = "0.1.0"


class RetryConfig(BaseModel):
    """Backoff settings for every upstream role call."""

    tries: int = 3
    base_delay_ms: float = 650
    factor: float = 1.6
    jitter_ms: float = 300

    @field_validator("tries")
    @classmethod
    def at_least_one_try(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry.tries must be >= 1")
        return v

    @field_validator("base_delay_ms", "jitter_ms")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("retry delays must be >= 0")
        return v

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            tries=self.tries,
            base_delay_ms=self.base_delay_ms,
            factor=self.factor,
            jitter_ms=self.jitter_ms,
        )


class PipelineConfig(BaseModel):
    """Shape of the review loop."""

    max_rounds: int = 3
    payload_tag: str = "SurgicalPlan"

    @field_validator("max_rounds")
    @classmethod
    def at_least_one_round(cls, v: int) -> int:
        if v < 1:
            raise ValueError("pipeline.max_rounds must be >= 1")
        return v


class CopilotConfig(BaseModel):
    """Top-level service configuration."""

    # Upstream generation service
    openai_api_key: str | None = None
    default_model: str = "gpt-5"
    fallback_model: str = "gpt-4o"
    temperature: float = 0.2
    request_timeout_s: float | None = 60.0

    retry: RetryConfig = Field(default_factory=RetryConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    # Auth, CORS & serving
    api_key: str | None = None
    allowed_origins: list[str] = ["*"]
    port: int = 8787


# Environment variable → config field
ENV_OVERRIDES: dict[str, str] = {
    "OPENAI_API_KEY": "openai_api_key",
    "MODEL_DEFAULT": "default_model",
    "COPILOT_API_KEY": "api_key",
    "PORT": "port",
}


def apply_env_overrides(raw: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Return a copy of ``raw`` with any set environment variables layered on top."""
    environ = os.environ if environ is None else environ
    merged = dict(raw)
    for var, field in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            merged[field] = value
    return merged


# ---------------------------------------------------------------------------
# Module-level config cache
# ---------------------------------------------------------------------------

_config: CopilotConfig | None = None
_config_path: str = "config.yaml"


def load_config(path: str = "config.yaml") -> CopilotConfig:
    """Read config.yaml (if present), apply env overrides, validate, and cache."""
    global _config, _config_path
    _config_path = path

    config_file = Path(path)
    if config_file.exists():
        raw = yaml.safe_load(config_file.read_text()) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file must contain a mapping: {config_file.resolve()}")
    else:
        logger.info(f"No config file at {config_file.resolve()}, using defaults + environment")
        raw = {}

    _config = CopilotConfig(**apply_env_overrides(raw))

    logger.info(
        f"Loaded config: default_model={_config.default_model}, "
        f"fallback_model={_config.fallback_model}, "
        f"max_rounds={_config.pipeline.max_rounds}, retry_tries={_config.retry.tries}"
    )
    return _config


def get_config() -> CopilotConfig:
    """Return cached config. Raises if not yet loaded."""
    if _config is None:
        raise RuntimeError("Config not loaded — call load_config() first")
    return _config


def reload_config() -> CopilotConfig:
    """Re-read config from disk. Called by /reload endpoint."""
    logger.info(f"Reloading config from {_config_path}")
    return load_config(_config_path)

"""Pydantic models for engine configuration and config file loading."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from context_tiers import constants
from context_tiers.core.utils import console
from context_tiers.errors import ConfigurationError

# --- Config File Loading ---

CONFIG_PATH = Path.home() / ".config" / "context-tiers" / "config.toml"
CONFIG_PATH_2 = Path("context-tiers.toml")


def _replace_dashed_keys_recursive(d: dict[str, Any]) -> dict[str, Any]:
    """Recursively replace dashed keys with underscores in a dictionary."""
    new_dict: dict[str, Any] = {}
    for k, v in d.items():
        new_key = k.replace("-", "_")
        if isinstance(v, dict):
            new_dict[new_key] = _replace_dashed_keys_recursive(v)
        elif isinstance(v, list):
            new_dict[new_key] = [
                _replace_dashed_keys_recursive(item) if isinstance(item, dict) else item
                for item in v
            ]
        else:
            new_dict[new_key] = v
    return new_dict


def load_config(config_path_str: str | None = None) -> dict[str, Any]:
    """Load the TOML configuration file and normalize its keys."""
    # Determine which config path to use
    if config_path_str:
        config_path = Path(config_path_str).expanduser()
    elif CONFIG_PATH.exists():
        config_path = CONFIG_PATH
    elif CONFIG_PATH_2.exists():
        config_path = CONFIG_PATH_2
    else:
        return {}

    if config_path.exists():
        try:
            with config_path.open("rb") as f:
                cfg = tomllib.load(f)
                return _replace_dashed_keys_recursive(cfg)
        except tomllib.TOMLDecodeError as e:
            console.print(
                f"[bold red]Error parsing config file {config_path}: {e}[/bold red]",
            )
            return {}

    # Report error only if an explicit path was given
    if config_path_str:
        console.print(
            f"[bold red]Config file not found at {config_path_str}[/bold red]",
        )
    return {}


# --- Context Management ---


class CompressionLevels(BaseModel):
    """Target retention per compressible zone."""

    mid_term: float = Field(constants.MID_TERM_RETENTION, gt=0.0, le=1.0)
    archive: float = Field(constants.ARCHIVE_RETENTION, gt=0.0, le=1.0)


class ContextSettings(BaseModel):
    """How the transcript is fitted into the model's context window."""

    strategy: Literal["trim", "smart_summarize"] = "smart_summarize"
    max_context_tokens: int | None = Field(None, gt=0)
    compress_threshold: float = Field(1.0, gt=0.0, le=1.0)

    recent_zone_tokens: int = Field(constants.RECENT_ZONE_TOKENS, gt=0)
    mid_term_zone_tokens: int = Field(constants.MID_TERM_ZONE_TOKENS, gt=0)
    compression_levels: CompressionLevels = Field(default_factory=CompressionLevels)

    max_chunk_chars: int = Field(constants.MAX_CHUNK_CHARS, gt=0)
    max_chunk_entries: int = Field(constants.MAX_CHUNK_ENTRIES, gt=0)
    max_concurrent_chunks: int = Field(constants.MAX_CONCURRENT_CHUNKS, gt=0)
    min_viable_chars: int = Field(constants.MIN_VIABLE_CHARS, ge=0)
    min_output_fraction: float = Field(constants.MIN_OUTPUT_FRACTION, ge=0.0, le=1.0)


# --- Summarization Backends ---


class BackendSettings(BaseModel):
    """One entry of the backend chain."""

    kind: Literal["llm", "openrouter", "koboldcpp"]
    model: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    api_key_env: str | None = None
    timeout: float = Field(constants.DEFAULT_BACKEND_TIMEOUT, gt=0.0)

    @field_validator("base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, v: str | None) -> str | None:
        if v:
            return v.rstrip("/")
        return v

    def resolve_api_key(self, *, required: bool) -> str | None:
        """Return the configured API key, falling back to ``api_key_env``.

        Raises:
            ConfigurationError: If ``required`` and no key is available.

        """
        key = self.api_key
        if not key and self.api_key_env:
            key = os.environ.get(self.api_key_env)
        if required and not (key and key.strip()):
            source = f" (or set {self.api_key_env})" if self.api_key_env else ""
            msg = f"No API key configured for the '{self.kind}' summarization backend{source}."
            raise ConfigurationError(msg)
        return key


class RetryPolicy(BaseModel):
    """Retry with exponential backoff: ``base_delay * multiplier ** (attempt - 1)``."""

    max_attempts: int = Field(constants.RETRY_MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(constants.RETRY_BASE_DELAY, ge=0.0)
    multiplier: float = Field(constants.RETRY_MULTIPLIER, ge=1.0)
    max_delay: float = Field(constants.RETRY_MAX_DELAY, ge=0.0)

    @model_validator(mode="after")
    def _check_delays(self) -> RetryPolicy:
        if self.max_delay < self.base_delay:
            msg = "max_delay must be greater than or equal to base_delay"
            raise ValueError(msg)
        return self


# --- Telemetry ---


class TelemetrySettings(BaseModel):
    """Where compression telemetry lives and how long it is kept."""

    path: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "context-tiers" / "telemetry.json",
    )
    max_entries: int = Field(constants.TELEMETRY_MAX_ENTRIES, gt=0)
    retention_days: float = Field(constants.TELEMETRY_RETENTION_DAYS, gt=0)
    cleanup_interval: float = Field(constants.TELEMETRY_CLEANUP_INTERVAL, gt=0)
    preview_chars: int = Field(constants.TELEMETRY_PREVIEW_CHARS, gt=0)

    @field_validator("path", mode="before")
    @classmethod
    def _expand_user_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser()


class EngineConfig(BaseModel):
    """Everything the engine needs, as read from the config file."""

    context: ContextSettings = Field(default_factory=ContextSettings)
    backends: list[BackendSettings] = Field(default_factory=list)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)


def load_engine_config(config_path_str: str | None = None) -> EngineConfig:
    """Load and validate the engine configuration (defaults when no file exists)."""
    return EngineConfig.model_validate(load_config(config_path_str))

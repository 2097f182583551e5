"""Helpers shared by the CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer

from context_tiers import constants
from context_tiers.config import EngineConfig, load_engine_config
from context_tiers.core.utils import print_error_message
from context_tiers.entities import ModelInfo
from context_tiers.errors import ContextTiersError
from context_tiers.telemetry import JsonFileTelemetryStore, TelemetryRecorder
from context_tiers.transcript import Transcript, load_transcript


def load_settings(
    config_file: str | None,
    *,
    telemetry_path: str | None = None,
    max_context_tokens: int | None = None,
) -> EngineConfig:
    """Load the config file and apply command-line overrides."""
    try:
        config = load_engine_config(config_file)
    except ValueError as e:
        print_error_message(f"Invalid configuration: {e}", "Check your context-tiers.toml.")
        raise typer.Exit(1) from e

    if telemetry_path:
        config.telemetry = config.telemetry.model_copy(
            update={"path": Path(telemetry_path).expanduser()},
        )
    if max_context_tokens:
        config.context = config.context.model_copy(
            update={"max_context_tokens": max_context_tokens},
        )
    return config


def build_recorder(config: EngineConfig) -> TelemetryRecorder:
    """A recorder persisting to the configured telemetry file."""
    store = JsonFileTelemetryStore(config.telemetry.path, config.telemetry.max_entries)
    return TelemetryRecorder(store, config.telemetry)


def open_transcript(path: Path) -> Transcript:
    """Load a transcript or exit with an error panel."""
    try:
        return load_transcript(path)
    except ContextTiersError as e:
        print_error_message(str(e), "Transcripts are JSON: {conversation_id, entries: [...]}.")
        raise typer.Exit(1) from e


def resolve_model(
    transcript: Transcript,
    model_id: str | None,
    provider: str | None,
) -> ModelInfo | None:
    """Command-line model options take precedence over the transcript's model."""
    base = transcript.model
    if model_id is None and provider is None:
        return base
    return ModelInfo(
        id=model_id or (base.id if base else constants.DEFAULT_TOKENIZER_MODEL),
        provider=provider or (base.provider if base else "openai"),
        context_length_tokens=base.context_length_tokens if base else None,
    )


def read_system_prompt(path: str | None) -> str:
    """Read the system prompt file, or return an empty prompt."""
    if not path:
        return ""
    prompt_path = Path(path).expanduser()
    if not prompt_path.exists():
        print_error_message(f"System prompt file not found: {prompt_path}")
        raise typer.Exit(1)
    return prompt_path.read_text(encoding="utf-8")

"""Shared Typer options for the context-tiers CLI."""

from __future__ import annotations

import typer

# --- Transcript / Model Options ---
MODEL: str | None = typer.Option(
    None,
    "--model",
    "-m",
    help="Model id used for token counting. Defaults to the transcript's model.",
    rich_help_panel="Model Options",
)
PROVIDER: str | None = typer.Option(
    None,
    "--provider",
    help="Model provider (e.g. 'openai', 'google'). Google models use a character-ratio tokenizer.",
    rich_help_panel="Model Options",
)
MAX_CONTEXT_TOKENS: int | None = typer.Option(
    None,
    "--max-context-tokens",
    min=1,
    help="Override the model's context window size.",
    rich_help_panel="Model Options",
)
SYSTEM_PROMPT_FILE: str | None = typer.Option(
    None,
    "--system-prompt-file",
    help="File with the system prompt; its tokens are reserved before budgeting.",
    rich_help_panel="Model Options",
)

# --- Telemetry Options ---
CONVERSATION_ID: str | None = typer.Option(
    None,
    "--conversation-id",
    "-c",
    help="Only show entries for this conversation.",
    rich_help_panel="Telemetry Options",
)
TELEMETRY_PATH: str | None = typer.Option(
    None,
    "--telemetry-path",
    help="Telemetry JSON file. Overrides the config file.",
    rich_help_panel="Telemetry Options",
)
JSON_OUTPUT: bool = typer.Option(
    False,  # noqa: FBT003
    "--json",
    help="Print machine-readable JSON instead of tables.",
    rich_help_panel="Output Options",
)

# --- General Options ---
LOG_LEVEL: str = typer.Option(
    "WARNING",
    "--log-level",
    help="Set logging level.",
    case_sensitive=False,
    rich_help_panel="General Options",
)
LOG_FILE: str | None = typer.Option(
    None,
    "--log-file",
    help="Path to a file to write logs to.",
    rich_help_panel="General Options",
)
QUIET: bool = typer.Option(
    False,  # noqa: FBT003
    "--quiet",
    "-q",
    help="Suppress console output from rich.",
    rich_help_panel="General Options",
)
CONFIG_FILE: str | None = typer.Option(
    None,
    "--config",
    help="Path to a TOML configuration file.",
    rich_help_panel="General Options",
)
PRINT_ARGS: bool = typer.Option(
    False,  # noqa: FBT003
    "--print-args",
    help="Print the command line arguments, including variables taken from the configuration file.",
    rich_help_panel="General Options",
)

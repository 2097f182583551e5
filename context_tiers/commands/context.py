"""Commands that inspect and manage a transcript's context budget."""

from __future__ import annotations

import asyncio
import contextlib
import json
from pathlib import Path  # noqa: TC003 - Typer evaluates annotations at runtime
from typing import TYPE_CHECKING

import typer
from rich.table import Table

from context_tiers import opts
from context_tiers.cli import app
from context_tiers.commands._common import (
    build_recorder,
    load_settings,
    open_transcript,
    read_system_prompt,
    resolve_model,
)
from context_tiers.context.budget import compute_usage, count_entries, resolve_max_tokens
from context_tiers.context.manager import ContextManager
from context_tiers.context.tokenizer import TokenizerAdapter
from context_tiers.context.zones import partition
from context_tiers.core.utils import (
    console,
    create_status,
    print_command_line_args,
    print_output_panel,
    print_table,
    print_with_style,
    setup_logging,
)
from context_tiers.transcript import save_transcript

if TYPE_CHECKING:
    from context_tiers.context.manager import ManagedContext
    from context_tiers.entities import ContextUsage

TRANSCRIPT_ARGUMENT = typer.Argument(
    ...,
    exists=True,
    dir_okay=False,
    help="Transcript JSON file.",
)


def _usage_style(usage: ContextUsage) -> str:
    if usage.exceeds:
        return "red"
    if usage.utilization_pct >= 80:  # noqa: PLR2004
        return "yellow"
    return "green"


def _format_usage(usage: ContextUsage) -> str:
    return f"{usage.total_tokens:,} / {usage.max_tokens:,} tokens ({usage.utilization_pct:.1f}%)"


@app.command("usage")
def usage_command(
    *,
    transcript_path: Path = TRANSCRIPT_ARGUMENT,
    model_id: str | None = opts.MODEL,
    provider: str | None = opts.PROVIDER,
    max_context_tokens: int | None = opts.MAX_CONTEXT_TOKENS,
    system_prompt_file: str | None = opts.SYSTEM_PROMPT_FILE,
    json_output: bool = opts.JSON_OUTPUT,
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    quiet: bool = opts.QUIET,
    config_file: str | None = opts.CONFIG_FILE,
    print_args: bool = opts.PRINT_ARGS,
) -> None:
    """Show how much of the model's context window a transcript uses."""
    if print_args:
        print_command_line_args(locals())
    setup_logging(log_level, log_file, quiet=quiet)

    config = load_settings(config_file, max_context_tokens=max_context_tokens)
    transcript = open_transcript(transcript_path)
    model = resolve_model(transcript, model_id, provider)
    tokenizer = TokenizerAdapter()
    reserved = asyncio.run(tokenizer.count(read_system_prompt(system_prompt_file), model))
    usage = asyncio.run(
        compute_usage(
            transcript.entries,
            model,
            config.context,
            tokenizer,
            reserved_tokens=reserved,
        ),
    )

    if json_output:
        print(json.dumps(usage.model_dump(mode="json"), indent=2))
        return
    print_output_panel(
        _format_usage(usage),
        title=f"Context usage: {transcript.conversation_id}",
        subtitle=f"[dim]{len(transcript.entries)} entries, {reserved:,} reserved[/dim]",
        style=_usage_style(usage),
    )


@app.command("zones")
def zones_command(
    *,
    transcript_path: Path = TRANSCRIPT_ARGUMENT,
    model_id: str | None = opts.MODEL,
    provider: str | None = opts.PROVIDER,
    max_context_tokens: int | None = opts.MAX_CONTEXT_TOKENS,
    json_output: bool = opts.JSON_OUTPUT,
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    quiet: bool = opts.QUIET,
    config_file: str | None = opts.CONFIG_FILE,
) -> None:
    """Show how the transcript is partitioned into retention zones."""
    setup_logging(log_level, log_file, quiet=quiet)

    config = load_settings(config_file, max_context_tokens=max_context_tokens)
    transcript = open_transcript(transcript_path)
    model = resolve_model(transcript, model_id, provider)
    counts = asyncio.run(count_entries(transcript.entries, TokenizerAdapter(), model, config.context))
    zones = partition(
        transcript.entries,
        resolve_max_tokens(model, config.context),
        token_counts=counts,
        settings=config.context,
    )

    if json_output:
        data = [
            {
                "zone": zone.name.value,
                "entries": [entry.id for entry in zone.entries],
                "token_count": zone.token_count,
                "token_ceiling": zone.token_ceiling,
                "retention_rate": zone.retention_rate,
            }
            for zone in zones
        ]
        print(json.dumps(data, indent=2))
        return

    if not zones:
        print_with_style("Transcript is empty.", style="yellow")
        return

    table = Table(title=f"Zones: {transcript.conversation_id}")
    table.add_column("Zone", style="bold cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Ceiling", justify="right")
    table.add_column("Retention", justify="right")
    table.add_column("Compressed", justify="right")
    for zone in zones:
        compressed = sum(1 for entry in zone.entries if entry.is_compressed)
        table.add_row(
            zone.name.value,
            str(len(zone.entries)),
            f"{zone.token_count:,}",
            f"{zone.token_ceiling:,}",
            f"{zone.retention_rate:.0%}",
            str(compressed),
        )
    print_table(table)


def _display_managed(managed: ManagedContext, *, quiet: bool) -> None:
    """Print the outcome of a compress run."""
    for warning in managed.warnings:
        print_with_style(f"Warning: {warning}", style="bold yellow")
    if quiet:
        return

    if not managed.was_managed:
        print_with_style(
            f"Transcript fits ({_format_usage(managed.usage_before)}); nothing to do.",
            style="green",
        )
        return

    if managed.results:
        table = Table(title="Compression results")
        table.add_column("Zone", style="bold cyan")
        table.add_column("Chunk", justify="right")
        table.add_column("Backend")
        table.add_column("Status")
        table.add_column("Tokens", justify="right")
        table.add_column("Attempts", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Reason")
        status_styles = {"success": "green", "fallback": "yellow", "error": "red"}
        for result in managed.results:
            style = status_styles[result.status]
            table.add_row(
                result.zone.value,
                f"{result.chunk_index + 1}/{result.total_chunks}",
                result.backend_id,
                f"[{style}]{result.status}[/{style}]",
                f"{result.input_tokens:,} -> {result.output_tokens:,}",
                str(result.attempts),
                f"{result.duration:.2f}s",
                result.fallback_reason or "",
            )
        print_table(table)

    console.print(f"Before: [bold]{_format_usage(managed.usage_before)}[/bold]")
    console.print(f"After:  [bold]{_format_usage(managed.usage_after)}[/bold]")
    console.print(f"Messages in context: [bold]{len(managed.messages)}[/bold]")


@app.command("compress")
def compress_command(
    *,
    transcript_path: Path = TRANSCRIPT_ARGUMENT,
    model_id: str | None = opts.MODEL,
    provider: str | None = opts.PROVIDER,
    max_context_tokens: int | None = opts.MAX_CONTEXT_TOKENS,
    system_prompt_file: str | None = opts.SYSTEM_PROMPT_FILE,
    dry_run: bool = typer.Option(
        False,  # noqa: FBT003
        "--dry-run",
        help="Compress, but do not write summaries back to the transcript file.",
    ),
    telemetry_path: str | None = opts.TELEMETRY_PATH,
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    quiet: bool = opts.QUIET,
    config_file: str | None = opts.CONFIG_FILE,
    print_args: bool = opts.PRINT_ARGS,
) -> None:
    """Fit a transcript into the context window, summarizing older zones.

    Summaries are written back next to the original text in the transcript
    file; the original text is never changed.

    Examples:
        # Compress with the backends from ~/.config/context-tiers/config.toml
        context-tiers compress chat.json

        # Pretend the model only has 16k tokens of context
        context-tiers compress chat.json --max-context-tokens 16000 --dry-run

    """
    if print_args:
        print_command_line_args(locals())
    setup_logging(log_level, log_file, quiet=quiet)

    config = load_settings(
        config_file,
        telemetry_path=telemetry_path,
        max_context_tokens=max_context_tokens,
    )
    transcript = open_transcript(transcript_path)
    model = resolve_model(transcript, model_id, provider)
    system_prompt = read_system_prompt(system_prompt_file)
    manager = ContextManager.from_config(config, recorder=build_recorder(config))

    if not quiet:
        status = create_status(f"Managing context for {transcript.conversation_id}...")
    else:
        status = contextlib.nullcontext()

    with status:
        managed = asyncio.run(
            manager.manage(
                transcript.entries,
                model,
                transcript.conversation_id,
                system_prompt=system_prompt,
            ),
        )

    _display_managed(managed, quiet=quiet)
    if managed.results and not dry_run:
        save_transcript(transcript_path, transcript)
        if not quiet:
            print_with_style(f"Summaries written to {transcript_path}")
